"""Thread-safe AST report cache with TTL.

Caches enhanced-engine reports keyed by ``(filename, sha256(code))`` so that
identical inputs (retries, repeated dry runs) skip the tree-sitter walk. A
miss is always safe: the cache never changes results, it only saves time.

Usage:
    cache = AstCache(ttl=300)
    report = cache.get(filename, code)      # None on miss/expiry
    cache.put(filename, code, report)
    cache.invalidate(filename)              # every entry for one file
    cache.clear()
"""

import hashlib
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

from ..config import config

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


class AstCache:
    """Thread-safe report cache with TTL for concurrent pipeline runs.

    Attributes:
        ttl: Time-to-live in seconds (default: engine.ast_cache_ttl)
    """

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = config.get_ast_cache_ttl() if ttl is None else ttl
        self._cache: Dict[CacheKey, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def key(filename: str, code: str) -> CacheKey:
        return filename, hashlib.sha256(code.encode("utf-8")).hexdigest()

    def get(self, filename: str, code: str) -> Optional[Any]:
        key = self.key(filename, code)
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                value, timestamp = entry
                if time.time() - timestamp < self.ttl:
                    self._hits += 1
                    logger.debug(f"AST cache hit for {filename}")
                    return value
                logger.debug(f"AST cache expired for {filename}")
                del self._cache[key]
            self._misses += 1
            return None

    def put(self, filename: str, code: str, value: Any) -> None:
        with self._lock:
            self._cache[self.key(filename, code)] = (value, time.time())

    def invalidate(self, filename: str) -> int:
        """Drop every entry for ``filename``. Returns the number removed."""
        with self._lock:
            stale = [key for key in self._cache if key[0] == filename]
            for key in stale:
                del self._cache[key]
        if stale:
            logger.info(f"Invalidated {len(stale)} AST cache entr(ies) for {filename}")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cleared AST cache ({count} entries)")

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "entries": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "ttl": self.ttl,
            }
