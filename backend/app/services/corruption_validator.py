"""
Corruption validator (structural sanity check for candidate edits).

Layers that splice text call this before committing a risky edit. A rejected
candidate is dropped and the pre-edit text is kept for that one fix only; the
rest of the layer continues (fix-local rollback).
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple

from ..config import config
from .source_utils import count_chars

logger = logging.getLogger(__name__)


# Signatures of text that a transformation has structurally broken. Each one only
# counts when it is newly introduced (absent from the "before" text).
CORRUPTION_SIGNATURES: Tuple[Tuple[str, re.Pattern], ...] = (
    ("double-invoked-handler", re.compile(r"onClick=\{[^}]*\)\s*=>\s*\(\)", re.MULTILINE)),
    ("malformed-handler-tail", re.compile(r"onClick=\{[^}]*\)\([^)]*\)$", re.MULTILINE)),
    ("duplicate-key-prop", re.compile(r"key=\{[^}]*\}[^>]*key=")),
    ("unterminated-key-prop", re.compile(r"<[^>]*key=\{[^}]*$", re.MULTILINE)),
)


class CorruptionValidator:
    """Heuristic before/after check used to gate candidate fixes."""

    def __init__(self, brace_tolerance: Optional[int] = None, paren_tolerance: Optional[int] = None):
        self.brace_tolerance = config.get_brace_tolerance() if brace_tolerance is None else brace_tolerance
        self.paren_tolerance = config.get_paren_tolerance() if paren_tolerance is None else paren_tolerance

    def is_valid(self, before: str, after: str) -> bool:
        """Return True when ``after`` is an acceptable edit of ``before``."""
        if before == after:
            return True

        if abs(count_chars(before, "{}") - count_chars(after, "{}")) > self.brace_tolerance:
            return False
        if abs(count_chars(before, "()") - count_chars(after, "()")) > self.paren_tolerance:
            return False

        return not self.introduced_signatures(before, after)

    def introduced_signatures(self, before: str, after: str) -> List[str]:
        """Names of corruption signatures present in ``after`` but not in ``before``."""
        return [
            name
            for name, pattern in CORRUPTION_SIGNATURES
            if pattern.search(after) and not pattern.search(before)
        ]

    def attempt(self, before: str, edit: Callable[[str], str], label: str = "edit") -> Tuple[str, bool]:
        """
        Apply ``edit`` to ``before`` and keep the result only if it validates.

        Returns ``(text, accepted)``; on rejection ``text`` is ``before`` unchanged.
        """
        candidate = edit(before)
        if candidate == before:
            return before, False
        if self.is_valid(before, candidate):
            return candidate, True

        logger.debug(
            f"Rejected candidate {label}: introduced={self.introduced_signatures(before, candidate)}"
        )
        return before, False
