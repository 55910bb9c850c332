"""
Enhanced AST Engine - tree-sitter validation for Layer 6.

Parses JavaScript/TypeScript/TSX with tree-sitter, reports syntax errors as
critical issues, attaches the performance optimizer report and computes a
quality score. Every failure mode surfaces as an ``EngineError`` subclass so
the validation layer can fall back to its regex checks.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, List, Optional

import tree_sitter
import tree_sitter_javascript
import tree_sitter_typescript

from ..config import config
from ..models.analysis import AstValidationReport, PerformanceAnalysis
from ..models.transform import Issue, Recommendation, Severity
from .ast_cache import AstCache
from .errors import AstEngineTimeout, EngineError, UnsupportedLanguageError
from .performance_optimizer import PerformanceOptimizer, walk

logger = logging.getLogger(__name__)

VALIDATION_LAYER_ID = 6

_JS_LANGUAGE = tree_sitter.Language(tree_sitter_javascript.language())
_TS_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_typescript())
_TSX_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_tsx())

LANGUAGES: Dict[str, tree_sitter.Language] = {
    "javascript": _JS_LANGUAGE,
    "typescript": _TS_LANGUAGE,
    "tsx": _TSX_LANGUAGE,
}

EXTENSION_LANGUAGES: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

SEVERITY_PENALTIES: Dict[Severity, int] = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}

MAX_REPORTED_SYNTAX_ERRORS = 10

# Analyses run off the caller's thread so a pathological input can be abandoned
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="ast-engine")


def quality_score(issues: List[Issue]) -> float:
    """100 minus a per-severity penalty for every issue, floored at 0."""
    penalty = sum(SEVERITY_PENALTIES.get(issue.severity, 0) for issue in issues)
    return float(max(0, 100 - penalty))


def syntax_error_lines(root: tree_sitter.Node) -> List[int]:
    """1-based line numbers of ERROR and missing nodes, in source order."""
    lines: List[int] = []
    if not root.has_error:
        return lines
    for node in walk(root):
        if node.type == "ERROR" or node.is_missing:
            line = node.start_point[0] + 1
            if line not in lines:
                lines.append(line)
    return sorted(lines)


class EnhancedAstEngine:
    """
    tree-sitter backed validator.

    Args:
        optimizer: Performance optimizer (default: a new PerformanceOptimizer)
        cache: Optional AstCache shared between runs
        timeout: Seconds allowed per analysis (default: engine.ast_timeout_seconds)
    """

    def __init__(
        self,
        optimizer: Optional[PerformanceOptimizer] = None,
        cache: Optional[AstCache] = None,
        timeout: Optional[float] = None,
    ):
        self.optimizer = optimizer or PerformanceOptimizer()
        self.cache = cache
        self.timeout = config.get_ast_timeout() if timeout is None else timeout

    @staticmethod
    def language_for(filename: str) -> str:
        extension = os.path.splitext(filename)[1].lower()
        language = EXTENSION_LANGUAGES.get(extension)
        if language is None:
            raise UnsupportedLanguageError(filename)
        return language

    @classmethod
    def parse_source(cls, code: str, filename: str) -> tree_sitter.Tree:
        parser = tree_sitter.Parser(LANGUAGES[cls.language_for(filename)])
        return parser.parse(code.encode("utf-8"))

    def analyze_performance(self, code: str, filename: str) -> PerformanceAnalysis:
        """Performance report only; unsupported files yield an empty analysis."""
        return self.optimizer.analyze(code, filename)

    def analyze(self, code: str, filename: str) -> AstValidationReport:
        """Parse and analyze synchronously (no timeout, no cache)."""
        language = self.language_for(filename)
        source = code.encode("utf-8")
        try:
            tree = tree_sitter.Parser(LANGUAGES[language]).parse(source)
        except Exception as e:
            raise EngineError(f"tree-sitter failed to parse {filename}: {e}") from e

        issues: List[Issue] = []
        recommendations: List[Recommendation] = []

        error_lines = syntax_error_lines(tree.root_node)
        for line in error_lines[:MAX_REPORTED_SYNTAX_ERRORS]:
            issues.append(
                Issue(
                    type="syntax",
                    severity=Severity.CRITICAL,
                    description=f"Syntax error at line {line}",
                    layer=VALIDATION_LAYER_ID,
                )
            )

        performance = self.optimizer.analyze_tree(tree, source)
        for bottleneck in performance.bottlenecks:
            issues.append(
                Issue(
                    type="performance",
                    severity=Severity(bottleneck.severity),
                    description=bottleneck.description,
                    layer=VALIDATION_LAYER_ID,
                    pattern=bottleneck.type.value,
                )
            )
        for optimization in performance.optimizations:
            recommendations.append(
                Recommendation(
                    type="performance",
                    description=f"{optimization.component}: {optimization.description}",
                    priority="high" if optimization.benefit >= 1 else "medium",
                )
            )
        for module in performance.heavy_imports:
            recommendations.append(
                Recommendation(
                    type="performance",
                    description=f"Consider lazy-loading heavy import '{module}'",
                    priority="low",
                )
            )

        return AstValidationReport(
            language=language,
            quality_score=quality_score(issues),
            syntax_error_lines=error_lines,
            issues=issues,
            recommendations=recommendations,
            performance=performance,
        )

    def validate(self, code: str, filename: str) -> AstValidationReport:
        """
        Cached, time-boxed analysis.

        Raises:
            UnsupportedLanguageError: No grammar for the file extension
            AstEngineTimeout: Analysis exceeded ``self.timeout`` seconds
            EngineError: Any other engine failure
        """
        self.language_for(filename)

        if self.cache is not None:
            cached = self.cache.get(filename, code)
            if cached is not None:
                return cached

        future = _executor.submit(self.analyze, code, filename)
        try:
            report = future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            raise AstEngineTimeout(filename, self.timeout)

        if self.cache is not None:
            self.cache.put(filename, code, report)
        return report
