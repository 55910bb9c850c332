"""
Layer 6 - validation (detection only, never rewrites).

Tries the tree-sitter engine first for syntax errors, performance findings
and a quality score. Any engine failure drops back to three regex corruption
signatures. User-defined YAML rules are evaluated on both paths. A critical
finding fails the layer, which fails the pipeline.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from ...config import config
from ...models.transform import LayerResult, Severity, TransformOptions
from ..ast_engine import EnhancedAstEngine
from ..errors import EngineError, UnsupportedLanguageError
from ..validators.yaml_loader import YAMLRuleLoader
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

FALLBACK_SIGNATURES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\)\s*=>\s*\(\)"), "Malformed arrow functions"),
    (re.compile(r"onClick=\{[^}]*\)\([^)]*\)$", re.MULTILINE), "Malformed event handlers"),
    (re.compile(r"import\s*{\s*\n\s*import\s*{"), "Broken import statements"),
)


def fallback_findings(code: str) -> List[str]:
    """Descriptions of the regex corruption signatures present in ``code``."""
    return [description for pattern, description in FALLBACK_SIGNATURES if pattern.search(code)]


@LayerRegistry.register
class ValidationLayer(BaseLayer):
    """Final gate: syntax, corruption signatures, custom rules, quality score."""

    layer_id = 6
    name = "validation"
    description = "Syntax and corruption validation with quality scoring (detection only)"

    def __init__(self, engine: Optional[EnhancedAstEngine] = None, rule_loader: Optional[YAMLRuleLoader] = None):
        self._engine = engine
        self._rule_loader = rule_loader

    @property
    def engine(self) -> EnhancedAstEngine:
        if self._engine is None:
            self._engine = EnhancedAstEngine()
        return self._engine

    @property
    def rule_loader(self) -> YAMLRuleLoader:
        if self._rule_loader is None:
            self._rule_loader = YAMLRuleLoader()
        return self._rule_loader

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)

        score = None
        if config.is_enhanced_engine_enabled():
            score = self._enhanced(run, filename)
        if score is None:
            self._fallback(run)

        run.issues.extend(self.rule_loader.validate(code, layer_id=self.layer_id))

        critical = [issue.description for issue in run.issues if issue.severity == Severity.CRITICAL]
        if critical:
            logger.warning(f"Validation found {len(critical)} critical issue(s) in {filename}")
            return run.result(
                success=False,
                error=f"Critical validation issues: {'; '.join(critical)}",
                quality_score=score,
            )
        return run.result(quality_score=score)

    def _enhanced(self, run: LayerRun, filename: str) -> Optional[float]:
        """Run the tree-sitter engine; None means use the fallback."""
        try:
            report = self.engine.validate(run.original, filename)
        except UnsupportedLanguageError as e:
            logger.debug(f"Enhanced validation skipped: {e}")
            return None
        except EngineError as e:
            logger.warning(f"Enhanced validation failed, using regex fallback: {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected AST engine error, using regex fallback: {e}")
            return None

        run.issues.extend(report.issues)
        run.recommendations.extend(report.recommendations)
        return report.quality_score

    def _fallback(self, run: LayerRun) -> None:
        for description in fallback_findings(run.original):
            run.issue("validation", Severity.CRITICAL, description)
