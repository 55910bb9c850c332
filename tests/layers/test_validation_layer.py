"""
Tests for Layer 6 (validation).

Tests:
- Regex fallback when the enhanced engine is disabled
- tree-sitter syntax errors fail the layer with a quality score
- Engine failures (errors, timeouts, unsupported files) fall back to regex checks
- YAML rules are evaluated on both paths
- The layer never rewrites code
"""

import time
from unittest.mock import MagicMock, patch

import pytest

from backend.app.models.analysis import PerformanceAnalysis
from backend.app.models.transform import Severity, TransformOptions
from backend.app.services.ast_engine import EnhancedAstEngine
from backend.app.services.errors import EngineError
from backend.app.services.layers.validation_layer import ValidationLayer, fallback_findings
from backend.app.services.validators.yaml_loader import YAMLRuleLoader

BROKEN_ARROW = "const handler = (e) => ()\n"

RULES = """
validators:
  leftover_debugging:
    severity: high
    rules:
      - name: debugger_statement
        check_code_regex: '^\\s*debugger;'
        message: Remove debugger statements
"""


@pytest.fixture
def no_rules(tmp_path):
    return YAMLRuleLoader(str(tmp_path))


@pytest.fixture
def disabled_engine():
    with patch("backend.app.services.layers.validation_layer.config") as mock_config:
        mock_config.is_enhanced_engine_enabled.return_value = False
        yield mock_config


def make_layer(rule_loader, engine=None):
    return ValidationLayer(engine=engine or EnhancedAstEngine(timeout=10), rule_loader=rule_loader)


class TestFallbackSignatures:

    def test_malformed_arrow(self):
        assert fallback_findings(BROKEN_ARROW) == ["Malformed arrow functions"]

    def test_malformed_event_handler(self):
        assert fallback_findings("<a onClick={() => go)(x)") == ["Malformed event handlers"]

    def test_broken_import(self):
        assert fallback_findings("import {\n  import { a } from 'a';") == ["Broken import statements"]

    def test_clean_code(self):
        assert fallback_findings("export const a = () => 1;\n") == []

    def test_fallback_fails_layer(self, no_rules, disabled_engine):
        result = make_layer(no_rules).apply(BROKEN_ARROW, "a.js", TransformOptions())

        assert result.success is False
        assert result.error == "Critical validation issues: Malformed arrow functions"
        assert result.quality_score is None
        assert result.detected_issues[0].type == "validation"


class TestEnhancedPath:

    def test_clean_file_scores_100(self, no_rules):
        result = make_layer(no_rules).apply("export const a = 1;\n", "a.ts", TransformOptions())

        assert result.success is True
        assert result.quality_score == 100.0
        assert result.detected_issues == []

    def test_syntax_error_is_critical(self, no_rules):
        result = make_layer(no_rules).apply("const x = ;\n", "broken.js", TransformOptions())

        assert result.success is False
        assert result.error.startswith("Critical validation issues: Syntax error at line 1")
        assert result.detected_issues[0].severity == Severity.CRITICAL
        assert result.quality_score == 75.0

    def test_engine_error_uses_fallback(self, no_rules):
        engine = MagicMock()
        engine.validate.side_effect = EngineError("boom")

        result = make_layer(no_rules, engine).apply(BROKEN_ARROW, "a.js", TransformOptions())

        assert result.success is False
        assert result.detected_issues[0].description == "Malformed arrow functions"
        assert result.quality_score is None

    def test_timeout_uses_fallback(self, no_rules):
        optimizer = MagicMock()

        def slow(tree, source):
            time.sleep(0.5)
            return PerformanceAnalysis()

        optimizer.analyze_tree.side_effect = slow
        engine = EnhancedAstEngine(optimizer=optimizer, timeout=0.01)

        result = make_layer(no_rules, engine).apply("export const a = 1;\n", "a.js", TransformOptions())

        assert result.success is True
        assert result.quality_score is None

    def test_json_file_uses_fallback(self, no_rules):
        result = make_layer(no_rules).apply('{"a": 1}', "package.json", TransformOptions())

        assert result.success is True
        assert result.quality_score is None


class TestCustomRules:

    def test_rules_run_on_enhanced_path(self, tmp_path):
        (tmp_path / "team.yaml").write_text(RULES)
        code = "function f() {\n  debugger;\n}\n"

        result = make_layer(YAMLRuleLoader(str(tmp_path))).apply(code, "f.js", TransformOptions())

        assert result.success is True
        assert [issue.pattern for issue in result.detected_issues] == ["leftover_debugging.debugger_statement"]
        assert result.quality_score == 100.0

    def test_rules_run_on_fallback_path(self, tmp_path, disabled_engine):
        (tmp_path / "team.yaml").write_text(RULES)

        result = make_layer(YAMLRuleLoader(str(tmp_path))).apply("debugger;\n", "f.js", TransformOptions())

        assert [issue.type for issue in result.detected_issues] == ["custom-rule"]


def test_layer_never_rewrites(no_rules):
    code = "const x = ;\n"
    result = make_layer(no_rules).apply(code, "broken.js", TransformOptions())

    assert result.transformed == code
    assert result.applied_fixes == []
