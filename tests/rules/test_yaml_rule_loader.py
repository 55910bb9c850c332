"""
Tests for YAMLRuleLoader.

Tests:
- Bundled default rules load and match
- Severity parsing (aliases, per-rule overrides, unknown values)
- Disabled validators, malformed files and bad regexes are skipped
"""

from pathlib import Path

import pytest

from backend.app.models.transform import Severity
from backend.app.services.validators.yaml_loader import YAMLRuleLoader, parse_severity

DEFAULT_RULES_DIR = Path(__file__).resolve().parent.parent.parent / "data" / "validators"


def loader_with(tmp_path, text: str) -> YAMLRuleLoader:
    (tmp_path / "rules.yaml").write_text(text)
    return YAMLRuleLoader(str(tmp_path))


class TestDefaultRules:

    @pytest.fixture
    def loader(self):
        return YAMLRuleLoader(str(DEFAULT_RULES_DIR))

    def test_loads_bundled_rules(self, loader):
        assert loader.count() == 3

    def test_debugger_statement(self, loader):
        issues = loader.validate("function f() {\n  debugger;\n}\n")

        assert [issue.pattern for issue in issues] == ["leftover_debugging.debugger_statement"]
        assert issues[0].severity == Severity.HIGH
        assert issues[0].layer == 6

    def test_eval_ignores_method_names(self, loader):
        assert loader.validate("model.eval(x);") == []
        assert len(loader.validate("eval('1 + 1');")) == 1

    def test_inner_html_case_insensitive(self, loader):
        issues = loader.validate("<div DANGEROUSLYSETINNERHTML={x} />")
        assert issues[0].severity == Severity.MEDIUM


class TestSeverity:

    @pytest.mark.parametrize(
        "value,expected",
        [("info", Severity.LOW), ("Warning", Severity.MEDIUM), ("error", Severity.HIGH), ("critical", Severity.CRITICAL)],
    )
    def test_aliases(self, value, expected):
        assert parse_severity(value) == expected

    def test_unknown_uses_default(self):
        assert parse_severity("fatal", Severity.LOW) == Severity.LOW

    def test_rule_overrides_validator(self, tmp_path):
        loader = loader_with(
            tmp_path,
            "validators:\n  v:\n    severity: low\n    rules:\n"
            "      - name: todo\n        severity: critical\n        check_code_for: ['TODO']\n",
        )
        issues = loader.validate("// todo: later")

        assert issues[0].severity == Severity.CRITICAL
        assert issues[0].description == "Found suspicious pattern in code: TODO"


class TestRobustness:

    def test_missing_directory(self, tmp_path):
        assert YAMLRuleLoader(str(tmp_path / "nope")).rules == {}

    def test_malformed_yaml_is_skipped(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("validators: [unclosed\n")
        (tmp_path / "good.yaml").write_text("validators:\n  v:\n    rules:\n      - check_code_for: ['x']\n")

        assert list(YAMLRuleLoader(str(tmp_path)).rules) == ["v"]

    def test_disabled_validator(self, tmp_path):
        loader = loader_with(tmp_path, "validators:\n  v:\n    enabled: false\n    rules:\n      - check_code_for: ['x']\n")

        assert loader.validate("x") == []
        assert loader.count() == 0

    def test_invalid_regex_is_ignored(self, tmp_path):
        loader = loader_with(tmp_path, "validators:\n  v:\n    rules:\n      - check_code_regex: '(unclosed'\n")
        assert loader.validate("(unclosed") == []

    def test_reload_picks_up_new_files(self, tmp_path):
        loader = YAMLRuleLoader(str(tmp_path))
        (tmp_path / "late.yaml").write_text("validators:\n  late:\n    rules:\n      - check_code_for: ['x']\n")
        loader.reload()

        assert "late" in loader.rules
