"""
YAML Rule Loader for layerfix

Loads user-defined pattern rules from the validators directory
(data/validators/ by default). Rules are evaluated by Layer 6 on top of the
built-in checks, so teams can flag project-specific patterns without writing
Python code.

Schema:

    validators:
      no_debugger:
        enabled: true
        severity: high
        description: Debugger statements left in source
        rules:
          - name: debugger_statement
            check_code_regex: '\\bdebugger\\s*;'
            message: Remove debugger statements before shipping

A rule matches with ``check_code_for`` (list of case-insensitive regexes,
any one matching) or ``check_code_regex`` (single multiline regex).

See data/validators/default.yaml for examples.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ...config import config
from ...models.transform import Issue, Severity

logger = logging.getLogger(__name__)

CUSTOM_RULE_TYPE = "custom-rule"

# Accept the severity words of the host application's validators as well
_SEVERITY_ALIASES = {
    "info": Severity.LOW,
    "warning": Severity.MEDIUM,
    "error": Severity.HIGH,
}


def parse_severity(value: Any, default: Severity = Severity.MEDIUM) -> Severity:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in _SEVERITY_ALIASES:
        return _SEVERITY_ALIASES[text]
    try:
        return Severity(text)
    except ValueError:
        logger.warning(f"Unknown rule severity {value!r}, using {default.value}")
        return default


class YAMLRuleLoader:
    """
    Loads and evaluates YAML-defined pattern rules.

    Malformed files are logged and skipped; a missing directory simply means
    no custom rules.
    """

    def __init__(self, validators_dir: Optional[str] = None):
        """
        Initialize the loader.

        Args:
            validators_dir: Directory containing .yaml rule files (defaults to config.get_validators_dir())
        """
        if validators_dir is None:
            validators_dir = config.get_validators_dir()
        self.validators_dir = Path(validators_dir)
        self.rules: Dict[str, Dict[str, Any]] = {}
        self._load_all_rules()

    def _load_all_rules(self) -> None:
        if not self.validators_dir.exists():
            logger.debug(f"Validators directory does not exist: {self.validators_dir}")
            return

        yaml_files = sorted(self.validators_dir.glob("*.yaml"))
        if not yaml_files:
            logger.debug(f"No .yaml files found in {self.validators_dir}")
            return

        for yaml_file in yaml_files:
            try:
                with open(yaml_file, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                logger.error(f"Failed to parse {yaml_file.name}: {e}")
                continue
            except OSError as e:
                logger.error(f"Error loading {yaml_file.name}: {e}")
                continue

            validators = data.get('validators') if isinstance(data, dict) else None
            if not isinstance(validators, dict):
                logger.warning(f"No 'validators' mapping found in {yaml_file.name}")
                continue

            loaded = 0
            for validator_name, validator_config in validators.items():
                if not isinstance(validator_config, dict):
                    logger.warning(f"Skipping validator {validator_name} in {yaml_file.name}: not a mapping")
                    continue
                self.rules[validator_name] = validator_config
                loaded += 1
            logger.info(f"Loaded {loaded} rule validator(s) from {yaml_file.name}")

    def validate(self, code: str, layer_id: int = 6) -> List[Issue]:
        """
        Run every enabled rule against ``code``.

        Returns:
            One Issue per failing rule (empty if all passed)
        """
        issues: List[Issue] = []

        for validator_name, validator_config in self.rules.items():
            if not validator_config.get('enabled', True):
                continue

            default_severity = parse_severity(validator_config.get('severity'))

            for rule in validator_config.get('rules') or []:
                message = self._check_rule(rule, code)
                if message is None:
                    continue
                issues.append(
                    Issue(
                        type=CUSTOM_RULE_TYPE,
                        severity=parse_severity(rule.get('severity'), default_severity),
                        description=message,
                        layer=layer_id,
                        pattern=f"{validator_name}.{rule.get('name', 'rule')}",
                    )
                )

        return issues

    def _check_rule(self, rule: Dict[str, Any], code: str) -> Optional[str]:
        """Return the failure message if the rule matches, None if it passed."""
        try:
            for pattern in rule.get('check_code_for') or []:
                if re.search(pattern, code, re.IGNORECASE):
                    return rule.get('message', f"Found suspicious pattern in code: {pattern}")

            pattern = rule.get('check_code_regex')
            if pattern and re.search(pattern, code, re.MULTILINE):
                return rule.get('message', "Pattern matched in code")
        except re.error as e:
            logger.warning(f"Invalid pattern in rule {rule.get('name', '?')}: {e}")

        return None

    def reload(self) -> None:
        """Reload all YAML rule files (useful during development)."""
        logger.info("Reloading YAML rules...")
        self.rules.clear()
        self._load_all_rules()

    def count(self) -> int:
        return sum(len(v.get('rules') or []) for v in self.rules.values() if v.get('enabled', True))
