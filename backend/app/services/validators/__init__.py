"""
User-defined validation rules for layerfix.

Teams can flag project-specific patterns by:
1. Creating YAML files in data/validators/ (or LAYERFIX_VALIDATORS_DIR)
2. Following the schema defined in default.yaml

Rules are evaluated by Layer 6 on top of the built-in checks.
"""

from .yaml_loader import YAMLRuleLoader, parse_severity

__all__ = ["YAMLRuleLoader", "parse_severity"]
