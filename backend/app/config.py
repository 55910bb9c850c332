"""
Configuration management for the layerfix engine.

Handles loading engine-level settings (validator tolerances, AST engine
timeout, cache TTL, custom rule directory).

Configuration priority (highest to lowest):
1. Environment variables (for Docker/container deployments)
2. config.json file (for local development)
3. Built-in defaults
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# Config file path at project root
CONFIG_FILE = Path(__file__).parent.parent.parent / "config.json"

# Default values (used when neither env var nor config.json specifies)
DEFAULT_BRACE_TOLERANCE = 6
DEFAULT_PAREN_TOLERANCE = 6
DEFAULT_AST_TIMEOUT_SECONDS = 5.0
DEFAULT_AST_CACHE_TTL = 300
DEFAULT_VALIDATORS_DIR = "data/validators"

_TRUE_VALUES = ("1", "true", "yes", "on")


class Config:
    """
    Engine configuration manager.

    Priority: ENV > config.json > defaults

    Environment variables for Docker:
      - LAYERFIX_BRACE_TOLERANCE: max |brace count delta| accepted by the corruption validator
      - LAYERFIX_PAREN_TOLERANCE: max |paren count delta| accepted by the corruption validator
      - LAYERFIX_AST_TIMEOUT: seconds allowed for the enhanced AST engine (Layer 6)
      - LAYERFIX_ENHANCED_ENGINE: "false" to always use the regex fallback in Layer 6
      - LAYERFIX_AST_CACHE_TTL: seconds an AST cache entry stays valid
      - LAYERFIX_VALIDATORS_DIR: directory holding user-defined YAML rules
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or CONFIG_FILE
        self.data = self.load()

    def load(self) -> Dict[str, Any]:
        """Load configuration from file."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    return json.load(f)
            except Exception as e:
                logger.error(f"Failed to load config: {e}")
                return self._default_config()
        else:
            return self._default_config()

    def save(self) -> None:
        """Save configuration to file."""
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.data, f, indent=2)
            logger.info(f"Configuration saved to {self.config_file}")
        except Exception as e:
            logger.error(f"Failed to save config: {e}")

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "engine": {
                "brace_tolerance": DEFAULT_BRACE_TOLERANCE,
                "paren_tolerance": DEFAULT_PAREN_TOLERANCE,
                "ast_timeout_seconds": DEFAULT_AST_TIMEOUT_SECONDS,
                "enhanced_engine_enabled": True,
                "ast_cache_ttl": DEFAULT_AST_CACHE_TTL,
            }
        }

    def _engine_value(self, env_name: str, key: str, default: Any, cast) -> Any:
        # Environment variable takes precedence (Docker/container deployments)
        env_value = os.getenv(env_name)
        if env_value:
            try:
                return cast(env_value)
            except ValueError:
                logger.warning(f"Ignoring invalid {env_name}={env_value!r}")

        # Config file second (local development)
        value = self.data.get("engine", {}).get(key)
        if value is None:
            return default
        try:
            return cast(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid engine.{key}={value!r} in {self.config_file}")
            return default

    def get_brace_tolerance(self) -> int:
        """Brace-count tolerance for the corruption validator."""
        return self._engine_value("LAYERFIX_BRACE_TOLERANCE", "brace_tolerance", DEFAULT_BRACE_TOLERANCE, int)

    def get_paren_tolerance(self) -> int:
        """Paren-count tolerance for the corruption validator."""
        return self._engine_value("LAYERFIX_PAREN_TOLERANCE", "paren_tolerance", DEFAULT_PAREN_TOLERANCE, int)

    def get_ast_timeout(self) -> float:
        """Seconds the enhanced AST engine may run before Layer 6 falls back."""
        return self._engine_value("LAYERFIX_AST_TIMEOUT", "ast_timeout_seconds", DEFAULT_AST_TIMEOUT_SECONDS, float)

    def get_ast_cache_ttl(self) -> int:
        return self._engine_value("LAYERFIX_AST_CACHE_TTL", "ast_cache_ttl", DEFAULT_AST_CACHE_TTL, int)

    def is_enhanced_engine_enabled(self) -> bool:
        """
        Whether Layer 6 should try the tree-sitter engine first.

        Priority: LAYERFIX_ENHANCED_ENGINE env var > config.json > default (enabled)
        """
        env_value = os.getenv('LAYERFIX_ENHANCED_ENGINE')
        if env_value:
            return env_value.strip().lower() in _TRUE_VALUES

        value = self.data.get("engine", {}).get("enhanced_engine_enabled", True)
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)

    def get_validators_dir(self) -> str:
        """Get custom YAML rules directory (ENV > config.json > default)."""
        # Environment variable takes precedence
        env_path = os.getenv('LAYERFIX_VALIDATORS_DIR')
        if env_path:
            return env_path

        # Config file second
        config_path = self.data.get('paths', {}).get('validators_dir')
        if config_path:
            return config_path

        # Default last, resolved against the project root
        return str(CONFIG_FILE.parent / DEFAULT_VALIDATORS_DIR)

    def set_engine_value(self, key: str, value: Any) -> None:
        """Set an engine setting in config.json."""
        if "engine" not in self.data:
            self.data["engine"] = {}
        self.data["engine"][key] = value
        self.save()


# Global config instance
config = Config()
