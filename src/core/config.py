"""
Configuration loader for the evaluation suite.
Loads YAML config, applies an optional environment overlay and
resolves ${secret:KEY} references.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.core.secrets import SecretResolver

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/evaluation.yaml"


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge override into a copy of base."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


class Config:
    """
    Singleton config loader.

    Usage:
        config = Config.load("config/evaluation.yaml")
        threshold = config.get("evaluation.similarity_threshold")
        judge = config.get_section("judge")
    """

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def load(cls, config_path: str = DEFAULT_CONFIG_PATH, env: Optional[str] = None) -> "Config":
        """
        Load config from a YAML file.

        Args:
            config_path: Path to main config file
            env: Environment name; <config dir>/environments/{env}.yaml is
                merged over the main file when present

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config_path does not exist
        """
        instance = cls()

        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        config = _read_yaml(path)
        logger.info(f"Loaded config from {config_path}")

        if env:
            env_path = path.parent / "environments" / f"{env}.yaml"
            if env_path.exists():
                config = merge_configs(config, _read_yaml(env_path))
                logger.info(f"Applied environment override: {env}")
            else:
                logger.warning(f"Environment override not found: {env_path}")

        secrets = config.get("secrets") or {}
        resolver = SecretResolver(
            backend=secrets.get("backend", "env"),
            prefix=secrets.get("prefix", ""),
        )
        instance._config = resolver.resolve_config(config)
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Example:
            config.get("evaluation.similarity_threshold")  # Returns 0.85
            config.get("evaluation.missing", 1)  # Returns 1
        """
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire config section as dict."""
        return self.get(section, None) or {}

    @property
    def raw(self) -> Dict[str, Any]:
        """Get raw config dict."""
        return self._config

    @classmethod
    def reset(cls):
        """Reset singleton instance (useful for testing)."""
        cls._instance = None
        cls._config = {}
