"""Configuration loader for record identity reconciliation."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "TYPED_RECORDS_"

DEFAULTS: dict[str, Any] = {
    "identity": {
        # Query-time function that extracts the bare key of a record id
        "function": "meta::id",
        # Field name the derivation is aliased to when a shape has no identity field
        "alias": "rid",
    },
    "logging": {
        "level": "WARNING",
    },
}

# Environment variable -> dotted config key
ENV_OVERRIDES = {
    ENV_PREFIX + "IDENTITY_FUNCTION": "identity.function",
    ENV_PREFIX + "IDENTITY_ALIAS": "identity.alias",
    ENV_PREFIX + "LOG_LEVEL": "logging.level",
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ReconcilerConfig:
    """
    Configuration for identity reconciliation.

    Starts from built-in defaults, merges an optional YAML file on top and
    then applies ``TYPED_RECORDS_*`` environment overrides.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = copy.deepcopy(DEFAULTS)
        if self.config_path is not None:
            _merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        logger.info("Loading config from: %s", self.config_path)

        with open(self.config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ValueError(f"Config file {self.config_path} must contain a mapping")
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.set(key, value)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dotted key."""
        *parents, leaf = key.split(".")
        section = self.config
        for k in parents:
            section = section.setdefault(k, {})
        section[leaf] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    @property
    def identity_function(self) -> str:
        return self.get("identity.function", "meta::id")

    @property
    def identity_alias(self) -> str:
        return self.get("identity.alias", "rid")

    @property
    def log_level(self) -> int:
        """Return the configured level as a logging constant."""
        level = str(self.get("logging.level", "WARNING")).upper()
        resolved = logging.getLevelName(level)
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
