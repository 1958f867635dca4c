"""Configuration loading, merging, and validation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from battery_daemon.config.schema import AppConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads config from YAML files and applies command-line overrides."""

    def __init__(
        self,
        defaults_path: Path | None = None,
        user_path: Path | None = None,
    ) -> None:
        self._defaults_path = defaults_path or Path("config.defaults.yaml")
        self._user_path = user_path or Path("config.yaml")

    def load(self, overrides: dict[str, Any] | None = None) -> AppConfig:
        """Load configuration from defaults + user file + explicit overrides.

        Args:
            overrides: Nested mapping applied last, e.g. values taken from
                command-line flags. Keys with a ``None`` value are ignored.
        """
        defaults = self._load_yaml(self._defaults_path)
        user = self._load_yaml(self._user_path)
        merged = self._deep_merge(defaults, user)
        if overrides:
            merged = self._deep_merge(merged, self._drop_none(overrides))
        config = AppConfig.model_validate(merged)
        logger.info("Configuration loaded successfully")
        return config

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in values.items():
            if isinstance(value, dict):
                nested = ConfigManager._drop_none(value)
                if nested:
                    result[key] = nested
            elif value is not None:
                result[key] = value
        return result

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, returning a new dict."""
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
