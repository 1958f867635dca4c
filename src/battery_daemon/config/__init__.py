"""Configuration management for Battery Daemon."""

from battery_daemon.config.schema import AppConfig
from battery_daemon.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
