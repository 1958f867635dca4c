"""Battery Daemon: publishes local battery state to MQTT with Home Assistant discovery."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("battery-daemon")
except Exception:
    __version__ = "dev"
