"""MQTT topic construction."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from enum import Enum

from battery_daemon.resilience.health_check import HOSTNAME, HealthChecker

logger = logging.getLogger(__name__)


class DiscoveryComponent(str, Enum):
    """Home Assistant component kinds used in discovery topics."""

    SENSOR = "sensor"
    BINARY_SENSOR = "binary_sensor"
    NONE = "none"


def state_topic(prefix: str) -> str:
    """Build the state topic from the configured topic prefix."""
    return f"{prefix}/state"


@dataclass(frozen=True)
class DiscoveryTopic:
    """``<discovery_prefix>/<component>[/<node_id>]/<object_id>/config``."""

    discovery_prefix: str
    component: DiscoveryComponent
    object_id: str
    node_id: str | None = None

    def __str__(self) -> str:
        parts = [self.discovery_prefix, self.component.value]
        if self.node_id:
            parts.append(self.node_id)
        parts.extend([self.object_id, "config"])
        return "/".join(parts)


def resolve_hostname(health: HealthChecker | None = None) -> str:
    """Return the host's network name, or an empty string if it cannot be determined."""
    try:
        hostname = socket.gethostname()
    except (OSError, UnicodeError) as e:
        logger.warning("Hostname lookup failed, using empty object id: %s", e)
        if health is not None:
            health.record_failure(HOSTNAME, str(e))
        return ""
    if health is not None:
        health.record_success(HOSTNAME)
    return hostname
