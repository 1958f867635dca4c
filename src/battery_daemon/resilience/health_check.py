"""Failure tracking for the daemon's best-effort components.

Every error the daemon swallows (sensor reads, serialization, publishes,
queue overflow, event-loop disconnects, hostname lookup) is recorded here,
so it stays observable after the loop that hit it has moved on.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SENSOR = "sensor"
SERIALIZATION = "serialization"
PUBLISH = "publish"
QUEUE = "queue"
EVENT_LOOP = "event_loop"
HOSTNAME = "hostname"


@dataclass
class ComponentHealth:
    """Health state of a single component."""

    name: str
    healthy: bool = True
    last_success: float = 0.0
    last_failure: float = 0.0
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str = ""


class HealthChecker:
    """Tracks success/failure counts of every daemon component."""

    def __init__(self, max_consecutive_failures: int = 3) -> None:
        self._max_failures = max_consecutive_failures
        self._components: dict[str, ComponentHealth] = {}

    def register(self, name: str) -> None:
        """Register a component for health tracking."""
        self._components[name] = ComponentHealth(name=name, last_success=time.monotonic())

    def record_success(self, name: str) -> None:
        if name not in self._components:
            self.register(name)
        c = self._components[name]
        if not c.healthy:
            logger.info("Component '%s' recovered", name)
        c.healthy = True
        c.last_success = time.monotonic()
        c.consecutive_failures = 0
        c.total_successes += 1

    def record_failure(self, name: str, error: str = "") -> None:
        """Record a swallowed error for a component."""
        if name not in self._components:
            self.register(name)
        c = self._components[name]
        c.last_failure = time.monotonic()
        c.consecutive_failures += 1
        c.total_failures += 1
        c.last_error = error

        if c.healthy and c.consecutive_failures >= self._max_failures:
            c.healthy = False
            logger.warning(
                "Component '%s' marked unhealthy (%d consecutive failures): %s",
                name, c.consecutive_failures, error,
            )

    def is_healthy(self, name: str) -> bool:
        c = self._components.get(name)
        return c.healthy if c else True  # Unknown components assumed healthy

    def failure_count(self, name: str) -> int:
        c = self._components.get(name)
        return c.total_failures if c else 0

    def get_all_health(self) -> dict[str, ComponentHealth]:
        return dict(self._components)
