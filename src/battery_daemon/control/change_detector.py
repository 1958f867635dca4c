"""Strict deduplication of consecutive readings."""

from __future__ import annotations

from battery_daemon.sensor.reading import SENTINEL_READING, Reading


def should_publish(previous: Reading, candidate: Reading) -> bool:
    """A candidate is published only when it differs field-wise from the last one."""
    return previous != candidate


class ChangeDetector:
    """Holds the last published reading.

    ``last_published`` only moves when a publish is triggered, so a value
    that flaps back to something seen earlier still counts as a change.
    """

    def __init__(self, initial: Reading = SENTINEL_READING) -> None:
        self._last_published = initial
        self.suppressed_count = 0

    @property
    def last_published(self) -> Reading:
        return self._last_published

    def observe(self, candidate: Reading) -> bool:
        """Return True (and remember the candidate) when it should be published."""
        if not should_publish(self._last_published, candidate):
            self.suppressed_count += 1
            return False
        self._last_published = candidate
        return True
