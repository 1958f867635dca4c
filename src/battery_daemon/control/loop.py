"""Sampling loop: read the battery every tick and publish changes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from battery_daemon.control.change_detector import ChangeDetector
from battery_daemon.logging.context import bind_context
from battery_daemon.mqtt.publisher import StatePublisher
from battery_daemon.resilience.health_check import SENSOR, HealthChecker
from battery_daemon.sensor.reader import SensorReader
from battery_daemon.sensor.reading import SENTINEL_READING, Reading

logger = logging.getLogger(__name__)


@dataclass
class LoopState:
    """Snapshot of the sampling loop state."""

    tick_count: int = 0
    published_count: int = 0
    last_reading: Reading | None = None


class SamplingLoop:
    """Blocking sensor reads on a fixed cadence, deduplicated and queued.

    Every tick (default 60 seconds):
    1. Read the sensor in a worker thread (sentinel reading on failure)
    2. Compare with the last published reading
    3. On change, serialize and enqueue the state message
    """

    def __init__(
        self,
        reader: SensorReader,
        publisher: StatePublisher,
        interval_seconds: float = 60.0,
        detector: ChangeDetector | None = None,
        health: HealthChecker | None = None,
    ) -> None:
        self._reader = reader
        self._publisher = publisher
        self._interval = interval_seconds
        self._detector = detector or ChangeDetector()
        self._health = health or HealthChecker()
        self._state = LoopState()

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def detector(self) -> ChangeDetector:
        return self._detector

    async def read(self) -> Reading:
        """Read the sensor, reporting the sentinel reading if it fails."""
        try:
            reading = await asyncio.to_thread(self._reader.read)
        except Exception as e:
            logger.warning("Battery read failed, reporting unknown state: %s", e)
            self._health.record_failure(SENSOR, str(e))
            return SENTINEL_READING
        self._health.record_success(SENSOR)
        return reading

    async def tick(self) -> bool:
        """Run one sampling tick. Returns True if a state message was queued."""
        reading = await self.read()
        self._state.tick_count += 1
        self._state.last_reading = reading

        if not self._detector.observe(reading):
            logger.debug("Battery unchanged: %.1f%% %s", reading.percentage, reading.state.value)
            return False

        logger.info("Battery changed: %.1f%% %s", reading.percentage, reading.state.value)
        queued = self._publisher.publish(reading)
        if queued:
            self._state.published_count += 1
        return queued

    async def run(self) -> None:
        """Tick forever; stopped only by cancelling the task."""
        bind_context(task="sampler")
        logger.info("Sampling loop starting (interval: %.0fs)", self._interval)
        while True:
            await self.tick()
            await asyncio.sleep(self._interval)
