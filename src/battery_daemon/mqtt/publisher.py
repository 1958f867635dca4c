"""State message publisher."""

from __future__ import annotations

import logging

from battery_daemon.mqtt.message import OutboundMessage
from battery_daemon.mqtt.queue import DeliveryQueue
from battery_daemon.mqtt.topics import state_topic
from battery_daemon.resilience.health_check import SERIALIZATION, HealthChecker
from battery_daemon.sensor.reading import Reading

logger = logging.getLogger(__name__)

# Sent in place of a reading that cannot be serialized.
PARSING_ERROR_PAYLOAD = "parsing error"


class StatePublisher:
    """Serializes readings and hands them to the delivery queue."""

    def __init__(
        self,
        queue: DeliveryQueue,
        topic_prefix: str = "battery-daemon/status/battery",
        health: HealthChecker | None = None,
    ) -> None:
        self._queue = queue
        self._topic = state_topic(topic_prefix)
        self._health = health or HealthChecker()

    @property
    def topic(self) -> str:
        return self._topic

    def build_message(self, reading: Reading) -> OutboundMessage:
        """Build the retained state message for a reading."""
        try:
            payload = reading.to_payload()
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize reading %r: %s", reading, e)
            self._health.record_failure(SERIALIZATION, str(e))
            payload = PARSING_ERROR_PAYLOAD
        else:
            self._health.record_success(SERIALIZATION)
        return OutboundMessage(topic=self._topic, payload=payload, retain=True)

    def publish(self, reading: Reading) -> bool:
        """Enqueue a reading for delivery. Returns False if the queue dropped it."""
        message = self.build_message(reading)
        queued = self._queue.offer(message)
        if queued:
            logger.debug("Queued state %s (%d pending)", message.payload, self._queue.qsize())
        return queued
