"""Bounded queue decoupling the sampling cadence from the broker send path."""

from __future__ import annotations

import asyncio
import logging

from battery_daemon.mqtt.message import OutboundMessage
from battery_daemon.resilience.health_check import QUEUE, HealthChecker

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 16


class DeliveryQueue:
    """FIFO of outbound messages with a fixed message-count capacity.

    Producers never block: a message offered to a full queue is logged and
    dropped, and is not retried.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, health: HealthChecker | None = None) -> None:
        self._queue: asyncio.Queue[OutboundMessage] = asyncio.Queue(maxsize=capacity)
        self._capacity = capacity
        self._health = health or HealthChecker()
        self.dropped_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def offer(self, message: OutboundMessage) -> bool:
        """Enqueue without waiting. Returns False if the message was dropped."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.error(
                "Delivery queue full (%d messages), dropping message for %s",
                self._capacity, message.topic,
            )
            self._health.record_failure(QUEUE, "queue full")
            return False
        self._health.record_success(QUEUE)
        return True

    async def get(self) -> OutboundMessage:
        """Wait for the oldest queued message."""
        message = await self._queue.get()
        self._queue.task_done()
        return message

    def get_nowait(self) -> OutboundMessage:
        """Pop the oldest message. Raises ``asyncio.QueueEmpty`` when empty."""
        message = self._queue.get_nowait()
        self._queue.task_done()
        return message
