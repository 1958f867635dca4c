"""Persistent MQTT broker connection using aiomqtt."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any, Callable

import aiomqtt

from battery_daemon.config.schema import MQTTConfig
from battery_daemon.logging.context import bind_context
from battery_daemon.mqtt.message import OutboundMessage
from battery_daemon.mqtt.queue import DeliveryQueue
from battery_daemon.resilience.health_check import EVENT_LOOP, PUBLISH, HealthChecker

logger = logging.getLogger(__name__)

# QoS 1: delivered at least once, possibly duplicated.
AT_LEAST_ONCE = 1

# Returns a fresh, not yet entered client for each connection attempt.
ClientFactory = Callable[[], AbstractAsyncContextManager[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BrokerConnection:
    """Owns the broker connection and the two loops that use it.

    ``run_event_loop`` keeps a client connected for the life of the process;
    ``run_delivery_loop`` drains the delivery queue through ``publish``.
    ``publish`` may also be called directly (discovery does this) and from
    several tasks at once.
    """

    def __init__(
        self,
        config: MQTTConfig,
        health: HealthChecker | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._health = health or HealthChecker()
        self._client_factory = client_factory or self._create_client
        self._client: Any = None
        self._connected = asyncio.Event()
        self._state = ConnectionState.DISCONNECTED
        self.connect_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _create_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self._config.broker_host,
            port=self._config.broker_port,
            identifier=self._config.client_id or self._config.topic_prefix,
            keepalive=self._config.keepalive_seconds,
        )

    async def wait_connected(self) -> None:
        await self._connected.wait()

    async def publish(self, message: OutboundMessage) -> bool:
        """Publish a message with at-least-once delivery.

        Waits for the event loop to establish a connection. Any failure is
        logged and recorded; the caller only sees False.
        """
        await self._connected.wait()
        client = self._client
        if client is None:
            logger.error("MQTT publish failed for %s: connection lost", message.topic)
            self._health.record_failure(PUBLISH, "connection lost")
            return False

        try:
            await client.publish(
                message.topic,
                message.payload,
                qos=AT_LEAST_ONCE,
                retain=message.retain,
            )
        except Exception as e:
            logger.error("MQTT publish failed for %s: %s", message.topic, e)
            self._health.record_failure(PUBLISH, str(e))
            return False

        self._health.record_success(PUBLISH)
        logger.info("Sent %s to %s", message.payload, message.topic)
        return True

    async def run_delivery_loop(self, queue: DeliveryQueue, interval_seconds: float = 60.0) -> None:
        """Drain the queue forever, pausing a fixed interval after every send."""
        bind_context(task="delivery")
        logger.info("Delivery loop starting (interval: %.0fs)", interval_seconds)
        while True:
            message = await queue.get()
            await self.publish(message)
            await asyncio.sleep(interval_seconds)

    async def run_event_loop(self) -> None:
        """Keep the broker connection alive for the life of the process.

        Iterating ``client.messages`` lets aiomqtt service keep-alives and
        acknowledgements and raises ``MqttError`` when the connection drops.
        Errors are logged and the connection is re-established after a fixed
        interval; this loop only ends when its task is cancelled.
        """
        bind_context(task="event_loop")
        while True:
            self._state = ConnectionState.CONNECTING
            logger.info(
                "MQTT connecting to %s:%d",
                self._config.broker_host, self._config.broker_port,
            )
            try:
                async with self._client_factory() as client:
                    self._client = client
                    self._state = ConnectionState.CONNECTED
                    self.connect_count += 1
                    self._connected.set()
                    self._health.record_success(EVENT_LOOP)
                    logger.info("MQTT connected")

                    async for message in client.messages:
                        logger.debug("Ignoring message on %s", message.topic)
                logger.warning("MQTT message stream ended")
            except Exception as e:
                logger.error("MQTT event loop error: %s", e)
                self._health.record_failure(EVENT_LOOP, str(e))
            finally:
                self._connected.clear()
                self._client = None
                self._state = ConnectionState.DISCONNECTED

            await asyncio.sleep(self._config.reconnect_interval_seconds)
