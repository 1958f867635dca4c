"""Tests for MQTT topics, discovery, state publisher, and delivery queue."""

from __future__ import annotations

import json
import socket
from unittest.mock import AsyncMock, patch

import pytest

from battery_daemon.config.schema import MQTTConfig
from battery_daemon.mqtt.discovery import (
    DiscoveryDescriptor,
    build_discovery,
    build_discovery_message,
    publish_discovery,
)
from battery_daemon.mqtt.message import OutboundMessage
from battery_daemon.mqtt.publisher import PARSING_ERROR_PAYLOAD, StatePublisher
from battery_daemon.mqtt.queue import DeliveryQueue
from battery_daemon.mqtt.topics import (
    DiscoveryComponent,
    DiscoveryTopic,
    resolve_hostname,
    state_topic,
)
from battery_daemon.resilience.health_check import HOSTNAME, QUEUE, SERIALIZATION, HealthChecker
from battery_daemon.sensor.reading import ChargeState, Reading


# ── Topics Tests ──────────────────────────────────────────────


class TestTopics:
    def test_state_topic_default_prefix(self) -> None:
        assert state_topic("battery-daemon/status/battery") == "battery-daemon/status/battery/state"

    def test_state_topic_custom_prefix(self) -> None:
        assert state_topic("laptop") == "laptop/state"

    def test_discovery_topic_without_node_id(self) -> None:
        topic = DiscoveryTopic("homeassistant", DiscoveryComponent.SENSOR, "myhost")
        assert str(topic) == "homeassistant/sensor/myhost/config"

    def test_discovery_topic_with_node_id(self) -> None:
        topic = DiscoveryTopic("homeassistant", DiscoveryComponent.SENSOR, "battery", node_id="myhost")
        assert str(topic) == "homeassistant/sensor/myhost/battery/config"

    def test_discovery_component_kinds(self) -> None:
        assert str(DiscoveryTopic("ha", DiscoveryComponent.BINARY_SENSOR, "x")) == "ha/binary_sensor/x/config"
        assert str(DiscoveryTopic("ha", DiscoveryComponent.NONE, "x")) == "ha/none/x/config"

    def test_resolve_hostname(self) -> None:
        health = HealthChecker()
        with patch("battery_daemon.mqtt.topics.socket.gethostname", return_value="myhost"):
            assert resolve_hostname(health) == "myhost"
        assert health.failure_count(HOSTNAME) == 0

    def test_resolve_hostname_falls_back_to_empty(self) -> None:
        health = HealthChecker()
        with patch(
            "battery_daemon.mqtt.topics.socket.gethostname",
            side_effect=OSError("no name"),
        ):
            assert resolve_hostname(health) == ""
        assert health.failure_count(HOSTNAME) == 1

    def test_resolve_hostname_without_health(self) -> None:
        with patch.object(socket, "gethostname", side_effect=UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad")):
            assert resolve_hostname() == ""


# ── Discovery Tests ────────────────────────────────────────────


class TestDiscovery:
    def test_build_discovery_defaults(self) -> None:
        topic, descriptor = build_discovery(MQTTConfig(), "myhost")
        assert str(topic) == "homeassistant/sensor/myhost/config"
        assert descriptor.name == "myhost"
        assert descriptor.state_topic == "battery-daemon/status/battery/state"
        assert descriptor.unit_of_measurement == "%"
        assert descriptor.value_template == "{{ value_json.percentage }}"

    def test_build_discovery_custom_prefixes(self) -> None:
        config = MQTTConfig(topic_prefix="laptop/battery", ha_discovery_prefix="ha")
        topic, descriptor = build_discovery(config, "box")
        assert str(topic) == "ha/sensor/box/config"
        assert descriptor.state_topic == "laptop/battery/state"

    def test_empty_hostname_still_builds(self) -> None:
        topic, descriptor = build_discovery(MQTTConfig(), "")
        assert str(topic) == "homeassistant/sensor//config"
        assert descriptor.name == ""

    def test_payload_fields(self) -> None:
        _, descriptor = build_discovery(MQTTConfig(), "myhost")
        payload = json.loads(descriptor.to_payload())
        assert payload == {
            "name": "myhost",
            "device_class": "battery",
            "state_topic": "battery-daemon/status/battery/state",
            "unit_of_measurement": "%",
            "value_template": "{{ value_json.percentage }}",
        }

    def test_discovery_message_is_retained(self) -> None:
        topic, descriptor = build_discovery(MQTTConfig(), "myhost")
        message = build_discovery_message(topic, descriptor)
        assert message.retain is True
        assert message.topic == "homeassistant/sensor/myhost/config"

    @pytest.mark.asyncio
    async def test_publish_discovery(self) -> None:
        publish_fn = AsyncMock(return_value=True)
        topic, descriptor = build_discovery(MQTTConfig(), "myhost")

        delivered = await publish_discovery(publish_fn, descriptor, topic)

        assert delivered is True
        publish_fn.assert_awaited_once()
        message = publish_fn.call_args[0][0]
        assert message.topic == "homeassistant/sensor/myhost/config"
        assert message.retain is True
        assert json.loads(message.payload)["name"] == "myhost"

    @pytest.mark.asyncio
    async def test_publish_discovery_failure_does_not_raise(self) -> None:
        publish_fn = AsyncMock(return_value=False)
        descriptor = DiscoveryDescriptor(name="h", device_class="battery", state_topic="t/state")
        topic = DiscoveryTopic("homeassistant", DiscoveryComponent.SENSOR, "h")
        assert await publish_discovery(publish_fn, descriptor, topic) is False


# ── State Publisher Tests ──────────────────────────────────────


class TestStatePublisher:
    def test_message_payload_and_retain(self) -> None:
        publisher = StatePublisher(DeliveryQueue())
        message = publisher.build_message(Reading(75.0, ChargeState.DISCHARGING))
        assert message.topic == "battery-daemon/status/battery/state"
        assert message.retain is True
        assert json.loads(message.payload) == {"percentage": 75.0, "state": "Discharging"}

    def test_every_state_serializes_to_its_name(self) -> None:
        publisher = StatePublisher(DeliveryQueue())
        for state in ChargeState:
            payload = json.loads(publisher.build_message(Reading(10.0, state)).payload)
            assert payload["state"] == state.value

    def test_serialization_failure_uses_fallback(self) -> None:
        health = HealthChecker()
        queue = DeliveryQueue(health=health)
        publisher = StatePublisher(queue, "laptop", health)

        assert publisher.publish(Reading(float("nan"), ChargeState.CHARGING)) is True

        message = queue.get_nowait()
        assert message.payload == PARSING_ERROR_PAYLOAD
        assert message.topic == "laptop/state"
        assert message.retain is True
        assert health.failure_count(SERIALIZATION) == 1

    def test_publish_enqueues(self) -> None:
        queue = DeliveryQueue()
        publisher = StatePublisher(queue)
        publisher.publish(Reading(50.0, ChargeState.CHARGING))
        publisher.publish(Reading(51.0, ChargeState.CHARGING))
        assert queue.qsize() == 2
        assert json.loads(queue.get_nowait().payload)["percentage"] == 50.0
        assert json.loads(queue.get_nowait().payload)["percentage"] == 51.0


# ── Delivery Queue Tests ───────────────────────────────────────


class TestDeliveryQueue:
    def test_default_capacity(self) -> None:
        assert DeliveryQueue().capacity == 16

    def test_full_queue_drops_and_records(self) -> None:
        health = HealthChecker()
        queue = DeliveryQueue(capacity=2, health=health)
        assert queue.offer(OutboundMessage("t", "1", True)) is True
        assert queue.offer(OutboundMessage("t", "2", True)) is True
        assert queue.offer(OutboundMessage("t", "3", True)) is False

        assert queue.qsize() == 2
        assert queue.dropped_count == 1
        assert health.failure_count(QUEUE) == 1

    def test_accepts_again_after_drain(self) -> None:
        queue = DeliveryQueue(capacity=1)
        queue.offer(OutboundMessage("t", "1", True))
        assert queue.offer(OutboundMessage("t", "2", True)) is False
        assert queue.get_nowait().payload == "1"
        assert queue.offer(OutboundMessage("t", "3", True)) is True
        assert queue.get_nowait().payload == "3"

    @pytest.mark.asyncio
    async def test_get_is_fifo(self) -> None:
        queue = DeliveryQueue()
        for i in range(3):
            queue.offer(OutboundMessage("t", str(i), True))
        assert [(await queue.get()).payload for _ in range(3)] == ["0", "1", "2"]
        assert queue.empty()
