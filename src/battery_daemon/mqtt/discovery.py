"""Home Assistant MQTT auto-discovery."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Coroutine

from battery_daemon.config.schema import MQTTConfig
from battery_daemon.mqtt.message import OutboundMessage
from battery_daemon.mqtt.topics import DiscoveryComponent, DiscoveryTopic, state_topic

logger = logging.getLogger(__name__)

# Type for async publish function: (message) -> delivered
PublishFn = Callable[[OutboundMessage], Coroutine[Any, Any, bool]]

# Valid HA sensor device class for a % charge level ("sensor" is not one)
DEVICE_CLASS = "battery"
UNIT_OF_MEASUREMENT = "%"
VALUE_TEMPLATE = "{{ value_json.percentage }}"


@dataclass(frozen=True)
class DiscoveryDescriptor:
    """How Home Assistant should interpret readings on the state topic."""

    name: str
    device_class: str
    state_topic: str
    unit_of_measurement: str = UNIT_OF_MEASUREMENT
    value_template: str = VALUE_TEMPLATE

    def to_payload(self) -> str:
        return json.dumps(asdict(self))


def build_discovery(config: MQTTConfig, hostname: str) -> tuple[DiscoveryTopic, DiscoveryDescriptor]:
    """Build the discovery topic and descriptor for this host's battery sensor.

    The host name is both the object id and the entity name.
    """
    topic = DiscoveryTopic(
        discovery_prefix=config.ha_discovery_prefix,
        component=DiscoveryComponent.SENSOR,
        object_id=hostname,
    )
    descriptor = DiscoveryDescriptor(
        name=hostname,
        device_class=DEVICE_CLASS,
        state_topic=state_topic(config.topic_prefix),
    )
    return topic, descriptor


def build_discovery_message(topic: DiscoveryTopic, descriptor: DiscoveryDescriptor) -> OutboundMessage:
    """Discovery configs are always retained so late subscribers still see them."""
    return OutboundMessage(topic=str(topic), payload=descriptor.to_payload(), retain=True)


async def publish_discovery(
    publish_fn: PublishFn,
    descriptor: DiscoveryDescriptor,
    topic: DiscoveryTopic,
) -> bool:
    """Publish the discovery config directly, bypassing the delivery queue.

    Failures are logged by the publish function; nothing is raised.
    """
    message = build_discovery_message(topic, descriptor)
    delivered = await publish_fn(message)
    if delivered:
        logger.info("Published HA discovery config to %s", message.topic)
    else:
        logger.warning("HA discovery publish to %s failed", message.topic)
    return delivered
