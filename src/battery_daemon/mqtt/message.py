"""Outbound MQTT message value type."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OutboundMessage:
    """A single publish intent: created per publish, consumed once sent."""

    topic: str
    payload: str
    retain: bool = False
