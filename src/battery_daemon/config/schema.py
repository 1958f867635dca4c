"""Pydantic configuration models for all daemon settings."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MQTTConfig(BaseModel):
    broker_host: str = "localhost"
    broker_port: int = Field(1883, ge=1, le=65535)
    topic_prefix: str = "battery-daemon/status/battery"
    client_id: str = ""  # Empty = use topic_prefix
    keepalive_seconds: int = Field(10, ge=1)
    reconnect_interval_seconds: float = Field(5.0, ge=0.0)
    ha_discovery_prefix: str = "homeassistant"


class SamplingConfig(BaseModel):
    interval_seconds: float = Field(60.0, ge=0.0)


class DeliveryConfig(BaseModel):
    """Bounded queue between the sampler and the broker send path.

    The capacity is a message count; a full queue drops the newest message.
    """
    queue_capacity: int = Field(16, ge=1)
    interval_seconds: float = Field(60.0, ge=0.0)


class ResilienceConfig(BaseModel):
    max_consecutive_failures: int = Field(3, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class AppConfig(BaseModel):
    """Root configuration model containing all daemon settings."""

    mqtt: MQTTConfig = MQTTConfig()
    sampling: SamplingConfig = SamplingConfig()
    delivery: DeliveryConfig = DeliveryConfig()
    resilience: ResilienceConfig = ResilienceConfig()
    logging: LoggingConfig = LoggingConfig()
