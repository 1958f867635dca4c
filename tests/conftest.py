"""Shared test fixtures for Battery Daemon."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import aiomqtt
import pytest

from battery_daemon.config.manager import ConfigManager
from battery_daemon.config.schema import AppConfig
from battery_daemon.sensor.reading import Reading


class FakeMQTTClient:
    """Stand-in for ``aiomqtt.Client``: an async context manager with a
    ``publish`` mock and a ``messages`` stream that ends on ``disconnect()``."""

    def __init__(self, enter_error: Exception | None = None) -> None:
        self.publish = AsyncMock()
        self.enter_error = enter_error
        self.entered = 0
        self._dropped = asyncio.Event()

    async def __aenter__(self) -> FakeMQTTClient:
        if self.enter_error is not None:
            raise self.enter_error
        self.entered += 1
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False

    @property
    def messages(self):
        return self._stream()

    async def _stream(self):
        await self._dropped.wait()
        raise aiomqtt.MqttError("Disconnected during message iteration")
        yield  # pragma: no cover

    def disconnect(self) -> None:
        self._dropped.set()


def _client_sequence(*clients: FakeMQTTClient) -> Callable[[], FakeMQTTClient]:
    """Client factory handing out ``clients`` in order, then repeating the last."""
    remaining = list(clients)

    def factory() -> FakeMQTTClient:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return factory


class SequenceReader:
    """Sensor reader replaying readings (or raising errors) in order.

    The last item repeats once the sequence is exhausted.
    """

    def __init__(self, items: list[Reading | Exception]) -> None:
        self._items = list(items)
        self.calls = 0

    def read(self) -> Reading:
        self.calls += 1
        item = self._items.pop(0) if len(self._items) > 1 else self._items[0]
        if isinstance(item, Exception):
            raise item
        return item


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def fake_client() -> type[FakeMQTTClient]:
    """Factory for fake broker clients, ``fake_client(enter_error=None)``."""
    return FakeMQTTClient


@pytest.fixture
def client_sequence():
    """Client factory handing out the given clients in order."""
    return _client_sequence


@pytest.fixture
def sequence_reader() -> type[SequenceReader]:
    """Factory for scripted sensor readers, ``sequence_reader(items)``."""
    return SequenceReader


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds (or fail after a timeout)."""
    return _wait_until


@pytest.fixture
def config() -> AppConfig:
    """Provide a default test configuration."""
    return AppConfig()


@pytest.fixture
def fast_config() -> AppConfig:
    """Configuration with every loop delay set to zero."""
    return AppConfig(
        mqtt={"reconnect_interval_seconds": 0},
        sampling={"interval_seconds": 0},
        delivery={"interval_seconds": 0},
    )


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    """Provide a config manager with test paths."""
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("mqtt:\n  broker_host: broker.test\n")
    user = tmp_path / "config.yaml"
    return ConfigManager(defaults_path=defaults, user_path=user)
