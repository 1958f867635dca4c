"""Battery Daemon application entry point and lifecycle orchestrator.

Startup sequence:
  config → logging → broker event loop + sampling loop +
  delivery loop (HA discovery first, then queued state; run until signalled)
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from battery_daemon import __version__
from battery_daemon.config.manager import ConfigManager
from battery_daemon.config.schema import AppConfig
from battery_daemon.control.loop import SamplingLoop
from battery_daemon.logging.structured import setup_logging
from battery_daemon.mqtt.client import BrokerConnection, ClientFactory
from battery_daemon.mqtt.discovery import build_discovery, publish_discovery
from battery_daemon.mqtt.publisher import StatePublisher
from battery_daemon.mqtt.queue import DeliveryQueue
from battery_daemon.mqtt.topics import resolve_hostname
from battery_daemon.resilience.health_check import HealthChecker
from battery_daemon.sensor.reader import PsutilBatteryReader, SensorReader

logger = logging.getLogger(__name__)


class Application:
    """Main application lifecycle manager.

    Wires the sensor, queue, and broker connection together and owns the
    three long-lived tasks.
    """

    def __init__(
        self,
        config: AppConfig,
        reader: SensorReader | None = None,
        client_factory: ClientFactory | None = None,
        hostname: str | None = None,
    ) -> None:
        self.config = config
        self.health = HealthChecker(config.resilience.max_consecutive_failures)
        self.connection = BrokerConnection(config.mqtt, self.health, client_factory)
        self.queue = DeliveryQueue(config.delivery.queue_capacity, self.health)
        self.publisher = StatePublisher(self.queue, config.mqtt.topic_prefix, self.health)
        self.sampler = SamplingLoop(
            reader=reader or PsutilBatteryReader(),
            publisher=self.publisher,
            interval_seconds=config.sampling.interval_seconds,
            health=self.health,
        )
        self._hostname = hostname
        self._running = False
        self._discovery_sent = False
        self._tasks: list[asyncio.Task] = []

    @property
    def tasks(self) -> list[asyncio.Task]:
        return list(self._tasks)

    async def start(self) -> None:
        """Start the connection, sampling, and delivery tasks."""
        logger.info("Starting Battery Daemon v%s", __version__)
        self._running = True

        # ── 1. Broker event loop ─────────────────────────────
        self._tasks.append(
            asyncio.create_task(self.connection.run_event_loop(), name="event_loop")
        )

        # ── 2. Sampling (runs whether or not the broker is up) ─
        self._tasks.append(asyncio.create_task(self.sampler.run(), name="sampler"))

        # ── 3. Delivery: HA discovery, then queued state ─────
        self._tasks.append(asyncio.create_task(self._deliver(), name="delivery"))

    async def run(self) -> None:
        """Start and block until stopped."""
        await self.start()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Cancel all tasks."""
        if not self._running:
            return

        logger.info("Shutting down Battery Daemon")
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        for name, component in sorted(self.health.get_all_health().items()):
            if component.total_failures:
                logger.warning(
                    "Component '%s' at shutdown: %s, %d failures, last error: %s",
                    name,
                    "healthy" if component.healthy else "unhealthy",
                    component.total_failures,
                    component.last_error,
                )
        logger.info("Shutdown complete")

    async def _deliver(self) -> None:
        # Discovery waits for the first connection; state follows it.
        await self._publish_discovery()
        await self.connection.run_delivery_loop(
            self.queue, self.config.delivery.interval_seconds,
        )

    async def _publish_discovery(self) -> None:
        if self._discovery_sent:
            return
        self._discovery_sent = True
        hostname = self._hostname if self._hostname is not None else resolve_hostname(self.health)
        topic, descriptor = build_discovery(self.config.mqtt, hostname)
        await publish_discovery(self.connection.publish, descriptor, topic)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="battery-daemon",
        description="Publish local battery state to MQTT with Home Assistant discovery.",
    )
    parser.add_argument("-t", "--topic", default=None,
                        help="state topic prefix (default: battery-daemon/status/battery)")
    parser.add_argument("--hostname", default=None, help="MQTT broker host (default: localhost)")
    parser.add_argument("-p", "--port", type=int, default=None, help="MQTT broker port (default: 1883)")
    parser.add_argument("--discovery-topic", default=None,
                        help="Home Assistant discovery prefix (default: homeassistant)")
    parser.add_argument("-c", "--config", default="config.yaml")
    parser.add_argument("--defaults", default="config.defaults.yaml")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Map command-line flags onto the config tree. Unset flags are None."""
    return {
        "mqtt": {
            "topic_prefix": args.topic,
            "broker_host": args.hostname,
            "broker_port": args.port,
            "ha_discovery_prefix": args.discovery_topic,
        },
        "logging": {"level": args.log_level},
    }


def load_config(argv: list[str] | None = None) -> AppConfig:
    args = parse_args(argv)
    config_manager = ConfigManager(Path(args.defaults), Path(args.config))
    return config_manager.load(overrides_from_args(args))


def main(argv: list[str] | None = None) -> None:
    """Entry point for the daemon."""
    config = load_config(argv)

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )

    app = Application(config)
    stop_requested = False
    signal_count = 0

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        nonlocal stop_requested, signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        if stop_requested or loop.is_closed():
            return
        stop_requested = True
        loop.call_soon_threadsafe(lambda: asyncio.create_task(app.stop()))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, lambda *_: _request_stop())

    try:
        loop.run_until_complete(app.run())
    except KeyboardInterrupt:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
