"""Host power-source readers."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import psutil

from battery_daemon.sensor.reading import ChargeState, Reading

logger = logging.getLogger(__name__)


class SensorError(Exception):
    """Raised when the host power source cannot be queried."""


@runtime_checkable
class SensorReader(Protocol):
    """Protocol for power-source readers to implement."""

    def read(self) -> Reading:
        """Read the current charge percentage and state.

        Raises:
            SensorError: If no reading is available.
        """
        ...


def charge_state_from(percent: float, power_plugged: bool | None) -> ChargeState:
    """Map a psutil battery snapshot onto a ChargeState."""
    if power_plugged is None:
        return ChargeState.UNKNOWN
    if power_plugged:
        return ChargeState.FULL if percent >= 100 else ChargeState.CHARGING
    return ChargeState.EMPTY if percent <= 0 else ChargeState.DISCHARGING


class PsutilBatteryReader:
    """Reads the host battery through ``psutil.sensors_battery()``."""

    def read(self) -> Reading:
        try:
            battery = psutil.sensors_battery()
        except (OSError, RuntimeError, NotImplementedError) as e:
            raise SensorError(f"battery query failed: {e}") from e
        except AttributeError as e:
            # sensors_battery() is not provided on every platform
            raise SensorError("battery sensors not supported on this platform") from e

        if battery is None:
            raise SensorError("no battery found")

        percent = float(battery.percent)
        return Reading(
            percentage=percent,
            state=charge_state_from(percent, battery.power_plugged),
        )
