"""Battery reading data model."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum


class ChargeState(str, Enum):
    """Charge state reported by the power source. Values are the wire strings."""

    UNKNOWN = "Unknown"
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    EMPTY = "Empty"
    FULL = "Full"


@dataclass(frozen=True)
class Reading:
    """Snapshot of the power source at one sampling tick."""

    percentage: float  # 0.0 to 100.0
    state: ChargeState

    def to_dict(self) -> dict:
        return {"percentage": self.percentage, "state": self.state.value}

    def to_payload(self) -> str:
        """Serialize to the state message body.

        Raises:
            ValueError: If the percentage is not a finite number.
        """
        return json.dumps(self.to_dict(), allow_nan=False)


# Reported whenever the sensor cannot be read.
SENTINEL_READING = Reading(percentage=0.0, state=ChargeState.UNKNOWN)
