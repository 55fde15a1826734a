"""Synthetic telemetry source standing in for the sensor kit."""

from __future__ import annotations

import random
import time
from typing import Callable, Optional

from models.records import SensorReading

# (low, span) pairs; values are drawn from [low, low + span).
NORMAL_TEMPERATURE = (20.0, 5.0)
NORMAL_SMOKE = (0.0, 15.0)
FIRE_TEMPERATURE = (60.0, 30.0)
FIRE_SMOKE = (60.0, 40.0)


def now_ms() -> int:
    return int(time.time() * 1000)


class TelemetryGenerator:
    """Produces one reading per sampling tick in normal or fire-simulation mode."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def generate(self, simulate_fire: bool = False) -> SensorReading:
        if simulate_fire:
            temperature_range, smoke_range = FIRE_TEMPERATURE, FIRE_SMOKE
        else:
            temperature_range, smoke_range = NORMAL_TEMPERATURE, NORMAL_SMOKE

        return SensorReading(
            timestamp=self._clock(),
            temperature=self._draw(*temperature_range),
            smoke_level=self._draw(*smoke_range),
        )

    def _draw(self, low: float, span: float) -> float:
        return low + self._rng.random() * span
