"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class SensorReading:
    """One sampled temperature/smoke data point."""

    timestamp: int  # milliseconds since the epoch
    temperature: float
    smoke_level: float


@dataclass(slots=True)
class Thresholds:
    """Breach limits, read on every evaluation tick."""

    temperature: float
    smoke_level: float


@dataclass(frozen=True, slots=True)
class ThresholdEvaluation:
    """Outcome of comparing a reading against the current thresholds."""

    breached: bool
    cause: Optional[str] = None
