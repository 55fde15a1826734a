"""Threshold breach evaluation."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from app.schemas import SystemStatus
from models.records import SensorReading, ThresholdEvaluation, Thresholds

_NO_BREACH = ThresholdEvaluation(breached=False)


def format_fixed(value: float, digits: int) -> str:
    """Fixed-point text with exact halves rounded away from zero."""
    if not math.isfinite(value):
        return str(value)
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def temperature_cause(reading: SensorReading) -> str:
    return f"Temp High ({format_fixed(reading.temperature, 1)}°C)"


def smoke_cause(reading: SensorReading) -> str:
    return f"Smoke Detected ({format_fixed(reading.smoke_level, 0)})"


class ThresholdEvaluator:
    """Pure breach check that can be unit tested in isolation.

    Escalation is only possible from ``NORMAL``; any other status suppresses
    the breach so a workflow already in flight is never re-triggered.
    """

    def evaluate(
        self,
        reading: SensorReading,
        thresholds: Thresholds,
        status: SystemStatus = SystemStatus.NORMAL,
    ) -> ThresholdEvaluation:
        if status is not SystemStatus.NORMAL:
            return _NO_BREACH

        # Temperature wins the reported cause when both limits are exceeded.
        if reading.temperature > thresholds.temperature:
            return ThresholdEvaluation(breached=True, cause=temperature_cause(reading))
        if reading.smoke_level > thresholds.smoke_level:
            return ThresholdEvaluation(breached=True, cause=smoke_cause(reading))
        return _NO_BREACH
