"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

TEMPERATURE_THRESHOLD_MIN = 30.0
TEMPERATURE_THRESHOLD_MAX = 100.0
SMOKE_THRESHOLD_MIN = 0.0
SMOKE_THRESHOLD_MAX = 100.0
SMOKE_THRESHOLD_STEP = 5


class SystemStatus(str, Enum):
    """Workflow states exposed via the API."""

    NORMAL = "NORMAL"
    RISK = "RISK"
    ANALYZING = "ANALYZING"
    CONFIRMED = "CONFIRMED"


class LogType(str, Enum):
    """Categories for operator-facing log entries."""

    info = "info"
    warning = "warning"
    alert = "alert"
    success = "success"


class LogEntry(BaseModel):
    """A single time-stamped event shown in the log panel."""

    id: str
    timestamp: datetime
    message: str
    type: LogType = LogType.info


class AnalysisResult(BaseModel):
    """Verdict returned by the fire classification service."""

    is_fire: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str


class Reading(BaseModel):
    """Wire representation of a sensor reading."""

    timestamp: int = Field(..., description="Milliseconds since the epoch.")
    temperature: float
    smoke_level: float


class ReadingInput(BaseModel):
    """Externally injected reading; the server stamps the timestamp."""

    temperature: float
    smoke_level: float = Field(..., ge=0.0, le=100.0)


class ThresholdsModel(BaseModel):
    temperature: float
    smoke_level: float


class ThresholdsUpdate(BaseModel):
    """Partial threshold update mirroring the dashboard sliders."""

    temperature: Optional[float] = Field(
        default=None, ge=TEMPERATURE_THRESHOLD_MIN, le=TEMPERATURE_THRESHOLD_MAX
    )
    smoke_level: Optional[float] = Field(
        default=None, ge=SMOKE_THRESHOLD_MIN, le=SMOKE_THRESHOLD_MAX
    )

    @field_validator("smoke_level")
    @classmethod
    def _smoke_on_step(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value % SMOKE_THRESHOLD_STEP != 0:
            raise ValueError(f"smoke_level must be a multiple of {SMOKE_THRESHOLD_STEP}")
        return value


class SimulationToggle(BaseModel):
    enabled: bool


class EvaluationResponse(BaseModel):
    """Result of injecting a reading."""

    reading: Reading
    breached: bool
    cause: Optional[str] = None
    status: SystemStatus


class DashboardState(BaseModel):
    """Read-only snapshot of everything the dashboard renders."""

    status: SystemStatus
    thresholds: ThresholdsModel
    simulate_fire: bool
    capturing: bool
    analysis: Optional[AnalysisResult] = None
    latest: Optional[Reading] = None
    history: List[Reading] = Field(default_factory=list)
