"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    DashboardState,
    EvaluationResponse,
    LogEntry,
    Reading,
    ReadingInput,
    SimulationToggle,
    ThresholdsModel,
    ThresholdsUpdate,
)
from models.records import SensorReading
from services.monitor import MonitorService, build_default_monitor
from services.telemetry import now_ms

router = APIRouter()


def get_monitor() -> MonitorService:
    return build_default_monitor()


@router.get(
    "/api/state",
    response_model=DashboardState,
    summary="Current workflow status, thresholds and telemetry window.",
)
async def get_state(monitor: MonitorService = Depends(get_monitor)) -> DashboardState:
    return monitor.snapshot()


@router.get(
    "/api/history",
    response_model=List[Reading],
    summary="Buffered readings, oldest first.",
)
async def get_history(monitor: MonitorService = Depends(get_monitor)) -> List[Reading]:
    return monitor.snapshot().history


@router.get(
    "/api/logs",
    response_model=List[LogEntry],
    summary="Operator event log, oldest first.",
)
async def get_logs(
    limit: Optional[int] = Query(default=None, ge=1, description="Return only the most recent entries."),
    monitor: MonitorService = Depends(get_monitor),
) -> List[LogEntry]:
    return monitor.event_log.entries(limit=limit)


@router.put(
    "/api/thresholds",
    response_model=ThresholdsModel,
    summary="Adjust breach thresholds; applies from the next evaluation tick.",
)
async def update_thresholds(
    payload: ThresholdsUpdate,
    monitor: MonitorService = Depends(get_monitor),
) -> ThresholdsModel:
    thresholds = monitor.update_thresholds(
        temperature=payload.temperature,
        smoke_level=payload.smoke_level,
    )
    return ThresholdsModel(temperature=thresholds.temperature, smoke_level=thresholds.smoke_level)


@router.post(
    "/api/simulation",
    response_model=DashboardState,
    summary="Enable or disable fire-simulation telemetry.",
)
async def toggle_simulation(
    payload: SimulationToggle,
    monitor: MonitorService = Depends(get_monitor),
) -> DashboardState:
    monitor.set_simulation(payload.enabled)
    return monitor.snapshot()


@router.post(
    "/api/readings",
    response_model=EvaluationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Inject a reading through the same path a sampling tick takes.",
)
async def inject_reading(
    payload: ReadingInput,
    monitor: MonitorService = Depends(get_monitor),
) -> EvaluationResponse:
    reading = SensorReading(
        timestamp=now_ms(),
        temperature=payload.temperature,
        smoke_level=payload.smoke_level,
    )
    evaluation = monitor.ingest(reading)
    return EvaluationResponse(
        reading=Reading(
            timestamp=reading.timestamp,
            temperature=reading.temperature,
            smoke_level=reading.smoke_level,
        ),
        breached=evaluation.breached,
        cause=evaluation.cause,
        status=monitor.status,
    )


@router.post(
    "/api/reset",
    response_model=DashboardState,
    summary="Manually return the workflow to NORMAL.",
)
async def reset(monitor: MonitorService = Depends(get_monitor)) -> DashboardState:
    monitor.reset()
    return monitor.snapshot()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(monitor: MonitorService = Depends(get_monitor)) -> dict[str, str]:
    if not monitor.running:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sampling loop is not running.",
        )
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status and /ui for the dashboard."}
