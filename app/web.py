from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from app.schemas import (
    SMOKE_THRESHOLD_MAX,
    SMOKE_THRESHOLD_MIN,
    SMOKE_THRESHOLD_STEP,
    TEMPERATURE_THRESHOLD_MAX,
    TEMPERATURE_THRESHOLD_MIN,
    DashboardState,
    Reading,
    SystemStatus,
    ThresholdsUpdate,
)
from services.monitor import MonitorService, build_default_monitor


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

IMG_PLACEHOLDER_NORMAL = "https://picsum.photos/id/10/800/600"
IMG_PLACEHOLDER_FIRE = "https://picsum.photos/id/56/800/600"

CHART_WIDTH = 300
CHART_HEIGHT = 100


@dataclass(frozen=True)
class ChartView:
    label: str
    unit: str
    color: str
    points: str
    threshold: float
    threshold_y: float


@dataclass(frozen=True)
class MediaView:
    capturing: bool
    image_url: str
    highlighted: bool
    audio_caption: str


def get_monitor() -> MonitorService:
    return build_default_monitor()


def _scale_y(value: float, ceiling: float) -> float:
    clamped = min(max(value, 0.0), ceiling)
    return round(CHART_HEIGHT - (clamped / ceiling) * CHART_HEIGHT, 2)


def build_chart(
    history: Sequence[Reading],
    field: str,
    threshold: float,
    label: str,
    unit: str,
    color: str,
) -> ChartView:
    """Lay out an SVG polyline with a reference line at ``threshold``."""
    values = [getattr(reading, field) for reading in history]
    ceiling = max([100.0, threshold, *values])
    step = CHART_WIDTH / max(len(values) - 1, 1)
    points = " ".join(
        f"{round(index * step, 2)},{_scale_y(value, ceiling)}"
        for index, value in enumerate(values)
    )
    return ChartView(
        label=label,
        unit=unit,
        color=color,
        points=points,
        threshold=threshold,
        threshold_y=_scale_y(threshold, ceiling),
    )


def build_media(state: DashboardState) -> MediaView:
    highlighted = state.status in {SystemStatus.ANALYZING, SystemStatus.CONFIRMED}
    if state.capturing:
        caption = "Recording..."
    elif highlighted:
        caption = "3.2s clip recorded (Crackling detected)"
    else:
        caption = "Monitoring... No trigger"
    return MediaView(
        capturing=state.capturing,
        image_url=IMG_PLACEHOLDER_FIRE if highlighted else IMG_PLACEHOLDER_NORMAL,
        highlighted=highlighted,
        audio_caption=caption,
    )


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    monitor: MonitorService = Depends(get_monitor),
) -> HTMLResponse:
    state = monitor.snapshot()
    charts = [
        build_chart(
            state.history, "temperature", state.thresholds.temperature,
            "Temperature History", "°C", "#f43f5e",
        ),
        build_chart(
            state.history, "smoke_level", state.thresholds.smoke_level,
            "Smoke Density History", "", "#fb923c",
        ),
    ]
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "state": state,
            "charts": charts,
            "media": build_media(state),
            "logs": monitor.event_log.entries(),
            "limits": {
                "temperature_min": TEMPERATURE_THRESHOLD_MIN,
                "temperature_max": TEMPERATURE_THRESHOLD_MAX,
                "smoke_min": SMOKE_THRESHOLD_MIN,
                "smoke_max": SMOKE_THRESHOLD_MAX,
                "smoke_step": SMOKE_THRESHOLD_STEP,
            },
        },
    )


@router.post("/ui/thresholds", name="ui_thresholds")
async def ui_thresholds(
    request: Request,
    temperature: float = Form(...),
    smoke_level: float = Form(...),
    monitor: MonitorService = Depends(get_monitor),
) -> RedirectResponse:
    try:
        update = ThresholdsUpdate(temperature=temperature, smoke_level=smoke_level)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc
    monitor.update_thresholds(temperature=update.temperature, smoke_level=update.smoke_level)
    return RedirectResponse(request.url_for("ui_index"), status_code=status.HTTP_303_SEE_OTHER)


@router.post("/ui/simulation", name="ui_simulation")
async def ui_simulation(
    request: Request,
    enabled: bool = Form(...),
    monitor: MonitorService = Depends(get_monitor),
) -> RedirectResponse:
    monitor.set_simulation(enabled)
    return RedirectResponse(request.url_for("ui_index"), status_code=status.HTTP_303_SEE_OTHER)


@router.post("/ui/reset", name="ui_reset")
async def ui_reset(
    request: Request,
    monitor: MonitorService = Depends(get_monitor),
) -> RedirectResponse:
    monitor.reset()
    return RedirectResponse(request.url_for("ui_index"), status_code=status.HTTP_303_SEE_OTHER)
