from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

import typer

_LOG_COLORS = {
    "alert": typer.colors.RED,
    "warning": typer.colors.YELLOW,
    "success": typer.colors.GREEN,
}

_STATUS_COLORS = {
    "NORMAL": typer.colors.GREEN,
    "RISK": typer.colors.YELLOW,
    "ANALYZING": typer.colors.BLUE,
    "CONFIRMED": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_ms(timestamp: Any) -> str:
    if not isinstance(timestamp, (int, float)):
        return "n/a"
    moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return moment.strftime("%H:%M:%S")


def render_state(payload: Dict[str, Any]) -> None:
    echo_heading("System Status")
    status = payload.get("status")
    typer.secho(f"status: {status}", fg=_STATUS_COLORS.get(status))
    thresholds = payload.get("thresholds") or {}
    echo_key_values(
        [
            ("simulate_fire", payload.get("simulate_fire")),
            ("capturing", payload.get("capturing")),
            ("temperature_threshold", thresholds.get("temperature")),
            ("smoke_threshold", thresholds.get("smoke_level")),
        ]
    )

    typer.echo()
    echo_heading("Latest Reading")
    latest = payload.get("latest")
    if latest:
        echo_key_values(
            [
                ("time", _format_ms(latest.get("timestamp"))),
                ("temperature", f"{latest.get('temperature', 0):.1f}°C"),
                ("smoke_level", f"{latest.get('smoke_level', 0):.0f}"),
            ]
        )
    else:
        typer.echo("No readings yet.")

    analysis = payload.get("analysis")
    if analysis:
        typer.echo()
        echo_heading("AI Analysis Report")
        echo_key_values(
            [
                ("is_fire", analysis.get("is_fire")),
                ("confidence", analysis.get("confidence")),
                ("reasoning", analysis.get("reasoning")),
            ]
        )


def render_logs(entries: List[Dict[str, Any]]) -> None:
    echo_heading("System Logs")
    if not entries:
        typer.echo("No log entries recorded.")
        return
    for entry in entries:
        typer.secho(
            f"[{entry.get('timestamp')}] {entry.get('message')}",
            fg=_LOG_COLORS.get(entry.get("type")),
        )


def render_history(readings: List[Dict[str, Any]]) -> None:
    echo_heading("Telemetry History")
    if not readings:
        typer.echo("No readings buffered.")
        return
    for reading in readings:
        typer.echo(
            f"  - {_format_ms(reading.get('timestamp'))} "
            f"temp={reading.get('temperature', 0):.1f} smoke={reading.get('smoke_level', 0):.0f}"
        )


def render_evaluation(payload: Dict[str, Any]) -> None:
    echo_heading("Injected Reading")
    echo_key_values(
        [
            ("breached", payload.get("breached")),
            ("cause", payload.get("cause") or "-"),
            ("status", payload.get("status")),
        ]
    )
