from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_evaluation, render_history, render_logs, render_state


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for operating the PyroGuard fire-detection dashboard.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Dashboard API base URL (defaults to PYROGUARD_API_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when watching the workflow.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait when watching the workflow.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show workflow status, thresholds and the latest reading."""
    state = _get_state(ctx)
    render_state(state.client.get_state())


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Number of most recent entries to show."
    ),
) -> None:
    """Print the operator event log."""
    state = _get_state(ctx)
    count = limit if limit is not None else state.config.log_limit
    render_logs(state.client.get_logs(limit=count))


@app.command("history")
def history_command(ctx: typer.Context) -> None:
    """Print the buffered telemetry window."""
    state = _get_state(ctx)
    render_history(state.client.get_history())


@app.command("thresholds")
def thresholds_command(
    ctx: typer.Context,
    temperature: Optional[float] = typer.Option(
        None, "--temperature", "-t", help="Max temperature trigger in °C (30-100)."
    ),
    smoke: Optional[float] = typer.Option(
        None, "--smoke", "-s", help="Smoke trigger (0-100, step 5)."
    ),
) -> None:
    """Adjust breach thresholds."""
    state = _get_state(ctx)
    payload = state.client.set_thresholds(temperature=temperature, smoke_level=smoke)
    typer.secho(
        f"Thresholds set: temperature>{payload.get('temperature')} smoke>{payload.get('smoke_level')}",
        fg=typer.colors.GREEN,
    )


@app.command("simulate")
def simulate_command(
    ctx: typer.Context,
    enabled: bool = typer.Argument(True, help="Pass 'false' to stop the fire simulation."),
) -> None:
    """Switch fire-simulation telemetry on or off."""
    state = _get_state(ctx)
    payload = state.client.set_simulation(enabled)
    label = "enabled" if payload.get("simulate_fire") else "disabled"
    typer.echo(f"Fire simulation {label}.")


@app.command("inject")
def inject_command(
    ctx: typer.Context,
    temperature: float = typer.Argument(..., help="Temperature in °C."),
    smoke: float = typer.Argument(..., help="Smoke level (0-100)."),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for an escalation to settle and display the final state.",
    ),
) -> None:
    """Inject a reading as if the sensor kit had produced it."""
    state = _get_state(ctx)
    payload = state.client.inject_reading(temperature, smoke)
    render_evaluation(payload)

    if not wait or not payload.get("breached"):
        return

    typer.echo(
        f"Waiting for analysis (interval={state.config.poll_interval}s, "
        f"timeout={state.config.poll_timeout}s)..."
    )
    result = state.client.wait_for_settle(
        interval=state.config.poll_interval, timeout=state.config.poll_timeout
    )
    typer.echo()
    render_state(result)


@app.command("watch")
def watch_command(ctx: typer.Context) -> None:
    """Wait until any in-flight escalation reaches CONFIRMED or NORMAL."""
    state = _get_state(ctx)
    result = state.client.wait_for_settle(
        interval=state.config.poll_interval, timeout=state.config.poll_timeout
    )
    render_state(result)


@app.command("reset")
def reset_command(ctx: typer.Context) -> None:
    """Return the system to NORMAL and stop any fire simulation."""
    state = _get_state(ctx)
    payload = state.client.reset()
    typer.secho(f"System reset. status={payload.get('status')}", fg=typer.colors.GREEN)
