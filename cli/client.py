from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

ACTIVE_STATUSES = {"RISK", "ANALYZING"}


class ApiClient:
    """Minimal HTTP client for the dashboard service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def get_state(self) -> Dict[str, Any]:
        return self._request("GET", "/api/state")

    def get_history(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/history")

    def get_logs(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"limit": limit} if limit is not None else None
        return self._request("GET", "/api/logs", params=params)

    def set_thresholds(
        self,
        temperature: Optional[float] = None,
        smoke_level: Optional[float] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, float] = {}
        if temperature is not None:
            body["temperature"] = temperature
        if smoke_level is not None:
            body["smoke_level"] = smoke_level
        if not body:
            raise typer.BadParameter("Provide --temperature and/or --smoke.")
        return self._request("PUT", "/api/thresholds", json=body)

    def set_simulation(self, enabled: bool) -> Dict[str, Any]:
        return self._request("POST", "/api/simulation", json={"enabled": enabled})

    def inject_reading(self, temperature: float, smoke_level: float) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/readings",
            json={"temperature": temperature, "smoke_level": smoke_level},
        )

    def reset(self) -> Dict[str, Any]:
        return self._request("POST", "/api/reset")

    def wait_for_settle(self, interval: float, timeout: float) -> Dict[str, Any]:
        """Poll until the workflow leaves RISK/ANALYZING."""
        deadline = time.monotonic() + timeout
        last_payload: Dict[str, Any] | None = None
        while time.monotonic() <= deadline:
            last_payload = self.get_state()
            if last_payload.get("status") not in ACTIVE_STATUSES:
                return last_payload
            time.sleep(interval)
        typer.secho(
            (
                "Timed out waiting for the workflow to settle. "
                f"Last status: {last_payload.get('status') if last_payload else 'unknown'}"
            ),
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
