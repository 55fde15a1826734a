from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_LOG_LIMIT = 20

_BASE_URL_ENV = "PYROGUARD_API_URL"
_POLL_INTERVAL_ENV = "PYROGUARD_POLL_INTERVAL"
_TIMEOUT_ENV = "PYROGUARD_POLL_TIMEOUT"
_LOG_LIMIT_ENV = "PYROGUARD_LOG_LIMIT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_TIMEOUT
    log_limit: int = DEFAULT_LOG_LIMIT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    poll_interval: Optional[float] = None,
    poll_timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if poll_interval is None:
        poll_interval = _read_float(os.getenv(_POLL_INTERVAL_ENV), DEFAULT_POLL_INTERVAL)
    if poll_timeout is None:
        poll_timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    log_limit = int(_read_float(os.getenv(_LOG_LIMIT_ENV), DEFAULT_LOG_LIMIT))
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_interval=poll_interval,
        poll_timeout=poll_timeout,
        log_limit=max(log_limit, 1),
    )
