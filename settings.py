from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from app.schemas import (
    SMOKE_THRESHOLD_MAX,
    SMOKE_THRESHOLD_MIN,
    SMOKE_THRESHOLD_STEP,
    TEMPERATURE_THRESHOLD_MAX,
    TEMPERATURE_THRESHOLD_MIN,
)


_API_KEY_ENV = "GEMINI_API_KEY"
_LEGACY_API_KEY_ENV = "API_KEY"
_MODEL_ENV = "GEMINI_MODEL"
_BASE_URL_ENV = "GEMINI_BASE_URL"
_TIMEOUT_ENV = "GEMINI_TIMEOUT_SECONDS"
_HISTORY_SIZE_ENV = "PYROGUARD_HISTORY_SIZE"
_SAMPLE_INTERVAL_ENV = "PYROGUARD_SAMPLE_INTERVAL"
_CAPTURE_REQUEST_DELAY_ENV = "PYROGUARD_CAPTURE_REQUEST_DELAY"
_CAPTURE_DURATION_ENV = "PYROGUARD_CAPTURE_DURATION"
_TEMPERATURE_THRESHOLD_ENV = "PYROGUARD_TEMPERATURE_THRESHOLD"
_SMOKE_THRESHOLD_ENV = "PYROGUARD_SMOKE_THRESHOLD"
_EVENT_LOG_MAX_ENV = "PYROGUARD_EVENT_LOG_MAX_ENTRIES"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    classifier_api_key: Optional[str]
    classifier_model: str
    classifier_base_url: str
    classifier_timeout: float
    history_size: int
    sample_interval: float
    capture_request_delay: float
    capture_duration: float
    temperature_threshold: float
    smoke_threshold: float
    event_log_max_entries: Optional[int]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float(name: str, default: float, minimum: float = 0.0) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_threshold(
    name: str,
    default: float,
    minimum: float,
    maximum: float,
    step: Optional[int] = None,
) -> float:
    parsed = _read_float(name, default, minimum=minimum)
    if parsed > maximum:
        return default
    if step is not None and parsed % step != 0:
        return default
    return parsed


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_api_key() -> Optional[str]:
    key = _read_optional_env(_API_KEY_ENV, None)
    if key is None:
        key = _read_optional_env(_LEGACY_API_KEY_ENV, None)
    return key


@lru_cache
def get_settings() -> Settings:
    return Settings(
        classifier_api_key=_read_api_key(),
        classifier_model=_read_str_env(_MODEL_ENV, "gemini-2.5-flash"),
        classifier_base_url=_read_str_env(
            _BASE_URL_ENV, "https://generativelanguage.googleapis.com/v1beta"
        ).rstrip("/"),
        classifier_timeout=_read_float(_TIMEOUT_ENV, 10.0, minimum=0.1),
        history_size=_read_positive_int(_HISTORY_SIZE_ENV, 30) or 30,
        sample_interval=_read_float(_SAMPLE_INTERVAL_ENV, 1.0, minimum=0.01),
        capture_request_delay=_read_float(_CAPTURE_REQUEST_DELAY_ENV, 1.0),
        capture_duration=_read_float(_CAPTURE_DURATION_ENV, 3.0),
        temperature_threshold=_read_threshold(
            _TEMPERATURE_THRESHOLD_ENV,
            50.0,
            minimum=TEMPERATURE_THRESHOLD_MIN,
            maximum=TEMPERATURE_THRESHOLD_MAX,
        ),
        smoke_threshold=_read_threshold(
            _SMOKE_THRESHOLD_ENV,
            40.0,
            minimum=SMOKE_THRESHOLD_MIN,
            maximum=SMOKE_THRESHOLD_MAX,
            step=SMOKE_THRESHOLD_STEP,
        ),
        event_log_max_entries=_read_positive_int(_EVENT_LOG_MAX_ENV, None),
        log_level=_read_log_level("INFO"),
    )
