import random
import time
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.schemas import AnalysisResult
from datastore.event_log import EventLog
from models.records import Thresholds
from services.classifier import MockFireClassifier
from services.evaluator import ThresholdEvaluator
from services.monitor import MonitorService, WorkflowTimings, build_default_monitor
from services.telemetry import TelemetryGenerator
from settings import get_settings
from storage.history import HistoryBuffer


def _patch_monitor(monkeypatch, classifier: MockFireClassifier) -> List[MonitorService]:
    monitors: List[MonitorService] = []

    def build_test_monitor() -> MonitorService:
        if not monitors:
            monitors.append(
                MonitorService(
                    generator=TelemetryGenerator(rng=random.Random(3)),
                    evaluator=ThresholdEvaluator(),
                    classifier=classifier,
                    history=HistoryBuffer(capacity=30),
                    event_log=EventLog(),
                    thresholds=Thresholds(temperature=50.0, smoke_level=40.0),
                    timings=WorkflowTimings(
                        sample_interval=3600.0,
                        capture_request_delay=0.0,
                        capture_duration=0.0,
                    ),
                )
            )
        return monitors[0]

    build_test_monitor.cache_clear = monitors.clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.api.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.web.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("services.monitor.build_default_monitor", build_test_monitor)
    return monitors


@pytest.fixture
def api_client(monkeypatch) -> Iterator[TestClient]:
    _patch_monitor(
        monkeypatch,
        MockFireClassifier(AnalysisResult(is_fire=True, confidence=0.9, reasoning="test")),
    )
    app = create_app()
    with TestClient(app) as client:
        yield client


def _poll_for_status(client: TestClient, expected: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_payload: dict | None = None
    while time.monotonic() < deadline:
        response = client.get("/api/state")
        assert response.status_code == 200
        last_payload = response.json()
        if last_payload["status"] == expected:
            return last_payload
        time.sleep(0.02)
    pytest.fail(f"Status never reached {expected}: {last_payload}")


def test_lifespan_starts_and_stops_monitor(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    get_settings.cache_clear()
    build_default_monitor.cache_clear()
    app = create_app()

    try:
        with TestClient(app) as client:
            monitor_during = build_default_monitor()
            assert monitor_during.running is True
            assert client.get("/health").json() == {"status": "ok"}

        assert monitor_during.running is False
        assert build_default_monitor() is not monitor_during
    finally:
        build_default_monitor.cache_clear()
        get_settings.cache_clear()


def test_initial_state(api_client: TestClient) -> None:
    response = api_client.get("/api/state")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "NORMAL"
    assert payload["thresholds"] == {"temperature": 50.0, "smoke_level": 40.0}
    assert payload["simulate_fire"] is False
    assert payload["capturing"] is False
    assert payload["analysis"] is None
    assert payload["history"] == []


def test_injected_breach_runs_to_confirmation(api_client: TestClient) -> None:
    response = api_client.post("/api/readings", json={"temperature": 55.0, "smoke_level": 10.0})

    assert response.status_code == 201
    body = response.json()
    assert body["breached"] is True
    assert body["cause"] == "Temp High (55.0°C)"
    assert body["status"] == "RISK"

    state = _poll_for_status(api_client, "CONFIRMED")
    assert state["analysis"]["reasoning"] == "test"
    assert state["latest"]["temperature"] == 55.0

    messages = [entry["message"] for entry in api_client.get("/api/logs").json()]
    assert "FIRE CONFIRMED: test" in messages

    reset = api_client.post("/api/reset")
    assert reset.status_code == 200
    assert reset.json()["status"] == "NORMAL"
    assert reset.json()["analysis"] is None


def test_injected_reading_below_thresholds(api_client: TestClient) -> None:
    response = api_client.post("/api/readings", json={"temperature": 21.0, "smoke_level": 2.0})

    assert response.status_code == 201
    assert response.json()["breached"] is False
    assert response.json()["cause"] is None
    assert len(api_client.get("/api/history").json()) == 1


def test_threshold_update_and_validation(api_client: TestClient) -> None:
    ok = api_client.put("/api/thresholds", json={"temperature": 70, "smoke_level": 55})
    assert ok.status_code == 200
    assert ok.json() == {"temperature": 70.0, "smoke_level": 55.0}

    partial = api_client.put("/api/thresholds", json={"smoke_level": 20})
    assert partial.json() == {"temperature": 70.0, "smoke_level": 20.0}

    assert api_client.put("/api/thresholds", json={"temperature": 20}).status_code == 422
    assert api_client.put("/api/thresholds", json={"smoke_level": 42}).status_code == 422
    assert api_client.put("/api/thresholds", json={"smoke_level": 105}).status_code == 422


def test_simulation_toggle(api_client: TestClient) -> None:
    on = api_client.post("/api/simulation", json={"enabled": True})
    assert on.json()["simulate_fire"] is True

    off = api_client.post("/api/simulation", json={"enabled": False})
    assert off.json()["simulate_fire"] is False


def test_logs_limit(api_client: TestClient) -> None:
    api_client.post("/api/reset")
    api_client.post("/api/reset")
    api_client.post("/api/reset")

    entries = api_client.get("/api/logs", params={"limit": 2}).json()

    assert len(entries) == 2
    assert all(entry["message"] == "System manually reset." for entry in entries)
    assert all(entry["type"] == "info" for entry in entries)


def test_dashboard_renders_and_shows_reset_only_when_escalated(api_client: TestClient) -> None:
    page = api_client.get("/ui")
    assert page.status_code == 200
    assert "PyroGuard" in page.text
    assert "Reset System State" not in page.text

    api_client.post("/api/readings", json={"temperature": 30.0, "smoke_level": 45.0})
    _poll_for_status(api_client, "CONFIRMED")

    page = api_client.get("/ui")
    assert "Reset System State" in page.text
    assert "FIRE CONFIRMED: test" in page.text
    assert "Smoke Detected (45)" in page.text


def test_dashboard_forms_redirect_back(api_client: TestClient) -> None:
    response = api_client.post(
        "/ui/thresholds",
        data={"temperature": "60", "smoke_level": "35"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"].endswith("/ui")
    assert api_client.get("/api/state").json()["thresholds"] == {
        "temperature": 60.0,
        "smoke_level": 35.0,
    }

    response = api_client.post("/ui/simulation", data={"enabled": "true"}, follow_redirects=False)
    assert response.status_code == 303
    assert api_client.get("/api/state").json()["simulate_fire"] is True

    response = api_client.post("/ui/reset", follow_redirects=False)
    assert response.status_code == 303
    assert api_client.get("/api/state").json()["simulate_fire"] is False


def test_dashboard_rejects_out_of_range_threshold(api_client: TestClient) -> None:
    response = api_client.post(
        "/ui/thresholds",
        data={"temperature": "10", "smoke_level": "35"},
        follow_redirects=False,
    )

    assert response.status_code == 422


def test_stylesheet_served_from_app_package(api_client: TestClient) -> None:
    page = api_client.get("/ui")
    response = api_client.get("/static/dashboard.css")

    assert "/static/dashboard.css" in page.text
    assert response.status_code == 200
    assert "text/css" in response.headers["content-type"]
