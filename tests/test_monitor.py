import asyncio
import random
from typing import List

from app.schemas import AnalysisResult, LogType, SystemStatus
from datastore.event_log import EventLog
from models.records import SensorReading, Thresholds
from services.classifier import SERVICE_ERROR_REASONING, MockFireClassifier
from services.evaluator import ThresholdEvaluator
from services.monitor import MonitorService, WorkflowTimings
from services.telemetry import TelemetryGenerator
from storage.history import HistoryBuffer


class GatedClassifier:
    """Classifier that blocks until the test releases it."""

    def __init__(self, result: AnalysisResult) -> None:
        self.result = result
        self.release = asyncio.Event()
        self.started = False

    async def classify(self, reading, has_audio=True, has_image=True) -> AnalysisResult:
        self.started = True
        await self.release.wait()
        return self.result

    async def aclose(self) -> None:
        return None


class ExplodingClassifier:
    async def classify(self, reading, has_audio=True, has_image=True) -> AnalysisResult:
        raise RuntimeError("model crashed")

    async def aclose(self) -> None:
        return None


def _build_monitor(classifier=None, sample_interval: float = 3600.0) -> MonitorService:
    return MonitorService(
        generator=TelemetryGenerator(rng=random.Random(1)),
        evaluator=ThresholdEvaluator(),
        classifier=classifier or MockFireClassifier(),
        history=HistoryBuffer(capacity=30),
        event_log=EventLog(),
        thresholds=Thresholds(temperature=50.0, smoke_level=40.0),
        timings=WorkflowTimings(
            sample_interval=sample_interval,
            capture_request_delay=0.0,
            capture_duration=0.0,
        ),
    )


def _reading(temperature: float, smoke_level: float) -> SensorReading:
    return SensorReading(timestamp=0, temperature=temperature, smoke_level=smoke_level)


def _messages(monitor: MonitorService) -> List[str]:
    return [entry.message for entry in monitor.event_log.entries()]


async def _wait_for(predicate, attempts: int = 200, delay: float = 0) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(delay)
    raise AssertionError("condition not reached")


def test_temperature_breach_escalates_to_risk() -> None:
    async def scenario():
        monitor = _build_monitor()
        evaluation = monitor.ingest(_reading(55.0, 10.0))
        status = monitor.status
        await monitor.shutdown()
        return monitor, evaluation, status

    monitor, evaluation, status = asyncio.run(scenario())

    assert evaluation.breached is True
    assert status is SystemStatus.RISK
    assert "RISK DETECTED: Temp High (55.0°C)" in _messages(monitor)
    assert monitor.event_log.entries()[0].type is LogType.warning


def test_smoke_breach_escalates_to_risk() -> None:
    async def scenario():
        monitor = _build_monitor()
        monitor.ingest(_reading(30.0, 45.0))
        status = monitor.status
        await monitor.shutdown()
        return monitor, status

    monitor, status = asyncio.run(scenario())

    assert status is SystemStatus.RISK
    assert any("Smoke Detected (45)" in message for message in _messages(monitor))


def test_positive_analysis_confirms_fire() -> None:
    classifier = MockFireClassifier(
        AnalysisResult(is_fire=True, confidence=0.9, reasoning="test")
    )

    async def scenario():
        monitor = _build_monitor(classifier)
        monitor.ingest(_reading(55.0, 10.0))
        await monitor.drain()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.status is SystemStatus.CONFIRMED
    assert monitor.analysis is not None and monitor.analysis.reasoning == "test"
    assert monitor.capturing is False
    assert _messages(monitor) == [
        "RISK DETECTED: Temp High (55.0°C)",
        "Requesting Smartphone Capture (Photo + Audio)...",
        "Media Received. Initiating Deep Learning Analysis...",
        "FIRE CONFIRMED: test",
        "Alerts sent to WhatsApp, Telegram, Email.",
    ]
    types = [entry.type for entry in monitor.event_log.entries()]
    assert types[-2:] == [LogType.alert, LogType.success]
    assert classifier.calls == [_reading(55.0, 10.0)]


def test_negative_analysis_returns_to_normal_without_confirmation() -> None:
    classifier = MockFireClassifier(
        AnalysisResult(is_fire=False, confidence=0.2, reasoning="steam from kettle")
    )
    observed: List[SystemStatus] = []

    async def scenario():
        monitor = _build_monitor(classifier)
        monitor.ingest(_reading(30.0, 45.0))
        while monitor._pending:
            observed.append(monitor.status)
            await asyncio.sleep(0)
        await monitor.drain()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.status is SystemStatus.NORMAL
    assert SystemStatus.CONFIRMED not in observed
    last = monitor.event_log.entries()[-1]
    assert last.message == "Analysis Negative: steam from kettle"
    assert last.type is LogType.success


def test_reset_during_analysis_discards_late_result() -> None:
    classifier = GatedClassifier(AnalysisResult(is_fire=True, confidence=0.99, reasoning="late"))

    async def scenario():
        monitor = _build_monitor(classifier)
        monitor.set_simulation(True)
        monitor.ingest(_reading(80.0, 90.0))
        await _wait_for(lambda: classifier.started)
        assert monitor.status is SystemStatus.ANALYZING

        monitor.reset()
        after_reset = (monitor.status, monitor.analysis, monitor.simulate_fire)

        classifier.release.set()
        await monitor.drain()
        return monitor, after_reset

    monitor, after_reset = asyncio.run(scenario())

    assert after_reset == (SystemStatus.NORMAL, None, False)
    assert monitor.status is SystemStatus.NORMAL
    assert monitor.analysis is None
    assert not any(message.startswith("FIRE CONFIRMED") for message in _messages(monitor))
    assert _messages(monitor)[-1] == "System manually reset."


def test_reset_before_capture_request_cancels_workflow() -> None:
    async def scenario():
        monitor = _build_monitor()
        monitor.ingest(_reading(55.0, 10.0))
        monitor.reset()
        await monitor.drain()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.status is SystemStatus.NORMAL
    assert monitor.capturing is False
    assert "Requesting Smartphone Capture (Photo + Audio)..." not in _messages(monitor)


def test_reset_twice_only_grows_log() -> None:
    async def scenario():
        monitor = _build_monitor()
        monitor.ingest(_reading(55.0, 10.0))
        await monitor.drain()
        monitor.reset()
        first = monitor.snapshot()
        monitor.reset()
        second = monitor.snapshot()
        return monitor, first, second

    monitor, first, second = asyncio.run(scenario())

    assert first == second
    assert second.status is SystemStatus.NORMAL
    assert _messages(monitor)[-2:] == ["System manually reset.", "System manually reset."]


def test_readings_buffered_but_not_evaluated_mid_workflow() -> None:
    classifier = GatedClassifier(AnalysisResult(is_fire=False, confidence=0.1, reasoning="no"))

    async def scenario():
        monitor = _build_monitor(classifier)
        monitor.ingest(_reading(55.0, 10.0))
        second = monitor.ingest(_reading(95.0, 95.0))
        await _wait_for(lambda: classifier.started)
        third = monitor.ingest(_reading(95.0, 95.0))
        classifier.release.set()
        await monitor.drain()
        return monitor, second, third

    monitor, second, third = asyncio.run(scenario())

    assert second.breached is False
    assert third.breached is False
    assert len(monitor.history) == 3
    risk_logs = [m for m in _messages(monitor) if m.startswith("RISK DETECTED")]
    assert len(risk_logs) == 1


def test_loosened_thresholds_do_not_abort_in_flight_escalation() -> None:
    classifier = MockFireClassifier(AnalysisResult(is_fire=True, confidence=0.8, reasoning="hot"))

    async def scenario():
        monitor = _build_monitor(classifier)
        monitor.ingest(_reading(55.0, 10.0))
        monitor.update_thresholds(temperature=100.0, smoke_level=100.0)
        await monitor.drain()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.status is SystemStatus.CONFIRMED
    assert classifier.calls == [_reading(55.0, 10.0)]


def test_classifier_exception_recovers_to_normal() -> None:
    async def scenario():
        monitor = _build_monitor(ExplodingClassifier())
        monitor.ingest(_reading(55.0, 10.0))
        await monitor.drain()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.status is SystemStatus.NORMAL
    assert _messages(monitor)[-1] == f"Analysis Negative: {SERVICE_ERROR_REASONING}"


def test_sampling_loop_generates_readings_until_shutdown() -> None:
    async def scenario():
        monitor = _build_monitor(sample_interval=0.001)
        await monitor.start()
        assert monitor.running
        await _wait_for(lambda: len(monitor.history) >= 3, attempts=5_000, delay=0.001)
        await monitor.shutdown()
        return monitor

    monitor = asyncio.run(scenario())

    assert monitor.running is False
    assert 3 <= len(monitor.history) <= 30
    assert monitor.status is SystemStatus.NORMAL


def test_simulated_fire_sample_triggers_escalation() -> None:
    async def scenario():
        monitor = _build_monitor()
        monitor.set_simulation(True)
        reading = monitor.sample()
        status = monitor.status
        await monitor.drain()
        return monitor, reading, status

    monitor, reading, status = asyncio.run(scenario())

    assert reading.temperature >= 60.0
    assert status is SystemStatus.RISK
    assert monitor.status is SystemStatus.CONFIRMED


def test_snapshot_exposes_latest_reading_and_history() -> None:
    async def scenario():
        monitor = _build_monitor()
        monitor.ingest(_reading(21.0, 3.0))
        monitor.ingest(_reading(22.0, 4.0))
        return monitor.snapshot()

    state = asyncio.run(scenario())

    assert state.status is SystemStatus.NORMAL
    assert state.latest is not None and state.latest.temperature == 22.0
    assert [reading.smoke_level for reading in state.history] == [3.0, 4.0]
    assert state.thresholds.temperature == 50.0
