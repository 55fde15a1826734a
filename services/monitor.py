"""Sampling loop and risk/capture/analysis workflow orchestration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Awaitable, Callable, Optional, Set

from app.schemas import (
    AnalysisResult,
    DashboardState,
    LogType,
    Reading,
    SystemStatus,
    ThresholdsModel,
)
from datastore.event_log import EventLog, build_default_event_log
from models.records import SensorReading, ThresholdEvaluation, Thresholds
from services.classifier import FireClassifier, build_default_classifier, service_error_result
from services.evaluator import ThresholdEvaluator
from services.telemetry import TelemetryGenerator
from settings import get_settings
from storage.history import HistoryBuffer, build_default_history

logger = logging.getLogger(__name__)

WorkflowStep = Callable[..., Awaitable[None]]


@dataclass(frozen=True)
class WorkflowTimings:
    sample_interval: float = 1.0
    capture_request_delay: float = 1.0
    capture_duration: float = 3.0


def _to_wire(reading: SensorReading) -> Reading:
    return Reading(
        timestamp=reading.timestamp,
        temperature=reading.temperature,
        smoke_level=reading.smoke_level,
    )


class MonitorService:
    """Owns the dashboard state and drives it through the escalation workflow.

    All mutation happens on the event loop. Every escalation and every manual
    reset bumps ``generation``; delayed steps and classifier completions carry
    the generation they were scheduled under and are dropped once it is stale.
    """

    def __init__(
        self,
        generator: TelemetryGenerator,
        evaluator: ThresholdEvaluator,
        classifier: FireClassifier,
        history: HistoryBuffer,
        event_log: EventLog,
        thresholds: Thresholds,
        timings: WorkflowTimings = WorkflowTimings(),
    ) -> None:
        self.generator = generator
        self.evaluator = evaluator
        self.classifier = classifier
        self.history = history
        self.event_log = event_log
        self.thresholds = thresholds
        self.timings = timings

        self.status = SystemStatus.NORMAL
        self.simulate_fire = False
        self.capturing = False
        self.analysis: Optional[AnalysisResult] = None
        self.generation = 0

        self._sampler: Optional[asyncio.Task[None]] = None
        self._pending: Set[asyncio.Task[None]] = set()

    # -- lifecycle -----------------------------------------------------

    async def start(self) -> None:
        """Start the periodic sampling task if it is not already running."""
        if self._sampler is not None and not self._sampler.done():
            return
        self._sampler = asyncio.create_task(self._sampling_loop())
        logger.info("Sampling loop started")

    async def shutdown(self) -> None:
        """Cancel the sampler and pending workflow steps, then release the classifier."""
        tasks = list(self._pending)
        if self._sampler is not None:
            tasks.append(self._sampler)
            self._sampler = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        await self.classifier.aclose()
        logger.info("Monitor shut down")

    async def drain(self) -> None:
        """Wait until no workflow step is pending."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def running(self) -> bool:
        return self._sampler is not None and not self._sampler.done()

    async def _sampling_loop(self) -> None:
        while True:
            await asyncio.sleep(self.timings.sample_interval)
            try:
                self.sample()
            except Exception:  # pragma: no cover - keep sampling alive
                logger.exception("Sampling tick failed")

    # -- sampling and evaluation ---------------------------------------

    def sample(self) -> SensorReading:
        """Run one sampling tick: generate, buffer and evaluate a reading."""
        reading = self.generator.generate(self.simulate_fire)
        self.ingest(reading)
        return reading

    def ingest(self, reading: SensorReading) -> ThresholdEvaluation:
        """Buffer ``reading`` and escalate if it breaches while NORMAL.

        Must be called from a running event loop.
        """
        self.history.append(reading)
        evaluation = self.evaluator.evaluate(reading, self.thresholds, self.status)
        if evaluation.breached:
            self._trigger_risk(reading, evaluation.cause or "")
        return evaluation

    # -- operator commands ---------------------------------------------

    def update_thresholds(
        self,
        temperature: Optional[float] = None,
        smoke_level: Optional[float] = None,
    ) -> Thresholds:
        if temperature is not None:
            self.thresholds.temperature = temperature
        if smoke_level is not None:
            self.thresholds.smoke_level = smoke_level
        logger.info(
            "Thresholds updated",
            extra={
                "temperature": self.thresholds.temperature,
                "smoke_level": self.thresholds.smoke_level,
            },
        )
        return self.thresholds

    def set_simulation(self, enabled: bool) -> None:
        self.simulate_fire = enabled
        logger.info("Fire simulation %s", "enabled" if enabled else "disabled")

    def reset(self) -> None:
        """Force the workflow back to NORMAL and invalidate pending steps."""
        self.generation += 1
        self.status = SystemStatus.NORMAL
        self.analysis = None
        self.capturing = False
        self.simulate_fire = False
        self.event_log.append("System manually reset.", LogType.info)

    def snapshot(self) -> DashboardState:
        history = self.history.snapshot()
        return DashboardState(
            status=self.status,
            thresholds=ThresholdsModel(
                temperature=self.thresholds.temperature,
                smoke_level=self.thresholds.smoke_level,
            ),
            simulate_fire=self.simulate_fire,
            capturing=self.capturing,
            analysis=self.analysis.model_copy() if self.analysis else None,
            latest=_to_wire(history[-1]) if history else None,
            history=[_to_wire(reading) for reading in history],
        )

    # -- workflow --------------------------------------------------------

    def _trigger_risk(self, reading: SensorReading, cause: str) -> None:
        self.generation += 1
        self.status = SystemStatus.RISK
        logger.info(
            "Escalating to RISK",
            extra={"cause": cause, "generation": self.generation},
        )
        self.event_log.append(f"RISK DETECTED: {cause}", LogType.warning)
        self._schedule(self.timings.capture_request_delay, self._request_capture, reading)

    def _schedule(self, delay: float, step: WorkflowStep, *args: Any) -> None:
        task = asyncio.create_task(self._run_step(self.generation, delay, step, args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_step(
        self, generation: int, delay: float, step: WorkflowStep, args: tuple
    ) -> None:
        await asyncio.sleep(delay)
        if self._is_stale(generation, step.__name__):
            return
        await step(generation, *args)

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self.generation:
            return False
        logger.info(
            "Discarding stale workflow step %s",
            what,
            extra={"generation": generation, "status": self.status.value},
        )
        return True

    async def _request_capture(self, generation: int, reading: SensorReading) -> None:
        self.event_log.append("Requesting Smartphone Capture (Photo + Audio)...", LogType.info)
        self.capturing = True
        self._schedule(self.timings.capture_duration, self._analyze, reading)

    async def _analyze(self, generation: int, reading: SensorReading) -> None:
        self.capturing = False
        self.event_log.append(
            "Media Received. Initiating Deep Learning Analysis...", LogType.info
        )
        self.status = SystemStatus.ANALYZING

        try:
            result = await self.classifier.classify(reading, has_audio=True, has_image=True)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Fire classifier raised", extra={"generation": generation})
            result = service_error_result()

        if self._is_stale(generation, "classification result"):
            return
        self._apply_analysis(result)

    def _apply_analysis(self, result: AnalysisResult) -> None:
        self.analysis = result
        if result.is_fire:
            self.status = SystemStatus.CONFIRMED
            self.event_log.append(f"FIRE CONFIRMED: {result.reasoning}", LogType.alert)
            self.event_log.append("Alerts sent to WhatsApp, Telegram, Email.", LogType.success)
        else:
            self.status = SystemStatus.NORMAL
            self.event_log.append(f"Analysis Negative: {result.reasoning}", LogType.success)
        logger.info(
            "Analysis applied",
            extra={
                "status": self.status.value,
                "is_fire": result.is_fire,
                "confidence": result.confidence,
            },
        )


@lru_cache
def build_default_monitor() -> MonitorService:
    """Factory that wires the monitor with settings-driven defaults."""
    settings = get_settings()
    return MonitorService(
        generator=TelemetryGenerator(),
        evaluator=ThresholdEvaluator(),
        classifier=build_default_classifier(),
        history=build_default_history(),
        event_log=build_default_event_log(),
        thresholds=Thresholds(
            temperature=settings.temperature_threshold,
            smoke_level=settings.smoke_threshold,
        ),
        timings=WorkflowTimings(
            sample_interval=settings.sample_interval,
            capture_request_delay=settings.capture_request_delay,
            capture_duration=settings.capture_duration,
        ),
    )
