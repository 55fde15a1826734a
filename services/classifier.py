"""Fire classification collaborators consulted while a workflow is ANALYZING."""

from __future__ import annotations

import json
import math
import logging
from functools import lru_cache
from typing import Any, Dict, Optional, Protocol

import httpx

from app.schemas import AnalysisResult
from models.records import SensorReading
from services.evaluator import format_fixed
from settings import get_settings

logger = logging.getLogger(__name__)

MOCK_REASONING = (
    "Simulated analysis (No API Key): High temperature and significant smoke "
    "levels detected consistent with fire signature."
)
MISSING_REASONING = "Analysis failed to produce reasoning."
SERVICE_ERROR_REASONING = "Error connecting to AI analysis service."

_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "isFire": {"type": "BOOLEAN"},
        "confidence": {"type": "NUMBER", "description": "Number between 0 and 1"},
        "reasoning": {"type": "STRING"},
    },
    "required": ["isFire", "confidence", "reasoning"],
}


class FireClassifier(Protocol):
    async def classify(
        self,
        reading: SensorReading,
        has_audio: bool = True,
        has_image: bool = True,
    ) -> AnalysisResult:
        ...

    async def aclose(self) -> None:
        ...


def service_error_result() -> AnalysisResult:
    return AnalysisResult(is_fire=False, confidence=0.0, reasoning=SERVICE_ERROR_REASONING)


def build_prompt(reading: SensorReading, has_audio: bool, has_image: bool) -> str:
    image_line = "Received" if has_image else "None"
    audio_line = "Received (Crackling sounds detected)" if has_audio else "None"
    return (
        "You are an AI Fire Detection System. Analyze the following IoT sensor "
        "telemetry and available media metadata.\n\n"
        "Telemetry:\n"
        f"- Temperature: {format_fixed(reading.temperature, 1)}°C\n"
        f"- Smoke Sensor Level: {format_fixed(reading.smoke_level, 0)} (Scale 0-100)\n\n"
        "Media Available:\n"
        f"- Image Capture: {image_line}\n"
        f"- Audio Recording: {audio_line}\n\n"
        "Determine if there is a high probability of fire.\n"
        "Note: High temperatures coupled with high smoke density often indicate fire.\n\n"
        "Return JSON."
    )


def coerce_result(payload: Any) -> AnalysisResult:
    """Map a decoded model response onto an ``AnalysisResult``.

    Missing or mistyped fields fall back to a negative verdict with zero
    confidence; non-finite confidence counts as missing and the rest is
    clamped to ``[0, 1]``.
    """

    if not isinstance(payload, dict):
        payload = {}

    is_fire = payload.get("isFire")
    if not isinstance(is_fire, bool):
        is_fire = False

    confidence = payload.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
    ):
        confidence = 0.0
    confidence = min(max(float(confidence), 0.0), 1.0)

    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        reasoning = MISSING_REASONING

    return AnalysisResult(is_fire=is_fire, confidence=confidence, reasoning=reasoning)


class MockFireClassifier:
    """Deterministic stand-in used when no service credential is configured."""

    def __init__(self, result: Optional[AnalysisResult] = None) -> None:
        self.result = result or AnalysisResult(
            is_fire=True, confidence=0.85, reasoning=MOCK_REASONING
        )
        self.calls: list[SensorReading] = []

    async def classify(
        self,
        reading: SensorReading,
        has_audio: bool = True,
        has_image: bool = True,
    ) -> AnalysisResult:
        self.calls.append(reading)
        return self.result.model_copy()

    async def aclose(self) -> None:
        return None


class GeminiFireClassifier:
    """Classifier backed by the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def classify(
        self,
        reading: SensorReading,
        has_audio: bool = True,
        has_image: bool = True,
    ) -> AnalysisResult:
        body = {
            "contents": [
                {"role": "user", "parts": [{"text": build_prompt(reading, has_audio, has_image)}]}
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": _RESPONSE_SCHEMA,
            },
        }
        try:
            response = await self._client.post(f"/models/{self.model}:generateContent", json=body)
            response.raise_for_status()
            text = self._extract_text(response.json())
            result = coerce_result(json.loads(text or "{}"))
        except (
            httpx.HTTPError,
            ValueError,
            KeyError,
            IndexError,
            TypeError,
            AttributeError,
        ) as exc:
            logger.warning(
                "Fire classification request failed: %s",
                exc,
                extra={"model": self.model},
            )
            return service_error_result()

        logger.info(
            "Fire classification completed",
            extra={
                "model": self.model,
                "is_fire": result.is_fire,
                "confidence": result.confidence,
            },
        )
        return result

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        if not isinstance(parts, list):
            raise TypeError(f"expected a list of content parts, got {type(parts).__name__}")
        return "".join(part.get("text", "") for part in parts)


@lru_cache
def build_default_classifier() -> FireClassifier:
    """Pick the live classifier when a credential is configured, else the mock."""
    settings = get_settings()
    if not settings.classifier_api_key:
        logger.warning("No API key provided. Fire analysis will use the mock classifier.")
        return MockFireClassifier()
    return GeminiFireClassifier(
        api_key=settings.classifier_api_key,
        model=settings.classifier_model,
        base_url=settings.classifier_base_url,
        timeout=settings.classifier_timeout,
    )
