"""
Intent Classifier

`LLMIntentClassifier` asks a chat-completions model for a JSON
classification and validates it against the tagged union.
`GuardedIntentClassifier` wraps any classifier so the agent never sees a
failure: timeouts, transport errors, invalid output and low-confidence
answers all become `UnknownIntent`.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from channel_agent.classifier.prompts import build_system_prompt
from channel_agent.classifier.schemas import (
    IntentClassification,
    IntentName,
    UnknownIntent,
    classification_adapter,
)
from channel_agent.config import get_settings
from channel_agent.kernel.errors import ClassifierError
from channel_agent.monitoring import get_metrics

logger = structlog.get_logger()


class IntentClassifier(Protocol):
    async def classify(self, text: str, context_summary: str) -> IntentClassification:
        ...


def _strip_code_fence(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.strip("`").strip()
        if raw.lower().startswith("json"):
            raw = raw[4:].strip()
    return raw


def parse_classification(raw: str | dict[str, Any]) -> IntentClassification:
    """Validate raw model output into an IntentClassification.

    Raises ClassifierError for anything that is not a well-formed member
    of the union, including unrecognised intent names.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(_strip_code_fence(raw) or "{}")
        except json.JSONDecodeError as exc:
            raise ClassifierError(message="Classifier returned invalid JSON") from exc

    if not isinstance(raw, dict):
        raise ClassifierError(message="Classifier returned a non-object payload")

    payload = dict(raw)
    intent = payload.get("intent")
    if isinstance(intent, str):
        payload["intent"] = intent.strip().upper()

    try:
        return classification_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ClassifierError(
            message="Classifier output failed validation",
            meta={"errors": exc.error_count()},
        ) from exc


class LLMIntentClassifier:
    """Classifier backed by a Together/OpenAI-compatible chat completions API."""

    def __init__(
        self,
        client: Any | None = None,
        *,
        model: str | None = None,
        product_name: str | None = None,
    ) -> None:
        settings = get_settings()
        if client is None:
            from together import AsyncTogether

            client = AsyncTogether(api_key=settings.llm_api_key, base_url=settings.llm_base_url)
        self._client = client
        self._model = model or settings.classifier_model
        self._product_name = product_name or settings.product_name

    async def classify(self, text: str, context_summary: str) -> IntentClassification:
        messages = [
            {"role": "system", "content": build_system_prompt(context_summary, self._product_name)},
            {"role": "user", "content": text},
        ]
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=0.0,
                max_tokens=512,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            raise ClassifierError(message="Classifier request failed") from exc

        content = response.choices[0].message.content if response.choices else None
        return parse_classification(content or "")


class GuardedIntentClassifier:
    """Timeout, validation and confidence floor around an IntentClassifier."""

    def __init__(
        self,
        inner: IntentClassifier,
        *,
        timeout_seconds: float | None = None,
        min_confidence: float | None = None,
    ) -> None:
        settings = get_settings()
        self._inner = inner
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.classifier_timeout_seconds
        self._min_confidence = (
            min_confidence if min_confidence is not None else settings.classifier_min_confidence
        )

    async def classify(self, text: str, context_summary: str) -> IntentClassification:
        metrics = get_metrics()
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self._inner.classify(text, context_summary),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return self._fallback("timeout")
        except ClassifierError as exc:
            logger.warning("Intent classification failed", code=exc.code, error=exc.message)
            return self._fallback("invalid_output")
        except Exception as exc:
            logger.warning("Intent classifier raised", error=str(exc), error_type=type(exc).__name__)
            return self._fallback("error")
        finally:
            metrics.observe_classifier(time.perf_counter() - start)

        if isinstance(result, (dict, str)):
            try:
                result = parse_classification(result)
            except ClassifierError:
                return self._fallback("invalid_output")

        if result.intent != IntentName.UNKNOWN and result.confidence < self._min_confidence:
            logger.info(
                "Intent classification below confidence floor",
                intent=result.intent.value,
                confidence=result.confidence,
            )
            return self._fallback("low_confidence")

        logger.debug("Intent classified", intent=result.intent.value, confidence=result.confidence)
        return result

    @staticmethod
    def _fallback(reason: str) -> UnknownIntent:
        get_metrics().track_classifier_fallback(reason)
        return UnknownIntent(confidence=0.0)
