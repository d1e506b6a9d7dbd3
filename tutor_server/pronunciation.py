from __future__ import annotations

import logging
import math
from typing import Any

from .ai_config import AIServiceConfig, has_valid_openai_config
from .fallbacks import evaluate_basic_pronunciation
from .json_repair import Failed, parse_model_output
from .prompts import build_pronunciation_request
from .vision_providers import ChatProviderError

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
DEFAULT_SCORE = 70
DEFAULT_SUGGESTION = "Keep practicing to improve your pronunciation!"
SCORE_FIELDS = ("pronunciation_score", "fluency_score", "accuracy_score")


async def evaluate_pronunciation(
    *,
    config: AIServiceConfig,
    provider: Any,
    transcript: str,
    target_text: str,
    confidence: float | None = None,
) -> dict[str, Any]:
    confidence = _clean_confidence(confidence)

    evaluation: dict[str, Any] | None = None
    reason = ""
    if not has_valid_openai_config(config) or not provider.configured:
        reason = "OpenAI configuration missing or invalid"
    else:
        payload = build_pronunciation_request(
            transcript=transcript,
            target_text=target_text,
            confidence=confidence,
            model=config.text_model,
        )
        try:
            provider_result = await provider.complete(payload, timeout_seconds=config.text_timeout_seconds)
        except ChatProviderError as exc:
            reason = f"pronunciation request failed: {exc}"
        else:
            attempt = parse_model_output(provider_result.text)
            if isinstance(attempt, Failed) or not isinstance(attempt.value, dict):
                reason = "pronunciation response was not a JSON object"
            else:
                evaluation = _clean_evaluation(attempt.value)

    if evaluation is None:
        logger.warning("Falling back to basic pronunciation evaluation: %s", reason)
        return {**evaluate_basic_pronunciation(transcript, target_text, confidence), "used_fallback": True}
    return {**evaluation, "used_fallback": False}


def _clean_evaluation(raw: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {field: _clean_score(raw.get(field)) for field in SCORE_FIELDS}
    suggestions = raw.get("suggestions")
    if isinstance(suggestions, list):
        suggestions = [str(item).strip() for item in suggestions if str(item).strip()]
    else:
        suggestions = []
    result["suggestions"] = suggestions or [DEFAULT_SUGGESTION]
    return result


def _clean_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if isinstance(value, float) and not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return float(min(1, max(0, value)))


def _clean_score(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SCORE
    # isfinite() overflows on huge ints, which compare fine as-is.
    if isinstance(value, float) and not math.isfinite(value):
        return DEFAULT_SCORE
    return min(100, max(0, value))
