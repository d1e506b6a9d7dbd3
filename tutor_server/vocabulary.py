from __future__ import annotations

import logging
from typing import Any

from .ai_config import AIServiceConfig, has_valid_openai_config
from .fallbacks import extract_basic_vocabulary
from .json_repair import Failed, parse_model_output
from .prompts import build_vocabulary_request
from .vision_providers import ChatProviderError

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY_LEVEL = "beginner"
DEFAULT_MAX_WORDS = 5


async def extract_vocabulary(
    *,
    config: AIServiceConfig,
    provider: Any,
    description: str,
    difficulty_level: str = DEFAULT_DIFFICULTY_LEVEL,
    max_words: int = DEFAULT_MAX_WORDS,
) -> dict[str, Any]:
    reasons: list[str] = []
    vocabulary: list[dict[str, Any]] = []

    if not has_valid_openai_config(config) or not provider.configured:
        reasons.append("OpenAI configuration missing, using basic vocabulary extraction.")
    else:
        payload = build_vocabulary_request(
            description=description,
            difficulty_level=difficulty_level,
            max_words=max_words,
            model=config.text_model,
        )
        try:
            provider_result = await provider.complete(payload, timeout_seconds=config.text_timeout_seconds)
        except ChatProviderError as exc:
            reasons.append(f"Vocabulary request failed: {exc}")
        else:
            attempt = parse_model_output(provider_result.text)
            if isinstance(attempt, Failed):
                reasons.append(f"Vocabulary response could not be parsed ({attempt.reason}).")
            else:
                vocabulary = _clean_vocabulary(attempt.value, difficulty_level)[:max_words]
                if not vocabulary:
                    reasons.append("Vocabulary response contained no usable words.")

    used_fallback = not vocabulary
    if used_fallback:
        logger.warning("Vocabulary extraction fell back: %s", "; ".join(reasons))
        vocabulary = extract_basic_vocabulary(description, difficulty_level, max_words)

    return {
        "message": f"Extracted {len(vocabulary)} vocabulary words",
        "vocabulary": vocabulary,
        "used_fallback": used_fallback,
        "fallback_reasons": reasons if used_fallback else [],
    }


def _clean_vocabulary(value: Any, difficulty_level: str) -> list[dict[str, Any]]:
    if isinstance(value, dict):
        for key in ("vocabulary", "words", "entries"):
            if isinstance(value.get(key), list):
                value = value[key]
                break
    if not isinstance(value, list):
        return []

    cleaned: list[dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        word = item.get("word")
        if not isinstance(word, str) or not word.strip():
            continue
        word = word.strip()
        cleaned.append(
            {
                "word": word,
                "definition": str(item.get("definition") or ""),
                "difficulty_level": item.get("difficulty_level") or difficulty_level,
                "part_of_speech": item.get("part_of_speech") or "noun",
                "example_sentence": item.get("example_sentence") or f"This is an example with {word}.",
            }
        )
    return cleaned
