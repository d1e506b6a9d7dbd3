from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

PLACEHOLDER_API_KEY = "your-openai-api-key-here"
MIN_API_KEY_LENGTH = 10

DEFAULT_VISION_MODEL = "gpt-4o-mini"
DEFAULT_TEXT_MODEL = "gpt-4o-mini"
DEFAULT_VISION_TIMEOUT_MS = 180_000
DEFAULT_GLOSSARY_TIMEOUT_MS = 300_000
DEFAULT_TEXT_TIMEOUT_MS = 15_000
DEFAULT_INLINE_IMAGE_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_INLINE_IMAGE_TIMEOUT_MS = 20_000

DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class AIServiceConfig:
    model_base_url: str = ""
    api_key: str = ""
    vision_model: str = DEFAULT_VISION_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    vision_timeout_ms: int = DEFAULT_VISION_TIMEOUT_MS
    glossary_timeout_ms: int = DEFAULT_GLOSSARY_TIMEOUT_MS
    text_timeout_ms: int = DEFAULT_TEXT_TIMEOUT_MS
    inline_image_max_bytes: int = DEFAULT_INLINE_IMAGE_MAX_BYTES
    inline_image_timeout_ms: int = DEFAULT_INLINE_IMAGE_TIMEOUT_MS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AIServiceConfig":
        env = os.environ if environ is None else environ
        return cls(
            model_base_url=str(env.get("OPENAI_BASE_URL", "")).strip().rstrip("/"),
            api_key=str(env.get("OPENAI_API_KEY", "")).strip(),
            vision_model=_clean_optional_str(env.get("OPENAI_VISION_MODEL")) or DEFAULT_VISION_MODEL,
            text_model=_clean_optional_str(env.get("OPENAI_MODEL")) or DEFAULT_TEXT_MODEL,
            vision_timeout_ms=_parse_positive_int(
                env.get("OPENAI_VISION_TIMEOUT_MS"),
                fallback=DEFAULT_VISION_TIMEOUT_MS,
            ),
            glossary_timeout_ms=_parse_positive_int(
                env.get("OPENAI_GLOSSARY_TIMEOUT_MS"),
                fallback=DEFAULT_GLOSSARY_TIMEOUT_MS,
            ),
            text_timeout_ms=_parse_positive_int(
                env.get("OPENAI_TEXT_TIMEOUT_MS"),
                fallback=DEFAULT_TEXT_TIMEOUT_MS,
            ),
            inline_image_max_bytes=_parse_positive_int(
                env.get("INLINE_IMAGE_MAX_BYTES"),
                fallback=DEFAULT_INLINE_IMAGE_MAX_BYTES,
            ),
            inline_image_timeout_ms=_parse_positive_int(
                env.get("INLINE_IMAGE_TIMEOUT_MS"),
                fallback=DEFAULT_INLINE_IMAGE_TIMEOUT_MS,
            ),
        )

    @property
    def vision_timeout_seconds(self) -> float:
        return self.vision_timeout_ms / 1000

    @property
    def glossary_timeout_seconds(self) -> float:
        # Glossary extraction never gets less time than a plain vision call.
        return max(self.vision_timeout_ms, self.glossary_timeout_ms) / 1000

    @property
    def text_timeout_seconds(self) -> float:
        return self.text_timeout_ms / 1000

    @property
    def inline_image_timeout_seconds(self) -> float:
        return self.inline_image_timeout_ms / 1000

    def status(self) -> dict[str, Any]:
        return {
            "configured": has_valid_openai_config(self),
            "vision_model": self.vision_model,
            "text_model": self.text_model,
            "base_url": self.model_base_url,
        }


def has_valid_openai_config(config: AIServiceConfig) -> bool:
    api_key = config.api_key.strip()
    return bool(
        config.model_base_url.strip()
        and api_key
        and api_key != PLACEHOLDER_API_KEY
        and len(api_key) >= MIN_API_KEY_LENGTH
    )


def resolve_data_dir(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    raw_value = _clean_optional_str(env.get("TUTOR_DATA_DIR"))
    return Path(raw_value) if raw_value else DEFAULT_DATA_DIR


def _parse_positive_int(raw_value: Any, *, fallback: int) -> int:
    if raw_value is None:
        return fallback
    try:
        parsed = int(str(raw_value).strip())
    except ValueError:
        return fallback
    if parsed <= 0:
        return fallback
    return parsed


def _clean_optional_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None
