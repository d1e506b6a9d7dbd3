from __future__ import annotations

import math
import sys
from typing import Any, Iterable

from .fallbacks import GRID_BOX_HEIGHT, GRID_BOX_WIDTH, grid_position
from .glossary_models import (
    AI_DEFAULT_CONFIDENCE,
    DEFAULT_DIFFICULTY,
    DIFFICULTY_LEVELS,
    MIN_BOX_SIZE,
    SOURCE_AI_VISION,
    BoundingBox,
    GlossaryEntry,
)

DIFFICULTY_SYNONYMS = {
    "easy": "beginner",
    "medium": "intermediate",
    "moderate": "intermediate",
    "hard": "advanced",
    "difficult": "advanced",
}

REQUIRED_TEXT_FIELDS = ("word", "definition", "translation")


def normalize_confidence(value: Any, default: float = AI_DEFAULT_CONFIDENCE) -> float:
    number = _coerce_float(value)
    if number is None:
        return default
    return round(_clamp(number, 0.0, 1.0), 3)


def normalize_difficulty(value: Any) -> str:
    if not isinstance(value, str):
        return DEFAULT_DIFFICULTY
    normalized = value.strip().lower()
    if normalized in DIFFICULTY_LEVELS:
        return normalized
    return DIFFICULTY_SYNONYMS.get(normalized, DEFAULT_DIFFICULTY)


def normalize_position(raw_box: Any, *, index: int, total: int) -> BoundingBox:
    fallback = grid_position(index, total)
    if not isinstance(raw_box, dict):
        return fallback

    top = _coerce_float(raw_box.get("top"))
    left = _coerce_float(raw_box.get("left"))
    width = _coerce_float(raw_box.get("width"))
    height = _coerce_float(raw_box.get("height"))

    return BoundingBox(
        top=_clamp(fallback.top if top is None else top, 0.0, 1.0),
        left=_clamp(fallback.left if left is None else left, 0.0, 1.0),
        width=_clamp(GRID_BOX_WIDTH if width is None else width, MIN_BOX_SIZE, 1.0),
        height=_clamp(GRID_BOX_HEIGHT if height is None else height, MIN_BOX_SIZE, 1.0),
    )


def clean_required_text(raw: Any) -> dict[str, str] | None:
    """Return the trimmed word/definition/translation, or ``None`` if any is blank."""

    if not isinstance(raw, dict):
        return None
    cleaned: dict[str, str] = {}
    for key in REQUIRED_TEXT_FIELDS:
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            return None
        cleaned[key] = value.strip()
    return cleaned


def normalize_entry(
    raw: Any,
    *,
    index: int,
    total: int,
    default_confidence: float = AI_DEFAULT_CONFIDENCE,
    source: str = SOURCE_AI_VISION,
    extra_metadata: dict[str, Any] | None = None,
) -> GlossaryEntry | None:
    text_fields = clean_required_text(raw)
    if text_fields is None:
        return None

    raw_box = raw.get("bounding_box")
    if raw_box is None:
        raw_box = raw.get("position")

    metadata: dict[str, Any] = dict(extra_metadata or {})
    metadata["source"] = source
    metadata["raw_bounding_box"] = raw_box if isinstance(raw_box, dict) else None
    notes = raw.get("notes")
    if isinstance(notes, str) and notes.strip():
        metadata["notes"] = notes.strip()

    return GlossaryEntry(
        word=text_fields["word"],
        definition=text_fields["definition"],
        translation=text_fields["translation"],
        difficulty=normalize_difficulty(raw.get("difficulty")),
        confidence=normalize_confidence(raw.get("confidence"), default_confidence),
        position=normalize_position(raw_box, index=index, total=total),
        metadata=metadata,
    )


def normalize_entries(
    raw_entries: Iterable[Any],
    *,
    default_confidence: float = AI_DEFAULT_CONFIDENCE,
    source: str = SOURCE_AI_VISION,
    extra_metadata: dict[str, Any] | None = None,
) -> list[GlossaryEntry]:
    # Grid slots are laid out over the surviving entries only.
    kept = [item for item in raw_entries if clean_required_text(item) is not None]
    normalized: list[GlossaryEntry] = []
    for index, item in enumerate(kept):
        entry = normalize_entry(
            item,
            index=index,
            total=len(kept),
            default_confidence=default_confidence,
            source=source,
            extra_metadata=extra_metadata,
        )
        if entry is not None:
            normalized.append(entry)
    return normalized


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        try:
            number = float(value)
        except OverflowError:
            # Integers past float range clamp to the nearest bound.
            return sys.float_info.max if value > 0 else -sys.float_info.max
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
