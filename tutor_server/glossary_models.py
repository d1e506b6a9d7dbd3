from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced", "challenging")
DEFAULT_DIFFICULTY = "challenging"

SOURCE_AI_VISION = "ai-vision"
SOURCE_FALLBACK_TEXT = "fallback-text"

AI_DEFAULT_CONFIDENCE = 0.6
FALLBACK_CONFIDENCE = 0.35

MIN_BOX_SIZE = 0.04


@dataclass(frozen=True)
class BoundingBox:
    top: float
    left: float
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {
            "top": self.top,
            "left": self.left,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "BoundingBox":
        return cls(
            top=float(payload.get("top", 0.0)),
            left=float(payload.get("left", 0.0)),
            width=float(payload.get("width", MIN_BOX_SIZE)),
            height=float(payload.get("height", MIN_BOX_SIZE)),
        )


@dataclass(frozen=True)
class GlossaryEntry:
    word: str
    definition: str
    translation: str
    difficulty: str
    confidence: float
    position: BoundingBox
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str | None:
        value = self.metadata.get("source")
        return value if isinstance(value, str) else None

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK_TEXT

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "definition": self.definition,
            "translation": self.translation,
            "difficulty": self.difficulty,
            "confidence": self.confidence,
            "position": self.position.to_dict(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GlossaryEntry":
        position = payload.get("position")
        metadata = payload.get("metadata")
        return cls(
            word=str(payload["word"]),
            definition=str(payload["definition"]),
            translation=str(payload.get("translation") or ""),
            difficulty=str(payload.get("difficulty") or DEFAULT_DIFFICULTY),
            confidence=float(payload.get("confidence", 0.0)),
            position=BoundingBox.from_dict(position if isinstance(position, dict) else {}),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )
