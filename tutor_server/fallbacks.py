"""Deterministic, network-free substitutes for model output.

Nothing here reads the clock or a random source, so identical input
always produces identical output.
"""

from __future__ import annotations

import math
import re
from typing import Any

from .glossary_models import (
    FALLBACK_CONFIDENCE,
    SOURCE_FALLBACK_TEXT,
    BoundingBox,
    GlossaryEntry,
)

GRID_BOX_WIDTH = 0.18
GRID_BOX_HEIGHT = 0.1
GRID_TOP_MARGIN = 0.05
EMPTY_GRID_POSITION = BoundingBox(top=0.1, left=0.1, width=0.2, height=0.1)

MIN_FALLBACK_WORD_LENGTH = 5
ADVANCED_WORD_LENGTH = 8

GLOSSARY_STOP_WORDS = frozenset(
    {
        "the", "and", "with", "from", "they", "have", "this", "that", "were", "said",
        "each", "which", "their", "time", "will", "about", "would", "there", "could",
        "other", "more", "very", "what", "know", "just", "into", "over", "also", "your",
        "work", "life", "only", "still", "should", "after", "being", "before", "through",
        "when", "where", "some", "then", "them", "well", "once",
    }
)

VOCABULARY_STOP_WORDS = frozenset(
    {
        "this", "that", "with", "from", "they", "have", "been", "were", "said", "each",
        "which", "their", "time", "will", "about", "would", "there", "could", "other",
        "more", "very", "what", "know", "just", "first", "into", "over", "think", "also",
        "your", "work", "life", "only", "can", "still", "should", "after", "being", "now",
        "made", "before", "here", "through", "when", "where", "much", "some", "these",
        "many", "then", "them", "well",
    }
)

IMAGE_DESCRIPTIONS = {
    "cover": "This is the cover of a children's book with colorful illustrations.",
    "story": "This page shows an illustration from the story with characters and scenes.",
    "educational": "This educational illustration helps children learn new concepts.",
    "default": "This image shows an interesting scene that helps tell the story.",
}

_NON_LETTER_RE = re.compile(r"[^a-z\s-]")
_VOCABULARY_PUNCTUATION_RE = re.compile(r"[.,!?;:]")
_SPEECH_PUNCTUATION_RE = re.compile(r"[.,!?;]")


def grid_position(index: int, total: int) -> BoundingBox:
    if total <= 0:
        return EMPTY_GRID_POSITION

    columns = math.ceil(math.sqrt(total))
    rows = math.ceil(total / columns)
    row = index // columns
    column = index % columns

    horizontal_gap = (1 - GRID_BOX_WIDTH) / (columns - 1) if columns > 1 else 0.0
    vertical_gap = (1 - GRID_BOX_HEIGHT) / (rows - 1) if rows > 1 else 0.0

    return BoundingBox(
        top=_clamp_grid(row * vertical_gap + GRID_TOP_MARGIN),
        left=_clamp_grid(column * horizontal_gap),
        width=GRID_BOX_WIDTH,
        height=GRID_BOX_HEIGHT,
    )


def select_fallback_words(text: str | None, max_entries: int = 6) -> list[str]:
    if not text or max_entries <= 0:
        return []

    sanitized = _NON_LETTER_RE.sub(" ", text.lower())
    candidates: list[str] = []
    seen: set[str] = set()
    for word in sanitized.split():
        if len(word) < MIN_FALLBACK_WORD_LENGTH:
            continue
        if word in GLOSSARY_STOP_WORDS or word in seen:
            continue
        seen.add(word)
        candidates.append(word)
        if len(candidates) >= max_entries:
            break
    return candidates


def generate_fallback_glossary(text: str | None, max_entries: int = 6) -> list[GlossaryEntry]:
    words = select_fallback_words(text, max_entries)
    return [
        GlossaryEntry(
            word=word,
            definition=f'Definition for "{word}" is not available in offline mode.',
            translation=f"{word}（待翻译）",
            difficulty="advanced" if len(word) > ADVANCED_WORD_LENGTH else "challenging",
            confidence=FALLBACK_CONFIDENCE,
            position=grid_position(index, len(words)),
            metadata={
                "source": SOURCE_FALLBACK_TEXT,
                "note": "Generated without AI vision OCR",
            },
        )
        for index, word in enumerate(words)
    ]


def basic_image_description(context: str | None = None) -> str:
    key = context.strip().lower() if isinstance(context, str) else ""
    return IMAGE_DESCRIPTIONS.get(key, IMAGE_DESCRIPTIONS["default"])


def extract_basic_vocabulary(description: str, difficulty_level: str, max_words: int) -> list[dict[str, Any]]:
    words = _VOCABULARY_PUNCTUATION_RE.sub("", (description or "").lower()).split(" ")
    unique: list[str] = []
    for word in words:
        if not 3 < len(word) < 12 or word in VOCABULARY_STOP_WORDS or word in unique:
            continue
        unique.append(word)
        if len(unique) >= max_words:
            break

    return [
        {
            "word": word[:1].upper() + word[1:],
            "definition": f"A word that appears in the story: {word}",
            "difficulty_level": difficulty_level,
            "part_of_speech": "noun",
            "example_sentence": f"The story mentions {word}.",
        }
        for word in unique
    ]


def evaluate_basic_pronunciation(transcript: str, target_text: str, confidence: float) -> dict[str, Any]:
    target_words = _SPEECH_PUNCTUATION_RE.sub("", target_text.lower()).split(" ")
    spoken_words = _SPEECH_PUNCTUATION_RE.sub("", transcript.lower()).split(" ")

    correct = sum(
        1 for spoken, target in zip(spoken_words, target_words) if spoken == target
    )
    accuracy = correct / len(target_words) * 100
    pronunciation = confidence * 100
    fluency = max(0, 100 - abs(len(spoken_words) - len(target_words)) * 10)

    suggestions: list[str] = []
    if accuracy < 80:
        suggestions.append("Try to pronounce each word clearly and distinctly")
    if pronunciation < 70:
        suggestions.append("Speak more confidently and clearly")
    if fluency < 70:
        suggestions.append("Try to match the rhythm and pace of natural speech")
    if not suggestions:
        suggestions.append("Great job! Keep practicing to improve further.")

    return {
        "pronunciation_score": _round_half_up(pronunciation),
        "fluency_score": _round_half_up(fluency),
        "accuracy_score": _round_half_up(accuracy),
        "suggestions": suggestions,
    }


def fallback_discussion_response(message: str, book: dict[str, Any]) -> str:
    lower = message.lower()
    title = book.get("title", "this book")

    if "what" in lower and ("happen" in lower or "story" in lower):
        return (
            f'That\'s a great question about "{title}"! This story is about {book.get("description", "many things")}. '
            "What part of the story interests you the most?"
        )
    if "who" in lower and ("character" in lower or "main" in lower):
        return (
            f'The characters in "{title}" are really interesting! This book is designed for children aged '
            f'{book.get("target_age_min", "?")}-{book.get("target_age_max", "?")}. '
            "Can you tell me which character you like best?"
        )
    if "why" in lower or "how" in lower:
        return (
            f'That\'s a thoughtful question! "{title}" has many interesting parts to explore. '
            "What made you think about that? I'd love to hear your ideas!"
        )
    if "word" in lower or "mean" in lower:
        return (
            "Great question about vocabulary! Learning new words is so important. "
            "Can you tell me which word you'd like to understand better? I can help explain it!"
        )
    if "like" in lower or "favorite" in lower:
        return (
            f'I love hearing about your favorites! "{title}" has so many wonderful parts. '
            "What do you like most about this story?"
        )
    return (
        f'That\'s an interesting thought about "{title}"! This {book.get("difficulty_level", "")} level book '
        "has lots to discover. Can you tell me more about what you're thinking?"
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_grid(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 4)
