from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .glossary_models import DIFFICULTY_LEVELS

GLOSSARY_MAX_TOKENS = 1500
GLOSSARY_TEMPERATURE = 0.2
DESCRIPTION_MAX_TOKENS = 512
DESCRIPTION_TEMPERATURE = 0.3
DISCUSSION_HISTORY_LIMIT = 6


@dataclass
class GlossaryTask:
    book_title: str
    difficulty_level: str
    target_age_min: int | None
    target_age_max: int | None
    page_number: int | None
    max_entries: int = 6

    def context_line(self) -> str:
        age_min = "?" if self.target_age_min is None else self.target_age_min
        age_max = "?" if self.target_age_max is None else self.target_age_max
        page = "?" if self.page_number is None else self.page_number
        return (
            f"Book: {self.book_title}. Difficulty: {self.difficulty_level}. "
            f"Target age: {age_min}-{age_max}. Page: {page}."
        )


def build_glossary_instruction(max_entries: int) -> str:
    difficulty_values = " | ".join(f'"{level}"' for level in DIFFICULTY_LEVELS)
    return (
        "You are assisting a parent who supports an English learner at the primary school level. "
        f"Analyze the provided book page image and identify up to {max_entries} English words or short phrases "
        "that a primary school student might find challenging.\n"
        "Return JSON only, as a single object with this schema:\n"
        "{\n"
        '  "entries": [\n'
        "    {\n"
        '      "word": string,\n'
        '      "definition": string,\n'
        '      "translation": string,\n'
        f'      "difficulty": {difficulty_values},\n'
        '      "confidence": number between 0 and 1,\n'
        '      "bounding_box": { "top": number, "left": number, "width": number, "height": number },\n'
        '      "notes": string (optional)\n'
        "    }\n"
        "  ]\n"
        "}\n"
        "All bounding_box values are normalized between 0 and 1 relative to the image dimensions, never pixels. "
        "A word in the top-left corner has top: 0, left: 0; a word near the bottom-right has top: 0.9, left: 0.9. "
        "width: 0.1 means 10% of the image width.\n"
        "All floating point numbers use a dot decimal (.) and at most three decimals.\n"
        "Do not include any explanatory text before or after the JSON object."
    )


def build_glossary_request(
    *,
    task: GlossaryTask,
    image_source: str,
    inline_image: bool,
    model: str,
) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {
                "role": "system",
                "content": "You are an expert children's reading coach and bilingual assistant.",
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_glossary_instruction(task.max_entries)},
                    {"type": "text", "text": task.context_line()},
                    _image_part(image_source, inline_image=inline_image, remote_detail="high"),
                ],
            },
        ],
        "max_tokens": GLOSSARY_MAX_TOKENS,
        "temperature": GLOSSARY_TEMPERATURE,
        "response_format": {"type": "json_object"},
    }


def build_description_request(*, image_source: str, inline_image: bool, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {
                "role": "system",
                "content": (
                    "You are an educational assistant for children learning English. "
                    "Provide a detailed, age-appropriate description for this book page."
                ),
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": (
                            "Please describe this children's book page image clearly and engagingly. "
                            "Focus on characters, actions, setting, and any educational details."
                        ),
                    },
                    _image_part(image_source, inline_image=inline_image, remote_detail="auto"),
                ],
            },
        ],
        "max_tokens": DESCRIPTION_MAX_TOKENS,
        "temperature": DESCRIPTION_TEMPERATURE,
    }


def build_vocabulary_request(*, description: str, difficulty_level: str, max_words: int, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {
                "role": "system",
                "content": (
                    "You are an educational assistant for children learning English. "
                    f"Extract {max_words} key vocabulary words from the given description that are appropriate "
                    f"for {difficulty_level} level learners. Return JSON only: an array of objects with "
                    '"word", "definition", "difficulty_level", "part_of_speech", and "example_sentence" fields.'
                ),
            },
            {
                "role": "user",
                "content": (
                    f'Extract educational vocabulary from this description: "{description}". '
                    "Focus on words that children can learn and use in their daily conversations."
                ),
            },
        ],
        "max_tokens": 500,
        "temperature": 0.3,
    }


def build_pronunciation_request(
    *,
    transcript: str,
    target_text: str,
    confidence: float,
    model: str,
) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {
                "role": "system",
                "content": (
                    "You are an English pronunciation tutor. Compare the spoken text with the target text. "
                    "Return JSON only with pronunciation_score (0-100), fluency_score (0-100), "
                    "accuracy_score (0-100), and a suggestions array of short strings."
                ),
            },
            {
                "role": "user",
                "content": (
                    f'Target text: "{target_text}"\n'
                    f'Spoken text: "{transcript}"\n'
                    f"Speech recognition confidence: {confidence}\n\n"
                    "Evaluate the pronunciation, fluency, and accuracy. Give specific suggestions for improvement."
                ),
            },
        ],
        "max_tokens": 500,
        "temperature": 0.3,
        "response_format": {"type": "json_object"},
    }


def build_discussion_request(
    *,
    book: dict[str, Any],
    message: str,
    conversation_history: list[dict[str, Any]],
    page_context: str,
    model: str,
) -> dict[str, Any]:
    system_prompt = (
        "You are a friendly AI tutor helping children discuss and understand books. "
        f'You\'re discussing "{book.get("title", "")}" - {book.get("description", "")}. '
        f'Target age: {book.get("target_age_min", "?")}-{book.get("target_age_max", "?")} years. '
        f'Difficulty: {book.get("difficulty_level", "")}.\n\n'
        "Guidelines:\n"
        "- Use age-appropriate language\n"
        "- Be encouraging and positive\n"
        "- Ask follow-up questions to promote thinking\n"
        "- Help with vocabulary and comprehension\n"
        "- Keep responses concise but helpful"
        f"{page_context}"
    )

    history: list[dict[str, str]] = []
    for turn in conversation_history[-DISCUSSION_HISTORY_LIMIT:]:
        if not isinstance(turn, dict):
            continue
        role = str(turn.get("role") or "").strip().lower()
        content = turn.get("content")
        if role not in {"user", "assistant"} or not isinstance(content, str) or not content.strip():
            continue
        history.append({"role": role, "content": content})

    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            *history,
            {"role": "user", "content": message},
        ],
        "max_tokens": 300,
        "temperature": 0.7,
    }


def _image_part(image_source: str, *, inline_image: bool, remote_detail: str) -> dict[str, Any]:
    image_url: dict[str, Any] = {"url": image_source}
    if not inline_image:
        image_url["detail"] = remote_detail
    return {"type": "image_url", "image_url": image_url}
