"""Parsing for free-text model output that is supposed to be JSON.

Models truncate under token limits far more often than they produce
interior syntax errors, so the only repair attempted here is dropping
text after the last ``}`` and appending missing closing delimiters.
Anything else falls through to :class:`Failed`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?", flags=re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    value: Any
    text: str


@dataclass(frozen=True)
class Repaired:
    value: Any
    text: str
    steps: tuple[str, ...]


@dataclass(frozen=True)
class Failed:
    reason: str
    text: str = ""


ParseAttempt = Union[Parsed, Repaired, Failed]


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text).strip()


def trim_after_last_brace(text: str) -> str:
    last_closing = text.rfind("}")
    if last_closing == -1 or last_closing == len(text) - 1:
        return text
    return text[: last_closing + 1].rstrip()


def balance_closing_delimiters(text: str) -> str:
    missing_squares = text.count("[") - text.count("]")
    missing_curlies = text.count("{") - text.count("}")
    suffix = "]" * max(missing_squares, 0) + "}" * max(missing_curlies, 0)
    return text + suffix


def parse_model_output(text: Any) -> ParseAttempt:
    if not isinstance(text, str) or not text.strip():
        return Failed(reason="no_content")

    candidate = strip_code_fences(text)
    if not candidate:
        return Failed(reason="no_content")

    value, ok = _try_json(candidate)
    if ok:
        return Parsed(value=value, text=candidate)

    logger.info("Model output failed to parse (length %d), attempting repair", len(candidate))
    steps: list[str] = []

    trimmed = trim_after_last_brace(candidate)
    if trimmed != candidate:
        steps.append("trim_trailing_text")
        value, ok = _try_json(trimmed)
        if ok:
            return Repaired(value=value, text=trimmed, steps=tuple(steps))

    balanced = balance_closing_delimiters(trimmed)
    if balanced != trimmed:
        steps.append("balance_delimiters")
        value, ok = _try_json(balanced)
        if ok:
            logger.info("Repaired model output by appending %d delimiter(s)", len(balanced) - len(trimmed))
            return Repaired(value=value, text=balanced, steps=tuple(steps))

    logger.warning("Unable to repair model output; tail: %r", candidate[-200:])
    return Failed(reason="json_parse_error", text=candidate)


def repair_json_text(text: Any) -> str | None:
    """Return parseable JSON text recovered from ``text``, or ``None``."""

    attempt = parse_model_output(text)
    if isinstance(attempt, (Parsed, Repaired)):
        return attempt.text
    return None


def extract_entry_candidates(value: Any, *, key: str = "entries") -> list[Any]:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict) and isinstance(value.get(key), list):
        return list(value[key])
    return []


def looks_truncated(text: str) -> bool:
    stripped = strip_code_fences(text or "")
    return bool(stripped) and not stripped.endswith(("}", "]"))


def _try_json(text: str) -> tuple[Any, bool]:
    try:
        return json.loads(text), True
    except json.JSONDecodeError:
        return None, False
