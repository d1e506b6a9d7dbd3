from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tutor_server.fallbacks import grid_position  # noqa: E402
from tutor_server.glossary_models import BoundingBox  # noqa: E402
from tutor_server.glossary_normalize import (  # noqa: E402
    normalize_confidence,
    normalize_difficulty,
    normalize_entries,
    normalize_entry,
    normalize_position,
)
from tutor_server.json_repair import extract_entry_candidates, parse_model_output  # noqa: E402


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (-5, 0.0),
        (1.23456, 1.0),
        (0.12345, 0.123),
        ("0.75", 0.75),
        (float("nan"), 0.6),
        (float("inf"), 0.6),
        (None, 0.6),
        (True, 0.6),
        ("high", 0.6),
    ],
)
def test_normalize_confidence(raw, expected):
    assert normalize_confidence(raw) == expected


@pytest.mark.parametrize("raw", [-1e9, -1, 0, 0.5, 1, 2, 1e9])
def test_normalize_confidence_stays_in_unit_range(raw):
    assert 0.0 <= normalize_confidence(raw) <= 1.0


def test_huge_integers_clamp_to_nearest_bound():
    assert normalize_confidence(10**400) == 1.0
    assert normalize_confidence(-(10**400)) == 0.0

    box = normalize_position({"top": 10**400, "left": -(10**400), "width": 10**400}, index=0, total=1)

    assert box.top == 1.0
    assert box.left == 0.0
    assert box.width == 1.0


def test_normalize_confidence_uses_supplied_default():
    assert normalize_confidence(None, default=0.35) == 0.35


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Beginner", "beginner"),
        (" advanced ", "advanced"),
        ("easy", "beginner"),
        ("medium", "intermediate"),
        ("hard", "advanced"),
        ("expert", "challenging"),
        (3, "challenging"),
        (None, "challenging"),
    ],
)
def test_normalize_difficulty(raw, expected):
    assert normalize_difficulty(raw) == expected


def test_out_of_range_box_is_clamped():
    box = normalize_position({"top": 1.5, "left": -0.2, "width": 0.02, "height": 0.02}, index=0, total=1)

    assert box == BoundingBox(top=1.0, left=0.0, width=0.04, height=0.04)


@pytest.mark.parametrize(
    "raw_box",
    [
        {"top": -3, "left": 9, "width": 50, "height": -1},
        {"top": "0.2", "left": "abc", "width": None},
        {},
        "not a box",
        None,
        {"top": float("nan"), "left": float("-inf"), "width": 0, "height": 1e-9},
    ],
)
def test_box_always_lands_in_bounds(raw_box):
    box = normalize_position(raw_box, index=2, total=5)

    assert 0.0 <= box.top <= 1.0
    assert 0.0 <= box.left <= 1.0
    assert 0.04 <= box.width <= 1.0
    assert 0.04 <= box.height <= 1.0


def test_partial_box_fills_missing_fields_from_grid():
    grid = grid_position(1, 4)

    box = normalize_position({"top": 0.3}, index=1, total=4)

    assert box.top == 0.3
    assert box.left == grid.left
    assert box.width == 0.18
    assert box.height == 0.1


def test_missing_box_uses_grid_slot():
    assert normalize_position(None, index=3, total=6) == grid_position(3, 6)


def test_entries_with_blank_required_text_are_discarded():
    raw_entries = [
        {"word": "harbor", "definition": "a sheltered port", "translation": "港口"},
        {"word": "   ", "definition": "blank word", "translation": "空"},
        {"word": "anchor", "definition": "", "translation": "锚"},
        {"word": "tide", "definition": "rise and fall of the sea", "translation": "\t"},
        {"word": 7, "definition": "numeric word", "translation": "七"},
        "not an object",
        {"word": "beacon", "definition": "a signal light", "translation": "信标"},
    ]

    entries = normalize_entries(raw_entries)

    assert [entry.word for entry in entries] == ["harbor", "beacon"]
    # Grid slots are counted over the two surviving entries.
    assert entries[1].position == grid_position(1, 2)


def test_normalize_entry_records_provenance_and_trims_text():
    entry = normalize_entry(
        {
            "word": "  meadow ",
            "definition": " a grassy field ",
            "translation": "草地",
            "difficulty": "Intermediate",
            "confidence": 0.9,
            "position": {"top": 0.1, "left": 0.2, "width": 0.3, "height": 0.05},
            "notes": " bottom line ",
        },
        index=0,
        total=1,
        extra_metadata={"page_number": 4},
    )

    assert entry is not None
    assert entry.word == "meadow"
    assert entry.definition == "a grassy field"
    assert entry.difficulty == "intermediate"
    assert entry.confidence == 0.9
    assert entry.position == BoundingBox(top=0.1, left=0.2, width=0.3, height=0.05)
    assert entry.metadata["source"] == "ai-vision"
    assert entry.metadata["page_number"] == 4
    assert entry.metadata["notes"] == "bottom line"
    assert entry.metadata["raw_bounding_box"] == {"top": 0.1, "left": 0.2, "width": 0.3, "height": 0.05}
    assert not entry.is_fallback


def test_fenced_model_output_normalizes_with_defaults():
    text = '```json\n{"entries":[{"word":"lighthouse","definition":"a tower with a light","translation":"灯塔"}]}'

    entries = normalize_entries(extract_entry_candidates(parse_model_output(text).value))

    assert len(entries) == 1
    assert entries[0].word == "lighthouse"
    assert entries[0].difficulty == "challenging"
    assert entries[0].confidence == 0.6
    assert entries[0].position == grid_position(0, 1)
    assert entries[0].position == BoundingBox(top=0.05, left=0.0, width=0.18, height=0.1)
