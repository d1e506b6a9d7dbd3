from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tutor_server.glossary_models import BoundingBox, GlossaryEntry  # noqa: E402
from tutor_server.glossary_store import GlossaryStore, GlossaryStoreError  # noqa: E402
from tutor_server.library_store import LibraryStore, LibraryStoreError  # noqa: E402


def _entry(word: str, confidence: float) -> GlossaryEntry:
    return GlossaryEntry(
        word=word,
        definition=f"meaning of {word}",
        translation=f"{word}-zh",
        difficulty="challenging",
        confidence=confidence,
        position=BoundingBox(top=0.1, left=0.1, width=0.2, height=0.1),
        metadata={"source": "ai-vision"},
    )


def test_glossary_store_orders_by_confidence_then_word(tmp_path):
    store = GlossaryStore(root=tmp_path)

    rows = store.replace_entries(
        "page_1",
        [_entry("zebra", 0.5), _entry("apple", 0.5), _entry("meadow", 0.9)],
        created_by="parent_1",
    )

    assert len(rows) == 3
    assert all(row["page_id"] == "page_1" and row["created_by"] == "parent_1" for row in rows)
    assert len({row["id"] for row in rows}) == 3
    assert [row["word"] for row in store.list_entries("page_1")] == ["meadow", "apple", "zebra"]


def test_glossary_store_replace_versus_append(tmp_path):
    store = GlossaryStore(root=tmp_path)
    store.replace_entries("page_1", [_entry("harbor", 0.7)])

    store.append_entries("page_1", [_entry("beacon", 0.6)])
    assert [row["word"] for row in store.list_entries("page_1")] == ["harbor", "beacon"]

    store.replace_entries("page_1", [_entry("anchor", 0.8)])
    assert [row["word"] for row in store.list_entries("page_1")] == ["anchor"]

    store.clear_page("page_1")
    assert store.list_entries("page_1") == []


def test_glossary_store_rejects_unsafe_page_ids(tmp_path):
    store = GlossaryStore(root=tmp_path)

    with pytest.raises(GlossaryStoreError):
        store.list_entries("../escape")


def test_library_store_page_context(tmp_path):
    store = LibraryStore(root=tmp_path)
    store.upsert_book(
        {
            "id": "book_1",
            "title": "Owl Moon",
            "difficulty_level": "beginner",
            "target_age_min": 4,
            "target_age_max": "8",
        }
    )
    store.upsert_page(
        {
            "id": "page_1",
            "book_id": "book_1",
            "page_number": 3,
            "image_url": "https://cdn.example.com/p3.png",
            "text_content": "The owl hooted.",
        }
    )

    context = store.get_page_context("page_1")

    assert context is not None
    assert context.title == "Owl Moon"
    assert context.target_age_max == 8
    assert context.page_number == 3
    assert store.get_page_by_number("book_1", 3)["id"] == "page_1"
    assert store.get_page_by_number("book_1", 4) is None
    assert store.get_page_context("missing") is None


def test_library_store_updates_description(tmp_path):
    store = LibraryStore(root=tmp_path)
    store.upsert_page({"id": "page_1", "book_id": "book_1"})

    updated = store.update_image_description("page_1", "A snowy forest.")

    assert updated["image_description"] == "A snowy forest."
    assert LibraryStore(root=tmp_path).get_page("page_1")["image_description"] == "A snowy forest."
    assert store.update_image_description("missing", "x") is None
    # Page exists but its book does not.
    assert store.get_page_context("page_1") is None


def test_library_store_requires_ids(tmp_path):
    store = LibraryStore(root=tmp_path)

    with pytest.raises(LibraryStoreError):
        store.upsert_book({"title": "No id"})
    with pytest.raises(LibraryStoreError):
        store.upsert_page({"id": "page_1"})
