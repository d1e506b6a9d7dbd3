from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


class LibraryStoreError(RuntimeError):
    pass


@dataclass
class PageContext:
    page_id: str
    book_id: str
    title: str
    difficulty_level: str
    target_age_min: int | None
    target_age_max: int | None
    page_number: int | None
    image_url: str | None
    text_content: str | None


class LibraryStore:
    """
    Book and page metadata kept in a single JSON document on disk.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _library_path(self) -> Path:
        return self.root / "library.json"

    def _ensure_store(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        library_path = self._library_path()
        if not library_path.exists():
            library_path.write_text(json.dumps({"books": {}, "pages": {}}, indent=2), encoding="utf-8")
        return library_path

    def _read_store(self) -> Dict[str, Any]:
        library_path = self._ensure_store()
        try:
            payload = json.loads(library_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise LibraryStoreError(f"Failed to read library store: {exc}") from exc
        if not isinstance(payload, dict):
            raise LibraryStoreError("Library store payload has invalid format.")
        payload.setdefault("books", {})
        payload.setdefault("pages", {})
        return payload

    def _write_store(self, payload: Dict[str, Any]) -> None:
        library_path = self._ensure_store()
        try:
            library_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise LibraryStoreError(f"Failed to write library store: {exc}") from exc

    def upsert_book(self, book: Dict[str, Any]) -> Dict[str, Any]:
        book_id = str(book.get("id") or "").strip()
        if not book_id:
            raise LibraryStoreError("Book id is required.")
        payload = self._read_store()
        stored = {**payload["books"].get(book_id, {}), **book, "id": book_id}
        payload["books"][book_id] = stored
        self._write_store(payload)
        return stored

    def upsert_page(self, page: Dict[str, Any]) -> Dict[str, Any]:
        page_id = str(page.get("id") or "").strip()
        if not page_id:
            raise LibraryStoreError("Page id is required.")
        if not str(page.get("book_id") or "").strip():
            raise LibraryStoreError("Page book_id is required.")
        payload = self._read_store()
        stored = {**payload["pages"].get(page_id, {}), **page, "id": page_id}
        payload["pages"][page_id] = stored
        self._write_store(payload)
        return stored

    def get_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        return self._read_store()["books"].get(book_id)

    def get_page(self, page_id: str) -> Optional[Dict[str, Any]]:
        return self._read_store()["pages"].get(page_id)

    def get_page_by_number(self, book_id: str, page_number: int) -> Optional[Dict[str, Any]]:
        for page in self._read_store()["pages"].values():
            if page.get("book_id") == book_id and page.get("page_number") == page_number:
                return page
        return None

    def get_page_context(self, page_id: str) -> Optional[PageContext]:
        payload = self._read_store()
        page = payload["pages"].get(page_id)
        if not page:
            return None
        book = payload["books"].get(page.get("book_id"))
        if not book:
            return None
        return PageContext(
            page_id=page_id,
            book_id=str(book["id"]),
            title=str(book.get("title") or ""),
            difficulty_level=str(book.get("difficulty_level") or ""),
            target_age_min=_optional_int(book.get("target_age_min")),
            target_age_max=_optional_int(book.get("target_age_max")),
            page_number=_optional_int(page.get("page_number")),
            image_url=page.get("image_url") or None,
            text_content=page.get("text_content") or None,
        )

    def update_image_description(self, page_id: str, description: str) -> Optional[Dict[str, Any]]:
        payload = self._read_store()
        page = payload["pages"].get(page_id)
        if not page:
            return None
        page["image_description"] = description
        self._write_store(payload)
        return page


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
