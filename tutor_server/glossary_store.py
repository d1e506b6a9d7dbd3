from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List
from uuid import uuid4

from .glossary_models import GlossaryEntry

_SAFE_PAGE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class GlossaryStoreError(RuntimeError):
    pass


class GlossaryStore:
    """
    Persists glossary rows per page as ``<root>/glossary/<page_id>.json``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _glossary_dir(self) -> Path:
        return self.root / "glossary"

    def _page_path(self, page_id: str) -> Path:
        if not _SAFE_PAGE_ID_RE.match(page_id or ""):
            raise GlossaryStoreError(f"Invalid page id: {page_id!r}")
        return self._glossary_dir() / f"{page_id}.json"

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

    def _read_rows(self, page_id: str) -> List[Dict[str, Any]]:
        page_path = self._page_path(page_id)
        if not page_path.exists():
            return []
        try:
            payload = json.loads(page_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise GlossaryStoreError(f"Failed to read glossary entries: {exc}") from exc
        if not isinstance(payload, list):
            raise GlossaryStoreError("Glossary store payload has invalid format.")
        return [row for row in payload if isinstance(row, dict)]

    def _write_rows(self, page_id: str, rows: List[Dict[str, Any]]) -> None:
        page_path = self._page_path(page_id)
        try:
            page_path.parent.mkdir(parents=True, exist_ok=True)
            page_path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise GlossaryStoreError(f"Failed to store glossary entries: {exc}") from exc

    def list_entries(self, page_id: str) -> List[Dict[str, Any]]:
        rows = self._read_rows(page_id)
        rows.sort(key=lambda row: (-float(row.get("confidence") or 0.0), str(row.get("word") or "")))
        return rows

    def append_entries(
        self,
        page_id: str,
        entries: Iterable[GlossaryEntry],
        *,
        created_by: str | None = None,
    ) -> List[Dict[str, Any]]:
        rows = self._read_rows(page_id)
        inserted = self._build_rows(page_id, entries, created_by=created_by)
        self._write_rows(page_id, rows + inserted)
        return inserted

    def replace_entries(
        self,
        page_id: str,
        entries: Iterable[GlossaryEntry],
        *,
        created_by: str | None = None,
    ) -> List[Dict[str, Any]]:
        inserted = self._build_rows(page_id, entries, created_by=created_by)
        self._write_rows(page_id, inserted)
        return inserted

    def clear_page(self, page_id: str) -> None:
        page_path = self._page_path(page_id)
        try:
            page_path.unlink(missing_ok=True)
        except OSError as exc:
            raise GlossaryStoreError(f"Failed to clear glossary entries: {exc}") from exc

    def _build_rows(
        self,
        page_id: str,
        entries: Iterable[GlossaryEntry],
        *,
        created_by: str | None,
    ) -> List[Dict[str, Any]]:
        created_at = self._now_iso()
        rows: List[Dict[str, Any]] = []
        for entry in entries:
            row = {"id": uuid4().hex, "page_id": page_id}
            row.update(entry.to_dict())
            row["created_by"] = created_by
            row["created_at"] = created_at
            rows.append(row)
        return rows
