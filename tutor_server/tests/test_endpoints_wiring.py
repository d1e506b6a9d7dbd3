from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def test_tutor_endpoints_are_wired_in_main():
    source = (REPO_ROOT / "tutor_server" / "main.py").read_text(encoding="utf-8")

    assert '@app.get("/health")' in source
    assert '@app.get("/api/ai/status")' in source
    assert '@app.post("/api/books/analyze-image")' in source
    assert '@app.post("/api/books/{book_id}/pages/{page_id}/regenerate-description")' in source
    assert '@app.get("/api/books/pages/{page_id}/glossary")' in source
    assert '@app.post("/api/books/pages/{page_id}/glossary/analyze")' in source
    assert '@app.post("/api/books/extract-vocabulary")' in source
    assert '@app.post("/api/books/evaluate-pronunciation")' in source
    assert '@app.post("/api/books/discuss")' in source


def test_services_share_one_config():
    source = (REPO_ROOT / "tutor_server" / "main.py").read_text(encoding="utf-8")

    assert source.count("AIServiceConfig.from_env()") == 1
