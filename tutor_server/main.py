from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .ai_config import AIServiceConfig, resolve_data_dir
from .discussion import DiscussionBookNotFoundError, discuss_book
from .glossary_analysis import (
    DEFAULT_MAX_ENTRIES,
    GlossaryAnalysisError,
    GlossaryAnalysisService,
    GlossaryImageMissingError,
    GlossaryNotFoundError,
)
from .glossary_store import GlossaryStore
from .image_description import (
    ImageDescriptionError,
    ImageDescriptionNotFoundError,
    ImageDescriptionService,
    ImageDescriptionStoreError,
)
from .library_store import LibraryStore
from .pronunciation import evaluate_pronunciation
from .vision_providers import OpenAIChatProvider
from .vocabulary import DEFAULT_DIFFICULTY_LEVEL, DEFAULT_MAX_WORDS, extract_vocabulary

logger = logging.getLogger(__name__)

GLOSSARY_EDITOR_ROLES = {"parent", "admin"}

config = AIServiceConfig.from_env()
DATA_DIR = resolve_data_dir()

library_store = LibraryStore(root=DATA_DIR)
glossary_store = GlossaryStore(root=DATA_DIR)
chat_provider = OpenAIChatProvider.from_config(config)
glossary_service = GlossaryAnalysisService(
    config=config,
    library_store=library_store,
    glossary_store=glossary_store,
    provider=chat_provider,
)
description_service = ImageDescriptionService(
    config=config,
    library_store=library_store,
    provider=chat_provider,
)

app = FastAPI(title="Reading Tutor AI Service", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalyzeImageBody(BaseModel):
    image_url: str | None = None
    page_id: str | None = None
    context: str | None = None


class RegenerateDescriptionBody(BaseModel):
    context: str | None = None


class GlossaryAnalyzeBody(BaseModel):
    max_entries: int = DEFAULT_MAX_ENTRIES
    refresh: bool = True


class ExtractVocabularyBody(BaseModel):
    description: str = ""
    difficulty_level: str = DEFAULT_DIFFICULTY_LEVEL
    max_words: int = Field(default=DEFAULT_MAX_WORDS, ge=1, le=20)


class EvaluatePronunciationBody(BaseModel):
    transcript: str = ""
    target_text: str = Field(default="", alias="targetText")
    confidence: float | None = Field(default=None, ge=0, le=1)


class DiscussBody(BaseModel):
    book_id: str = ""
    message: str = ""
    page_number: int | None = None
    conversation_history: list[dict[str, Any]] = Field(default_factory=list)


def _require_role(user_id: str | None, user_role: str | None, allowed: set[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    if (user_role or "").strip().lower() not in allowed:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return user_id


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/ai/status")
async def ai_status():
    return config.status()


@app.post("/api/books/analyze-image")
async def analyze_image(body: AnalyzeImageBody):
    if not body.image_url or not body.image_url.strip():
        raise HTTPException(status_code=400, detail="Image URL is required")
    try:
        if body.page_id:
            return await description_service.describe_page(body.page_id, body.image_url, body.context)
        return await description_service.describe(body.image_url, body.context)
    except ImageDescriptionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ImageDescriptionError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/api/books/{book_id}/pages/{page_id}/regenerate-description")
async def regenerate_description(book_id: str, page_id: str, body: RegenerateDescriptionBody | None = None):
    logger.info("Regenerating description for page %s of book %s", page_id, book_id)
    context = body.context if body else None
    try:
        return await description_service.regenerate(page_id, context)
    except ImageDescriptionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ImageDescriptionStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    except ImageDescriptionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/api/books/pages/{page_id}/glossary")
async def list_glossary(page_id: str, x_user_id: str | None = Header(default=None)):
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return glossary_service.list_entries(page_id)
    except GlossaryAnalysisError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.post("/api/books/pages/{page_id}/glossary/analyze")
async def analyze_glossary(
    page_id: str,
    body: GlossaryAnalyzeBody | None = None,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
):
    requester_id = _require_role(x_user_id, x_user_role, GLOSSARY_EDITOR_ROLES)
    body = body or GlossaryAnalyzeBody()
    try:
        return await glossary_service.analyze_page(
            page_id=page_id,
            max_entries=body.max_entries,
            refresh=body.refresh,
            requested_by=requester_id,
        )
    except GlossaryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except GlossaryImageMissingError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except GlossaryAnalysisError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/api/books/extract-vocabulary")
async def extract_vocabulary_route(body: ExtractVocabularyBody):
    if not body.description.strip():
        raise HTTPException(status_code=400, detail="Description is required")
    return await extract_vocabulary(
        config=config,
        provider=chat_provider,
        description=body.description,
        difficulty_level=body.difficulty_level,
        max_words=body.max_words,
    )


@app.post("/api/books/evaluate-pronunciation")
async def evaluate_pronunciation_route(body: EvaluatePronunciationBody):
    if not body.transcript.strip() or not body.target_text.strip():
        raise HTTPException(status_code=400, detail="Transcript and target text are required")
    return await evaluate_pronunciation(
        config=config,
        provider=chat_provider,
        transcript=body.transcript,
        target_text=body.target_text,
        confidence=body.confidence,
    )


@app.post("/api/books/discuss")
async def discuss(body: DiscussBody):
    if not body.book_id.strip() or not body.message.strip():
        raise HTTPException(status_code=400, detail="Book ID and message are required")
    try:
        return await discuss_book(
            config=config,
            provider=chat_provider,
            library_store=library_store,
            book_id=body.book_id,
            message=body.message,
            page_number=body.page_number,
            conversation_history=body.conversation_history,
        )
    except DiscussionBookNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tutor_server.main:app", host="0.0.0.0", port=8000, reload=True)
