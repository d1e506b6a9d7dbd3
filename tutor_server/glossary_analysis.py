from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

from .ai_config import AIServiceConfig, has_valid_openai_config
from .fallbacks import generate_fallback_glossary
from .glossary_models import AI_DEFAULT_CONFIDENCE, SOURCE_AI_VISION, GlossaryEntry
from .glossary_normalize import normalize_entries
from .glossary_store import GlossaryStore, GlossaryStoreError
from .image_source import ImageResolver, resolve_inline_image
from .json_repair import Failed, Repaired, extract_entry_candidates, looks_truncated, parse_model_output
from .library_store import LibraryStore, PageContext
from .prompts import GlossaryTask, build_glossary_request
from .vision_providers import ChatProviderError, OpenAIChatProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 6
MAX_ENTRIES_LIMIT = 20

REASON_CONFIG_MISSING = "config_missing"
REASON_NO_VALID_ENTRIES = "no_valid_entries"


class GlossaryAnalysisError(RuntimeError):
    pass


class GlossaryNotFoundError(GlossaryAnalysisError):
    pass


class GlossaryImageMissingError(GlossaryAnalysisError):
    pass


class FallbackTracker:
    def __init__(self) -> None:
        self.reasons: list[str] = []

    def record(self, reason: str, detail: str = "") -> None:
        if reason not in self.reasons:
            self.reasons.append(reason)
        if detail:
            logger.warning("Falling back (%s): %s", reason, detail)
        else:
            logger.warning("Falling back (%s)", reason)


@dataclass
class GlossaryResult:
    entries: list[GlossaryEntry]
    fallback_reasons: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return any(entry.is_fallback for entry in self.entries)

    @property
    def total(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "used_fallback": self.used_fallback,
            "fallback_reasons": list(self.fallback_reasons),
            "total": self.total,
        }


def clamp_max_entries(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return DEFAULT_MAX_ENTRIES
    return max(1, min(MAX_ENTRIES_LIMIT, value))


def assemble_glossary_result(
    *,
    ai_entries: list[GlossaryEntry],
    fallback_text: str | None,
    max_entries: int,
    fallback_reasons: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> GlossaryResult:
    reasons = list(fallback_reasons or [])
    shared_metadata = dict(metadata or {})

    entries = list(ai_entries)
    if not entries:
        if not reasons:
            reasons.append(REASON_NO_VALID_ENTRIES)
        entries = [
            dataclasses.replace(entry, metadata={**shared_metadata, **entry.metadata, "fallback_used": True})
            for entry in generate_fallback_glossary(fallback_text, max_entries)
        ]

    return GlossaryResult(
        entries=entries[:max_entries],
        fallback_reasons=reasons,
        metadata=shared_metadata,
    )


class GlossaryAnalysisService:
    def __init__(
        self,
        *,
        config: AIServiceConfig,
        library_store: LibraryStore,
        glossary_store: GlossaryStore,
        provider: Any | None = None,
        image_resolver: ImageResolver = resolve_inline_image,
    ) -> None:
        self.config = config
        self.library_store = library_store
        self.glossary_store = glossary_store
        self.provider = provider or OpenAIChatProvider.from_config(config)
        self.image_resolver = image_resolver

    def list_entries(self, page_id: str) -> dict[str, Any]:
        try:
            return {"entries": self.glossary_store.list_entries(page_id)}
        except GlossaryStoreError as exc:
            raise GlossaryAnalysisError(str(exc)) from exc

    async def analyze_page(
        self,
        *,
        page_id: str,
        max_entries: Any = DEFAULT_MAX_ENTRIES,
        refresh: bool = True,
        requested_by: str | None = None,
    ) -> dict[str, Any]:
        page = self.library_store.get_page(page_id)
        if not page:
            raise GlossaryNotFoundError("Book page not found")
        if not page.get("image_url"):
            raise GlossaryImageMissingError("Page is missing an image to analyze")
        context = self.library_store.get_page_context(page_id)
        if context is None:
            raise GlossaryNotFoundError("Book not found for the requested page")

        limit = clamp_max_entries(max_entries)
        result = await self.run_pipeline(context, max_entries=limit)

        if not result.entries:
            return {
                "message": "No glossary entries identified",
                "entries": [],
                "used_fallback": False,
                "fallback_reasons": result.fallback_reasons,
                "total": 0,
            }

        try:
            if refresh:
                rows = self.glossary_store.replace_entries(page_id, result.entries, created_by=requested_by)
            else:
                rows = self.glossary_store.append_entries(page_id, result.entries, created_by=requested_by)
        except GlossaryStoreError as exc:
            logger.error("Failed to store glossary entries for page %s: %s", page_id, exc)
            raise GlossaryAnalysisError("Failed to store glossary entries") from exc

        return {
            "message": "Glossary generated successfully",
            "entries": rows,
            "used_fallback": result.used_fallback,
            "fallback_reasons": result.fallback_reasons,
            "total": len(rows),
        }

    async def run_pipeline(self, context: PageContext, *, max_entries: int) -> GlossaryResult:
        tracker = FallbackTracker()
        metadata: dict[str, Any] = {
            "book_title": context.title,
            "page_number": context.page_number,
            "inline_image_used": False,
        }
        ai_entries: list[GlossaryEntry] = []

        if not has_valid_openai_config(self.config) or not self.provider.configured:
            tracker.record(REASON_CONFIG_MISSING, "OpenAI configuration missing or invalid, using text fallback.")
        elif not context.image_url:
            tracker.record("no_image", f"page {context.page_id} has no image")
        else:
            ai_entries = await self._request_ai_entries(
                context,
                max_entries=max_entries,
                metadata=metadata,
                tracker=tracker,
            )

        return assemble_glossary_result(
            ai_entries=ai_entries,
            fallback_text=context.text_content,
            max_entries=max_entries,
            fallback_reasons=tracker.reasons,
            metadata=metadata,
        )

    async def _request_ai_entries(
        self,
        context: PageContext,
        *,
        max_entries: int,
        metadata: dict[str, Any],
        tracker: FallbackTracker,
    ) -> list[GlossaryEntry]:
        inline_image = await self.image_resolver(
            context.image_url,
            max_bytes=self.config.inline_image_max_bytes,
            timeout_seconds=self.config.inline_image_timeout_seconds,
        )
        metadata["inline_image_used"] = inline_image is not None
        image_source = inline_image.to_data_url() if inline_image else str(context.image_url)

        payload = build_glossary_request(
            task=GlossaryTask(
                book_title=context.title,
                difficulty_level=context.difficulty_level,
                target_age_min=context.target_age_min,
                target_age_max=context.target_age_max,
                page_number=context.page_number,
                max_entries=max_entries,
            ),
            image_source=image_source,
            inline_image=inline_image is not None,
            model=self.config.vision_model,
        )

        try:
            provider_result = await self.provider.complete(
                payload,
                timeout_seconds=self.config.glossary_timeout_seconds,
            )
        except ChatProviderError as exc:
            tracker.record(exc.reason, str(exc))
            return []

        if looks_truncated(provider_result.text):
            metadata["incomplete_response"] = True

        attempt = parse_model_output(provider_result.text)
        if isinstance(attempt, Failed):
            tracker.record(attempt.reason, "glossary response could not be parsed")
            return []
        if isinstance(attempt, Repaired):
            metadata["repaired_response"] = True

        entries = normalize_entries(
            extract_entry_candidates(attempt.value),
            default_confidence=AI_DEFAULT_CONFIDENCE,
            source=SOURCE_AI_VISION,
            extra_metadata=metadata,
        )
        if not entries:
            tracker.record(REASON_NO_VALID_ENTRIES, "model returned no usable glossary entries")
        return entries
