from __future__ import annotations

import logging
from typing import Any

from .ai_config import AIServiceConfig, has_valid_openai_config
from .fallbacks import basic_image_description
from .image_source import ImageResolver, resolve_inline_image
from .json_repair import strip_code_fences
from .library_store import LibraryStore, LibraryStoreError
from .prompts import build_description_request
from .vision_providers import ChatProviderError, OpenAIChatProvider

logger = logging.getLogger(__name__)


class ImageDescriptionError(RuntimeError):
    pass


class ImageDescriptionNotFoundError(ImageDescriptionError):
    pass


class ImageDescriptionStoreError(ImageDescriptionError):
    pass


class ImageDescriptionService:
    def __init__(
        self,
        *,
        config: AIServiceConfig,
        library_store: LibraryStore,
        provider: Any | None = None,
        image_resolver: ImageResolver = resolve_inline_image,
    ) -> None:
        self.config = config
        self.library_store = library_store
        self.provider = provider or OpenAIChatProvider.from_config(config)
        self.image_resolver = image_resolver

    async def describe(self, image_url: str, context: str | None = None) -> dict[str, Any]:
        reasons: list[str] = []
        description: str | None = None

        if not has_valid_openai_config(self.config) or not self.provider.configured:
            reasons.append("OpenAI configuration missing or invalid, using basic description.")
        else:
            description = await self._request_description(image_url, reasons)

        used_fallback = description is None
        if used_fallback:
            logger.warning("Image description fell back to the basic text: %s", "; ".join(reasons))
            description = basic_image_description(context)

        return {
            "description": description,
            "vocabulary": [],
            "used_fallback": used_fallback,
            "fallback_reasons": reasons if used_fallback else [],
        }

    async def describe_page(self, page_id: str, image_url: str, context: str | None = None) -> dict[str, Any]:
        if not self.library_store.get_page(page_id):
            raise ImageDescriptionNotFoundError("Book page not found")
        result = await self.describe(image_url, context)
        self._store_description(page_id, result["description"])
        return {**result, "updated_page": True}

    async def regenerate(self, page_id: str, context: str | None = None) -> dict[str, Any]:
        page = self.library_store.get_page(page_id)
        if not page:
            raise ImageDescriptionNotFoundError("Book page not found")
        image_url = page.get("image_url")
        if not image_url:
            raise ImageDescriptionError("Page is missing an image to describe")

        result = await self.describe(str(image_url), context)
        updated_page = self._store_description(page_id, result["description"])
        return {
            "message": "Description regenerated successfully",
            "description": result["description"],
            "updated_page": updated_page,
            "used_fallback": result["used_fallback"],
        }

    async def _request_description(self, image_url: str, reasons: list[str]) -> str | None:
        inline_image = await self.image_resolver(
            image_url,
            max_bytes=self.config.inline_image_max_bytes,
            timeout_seconds=self.config.inline_image_timeout_seconds,
        )
        payload = build_description_request(
            image_source=inline_image.to_data_url() if inline_image else image_url,
            inline_image=inline_image is not None,
            model=self.config.vision_model,
        )
        try:
            provider_result = await self.provider.complete(
                payload,
                timeout_seconds=self.config.vision_timeout_seconds,
            )
        except ChatProviderError as exc:
            reasons.append(f"Vision request failed: {exc}")
            return None

        description = strip_code_fences(provider_result.text)
        if not description:
            reasons.append("Vision response was empty.")
            return None
        return description

    def _store_description(self, page_id: str, description: str) -> dict[str, Any]:
        try:
            updated = self.library_store.update_image_description(page_id, description)
        except LibraryStoreError as exc:
            logger.error("Failed to save description for page %s: %s", page_id, exc)
            raise ImageDescriptionStoreError("Failed to save new description") from exc
        if updated is None:
            raise ImageDescriptionNotFoundError("Book page not found")
        return updated
