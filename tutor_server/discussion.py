from __future__ import annotations

import logging
from typing import Any

from .ai_config import AIServiceConfig, has_valid_openai_config
from .fallbacks import fallback_discussion_response
from .library_store import LibraryStore
from .prompts import build_discussion_request
from .vision_providers import ChatProviderError

logger = logging.getLogger(__name__)

EMPTY_REPLY = "I'm sorry, I couldn't understand that. Could you ask me something else about the book?"


class DiscussionError(RuntimeError):
    pass


class DiscussionBookNotFoundError(DiscussionError):
    pass


def build_page_context(library_store: LibraryStore, book_id: str, page_number: int | None) -> str:
    if page_number is None:
        return ""
    page = library_store.get_page_by_number(book_id, page_number)
    if not page:
        return ""
    context = f'\nCurrent page {page_number}: "{page.get("text_content") or ""}"'
    if page.get("image_description"):
        context += f"\nPage illustration: {page['image_description']}"
    return context


async def discuss_book(
    *,
    config: AIServiceConfig,
    provider: Any,
    library_store: LibraryStore,
    book_id: str,
    message: str,
    page_number: int | None = None,
    conversation_history: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    book = library_store.get_book(book_id)
    if not book:
        raise DiscussionBookNotFoundError("Book not found")

    page_context = build_page_context(library_store, book_id, page_number)
    reply: str | None = None

    if not has_valid_openai_config(config) or not provider.configured:
        logger.warning("OpenAI configuration missing, using fallback discussion response")
    else:
        payload = build_discussion_request(
            book=book,
            message=message,
            conversation_history=list(conversation_history or []),
            page_context=page_context,
            model=config.text_model,
        )
        try:
            provider_result = await provider.complete(payload, timeout_seconds=config.text_timeout_seconds)
        except ChatProviderError as exc:
            if exc.reason == "no_content":
                reply = EMPTY_REPLY
            else:
                logger.warning("Discussion request failed, using fallback response: %s", exc)
        else:
            reply = provider_result.text.strip() or EMPTY_REPLY

    used_fallback = reply is None
    if used_fallback:
        reply = fallback_discussion_response(message, book)

    return {
        "message": "Discussion response generated",
        "response": reply,
        "book_title": book.get("title"),
        "page_number": page_number,
        "used_fallback": used_fallback,
    }
