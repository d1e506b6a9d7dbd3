from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from .ai_config import DEFAULT_INLINE_IMAGE_MAX_BYTES

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class InlineImage:
    content_type: str
    data: str
    byte_size: int

    def to_data_url(self) -> str:
        return f"data:{self.content_type};base64,{self.data}"


ImageResolver = Callable[..., Awaitable["InlineImage | None"]]


async def resolve_inline_image(
    image_url: str,
    *,
    max_bytes: int = DEFAULT_INLINE_IMAGE_MAX_BYTES,
    timeout_seconds: float = 20.0,
    client: httpx.AsyncClient | None = None,
) -> InlineImage | None:
    """Fetch ``image_url`` and return it base64-encoded, or ``None``.

    Every failure (network error, non-2xx status, empty or oversized body,
    timeout) is logged and reported as ``None`` so the caller can fall back
    to handing the original URL to the model.
    """

    if not isinstance(image_url, str) or not image_url.strip().lower().startswith("http"):
        return None

    try:
        return await asyncio.wait_for(
            _fetch_inline_image(image_url, max_bytes=max_bytes, timeout_seconds=timeout_seconds, client=client),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("Timed out after %.1fs fetching image for inlining: %s", timeout_seconds, image_url)
    except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
        logger.warning("Unable to inline image %s: %s", image_url, exc)
    return None


async def _fetch_inline_image(
    image_url: str,
    *,
    max_bytes: int,
    timeout_seconds: float,
    client: httpx.AsyncClient | None,
) -> InlineImage | None:
    if client is None:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout_seconds) as owned_client:
            return await _download(owned_client, image_url, max_bytes=max_bytes)
    return await _download(client, image_url, max_bytes=max_bytes)


async def _download(client: httpx.AsyncClient, image_url: str, *, max_bytes: int) -> InlineImage | None:
    async with client.stream("GET", image_url) as response:
        if response.status_code >= 400:
            logger.warning(
                "Failed to fetch image for inlining %s (%s %s)",
                image_url,
                response.status_code,
                response.reason_phrase,
            )
            return None

        declared_length = _parse_content_length(response.headers.get("content-length"))
        if declared_length is not None and declared_length > max_bytes:
            logger.warning("Image exceeds inline size limit (%d bytes), using public URL: %s", declared_length, image_url)
            return None

        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > max_bytes:
                logger.warning("Image exceeds inline size limit (%d bytes), using public URL: %s", max_bytes, image_url)
                return None
            chunks.append(chunk)

        if not received:
            logger.warning("Fetched image is empty, skipping inline conversion: %s", image_url)
            return None

        content_type = _clean_content_type(response.headers.get("content-type"))

    payload = b"".join(chunks)
    return InlineImage(
        content_type=content_type,
        data=base64.b64encode(payload).decode("ascii"),
        byte_size=len(payload),
    )


def _parse_content_length(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    try:
        return int(raw_value)
    except ValueError:
        return None


def _clean_content_type(raw_value: str | None) -> str:
    if not raw_value:
        return DEFAULT_CONTENT_TYPE
    media_type = raw_value.split(";", 1)[0].strip().lower()
    return media_type or DEFAULT_CONTENT_TYPE
