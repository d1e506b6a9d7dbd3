from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from .ai_config import AIServiceConfig, has_valid_openai_config

logger = logging.getLogger(__name__)

USER_AGENT = "ReadingTutor/1.0"


class ChatProviderError(RuntimeError):
    def __init__(self, message: str, *, reason: str = "request_error", status_code: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


@dataclass
class ChatProviderResult:
    text: str
    raw_response: Any
    model_used: str
    elapsed_ms: int
    request_metadata: dict[str, Any] = field(default_factory=dict)


class OpenAIChatProvider:
    """OpenAI-compatible ``/chat/completions`` client used for vision and text calls."""

    route_id = "openai"
    label = "OpenAI-compatible"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        configured: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.strip().rstrip("/")
        self._configured = configured
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: AIServiceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "OpenAIChatProvider":
        return cls(
            api_key=config.api_key,
            base_url=config.model_base_url,
            configured=has_valid_openai_config(config),
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        if self._configured is not None:
            return self._configured
        return bool(self.api_key and self.base_url.startswith("http"))

    def availability(self) -> dict[str, Any]:
        return {
            "id": self.route_id,
            "label": self.label,
            "configured": self.configured,
            "base_url": self.base_url,
        }

    async def complete(self, payload: dict[str, Any], *, timeout_seconds: float) -> ChatProviderResult:
        if not self.configured:
            raise ChatProviderError(
                "OpenAI provider is not configured (missing OPENAI_BASE_URL or OPENAI_API_KEY).",
                reason="config_missing",
            )
        if not self.base_url.startswith("http"):
            raise ChatProviderError("Invalid OpenAI base URL.", reason="config_missing")

        url = _build_chat_completions_url(self.base_url)
        model_used = str(payload.get("model") or "")
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._post(url, payload, timeout_seconds=timeout_seconds),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            elapsed_ms = _elapsed_ms(started)
            logger.warning("Model request to %s timed out after %dms (limit %.0fs)", url, elapsed_ms, timeout_seconds)
            raise ChatProviderError(
                f"Model request timed out after {elapsed_ms}ms.",
                reason="timeout",
            ) from exc
        except httpx.TimeoutException as exc:
            raise ChatProviderError(f"Model request timed out: {exc}", reason="timeout") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ChatProviderError(f"HTTP request failed: {exc}", reason="request_error") from exc

        elapsed_ms = _elapsed_ms(started)
        logger.info("Model request (%s) completed in %dms with status %s", model_used, elapsed_ms, response.status_code)

        if response.status_code >= 400:
            detail = _extract_error_detail(response)
            logger.error("Model API error (%s): %s", response.status_code, detail)
            raise ChatProviderError(
                f"Model request failed ({response.status_code}): {detail}",
                reason="http_error",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ChatProviderError(f"Model response was not valid JSON: {exc}", reason="invalid_response") from exc

        text = _extract_openai_text(body)
        return ChatProviderResult(
            text=text,
            raw_response=body,
            model_used=model_used,
            elapsed_ms=elapsed_ms,
            request_metadata={
                "provider": self.route_id,
                "endpoint": url,
                "model": model_used,
            },
        )

    async def _post(self, url: str, payload: dict[str, Any], *, timeout_seconds: float) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=timeout_seconds) as client:
            return await client.post(url, headers=headers, json=payload)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _build_chat_completions_url(base_url: str) -> str:
    normalized = base_url.strip().rstrip("/")
    if normalized.endswith("/chat/completions"):
        return normalized
    return f"{normalized}/chat/completions"


def _extract_openai_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise ChatProviderError("Invalid model response payload.", reason="invalid_response")
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise ChatProviderError("Model response does not contain choices.", reason="no_content")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise ChatProviderError("Model response missing message payload.", reason="no_content")

    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content
    if isinstance(content, list):
        chunks: list[str] = []
        for item in content:
            if isinstance(item, str):
                chunks.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                chunks.append(item["text"])
        joined = "\n".join(chunks).strip()
        if joined:
            return joined
    raise ChatProviderError("Model response did not include text content.", reason="no_content")


def _extract_error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
        if isinstance(payload, dict):
            if isinstance(payload.get("error"), dict):
                message = payload["error"].get("message")
                if isinstance(message, str) and message:
                    return message
            detail = payload.get("detail")
            if isinstance(detail, str) and detail:
                return detail
    except ValueError:
        pass
    body = response.text.strip()
    return body[:300] if body else "Unknown provider error"
