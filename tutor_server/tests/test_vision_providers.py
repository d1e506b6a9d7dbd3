from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tutor_server.ai_config import AIServiceConfig  # noqa: E402
from tutor_server.vision_providers import ChatProviderError, OpenAIChatProvider  # noqa: E402

API_KEY = "sk-test-1234567890"
PAYLOAD = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "hi"}]}


def _provider(handler) -> OpenAIChatProvider:
    return OpenAIChatProvider(
        api_key=API_KEY,
        base_url="https://api.example.com/v1/",
        transport=httpx.MockTransport(handler),
    )


def test_complete_posts_to_chat_completions_and_returns_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": '{"entries": []}'}}]})

    result = asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=5))

    assert seen["url"] == "https://api.example.com/v1/chat/completions"
    assert seen["auth"] == f"Bearer {API_KEY}"
    assert seen["body"] == PAYLOAD
    assert result.text == '{"entries": []}'
    assert result.model_used == "gpt-4o-mini"
    assert result.request_metadata["provider"] == "openai"


def test_list_content_parts_are_joined():
    def handler(request: httpx.Request) -> httpx.Response:
        content = [{"type": "text", "text": "part one"}, {"type": "text", "text": "part two"}]
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    result = asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=5))

    assert result.text == "part one\npart two"


def test_http_error_carries_status_and_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    with pytest.raises(ChatProviderError) as excinfo:
        asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=5))

    assert excinfo.value.reason == "http_error"
    assert excinfo.value.status_code == 429
    assert "rate limited" in str(excinfo.value)


def test_empty_content_is_no_content():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]})

    with pytest.raises(ChatProviderError) as excinfo:
        asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=5))

    assert excinfo.value.reason == "no_content"


def test_slow_response_times_out():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"choices": [{"message": {"content": "late"}}]})

    with pytest.raises(ChatProviderError) as excinfo:
        asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=0.05))

    assert excinfo.value.reason == "timeout"


def test_connection_failure_is_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ChatProviderError) as excinfo:
        asyncio.run(_provider(handler).complete(PAYLOAD, timeout_seconds=5))

    assert excinfo.value.reason == "request_error"


def test_unconfigured_provider_refuses_without_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = OpenAIChatProvider.from_config(AIServiceConfig(), transport=httpx.MockTransport(handler))

    assert provider.configured is False
    assert provider.availability()["configured"] is False
    with pytest.raises(ChatProviderError) as excinfo:
        asyncio.run(provider.complete(PAYLOAD, timeout_seconds=5))
    assert excinfo.value.reason == "config_missing"
