"""OpenAI-compatible adapter against an in-process ``httpx.MockTransport``."""
from __future__ import annotations

import json
from typing import Callable, List

import httpx
import pytest

from sutra_client.base.dto import ProviderConfig
from sutra_client.base.errors import ErrorCode, SutraError
from sutra_client.base.events import EventEmitter, EventType
from sutra_client.base.models import ChatRequest, EmbeddingRequest, Message
from sutra_client.openai_compat import OpenAICompatibleProvider

BASE_URL = "https://llm.test/v1"


async def _api_key() -> str:
    return "sk-test"


def _request(**kwargs) -> ChatRequest:
    return ChatRequest(
        provider="acme", model="acme-large", messages=[Message(role="user", content="hi")], **kwargs
    )


def _adapter(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    events: EventEmitter = None,
    **config,
) -> OpenAICompatibleProvider:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    cfg = ProviderConfig(name=config.pop("name", "acme"), base_url=BASE_URL, **config)
    return OpenAICompatibleProvider(cfg, events or EventEmitter(), _api_key, client=client)


def _sse(*frames: object) -> bytes:
    lines = [f if isinstance(f, str) else f"data: {json.dumps(f)}\n\n" for f in frames]
    return "".join(lines).encode()


@pytest.mark.asyncio
async def test_chat_posts_payload_with_bearer_token():
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "id": "cmpl-1",
                "model": "acme-large",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": "hello"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
            },
        )

    adapter = _adapter(handler)
    response = await adapter.chat(_request(temperature=0.2))
    await adapter.aclose()

    assert response.text == "hello" and response.provider == "acme"  # nosec B101 test assertion
    assert response.usage.total_tokens == 4  # nosec B101 test assertion
    sent = captured[0]
    assert sent.url.path == "/v1/chat/completions"  # nosec B101 test assertion
    assert sent.headers["authorization"] == "Bearer sk-test"  # nosec B101 test assertion
    body = json.loads(sent.content)
    assert body["model"] == "acme-large" and body["temperature"] == 0.2  # nosec B101 test assertion
    assert body["messages"] == [{"role": "user", "content": "hi"}]  # nosec B101 test assertion
    assert "stream" not in body  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_rate_limit_response_is_classified_and_announced():
    events = EventEmitter()
    seen = []
    events.on(EventType.RATE_LIMITED, seen.append)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "7"}, json={"error": {"message": "slow down"}})

    adapter = _adapter(handler, events=events)
    with pytest.raises(SutraError) as info:
        await adapter.chat(_request())
    err = info.value
    assert err.code is ErrorCode.RATE_LIMIT and err.retryable  # nosec B101 test assertion
    assert err.retry_after == 7.0 and err.message == "slow down"  # nosec B101 test assertion
    assert len(seen) == 1 and seen[0].data["retry_after"] == 7.0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_transport_failure_becomes_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SutraError) as info:
        await _adapter(handler).chat(_request())
    assert info.value.code is ErrorCode.NETWORK and info.value.provider == "acme"  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_stream_parses_sse_until_done():
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        body = _sse(
            {"id": "s1", "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hel"}}]},
            ": keep-alive\n\n",
            {"id": "s1", "choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": "stop"}]},
            {"id": "s1", "choices": [], "usage": {"prompt_tokens": 2, "completion_tokens": 2}},
            "data: [DONE]\n\n",
            {"id": "s1", "choices": [{"index": 0, "delta": {"content": "ignored"}}]},
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    adapter = _adapter(handler)
    chunks = [c async for c in adapter.chat_stream(_request(stream=True))]
    assert "".join(c.text for c in chunks) == "Hello"  # nosec B101 test assertion
    assert chunks[1].choices[0].finish_reason == "stop"  # nosec B101 test assertion
    assert chunks[-1].usage is not None and chunks[-1].usage.total_tokens == 4  # nosec B101 test assertion
    body = json.loads(captured[0].content)
    assert body["stream"] is True and body["stream_options"] == {"include_usage": True}  # nosec B101


@pytest.mark.asyncio
async def test_stream_error_frame_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_sse({"error": {"message": "model overloaded"}}))

    with pytest.raises(SutraError) as info:
        async for _ in _adapter(handler).chat_stream(_request()):
            pass
    assert info.value.code is ErrorCode.STREAM_ERROR  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_list_models_and_keyless_provider_sends_no_auth():
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200, json={"data": [{"id": "llama3", "owned_by": "local", "context_length": 8192}, {"object": "x"}]}
        )

    adapter = _adapter(handler, name="ollama", requires_key=False)
    models = await adapter.list_models()
    assert [m.id for m in models] == ["llama3"]  # nosec B101 test assertion
    assert models[0].context_length == 8192 and models[0].extra == {"owned_by": "local"}  # nosec B101
    assert "authorization" not in captured[0].headers  # nosec B101 test assertion


def test_feature_support_defaults_and_overrides():
    adapter = _adapter(lambda r: httpx.Response(200), name="perplexity")
    assert adapter.supports("streaming") and not adapter.supports("tools")  # nosec B101 test assertion
    custom = _adapter(lambda r: httpx.Response(200), extra={"features": ["vision"]})
    assert custom.supports("vision") and not custom.supports("streaming")  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_embed_posts_inputs_and_orders_vectors_by_index():
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "object": "list",
                "model": "acme-embed",
                "data": [
                    {"object": "embedding", "index": 1, "embedding": [0.5, 0.25]},
                    {"object": "embedding", "index": 0, "embedding": [1, 0]},
                ],
                "usage": {"prompt_tokens": 4, "total_tokens": 4},
            },
        )

    adapter = _adapter(handler, extra={"embeddings_path": "/embed"})
    result = await adapter.embed(
        EmbeddingRequest(provider="acme", model="acme-embed", input=["a", "b"], dimensions=2)
    )
    assert result.vectors == [[1.0, 0.0], [0.5, 0.25]]  # nosec B101 test assertion
    assert result.usage.prompt_tokens == 4 and result.provider == "acme"  # nosec B101 test assertion
    sent = captured[0]
    assert sent.url.path == "/v1/embed"  # nosec B101 test assertion
    assert json.loads(sent.content) == {"model": "acme-embed", "input": ["a", "b"], "dimensions": 2}  # nosec B101


@pytest.mark.asyncio
async def test_embed_error_status_is_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    with pytest.raises(SutraError) as info:
        await _adapter(handler).embed(EmbeddingRequest(provider="acme", model="e", input="x"))
    assert info.value.code is ErrorCode.AUTH  # nosec B101 test assertion
