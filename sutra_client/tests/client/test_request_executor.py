"""Request executor: cache, deduplication, retry, fallback and error routing."""
from __future__ import annotations

import asyncio
import dataclasses

import pytest

from sutra_client.base.cache import MemoryCache
from sutra_client.base.cancellation import CancellationToken
from sutra_client.base.dto import CircuitBreakerConfig
from sutra_client.base.errors import CacheKeyError, ErrorCode, ProviderUnavailableError, SutraError
from sutra_client.base.events import EventType
from sutra_client.base.middleware import FunctionMiddleware
from sutra_client.base.middleware.builtins import FallbackMiddleware, RetryMiddleware, TimeoutMiddleware
from sutra_client.base.models import ChatChoice, ChatRequest, ChatResponse, Message
from sutra_client.base.resilience import RetryConfig
from sutra_client.mock import MockProvider

FAST_RETRY = RetryConfig(max_retries=2, base_delay=0.0)


def make_request(prompt: str = "hello", *, provider: str = "mock", **kwargs) -> ChatRequest:
    return ChatRequest(provider=provider, model="mock-model", messages=[Message(role="user", content=prompt)], **kwargs)


def _types(recorded, event_type):
    return [e for e in recorded if e.type is event_type]


@pytest.mark.asyncio
async def test_chat_returns_timed_response_and_emits_lifecycle(make_registry, make_executor, recorded):
    mock = MockProvider(responses={"hello": "hi there"})
    executor = make_executor(make_registry({"mock": mock}))
    response = await executor.chat(make_request("hello"))
    assert response.text == "hi there" and response.timing is not None  # nosec B101
    assert response.timing.duration_ms >= 0  # nosec B101 test assertion
    kinds = [e.type for e in recorded]
    assert kinds.index(EventType.REQUEST_START) < kinds.index(EventType.REQUEST_END)  # nosec B101
    assert mock.requests[0].stream is False and mock.requests[0].token is not None  # nosec B101


@pytest.mark.asyncio
async def test_cache_hit_skips_provider_but_runs_response_phase(make_registry, make_executor, recorded):
    mock = MockProvider()
    seen = []
    tag = FunctionMiddleware("tag", after_response=lambda r, c: seen.append(r.id))
    executor = make_executor(make_registry({"mock": mock}), middleware=[tag], cache=MemoryCache())
    first = await executor.chat(make_request())
    second = await executor.chat(make_request())
    assert mock.chat_calls == 1 and second.text == first.text  # nosec B101 test assertion
    assert second is not first  # nosec B101 test assertion
    assert len(seen) == 2  # nosec B101 test assertion
    assert len(_types(recorded, EventType.CACHE_MISS)) == 1  # nosec B101 test assertion
    assert len(_types(recorded, EventType.CACHE_HIT)) == 1  # nosec B101 test assertion
    assert len(_types(recorded, EventType.CACHE_SET)) == 1  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_cached_copy_is_isolated_from_caller_mutation(make_registry, make_executor):
    executor = make_executor(make_registry({"mock": MockProvider()}), cache=MemoryCache())
    first = await executor.chat(make_request())
    first.choices[0].message.content = "mutated"
    second = await executor.chat(make_request())
    assert second.text == "mock response"  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_skip_cache_always_calls_provider(make_registry, make_executor):
    mock = MockProvider()
    executor = make_executor(make_registry({"mock": mock}), cache=MemoryCache())
    await executor.chat(make_request(skip_cache=True))
    await executor.chat(make_request(skip_cache=True))
    assert mock.chat_calls == 2  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_concurrent_identical_calls_are_deduplicated(make_registry, make_executor):
    mock = MockProvider(delay=0.05)
    executor = make_executor(make_registry({"mock": mock}))
    results = await asyncio.gather(*(executor.chat(make_request()) for _ in range(5)))
    assert mock.chat_calls == 1  # nosec B101 test assertion
    assert {r.text for r in results} == {"mock response"}  # nosec B101 test assertion
    assert len({id(r) for r in results}) == 5  # nosec B101 test assertion
    assert executor.in_flight_count == 0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_dedup_disabled_calls_once_per_request(make_registry, make_executor):
    mock = MockProvider(delay=0.01)
    executor = make_executor(make_registry({"mock": mock}), deduplicate=False)
    await asyncio.gather(*(executor.chat(make_request()) for _ in range(3)))
    assert mock.chat_calls == 3  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_shared_failure_reaches_every_waiter_and_clears_entry(make_registry, make_executor):
    mock = MockProvider(delay=0.02).enqueue(SutraError(ErrorCode.AUTH, "bad key"))
    executor = make_executor(make_registry({"mock": mock}))
    results = await asyncio.gather(*(executor.chat(make_request()) for _ in range(3)), return_exceptions=True)
    assert all(isinstance(r, SutraError) and r.code is ErrorCode.AUTH for r in results)  # nosec B101
    assert mock.chat_calls == 1 and executor.in_flight_count == 0  # nosec B101
    assert (await executor.chat(make_request())).text == "mock response"  # nosec B101


@pytest.mark.asyncio
async def test_retry_reissues_until_success(make_registry, make_executor, recorded):
    boom = SutraError(ErrorCode.SERVER_ERROR, "503ish")
    mock = MockProvider().enqueue(boom, boom, "third time lucky")
    executor = make_executor(make_registry({"mock": mock}), middleware=[RetryMiddleware(FAST_RETRY)])
    response = await executor.chat(make_request())
    assert response.text == "third time lucky" and mock.chat_calls == 3  # nosec B101
    retries = _types(recorded, EventType.REQUEST_RETRY)
    assert [e.data["attempt"] for e in retries] == [1, 2]  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_retry_budget_is_bounded_across_reissues(make_registry, make_executor):
    mock = MockProvider().fail_with(SutraError(ErrorCode.TIMEOUT, "slow"))
    executor = make_executor(make_registry({"mock": mock}), middleware=[RetryMiddleware(FAST_RETRY)])
    with pytest.raises(SutraError) as info:
        await executor.chat(make_request())
    assert info.value.code is ErrorCode.TIMEOUT and mock.chat_calls == 3  # nosec B101


@pytest.mark.asyncio
async def test_no_retry_flag_is_honored(make_registry, make_executor):
    mock = MockProvider().fail_with(SutraError(ErrorCode.SERVER_ERROR, "x"))
    executor = make_executor(make_registry({"mock": mock}), middleware=[RetryMiddleware(FAST_RETRY)])
    with pytest.raises(SutraError):
        await executor.chat(make_request(no_retry=True))
    assert mock.chat_calls == 1  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_structured(make_registry, make_executor, recorded):
    mock = MockProvider().enqueue(ValueError("invalid request shape"))
    executor = make_executor(make_registry({"mock": mock}), middleware=[RetryMiddleware(FAST_RETRY)])
    with pytest.raises(SutraError) as info:
        await executor.chat(make_request())
    assert info.value.code is ErrorCode.VALIDATION  # nosec B101 test assertion
    assert isinstance(info.value.__cause__, ValueError)  # nosec B101 test assertion
    assert info.value.request_id is not None  # nosec B101 test assertion
    assert _types(recorded, EventType.REQUEST_ERROR)[0].data["code"] == "validation"  # nosec B101


@pytest.mark.asyncio
async def test_fallback_switches_provider_with_fresh_retry_budget(make_registry, make_executor, recorded):
    primary = MockProvider().fail_with(SutraError(ErrorCode.UNAVAILABLE, "down"))
    backup = MockProvider(responses={"*": "from backup"})
    backup.enqueue(SutraError(ErrorCode.SERVER_ERROR, "blip"), "from backup")
    executor = make_executor(
        make_registry({"primary": primary, "backup": backup}),
        middleware=[RetryMiddleware(RetryConfig(max_retries=1, base_delay=0.0)), FallbackMiddleware([("backup", "b-model")])],
    )
    response = await executor.chat(make_request(provider="primary"))
    assert response.text == "from backup" and response.provider == "backup"  # nosec B101
    assert primary.chat_calls == 2 and backup.chat_calls == 2  # nosec B101 test assertion
    assert backup.requests[0].model == "b-model"  # nosec B101 test assertion
    fallback = _types(recorded, EventType.REQUEST_FALLBACK)
    assert fallback[0].data == {"to_provider": "backup", "to_model": "b-model"}  # nosec B101


@pytest.mark.asyncio
async def test_fallback_chain_exhausted_raises_last_error(make_registry, make_executor):
    primary = MockProvider().fail_with(SutraError(ErrorCode.UNAVAILABLE, "down"))
    backup = MockProvider().fail_with(SutraError(ErrorCode.RATE_LIMIT, "busy"))
    executor = make_executor(
        make_registry({"primary": primary, "backup": backup}),
        middleware=[FallbackMiddleware([("backup", "mock-model"), ("primary", "mock-model")])],
    )
    with pytest.raises(SutraError) as info:
        await executor.chat(make_request(provider="primary"))
    assert info.value.code is ErrorCode.RATE_LIMIT  # nosec B101 test assertion
    assert primary.chat_calls == 1 and backup.chat_calls == 1  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_error_phase_recovery_response_is_returned(make_registry, make_executor):
    canned = ChatResponse(
        id="canned",
        model="mock-model",
        provider="mock",
        choices=[ChatChoice(index=0, message=Message(role="assistant", content="degraded answer"))],
    )
    mock = MockProvider().fail_with(SutraError(ErrorCode.SERVER_ERROR, "x"))
    recover = FunctionMiddleware("recover", on_error=lambda e, c: canned)
    executor = make_executor(make_registry({"mock": mock}), middleware=[recover])
    assert (await executor.chat(make_request())).text == "degraded answer"  # nosec B101


@pytest.mark.asyncio
async def test_open_circuit_surfaces_unavailable_without_calling_adapter(make_registry, make_executor):
    mock = MockProvider().fail_with(SutraError(ErrorCode.SERVER_ERROR, "x"))
    registry = make_registry({"mock": mock}, breaker=CircuitBreakerConfig(failure_threshold=1))
    executor = make_executor(registry)
    with pytest.raises(SutraError):
        await executor.chat(make_request())
    with pytest.raises(ProviderUnavailableError):
        await executor.chat(make_request())
    assert mock.chat_calls == 1  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_caller_token_cancels_inflight_call(make_registry, make_executor):
    mock = MockProvider(delay=5)
    registry = make_registry({"mock": mock})
    executor = make_executor(registry, middleware=[RetryMiddleware(FAST_RETRY)])
    token = CancellationToken()
    task = asyncio.ensure_future(executor.chat(make_request(token=token)))
    await asyncio.sleep(0.01)
    token.cancel("user closed tab")
    with pytest.raises(SutraError) as info:
        await task
    assert info.value.code is ErrorCode.CANCELLED and mock.chat_calls == 1  # nosec B101
    assert registry.get_provider_health("mock").failure_count == 0  # nosec B101


@pytest.mark.asyncio
async def test_cache_write_failure_does_not_mask_response(make_registry, make_executor, log_events):
    class BrokenStore(MemoryCache):
        def set(self, key, value, ttl=None):
            raise OSError("disk full")

    executor = make_executor(make_registry({"mock": MockProvider()}), cache=BrokenStore())
    assert (await executor.chat(make_request())).text == "mock response"  # nosec B101
    assert any(e.get("event") == "cache.write_failed" for e in log_events)  # nosec B101


@pytest.mark.asyncio
async def test_request_phase_rewrite_reaches_provider(make_registry, make_executor):
    mock = MockProvider()
    pin = FunctionMiddleware("pin", before_request=lambda r, c: dataclasses.replace(r, temperature=0.0))
    executor = make_executor(make_registry({"mock": mock}), middleware=[pin])
    await executor.chat(make_request(temperature=0.9))
    assert mock.requests[0].temperature == 0.0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_finished_calls_detach_from_the_caller_token(make_registry, make_executor):
    shared = CancellationToken()
    executor = make_executor(make_registry({"mock": MockProvider()}), deduplicate=False)
    for _ in range(20):
        await executor.chat(make_request(token=shared))
    await executor.chat_stream_collect(make_request(token=shared))
    assert len(shared._children) == 0  # nosec B101 test assertion
    assert not shared.cancelled  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_failed_call_detaches_from_the_caller_token(make_registry, make_executor):
    shared = CancellationToken()
    mock = MockProvider().fail_with(SutraError(ErrorCode.AUTH, "bad key"))
    executor = make_executor(make_registry({"mock": mock}))
    with pytest.raises(SutraError):
        await executor.chat(make_request(token=shared))
    assert len(shared._children) == 0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_every_deduplicated_caller_runs_its_own_response_phase(make_registry, make_executor, recorded):
    counts = {"before": 0, "after": 0}
    contexts = []

    def _before(request, ctx):
        counts["before"] += 1
        contexts.append(ctx)
        return request

    def _after(response, ctx):
        counts["after"] += 1
        return response

    counter = FunctionMiddleware("counter", before_request=_before, after_response=_after)
    mock = MockProvider(delay=0.05)
    executor = make_executor(
        make_registry({"mock": mock}), middleware=[TimeoutMiddleware(30), counter]
    )
    results = await asyncio.gather(*(executor.chat(make_request()) for _ in range(3)))
    assert mock.chat_calls == 1  # nosec B101 test assertion
    assert counts == {"before": 3, "after": 3}  # nosec B101 test assertion
    assert all("timeout_handle" not in ctx.data for ctx in contexts)  # nosec B101 test assertion
    assert len({id(r) for r in results}) == 3  # nosec B101 test assertion
    ends = _types(recorded, EventType.REQUEST_END)
    assert len(ends) == 3  # nosec B101 test assertion
    assert sorted(e.data.get("deduplicated", False) for e in ends) == [False, True, True]  # nosec B101


@pytest.mark.asyncio
async def test_key_derivation_failure_runs_uncached_and_undeduplicated(
    make_registry, make_executor, recorded, log_events, monkeypatch
):
    def _broken(request):
        raise CacheKeyError("unserializable", provider=request.provider)

    monkeypatch.setattr("sutra_client.client.executor.derive_cache_key", _broken)
    mock = MockProvider(delay=0.02)
    executor = make_executor(make_registry({"mock": mock}), cache=MemoryCache())
    results = await asyncio.gather(executor.chat(make_request()), executor.chat(make_request()))
    assert [r.text for r in results] == ["mock response", "mock response"]  # nosec B101
    assert mock.chat_calls == 2 and executor.in_flight_count == 0  # nosec B101 test assertion
    assert _types(recorded, EventType.CACHE_SET) == []  # nosec B101 test assertion
    assert _types(recorded, EventType.CACHE_MISS) == []  # nosec B101 test assertion
    assert any(e.get("event") == "cache.key_failed" for e in log_events)  # nosec B101


@pytest.mark.asyncio
async def test_no_retry_flag_also_disables_fallback(make_registry, make_executor, recorded):
    primary = MockProvider().fail_with(SutraError(ErrorCode.UNAVAILABLE, "down"))
    backup = MockProvider(responses={"*": "from backup"})
    executor = make_executor(
        make_registry({"primary": primary, "backup": backup}),
        middleware=[FallbackMiddleware([("backup", "mock-model")])],
    )
    with pytest.raises(SutraError) as info:
        await executor.chat(make_request(provider="primary", no_retry=True))
    assert info.value.code is ErrorCode.UNAVAILABLE  # nosec B101 test assertion
    assert primary.chat_calls == 1 and backup.chat_calls == 0  # nosec B101 test assertion
    assert _types(recorded, EventType.REQUEST_FALLBACK) == []  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_each_retry_emits_a_single_retry_event(make_registry, make_executor, recorded):
    mock = MockProvider().enqueue(SutraError(ErrorCode.SERVER_ERROR, "blip"), "ok")
    executor = make_executor(make_registry({"mock": mock}), middleware=[RetryMiddleware(FAST_RETRY)])
    await executor.chat(make_request())
    retry_kinds = [e.type for e in recorded if "retry" in e.type.value]
    assert retry_kinds == [EventType.REQUEST_RETRY]  # nosec B101 test assertion
