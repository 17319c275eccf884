"""Provider registry: registration, lazy construction, breakers and health."""
from __future__ import annotations

import asyncio

import pytest

from sutra_client.base.cancellation import CancellationToken, CancelledError
from sutra_client.base.dto import CircuitBreakerConfig, ProviderConfig
from sutra_client.base.errors import (
    ErrorCode,
    ProviderNotFoundError,
    ProviderUnavailableError,
    SutraError,
)
from sutra_client.base.events import EventType
from sutra_client.base.interfaces import ProviderPlugin
from sutra_client.base.models import ChatRequest, Message
from sutra_client.base.registry import ProviderRegistry
from sutra_client.base.repositories.keys import KeysRepository
from sutra_client.base.resilience import CircuitState
from sutra_client.mock import MockProvider, mock_factory


def _fail(code: ErrorCode = ErrorCode.SERVER_ERROR) -> SutraError:
    return SutraError(code, "boom", provider="mock")


def _req(**kwargs) -> ChatRequest:
    return ChatRequest(provider="mock", model="mock-model", messages=[Message(role="user", content="hi")], **kwargs)


def test_unknown_provider_raises_not_found(make_registry):
    registry = make_registry()
    with pytest.raises(ProviderNotFoundError) as info:
        registry.get_provider("nope")
    assert info.value.code is ErrorCode.PROVIDER_NOT_FOUND  # nosec B101 test assertion


def test_builtins_are_registered_and_protected():
    registry = ProviderRegistry(keys=KeysRepository(use_env=False))
    assert {"openai", "groq", "ollama"} <= set(registry.list_providers())  # nosec B101
    assert registry.is_builtin("OpenAI")  # nosec B101 test assertion
    assert registry.unregister_provider("openai") is False  # nosec B101 test assertion
    assert registry.unregister_provider("missing") is False  # nosec B101 test assertion
    assert registry.get_provider_config("ollama").requires_key is False  # nosec B101


def test_builtin_override_stays_non_removable():
    registry = ProviderRegistry(keys=KeysRepository(use_env=False))
    registry.register_provider("openai", mock_factory())
    assert isinstance(registry.get_provider("openai"), MockProvider)  # nosec B101
    assert registry.unregister_provider("openai") is False  # nosec B101 test assertion


def test_register_emits_event_and_replaces_cached_instance(make_registry, recorded):
    first = MockProvider()
    registry = make_registry({"custom": first})
    assert registry.get_provider("custom") is first  # nosec B101 test assertion
    second = MockProvider()
    registry.register_provider("custom", second.as_constructor())
    assert registry.get_provider("custom") is second  # nosec B101 test assertion
    registered = [e for e in recorded if e.type is EventType.PROVIDER_REGISTERED]
    assert [e.data["override"] for e in registered] == [False, True]  # nosec B101
    assert registry.unregister_provider("custom") and not registry.has_provider("custom")  # nosec B101


def test_adapter_is_constructed_once_with_merged_config(events):
    built = []

    def _construct(config, emitter, get_api_key):
        built.append(config)
        return MockProvider(config, emitter, get_api_key)

    registry = ProviderRegistry(
        events=events,
        keys=KeysRepository(use_env=False),
        provider_configs={"custom": ProviderConfig(default_model="user-model", headers={"X-U": "1"})},
        register_builtins=False,
    )
    registry.register_provider(
        "Custom", _construct, ProviderConfig(base_url="http://h", default_model="d", headers={"X-D": "1"})
    )
    registry.get_provider("custom")
    registry.get_provider("CUSTOM")
    assert len(built) == 1  # nosec B101 test assertion
    cfg = built[0]
    assert (cfg.name, cfg.base_url, cfg.default_model) == ("custom", "http://h", "user-model")  # nosec B101
    assert cfg.headers == {"X-D": "1", "X-U": "1"}  # nosec B101 test assertion

    registry.set_provider_config("custom", ProviderConfig(default_model="changed"))
    registry.get_provider("custom")
    assert built[-1].default_model == "changed" and len(built) == 2  # nosec B101


def test_constructor_failure_is_internal_error(make_registry):
    registry = make_registry()

    def _broken(config, events, get_api_key):
        raise RuntimeError("no SDK")

    registry.register_provider("broken", _broken)
    with pytest.raises(SutraError) as info:
        registry.get_provider("broken")
    assert info.value.code is ErrorCode.INTERNAL  # nosec B101 test assertion


def test_register_plugin(make_registry):
    registry = make_registry()
    registry.register_plugin(
        ProviderPlugin(name="plug", constructor=mock_factory(), default_config=ProviderConfig(default_model="pm"))
    )
    assert registry.get_provider_config("plug").default_model == "pm"  # nosec B101


@pytest.mark.asyncio
async def test_credential_accessor_is_lazy_and_per_provider():
    seen = []

    async def _resolve(provider):
        seen.append(provider)
        return f"key-for-{provider}"

    captured = {}

    def _construct(config, events, get_api_key):
        captured["accessor"] = get_api_key
        return MockProvider(config)

    registry = ProviderRegistry(credential_resolver=_resolve, register_builtins=False)
    registry.register_provider("lazy", _construct)
    registry.get_provider("lazy")
    assert seen == []  # nosec B101 test assertion
    assert await captured["accessor"]() == "key-for-lazy"  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_failures_open_circuit_and_block_provider(make_registry, recorded):
    mock = MockProvider().fail_with(_fail())
    registry = make_registry({"mock": mock}, breaker=CircuitBreakerConfig(failure_threshold=2, open_duration_seconds=30))
    adapter = registry.get_provider("mock")
    for _ in range(2):
        with pytest.raises(SutraError):
            await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    assert registry.get_circuit_state("mock") is CircuitState.OPEN  # nosec B101 test assertion
    assert any(e.type is EventType.CIRCUIT_STATE_CHANGE and e.data["new"] == "open" for e in recorded)  # nosec B101

    calls_before = mock.chat_calls
    with pytest.raises(ProviderUnavailableError) as info:
        await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    assert mock.chat_calls == calls_before  # nosec B101 test assertion
    assert info.value.retryable and info.value.retry_after == pytest.approx(30)  # nosec B101
    with pytest.raises(ProviderUnavailableError):
        registry.get_provider("mock")


@pytest.mark.asyncio
async def test_half_open_trial_success_closes_circuit(make_registry, fake_clock):
    mock = MockProvider().fail_with(_fail())
    registry = make_registry(
        {"mock": mock},
        breaker=CircuitBreakerConfig(failure_threshold=1, open_duration_seconds=10, half_open_max_calls=1),
    )
    adapter = registry.get_provider("mock")
    with pytest.raises(SutraError):
        await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    fake_clock.advance(10)
    assert registry.get_circuit_state("mock") is CircuitState.HALF_OPEN  # nosec B101
    mock.fail_with(None)
    await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    assert registry.get_circuit_state("mock") is CircuitState.CLOSED  # nosec B101


@pytest.mark.asyncio
async def test_half_open_saturated_rejection_suggests_typical_latency(make_registry, fake_clock):
    mock = MockProvider(delay=0.05).fail_with(_fail())
    registry = make_registry(
        {"mock": mock},
        breaker=CircuitBreakerConfig(failure_threshold=1, open_duration_seconds=5, half_open_max_calls=1),
    )
    adapter = registry.get_provider("mock")
    with pytest.raises(SutraError):
        await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    fake_clock.advance(5)
    mock.fail_with(None)
    trial = asyncio.ensure_future(registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req())))
    await asyncio.sleep(0)
    with pytest.raises(ProviderUnavailableError) as info:
        await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    assert info.value.retry_after > 0  # nosec B101 test assertion
    await trial


@pytest.mark.asyncio
async def test_cancellation_is_neither_success_nor_failure(make_registry):
    mock = MockProvider(delay=5)
    registry = make_registry({"mock": mock}, breaker=CircuitBreakerConfig(failure_threshold=1))
    adapter = registry.get_provider("mock")
    token = CancellationToken()
    request = _req(token=token)
    task = asyncio.ensure_future(registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(request)))
    await asyncio.sleep(0.01)
    token.cancel("caller gave up")
    with pytest.raises(CancelledError):
        await task
    health = registry.get_provider_health("mock")
    assert registry.get_circuit_state("mock") is CircuitState.CLOSED  # nosec B101
    assert (health.request_count, health.failure_count, health.in_flight) == (0, 0, 0)  # nosec B101


@pytest.mark.asyncio
async def test_health_snapshot_tracks_outcomes(make_registry):
    mock = MockProvider()
    registry = make_registry({"mock": mock, "idle": MockProvider()})
    adapter = registry.get_provider("mock")
    await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    mock.enqueue(_fail(ErrorCode.TIMEOUT))
    with pytest.raises(SutraError):
        await registry.execute_with_circuit_breaker("mock", lambda: adapter.chat(_req()))
    snap = registry.get_provider_health("mock")
    assert (snap.request_count, snap.success_count, snap.failure_count) == (2, 1, 1)  # nosec B101
    assert snap.last_error_code == "timeout" and snap.latency.count == 2  # nosec B101
    assert snap.circuit_state == "closed"  # nosec B101 test assertion
    assert list(registry.get_all_provider_health()) == ["mock"]  # nosec B101 test assertion
    assert registry.get_provider_health("idle").request_count == 0  # nosec B101


@pytest.mark.asyncio
async def test_stream_outcomes_are_recorded(make_registry):
    mock = MockProvider(chunk_size=2)
    registry = make_registry({"mock": mock})
    adapter = registry.get_provider("mock")
    pieces = [d async for d in registry.stream_with_circuit_breaker("mock", lambda: adapter.chat_stream(_req()))]
    assert pieces  # nosec B101 test assertion

    agen = registry.stream_with_circuit_breaker("mock", lambda: adapter.chat_stream(_req()))
    await agen.__anext__()
    await agen.aclose()

    mock.enqueue_stream(["a", _fail()])
    with pytest.raises(SutraError):
        async for _ in registry.stream_with_circuit_breaker("mock", lambda: adapter.chat_stream(_req())):
            pass
    snap = registry.get_provider_health("mock")
    assert (snap.request_count, snap.success_count, snap.failure_count) == (2, 1, 1)  # nosec B101
    assert snap.in_flight == 0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_list_all_models_skips_failing_providers(make_registry):
    registry = make_registry(
        {"a": MockProvider(models=["a1", "a2"]), "b": MockProvider().fail_with(_fail())}
    )
    models = await registry.list_all_models(["a", "b"])
    assert list(models) == ["a"] and [m.id for m in models["a"]] == ["a1", "a2"]  # nosec B101


@pytest.mark.asyncio
async def test_warmup_reports_per_provider_and_bypasses_breaker(make_registry):
    registry = make_registry(
        {"fast": MockProvider(), "slow": MockProvider(delay=1.0), "bad": MockProvider().fail_with(_fail())},
        breaker=CircuitBreakerConfig(failure_threshold=1),
    )
    results = await registry.warmup(["fast", "slow", "bad", "ghost"], timeout=0.05)
    assert results["fast"].success and results["fast"].model_count == 1  # nosec B101
    assert not results["slow"].success and "timed out" in results["slow"].error  # nosec B101
    assert not results["bad"].success and not results["ghost"].success  # nosec B101
    assert registry.get_circuit_state("bad") is CircuitState.CLOSED  # nosec B101
    assert registry.get_all_provider_health() == {}  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_clear_cache_closes_adapters(make_registry):
    mock = MockProvider()
    registry = make_registry({"mock": mock})
    registry.get_provider("mock")
    assert registry.cached_providers() == ["mock"]  # nosec B101 test assertion
    await registry.clear_cache()
    assert mock.closed and registry.cached_providers() == []  # nosec B101


def test_reset_circuit(make_registry):
    registry = make_registry({"mock": MockProvider()}, breaker=CircuitBreakerConfig(failure_threshold=1))
    registry._state("mock").breaker.record_failure()
    assert registry.get_circuit_state("mock") is CircuitState.OPEN  # nosec B101
    registry.reset_circuit("mock")
    assert registry.get_circuit_state("mock") is CircuitState.CLOSED  # nosec B101
