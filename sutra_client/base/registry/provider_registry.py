"""Provider registry with per-provider circuit breakers and health tracking.

Purpose
-------
Resolve provider names to adapter instances and own the only sanctioned
path for invoking them. Adapters are constructed lazily on first use by
merging the registered default config with the user's config and injecting
a lazy credential accessor; the instance is cached until the registration
or the config changes.

Every provider call goes through :meth:`ProviderRegistry.execute_with_circuit_breaker`
(or the streaming variant), which asks the provider's
:class:`CircuitBreaker` for admission, records the outcome in the
provider's :class:`ProviderHealth`, and reports it back to the breaker.
Health projections and warmup never touch the breaker.

Built-in providers are resolved through ``importlib`` like any other
registration but cannot be unregistered.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from importlib import import_module
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    TypeVar,
)

from ..cancellation import CancelledError
from ..dto.client_config import CircuitBreakerConfig, HealthWindowConfig
from ..dto.provider_config import ProviderConfig
from ..errors import (
    ErrorCode,
    ProviderNotFoundError,
    ProviderUnavailableError,
    SutraError,
    to_sutra_error,
)
from ..events import EventEmitter, EventType
from ..interfaces import ProviderAdapter, ProviderConstructor, ProviderPlugin
from ..logging import LogContext, get_logger, log_event, normalized_log_event
from ..metrics import ProviderHealth, ProviderHealthSnapshot
from ..models import ModelInfo
from ..repositories.keys import KeysRepository
from ..resilience.circuit_breaker import CircuitBreaker, CircuitState
from .builtins import BUILTIN_PROVIDERS, builtin_default_config

T = TypeVar("T")

_logger = get_logger("sutra.registry")

CredentialResolver = Callable[[str], Awaitable[str]]


@dataclass
class _Registration:
    name: str
    default_config: ProviderConfig
    constructor: Optional[ProviderConstructor] = None
    module: Optional[str] = None
    class_name: Optional[str] = None
    builtin: bool = False


@dataclass(frozen=True)
class WarmupResult:
    """Outcome of one provider's warmup probe."""

    provider: str
    success: bool
    latency_ms: Optional[float] = None
    model_count: Optional[int] = None
    error: Optional[str] = None


@dataclass
class _ProviderState:
    breaker: CircuitBreaker
    health: ProviderHealth
    extra: Dict[str, object] = field(default_factory=dict)


def _is_cancellation(exc: BaseException) -> bool:
    if isinstance(exc, (CancelledError, asyncio.CancelledError)):
        return True
    return isinstance(exc, SutraError) and exc.code is ErrorCode.CANCELLED


class ProviderRegistry:
    """Registration table, adapter cache, breakers and health records.

    Parameters
    ----------
    events:
        Event sink passed to adapters and used for registration and
        circuit-state notifications.
    keys:
        Credential source; ``keys.require_key`` backs the default accessor.
    credential_resolver:
        Alternative async ``(provider) -> secret`` accessor.
    provider_configs:
        User configuration per provider, merged over registered defaults.
    breaker_config / health_window:
        Shared thresholds for every provider's breaker and latency window.
    clock:
        Monotonic time source (seconds) for breakers and latency windows.
    register_builtins:
        Seed the table with the built-in providers.
    """

    def __init__(
        self,
        *,
        events: Optional[EventEmitter] = None,
        keys: Optional[KeysRepository] = None,
        credential_resolver: Optional[CredentialResolver] = None,
        provider_configs: Optional[Mapping[str, ProviderConfig]] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        health_window: Optional[HealthWindowConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        register_builtins: bool = True,
    ) -> None:
        self.events = events or EventEmitter()
        self.keys = keys or KeysRepository()
        self._resolve_credential: CredentialResolver = credential_resolver or self.keys.require_key
        self._user_configs: Dict[str, ProviderConfig] = {
            self._normalize(k): v for k, v in (provider_configs or {}).items()
        }
        self._breaker_config = breaker_config or CircuitBreakerConfig()
        self._health_window = health_window or HealthWindowConfig()
        self._clock = clock
        self._registrations: Dict[str, _Registration] = {}
        self._instances: Dict[str, ProviderAdapter] = {}
        self._states: Dict[str, _ProviderState] = {}
        if register_builtins:
            for name, spec in BUILTIN_PROVIDERS.items():
                self._registrations[name] = _Registration(
                    name=name,
                    default_config=builtin_default_config(name),
                    module=spec["module"],
                    class_name=spec["class"],
                    builtin=True,
                )

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    @staticmethod
    def _normalize(name: str) -> str:
        return (name or "").lower().strip()

    def register_provider(
        self,
        name: str,
        constructor: ProviderConstructor,
        default_config: Optional[ProviderConfig] = None,
    ) -> None:
        """Add or override the constructor for ``name``.

        Overriding a built-in keeps it non-removable. Any cached adapter for
        the name is dropped so the next ``get_provider`` uses the new
        constructor.
        """
        key = self._normalize(name)
        if not key:
            raise ValueError("provider name must be non-empty")
        previous = self._registrations.get(key)
        config = (default_config or ProviderConfig()).model_copy(update={"name": key})
        self._registrations[key] = _Registration(
            name=key,
            default_config=config,
            constructor=constructor,
            builtin=previous.builtin if previous else False,
        )
        self._instances.pop(key, None)
        log_event(_logger, "provider.registered", LogContext(provider=key), override=previous is not None)
        self.events.emit(EventType.PROVIDER_REGISTERED, provider=key, override=previous is not None)

    def register_plugin(self, plugin: ProviderPlugin) -> None:
        self.register_provider(plugin.name, plugin.constructor, plugin.default_config)

    def unregister_provider(self, name: str) -> bool:
        """Remove a custom provider; built-ins and unknown names return False."""
        key = self._normalize(name)
        registration = self._registrations.get(key)
        if registration is None or registration.builtin:
            return False
        del self._registrations[key]
        self._instances.pop(key, None)
        self._states.pop(key, None)
        log_event(_logger, "provider.unregistered", LogContext(provider=key))
        return True

    def has_provider(self, name: str) -> bool:
        return self._normalize(name) in self._registrations

    def is_builtin(self, name: str) -> bool:
        registration = self._registrations.get(self._normalize(name))
        return registration is not None and registration.builtin

    def list_providers(self) -> List[str]:
        return sorted(self._registrations)

    def set_provider_config(self, name: str, config: ProviderConfig) -> None:
        """Replace the user config for ``name`` and drop its cached adapter."""
        key = self._normalize(name)
        self._user_configs[key] = config
        self._instances.pop(key, None)

    def get_provider_config(self, name: str) -> ProviderConfig:
        """Effective config: registered defaults merged with user config."""
        key = self._normalize(name)
        registration = self._registrations.get(key)
        if registration is None:
            raise ProviderNotFoundError(name)
        merged = registration.default_config.merged_with(self._user_configs.get(key))
        return merged.model_copy(update={"name": key})

    # ------------------------------------------------------------------ #
    # Adapter lookup and construction
    # ------------------------------------------------------------------ #
    def get_provider(self, name: str) -> ProviderAdapter:
        """Return the cached adapter for ``name``, constructing it on first use.

        Raises
        ------
        ProviderNotFoundError
            ``name`` is not registered.
        ProviderUnavailableError
            The provider's circuit is open (retryable, with ``retry_after``).
        SutraError
            The adapter constructor failed (code ``internal``).
        """
        key = self._normalize(name)
        if key not in self._registrations:
            raise ProviderNotFoundError(name)
        state = self._states.get(key)
        if state is not None and state.breaker.is_open():
            raise self._unavailable(key, state)
        adapter = self._instances.get(key)
        if adapter is None:
            adapter = self._construct(key)
            self._instances[key] = adapter
        return adapter

    def _construct(self, key: str) -> ProviderAdapter:
        registration = self._registrations[key]
        constructor = registration.constructor or self._import_constructor(registration)
        config = self.get_provider_config(key)

        async def get_api_key() -> str:
            return await self._resolve_credential(key)

        try:
            return constructor(config, self.events, get_api_key)
        except SutraError:
            raise
        except Exception as exc:
            raise SutraError(
                ErrorCode.INTERNAL,
                f"Failed to initialize provider '{key}': {exc}",
                provider=key,
                retryable=False,
            ) from exc

    @staticmethod
    def _import_constructor(registration: _Registration) -> ProviderConstructor:
        module_path, class_name = registration.module or "", registration.class_name or ""
        try:
            module = import_module(module_path)
        except ImportError as exc:  # pragma: no cover - packaging failure path
            raise SutraError(
                ErrorCode.INTERNAL,
                f"Failed to import module '{module_path}' for provider '{registration.name}': {exc}",
                provider=registration.name,
                retryable=False,
            ) from exc
        try:
            return getattr(module, class_name)
        except AttributeError as exc:
            raise SutraError(
                ErrorCode.INTERNAL,
                f"Adapter class '{class_name}' not found in '{module_path}'",
                provider=registration.name,
                retryable=False,
            ) from exc

    def cached_providers(self) -> List[str]:
        return sorted(self._instances)

    async def remove_from_cache(self, name: str) -> bool:
        adapter = self._instances.pop(self._normalize(name), None)
        if adapter is None:
            return False
        await self._close_adapter(adapter)
        return True

    async def clear_cache(self) -> None:
        adapters = list(self._instances.values())
        self._instances.clear()
        for adapter in adapters:
            await self._close_adapter(adapter)

    @staticmethod
    async def _close_adapter(adapter: ProviderAdapter) -> None:
        close = getattr(adapter, "aclose", None)
        if close is None:
            return
        try:
            await close()
        except Exception:
            _logger.exception("adapter close failed")

    # ------------------------------------------------------------------ #
    # Breaker-protected execution
    # ------------------------------------------------------------------ #
    def _state(self, key: str) -> _ProviderState:
        state = self._states.get(key)
        if state is None:
            state = _ProviderState(
                breaker=CircuitBreaker(
                    key,
                    self._breaker_config,
                    clock=self._clock,
                    on_state_change=self._on_circuit_change,
                ),
                health=ProviderHealth(
                    key,
                    max_samples=self._health_window.max_samples,
                    ttl_seconds=self._health_window.ttl_seconds,
                    clock=self._clock,
                ),
            )
            self._states[key] = state
        return state

    def _on_circuit_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        self.events.emit(EventType.CIRCUIT_STATE_CHANGE, provider=name, old=old.value, new=new.value)

    def _unavailable(self, key: str, state: _ProviderState) -> ProviderUnavailableError:
        retry_after = state.breaker.retry_after()
        if retry_after <= 0:
            # Half-open with every trial slot taken: suggest one typical call duration.
            average_ms = state.health.latency.average()
            retry_after = (average_ms / 1000.0) if average_ms else 1.0
        return ProviderUnavailableError(
            key,
            retry_after=retry_after,
            details={"circuit_state": state.breaker.state.value},
        )

    def _admit(self, key: str) -> _ProviderState:
        if key not in self._registrations:
            raise ProviderNotFoundError(key)
        state = self._state(key)
        if not state.breaker.try_acquire():
            error = self._unavailable(key, state)
            normalized_log_event(
                _logger,
                "breaker.rejected",
                LogContext(provider=key),
                phase="admission",
                error_code=error.kind,
                retry_after=error.retry_after,
            )
            raise error
        state.health.record_start()
        return state

    @staticmethod
    def _settle_failure(key: str, state: _ProviderState, exc: BaseException, started_ms: float) -> None:
        if _is_cancellation(exc):
            state.breaker.release()
            state.health.record_cancelled()
            return
        error = to_sutra_error(exc, provider=key)
        state.health.record_failure(error.message, error.kind, ProviderHealth.monotonic_ms() - started_ms)
        state.breaker.record_failure()

    @staticmethod
    def _settle_success(state: _ProviderState, started_ms: float) -> None:
        state.health.record_success(ProviderHealth.monotonic_ms() - started_ms)
        state.breaker.record_success()

    async def execute_with_circuit_breaker(
        self, name: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``operation`` as one call against provider ``name``.

        Admission failures raise :class:`ProviderUnavailableError` before
        ``operation`` is invoked. Cooperative cancellation returns the
        admission without counting as a success or a failure.
        """
        key = self._normalize(name)
        state = self._admit(key)
        started = ProviderHealth.monotonic_ms()
        try:
            result = await operation()
        except BaseException as exc:
            self._settle_failure(key, state, exc, started)
            raise
        self._settle_success(state, started)
        return result

    async def stream_with_circuit_breaker(
        self, name: str, factory: Callable[[], AsyncIterator[T]]
    ) -> AsyncIterator[T]:
        """Yield from ``factory()`` as one breaker-protected call.

        Admission happens before the first fragment. The outcome is recorded
        when the sequence ends: success on exhaustion, failure on an error,
        neither when the consumer stops early or the call is cancelled.
        """
        key = self._normalize(name)
        state = self._admit(key)
        started = ProviderHealth.monotonic_ms()
        iterator = factory()
        settled = False
        try:
            async for item in iterator:
                yield item
            settled = True
            self._settle_success(state, started)
        except Exception as exc:
            settled = True
            self._settle_failure(key, state, exc, started)
            raise
        finally:
            if not settled:
                state.breaker.release()
                state.health.record_cancelled()
            close = getattr(iterator, "aclose", None)
            if close is not None:
                await close()

    async def list_models(self, name: str) -> List[ModelInfo]:
        adapter = self.get_provider(name)
        return await self.execute_with_circuit_breaker(name, adapter.list_models)

    async def list_all_models(self, names: Optional[Iterable[str]] = None) -> Dict[str, List[ModelInfo]]:
        """List models for several providers concurrently, skipping failures."""
        targets = list(names) if names is not None else self.cached_providers()
        results = await asyncio.gather(*(self.list_models(n) for n in targets), return_exceptions=True)
        models: Dict[str, List[ModelInfo]] = {}
        for name, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log_event(_logger, "models.list_failed", LogContext(provider=name), error=str(result))
                continue
            models[self._normalize(name)] = result
        return models

    def supports_feature(self, name: str, feature: str) -> bool:
        return self.get_provider(name).supports(feature)

    # ------------------------------------------------------------------ #
    # Read-only projections
    # ------------------------------------------------------------------ #
    def get_circuit_state(self, name: str) -> CircuitState:
        key = self._normalize(name)
        if key not in self._registrations:
            raise ProviderNotFoundError(name)
        state = self._states.get(key)
        return state.breaker.state if state else CircuitState.CLOSED

    def reset_circuit(self, name: str) -> None:
        key = self._normalize(name)
        state = self._states.get(key)
        if state is not None:
            state.breaker.reset()

    def get_provider_health(self, name: str) -> ProviderHealthSnapshot:
        key = self._normalize(name)
        if key not in self._registrations:
            raise ProviderNotFoundError(name)
        state = self._states.get(key)
        if state is None:
            return ProviderHealth(key).snapshot(CircuitState.CLOSED.value)
        return state.health.snapshot(state.breaker.state.value)

    def get_all_provider_health(self) -> Dict[str, ProviderHealthSnapshot]:
        """Health of every provider that has been called at least once."""
        return {
            key: state.health.snapshot(state.breaker.state.value)
            for key, state in sorted(self._states.items())
        }

    async def warmup(
        self, names: Optional[Iterable[str]] = None, *, timeout: float = 5.0
    ) -> Dict[str, WarmupResult]:
        """Probe providers in parallel with ``list_models``.

        Best effort: each probe has its own ``timeout`` and failures are
        reported per provider. Probes bypass the breaker and health records.
        """
        targets = [self._normalize(n) for n in (names if names is not None else self._user_configs)]

        async def _probe(key: str) -> WarmupResult:
            started = ProviderHealth.monotonic_ms()
            try:
                adapter = self.get_provider(key)
                models = await asyncio.wait_for(adapter.list_models(), timeout=timeout)
            except asyncio.TimeoutError:
                return WarmupResult(key, False, error=f"warmup timed out after {timeout}s")
            except Exception as exc:
                log_event(_logger, "warmup.failed", LogContext(provider=key), error=str(exc))
                return WarmupResult(key, False, error=str(exc))
            return WarmupResult(
                key,
                True,
                latency_ms=ProviderHealth.monotonic_ms() - started,
                model_count=len(models),
            )

        results = await asyncio.gather(*(_probe(k) for k in targets))
        return {r.provider: r for r in results}


__all__ = ["ProviderRegistry", "WarmupResult", "CredentialResolver"]
