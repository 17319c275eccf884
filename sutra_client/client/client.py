"""High-level client facade.

``SutraClient`` wires one :class:`EventEmitter`, :class:`KeysRepository`,
:class:`ProviderRegistry`, :class:`MiddlewarePipeline`, optional
:class:`MemoryCache` and a :class:`RequestExecutor` together and exposes the
public surface: chat, streaming and embedding calls, batch, templates, middleware, keys,
provider management, health projections, cache management and events.

Usage::

    async with SutraClient() as client:
        client.set_key("openai", "sk-...")
        text = await client.complete("Say hi", provider="openai")
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..base.cache import CacheStats, MemoryCache
from ..base.dto.client_config import ClientConfig
from ..base.dto.provider_config import ProviderConfig
from ..base.errors import ErrorCode, SutraError, TemplateError
from ..base.events import EventEmitter, EventListener, EventType
from ..base.http import aclose_all_clients
from ..base.interfaces import CacheStore, ProviderConstructor, ProviderPlugin
from ..base.logging import get_logger, log_event
from ..base.metrics import ProviderHealthSnapshot
from ..base.middleware import Middleware, MiddlewarePipeline
from ..base.models import (
    ChatRequest,
    ChatResponse,
    ChatStreamDelta,
    EmbeddingRequest,
    EmbeddingResponse,
    Message,
    ModelInfo,
)
from ..base.registry import ProviderRegistry, WarmupResult
from ..base.repositories.keys import KeysRepository
from ..base.resilience.circuit_breaker import CircuitState
from ..base.streaming import StreamProgress
from ..config.defaults import WARMUP_DEFAULT_TIMEOUT_SECONDS
from .batch import BatchRequest, BatchResponse, run_batch
from .executor import RequestExecutor
from .templates import PromptTemplate

_logger = get_logger("sutra.client")

FALLBACK_DEFAULT_PROVIDER = "openai"


class SutraClient:
    """Unified multi-provider chat client.

    Parameters
    ----------
    config:
        :class:`ClientConfig` or a mapping validated into one.
    middleware:
        Middleware added to the pipeline at construction.
    keys:
        Credential store; defaults to one with environment fallback.
    cache:
        Custom :class:`CacheStore`; by default a :class:`MemoryCache` is built
        from ``config.cache`` (``None`` disables caching).
    """

    def __init__(
        self,
        config: Union[ClientConfig, Mapping[str, Any], None] = None,
        *,
        middleware: Iterable[Middleware] = (),
        keys: Optional[KeysRepository] = None,
        cache: Optional[CacheStore] = None,
    ) -> None:
        if config is None:
            config = ClientConfig()
        elif not isinstance(config, ClientConfig):
            config = ClientConfig.model_validate(dict(config))
        self.config = config
        self.events = EventEmitter()
        self.keys = keys or KeysRepository()
        self.registry = ProviderRegistry(
            events=self.events,
            keys=self.keys,
            provider_configs=config.providers,
            breaker_config=config.circuit_breaker,
            health_window=config.health_window,
        )
        self.pipeline = MiddlewarePipeline(middleware)
        cache_ttl = config.cache.ttl_seconds if config.cache is not None else None
        if cache is None and config.cache is not None and config.cache.enabled:
            cache = MemoryCache(
                max_entries=config.cache.max_entries,
                max_size_bytes=config.cache.max_size_bytes,
                default_ttl=cache_ttl,
            )
        self.cache = cache
        self.executor = RequestExecutor(
            self.registry,
            self.pipeline,
            self.events,
            cache=cache,
            cache_ttl=cache_ttl,
            deduplicate=config.deduplicate_requests,
            stream_limits=config.stream,
        )
        self._templates: Dict[str, PromptTemplate] = {}
        self._closed = False

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SutraError(ErrorCode.VALIDATION, "Client has been closed. Create a new instance.", retryable=False)

    async def aclose(self) -> None:
        """Release adapters, pooled HTTP clients, cache, listeners and templates."""
        if self._closed:
            return
        self._closed = True
        await self.registry.clear_cache()
        await aclose_all_clients()
        if self.cache is not None and hasattr(self.cache, "clear"):
            self.cache.clear()
        self.events.remove_all_listeners()
        self.pipeline.clear()
        self._templates.clear()
        log_event(_logger, "client.closed")

    async def __aenter__(self) -> "SutraClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Keys
    # ------------------------------------------------------------------ #
    def set_key(self, provider: str, api_key: str) -> None:
        self._ensure_open()
        self.keys.set_key(provider, api_key)

    def remove_key(self, provider: str) -> bool:
        return self.keys.remove_key(provider)

    def has_key(self, provider: str) -> bool:
        return self.keys.has_key(provider)

    # ------------------------------------------------------------------ #
    # Middleware
    # ------------------------------------------------------------------ #
    def use(self, middleware: Middleware) -> "SutraClient":
        self._ensure_open()
        self.pipeline.add(middleware)
        return self

    def remove_middleware(self, name: str) -> bool:
        return self.pipeline.remove(name)

    def toggle_middleware(self, name: str, enabled: bool) -> bool:
        return self.pipeline.toggle(name, enabled)

    def list_middleware(self) -> List[str]:
        return self.pipeline.names()

    # ------------------------------------------------------------------ #
    # Chat
    # ------------------------------------------------------------------ #
    async def chat(self, request: ChatRequest) -> ChatResponse:
        self._ensure_open()
        return await self.executor.chat(request)

    def chat_stream(
        self,
        request: ChatRequest,
        *,
        timeout: Optional[float] = None,
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None,
        on_progress: Optional[Callable[[StreamProgress], None]] = None,
    ) -> AsyncIterator[ChatStreamDelta]:
        self._ensure_open()
        return self.executor.chat_stream(
            request, timeout=timeout, max_chunks=max_chunks, max_tokens=max_tokens, on_progress=on_progress
        )

    async def chat_stream_collect(
        self,
        request: ChatRequest,
        *,
        timeout: Optional[float] = None,
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None,
        on_progress: Optional[Callable[[StreamProgress], None]] = None,
    ) -> ChatResponse:
        self._ensure_open()
        return await self.executor.chat_stream_collect(
            request, timeout=timeout, max_chunks=max_chunks, max_tokens=max_tokens, on_progress=on_progress
        )

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Create embeddings through the provider's circuit breaker.

        The call bypasses the middleware pipeline, cache and deduplication.

        Raises
        ------
        SutraError
            ``VALIDATION`` when the provider does not offer embeddings.
        """
        self._ensure_open()
        adapter = self.registry.get_provider(request.provider)
        embed = getattr(adapter, "embed", None)
        if embed is None or not adapter.supports("embeddings"):
            raise SutraError(
                ErrorCode.VALIDATION,
                f"Provider '{request.provider}' does not support embeddings",
                provider=request.provider,
                model=request.model,
                retryable=False,
            )
        return await self.registry.execute_with_circuit_breaker(request.provider, lambda: embed(request))

    def _simple_request(
        self,
        prompt: str,
        provider: Optional[str],
        model: Optional[str],
        system: Optional[str],
        **sampling: Any,
    ) -> ChatRequest:
        provider = provider or self.config.default_provider or FALLBACK_DEFAULT_PROVIDER
        if model is None and provider == self.config.default_provider:
            model = self.config.default_model
        if model is None:
            model = self.registry.get_provider_config(provider).default_model
        if not model:
            raise SutraError(
                ErrorCode.VALIDATION,
                f"No model given and provider '{provider}' has no default model",
                provider=provider,
                retryable=False,
            )
        messages = [Message(role="system", content=system)] if system else []
        messages.append(Message(role="user", content=prompt))
        return ChatRequest(provider=provider, model=model, messages=messages, **sampling)

    async def complete(
        self,
        prompt: str,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Single-prompt shorthand returning the first choice's text."""
        self._ensure_open()
        request = self._simple_request(
            prompt, provider, model, system, temperature=temperature, max_tokens=max_tokens
        )
        response = await self.executor.chat(request)
        return response.text

    async def complete_stream(
        self,
        prompt: str,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Streaming shorthand yielding text pieces of choice 0."""
        self._ensure_open()
        request = self._simple_request(
            prompt, provider, model, system, temperature=temperature, max_tokens=max_tokens
        )
        stream = self.executor.chat_stream(request)
        try:
            async for chunk in stream:
                for choice in chunk.choices:
                    if choice.index == 0 and choice.delta.content:
                        yield choice.delta.content
        finally:
            await stream.aclose()

    async def batch(self, batch: BatchRequest) -> BatchResponse:
        self._ensure_open()
        return await run_batch(batch, self.executor.chat, events=self.events)

    # ------------------------------------------------------------------ #
    # Templates
    # ------------------------------------------------------------------ #
    def register_template(self, template: PromptTemplate) -> "SutraClient":
        self._ensure_open()
        self._templates[template.name] = template
        return self

    def remove_template(self, name: str) -> bool:
        return self._templates.pop(name, None) is not None

    def list_templates(self) -> List[str]:
        return list(self._templates)

    async def execute_template(
        self, name: str, variables: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> ChatResponse:
        """Render template ``name`` and run it; ``overrides`` are ``ChatRequest`` fields."""
        self._ensure_open()
        template = self._templates.get(name)
        if template is None:
            raise TemplateError(f"Template '{name}' not found")
        messages = template.render(variables or {})
        provider = overrides.pop("provider", None) or template.provider or self.config.default_provider
        provider = provider or FALLBACK_DEFAULT_PROVIDER
        model = overrides.pop("model", None) or template.model
        if model is None:
            model = self.registry.get_provider_config(provider).default_model
        fields = {**template.options, **overrides}
        return await self.executor.chat(ChatRequest(provider=provider, model=model or "", messages=messages, **fields))

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #
    def register_provider(
        self, name: str, constructor: ProviderConstructor, default_config: Optional[ProviderConfig] = None
    ) -> None:
        self._ensure_open()
        self.registry.register_provider(name, constructor, default_config)

    def register_plugin(self, plugin: ProviderPlugin) -> None:
        self._ensure_open()
        self.registry.register_plugin(plugin)

    def unregister_provider(self, name: str) -> bool:
        return self.registry.unregister_provider(name)

    def configure_provider(self, name: str, config: ProviderConfig) -> None:
        self._ensure_open()
        self.registry.set_provider_config(name, config)

    def list_providers(self) -> List[str]:
        return self.registry.list_providers()

    async def list_models(self, provider: str) -> List[ModelInfo]:
        self._ensure_open()
        return await self.registry.list_models(provider)

    async def list_all_models(self, providers: Optional[Iterable[str]] = None) -> Dict[str, List[ModelInfo]]:
        self._ensure_open()
        return await self.registry.list_all_models(providers)

    def supports_feature(self, provider: str, feature: str) -> bool:
        return self.registry.supports_feature(provider, feature)

    def get_provider_health(self, provider: str) -> ProviderHealthSnapshot:
        return self.registry.get_provider_health(provider)

    def get_all_provider_health(self) -> Dict[str, ProviderHealthSnapshot]:
        return self.registry.get_all_provider_health()

    def get_circuit_state(self, provider: str) -> CircuitState:
        return self.registry.get_circuit_state(provider)

    def reset_circuit(self, provider: str) -> None:
        self.registry.reset_circuit(provider)

    async def warmup(
        self, providers: Optional[Iterable[str]] = None, *, timeout: float = WARMUP_DEFAULT_TIMEOUT_SECONDS
    ) -> Dict[str, WarmupResult]:
        self._ensure_open()
        return await self.registry.warmup(providers, timeout=timeout)

    # ------------------------------------------------------------------ #
    # Cache
    # ------------------------------------------------------------------ #
    def clear_cache(self) -> None:
        if self.cache is not None and hasattr(self.cache, "clear"):
            self.cache.clear()

    def cache_stats(self) -> Optional[CacheStats]:
        stats = getattr(self.cache, "stats", None)
        return stats() if callable(stats) else None

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #
    def on(self, event_type: EventType, listener: EventListener) -> Callable[[], None]:
        return self.events.on(event_type, listener)

    def on_all(self, listener: EventListener) -> Callable[[], None]:
        return self.events.on_all(listener)

    def off(self, event_type: EventType, listener: EventListener) -> bool:
        return self.events.off(event_type, listener)


__all__ = ["SutraClient"]
