"""ProviderAdapter Protocol (single-class module).

Defines the capability interface every provider adapter implements. Adapters
are sibling implementations of this protocol, not subclasses of a shared
base; the registry resolves a name to a constructor and calls through it.
"""

from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, List, Protocol, runtime_checkable

from ..events import EventEmitter
from ..dto.provider_config import ProviderConfig
from ..models import ChatRequest, ChatResponse, ChatStreamDelta, ModelInfo

CredentialAccessor = Callable[[], Awaitable[str]]

# Feature names understood by ``supports``.
FEATURES = ("streaming", "tools", "vision", "json_mode", "embeddings")


@runtime_checkable
class ProviderAdapter(Protocol):
    """Minimal interface for remote LLM providers.

    Implementations map ``ChatRequest`` to the remote wire format and
    normalize results to ``ChatResponse`` / ``ChatStreamDelta``. Failures
    are raised as ``SutraError`` (adapters classify HTTP/transport errors),
    and ``request.token`` must be honored so cancellation abandons the read.
    Adapters that report ``supports("embeddings")`` also provide an async
    ``embed(EmbeddingRequest) -> EmbeddingResponse``.
    """

    name: str

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Execute a single chat completion request."""
        ...

    def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatStreamDelta]:
        """Return a finite, non-restartable sequence of response fragments."""
        ...

    async def list_models(self) -> List[ModelInfo]:
        """List models offered by the provider (lightweight; used by warmup)."""
        ...

    def supports(self, feature: str) -> bool:
        """Whether the adapter supports a feature from ``FEATURES``."""
        ...


class ProviderConstructor(Protocol):
    """Callable building an adapter from config, event sink and credential accessor."""

    def __call__(
        self,
        config: ProviderConfig,
        events: EventEmitter,
        get_api_key: CredentialAccessor,
    ) -> ProviderAdapter: ...


__all__ = ["CredentialAccessor", "FEATURES", "ProviderAdapter", "ProviderConstructor"]
