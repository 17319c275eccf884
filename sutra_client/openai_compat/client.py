"""OpenAI-compatible provider adapter.

Purpose:
    Implements chat, streaming, embeddings and model listing against any
    endpoint that speaks the OpenAI ``/chat/completions`` wire format. Every built-in
    provider (OpenAI, Groq, Mistral, Together, Fireworks, Perplexity,
    DeepSeek, xAI, OpenRouter, Ollama) is an instance of this adapter with a
    different :class:`ProviderConfig`.

External dependencies:
    - HTTP client only (``httpx``); no vendor SDK. Pooled clients come from
      :func:`sutra_client.base.http.get_async_client` unless one is injected.

Timeout strategy:
    - Network timeouts come from ``config.timeout_seconds`` or the shared
      :func:`get_timeout_config`. No other numeric timeouts are introduced.
    - ``request.token`` is bridged onto the in-flight read so cancellation
      abandons it immediately; streams also check the token per line.

Retries and error handling:
    - None here. Non-2xx responses become :class:`SutraError` via
      ``error_from_status`` (``Retry-After`` is honored); transport failures
      are classified with ``to_sutra_error``. Retry and fallback decisions
      belong to the middleware pipeline.
    - Structured logging uses ``normalized_log_event``.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, FrozenSet, List, Optional

import httpx

from ..base.cancellation import CancelledError, run_cancellable
from ..base.dto.provider_config import ProviderConfig
from ..base.errors import ErrorCode, SutraError, to_sutra_error
from ..base.events import EventEmitter, EventType
from ..base.http import get_async_client
from ..base.interfaces import CredentialAccessor
from ..base.logging import LogContext, get_logger, normalized_log_event
from ..base.models import (
    ChatRequest,
    ChatResponse,
    ChatStreamDelta,
    EmbeddingRequest,
    EmbeddingResponse,
    ModelInfo,
)
from .helpers import (
    SSE_DONE,
    build_embedding_payload,
    build_payload,
    delta_from_payload,
    embedding_from_payload,
    models_from_payload,
    parse_sse_line,
    response_from_payload,
    status_error,
    stream_error_from_payload,
)

_logger = get_logger("sutra.openai_compat")

_DEFAULT_FEATURES: FrozenSet[str] = frozenset({"streaming", "tools", "json_mode"})
_PROVIDER_FEATURES = {
    "openai": frozenset({"streaming", "tools", "vision", "json_mode", "embeddings"}),
    "mistral": frozenset({"streaming", "tools", "json_mode", "embeddings"}),
    "together": frozenset({"streaming", "tools", "json_mode", "embeddings"}),
    "perplexity": frozenset({"streaming"}),
    "ollama": frozenset({"streaming", "tools", "json_mode", "embeddings"}),
    "xai": frozenset({"streaming", "tools", "vision", "json_mode"}),
    "openrouter": frozenset({"streaming", "tools", "vision", "json_mode"}),
}


class OpenAICompatibleProvider:
    """Adapter for OpenAI-style chat completion endpoints.

    ``config.extra`` keys understood here:

    - ``features``: iterable overriding the feature set reported by
      :meth:`supports`.
    - ``chat_path`` / ``models_path`` / ``embeddings_path``: endpoint paths
      relative to ``base_url`` (default ``/chat/completions``, ``/models``
      and ``/embeddings``).
    """

    def __init__(
        self,
        config: ProviderConfig,
        events: EventEmitter,
        get_api_key: CredentialAccessor,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.name = config.name or "openai"
        self._config = config
        self._events = events
        self._get_api_key = get_api_key
        self._client = client
        features = config.extra.get("features")
        self._features = (
            frozenset(features) if features is not None else _PROVIDER_FEATURES.get(self.name, _DEFAULT_FEATURES)
        )
        self._chat_path = str(config.extra.get("chat_path", "/chat/completions"))
        self._models_path = str(config.extra.get("models_path", "/models"))
        self._embeddings_path = str(config.extra.get("embeddings_path", "/embeddings"))

    def _http(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return get_async_client(self._config.base_url, self.name, timeout=self._config.timeout_seconds)

    async def _headers(self) -> dict:
        headers = dict(self._config.headers)
        if self._config.requires_key:
            headers["Authorization"] = f"Bearer {await self._get_api_key()}"
        return headers

    def _model(self, request: ChatRequest) -> str:
        return request.model or self._config.default_model or ""

    def _raise_for_status(self, error: SutraError) -> None:
        if error.code is ErrorCode.RATE_LIMIT:
            self._events.emit(
                EventType.RATE_LIMITED,
                provider=self.name,
                model=error.model,
                retry_after=error.retry_after,
            )
        raise error

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Execute a non-streaming chat completion.

        Raises:
            SutraError: classified HTTP or transport failure.
            CancelledError: ``request.token`` fired before the response arrived.
        """
        model = self._model(request)
        ctx = LogContext(provider=self.name, model=model)
        normalized_log_event(_logger, "chat.start", ctx, phase="start", level=logging.DEBUG)
        started = time.perf_counter()
        headers = await self._headers()
        payload = build_payload(request, model=model, stream=False)
        try:
            response = await run_cancellable(
                self._http().post(self._chat_path, json=payload, headers=headers), request.token
            )
        except (SutraError, CancelledError):
            raise
        except httpx.HTTPError as exc:
            raise to_sutra_error(exc, provider=self.name, model=model) from exc
        if response.status_code >= 400:
            error = status_error(response, response.text, provider=self.name, model=model)
            normalized_log_event(
                _logger,
                "chat.error",
                ctx,
                phase="finalize",
                error_code=error.kind,
                level=logging.WARNING,
                status=response.status_code,
            )
            self._raise_for_status(error)
        result = response_from_payload(response.json(), provider=self.name, model=model)
        normalized_log_event(
            _logger,
            "chat.end",
            ctx,
            phase="finalize",
            tokens=result.usage,
            level=logging.DEBUG,
            latency_ms=round((time.perf_counter() - started) * 1000.0, 2),
        )
        return result

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatStreamDelta]:
        """Stream a chat completion as normalized fragments.

        The generator ends at the ``[DONE]`` sentinel or when the server
        closes the body. Closing it early releases the HTTP response.
        """
        model = self._model(request)
        ctx = LogContext(provider=self.name, model=model)
        token = request.token
        headers = await self._headers()
        payload = build_payload(request, model=model, stream=True)
        normalized_log_event(_logger, "stream.start", ctx, phase="start", level=logging.DEBUG)
        emitted = 0
        try:
            async with self._http().stream("POST", self._chat_path, json=payload, headers=headers) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self._raise_for_status(status_error(response, body, provider=self.name, model=model))
                async for line in response.aiter_lines():
                    if token is not None:
                        token.raise_if_cancelled()
                    data = parse_sse_line(line)
                    if data is None:
                        continue
                    if data == SSE_DONE:
                        break
                    error = stream_error_from_payload(data, provider=self.name, model=model)
                    if error is not None:
                        raise error
                    emitted += 1
                    yield delta_from_payload(data, provider=self.name, model=model)
        except (SutraError, CancelledError):
            raise
        except httpx.HTTPError as exc:
            raise to_sutra_error(exc, provider=self.name, model=model) from exc
        normalized_log_event(
            _logger, "stream.end", ctx, phase="finalize", level=logging.DEBUG, emitted_count=emitted
        )

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Create embeddings for ``request.input`` via the embeddings endpoint."""
        model = request.model or self._config.default_model or ""
        headers = await self._headers()
        payload = build_embedding_payload(request, model=model)
        try:
            response = await run_cancellable(
                self._http().post(self._embeddings_path, json=payload, headers=headers), request.token
            )
        except (SutraError, CancelledError):
            raise
        except httpx.HTTPError as exc:
            raise to_sutra_error(exc, provider=self.name, model=model) from exc
        if response.status_code >= 400:
            self._raise_for_status(status_error(response, response.text, provider=self.name, model=model))
        result = embedding_from_payload(response.json(), provider=self.name, model=model)
        normalized_log_event(
            _logger,
            "embed.end",
            LogContext(provider=self.name, model=model),
            phase="finalize",
            tokens=result.usage,
            level=logging.DEBUG,
            emitted_count=len(result.data),
        )
        return result

    async def list_models(self) -> List[ModelInfo]:
        headers = await self._headers()
        try:
            response = await self._http().get(self._models_path, headers=headers)
        except httpx.HTTPError as exc:
            raise to_sutra_error(exc, provider=self.name) from exc
        if response.status_code >= 400:
            self._raise_for_status(status_error(response, response.text, provider=self.name, model=""))
        return models_from_payload(response.json(), provider=self.name)

    def supports(self, feature: str) -> bool:
        return feature in self._features

    async def aclose(self) -> None:
        """Close an injected client. Pooled clients are closed by the client facade."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


__all__ = ["OpenAICompatibleProvider"]
