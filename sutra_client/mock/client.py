"""Deterministic in-process provider for offline tests and demos.

Purpose
-------
Implement the ``ProviderAdapter`` protocol without network traffic so the
pipeline, registry, executor and accumulator can be exercised end to end.
Replies are looked up by the final user prompt (``"*"`` is the wildcard);
failures can be scripted per call to drive retry, fallback and
circuit-breaker behavior.

External dependencies
---------------------
Standard library only.

Timeout and cancellation semantics
----------------------------------
An optional per-call ``delay`` (and per-fragment ``chunk_delay`` for
streams) is awaited through ``run_cancellable`` so firing
``request.token`` abandons the call exactly like a real network read.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Union

from ..base.cancellation import run_cancellable
from ..base.dto.provider_config import ProviderConfig
from ..base.events import EventEmitter
from ..base.interfaces import CredentialAccessor, ProviderConstructor
from ..base.logging import LogContext, get_logger, normalized_log_event
from ..base.models import (
    ChatChoice,
    ChatRequest,
    ChatResponse,
    ChatStreamDelta,
    DeltaMessage,
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
    Message,
    ModelInfo,
    StreamChoice,
    Usage,
)

DEFAULT_MODEL = "mock-model"
DEFAULT_REPLY = "mock response"
DEFAULT_DIMENSIONS = 8

# A scripted outcome: reply text, a full response, or an exception to raise.
Outcome = Union[str, ChatResponse, BaseException]


class MockProvider:
    """Adapter returning canned replies and scripted failures."""

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        events: Optional[EventEmitter] = None,
        get_api_key: Optional[CredentialAccessor] = None,
        *,
        name: Optional[str] = None,
        responses: Optional[Mapping[str, str]] = None,
        models: Optional[Iterable[str]] = None,
        features: Iterable[str] = ("streaming", "tools", "json_mode"),
        delay: float = 0.0,
        chunk_delay: float = 0.0,
        chunk_size: int = 16,
    ) -> None:
        """Initialize the mock provider.

        Parameters
        ----------
        config, events, get_api_key:
            Standard constructor arguments; all optional so tests can build
            the adapter directly.
        name:
            Provider key; defaults to ``config.name`` or ``"mock"``.
        responses:
            Prompt to reply text. ``"*"`` answers any prompt without a match.
        models:
            Model ids reported by :meth:`list_models`.
        delay / chunk_delay:
            Seconds awaited before replying / before each stream fragment.
        chunk_size:
            Characters per stream fragment when replies are split.
        """
        self.name = name or (config.name if config is not None and config.name else "mock")
        self._config = config
        self._events = events
        self._get_api_key = get_api_key
        self._responses: Dict[str, str] = dict(responses or {})
        self._models = list(models) if models is not None else [DEFAULT_MODEL]
        self._features = frozenset(features)
        self.delay = delay
        self.chunk_delay = chunk_delay
        self._chunk_size = chunk_size
        self._script: Deque[Outcome] = deque()
        self._stream_script: Deque[List[Any]] = deque()
        self._persistent_error: Optional[BaseException] = None
        self._logger = get_logger(f"sutra.mock.{self.name}")
        self.requests: List[ChatRequest] = []
        self.chat_calls = 0
        self.stream_calls = 0
        self.list_models_calls = 0
        self.embed_calls = 0
        self.closed = False

    # ------------------------------------------------------------------
    # Scripting

    def enqueue(self, *outcomes: Outcome) -> "MockProvider":
        """Queue outcomes consumed one per ``chat`` call before the catalog applies."""
        self._script.extend(outcomes)
        return self

    def enqueue_stream(self, fragments: Iterable[Any]) -> "MockProvider":
        """Queue one stream script: text pieces, fragments, or an exception to raise mid-stream."""
        self._stream_script.append(list(fragments))
        return self

    def fail_with(self, error: Optional[BaseException]) -> "MockProvider":
        """Raise ``error`` from every call until cleared with ``fail_with(None)``."""
        self._persistent_error = error
        return self

    def as_constructor(self) -> ProviderConstructor:
        """Return a constructor handing this instance to the registry."""

        def _construct(config: ProviderConfig, events: EventEmitter, get_api_key: CredentialAccessor) -> MockProvider:
            self.name = config.name or self.name
            self._config = config
            self._events = events
            self._get_api_key = get_api_key
            return self

        return _construct

    # ------------------------------------------------------------------
    # ProviderAdapter API

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.chat_calls += 1
        self.requests.append(request)
        model = request.model or self._default_model()
        ctx = LogContext(provider=self.name, model=model)
        normalized_log_event(self._logger, "chat.start", ctx, phase="start", attempt=self.chat_calls)
        if self.delay:
            await run_cancellable(asyncio.sleep(self.delay), request.token)
        elif request.token is not None:
            request.token.raise_if_cancelled()
        outcome = self._next_outcome(request)
        if isinstance(outcome, BaseException):
            raise outcome
        response = outcome if isinstance(outcome, ChatResponse) else self._response(outcome, model)
        normalized_log_event(self._logger, "chat.end", ctx, phase="finalize", tokens=response.usage)
        return response

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[ChatStreamDelta]:
        self.stream_calls += 1
        self.requests.append(request)
        model = request.model or self._default_model()
        if self._persistent_error is not None:
            raise self._persistent_error
        if self._stream_script:
            pieces = self._stream_script.popleft()
        else:
            pieces = _chunk_text(self._reply_for(request), self._chunk_size)
        stream_id = f"mockstream-{self.stream_calls}"
        created = int(time.time())
        for position, piece in enumerate(pieces):
            if self.chunk_delay:
                await run_cancellable(asyncio.sleep(self.chunk_delay), request.token)
            elif request.token is not None:
                request.token.raise_if_cancelled()
            if isinstance(piece, BaseException):
                raise piece
            if isinstance(piece, ChatStreamDelta):
                yield piece
                continue
            yield ChatStreamDelta(
                id=stream_id,
                model=model,
                provider=self.name,
                created=created,
                choices=[
                    StreamChoice(
                        index=0,
                        delta=DeltaMessage(role="assistant" if position == 0 else None, content=str(piece)),
                    )
                ],
            )
        yield ChatStreamDelta(
            id=stream_id,
            model=model,
            provider=self.name,
            created=created,
            choices=[StreamChoice(index=0, delta=DeltaMessage(), finish_reason="stop")],
            usage=Usage(prompt_tokens=1, completion_tokens=len(pieces), total_tokens=1 + len(pieces)),
        )

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Return deterministic vectors: equal inputs always embed equally."""
        self.embed_calls += 1
        if self.delay:
            await run_cancellable(asyncio.sleep(self.delay), request.token)
        if self._persistent_error is not None:
            raise self._persistent_error
        size = request.dimensions or DEFAULT_DIMENSIONS
        inputs = request.inputs
        tokens = sum(len(text.split()) for text in inputs)
        return EmbeddingResponse(
            model=request.model or self._default_model(),
            provider=self.name,
            data=[EmbeddingData(index=i, embedding=_vector_for(text, size)) for i, text in enumerate(inputs)],
            usage=Usage(prompt_tokens=tokens, total_tokens=tokens),
        )

    async def list_models(self) -> List[ModelInfo]:
        self.list_models_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._persistent_error is not None:
            raise self._persistent_error
        return [ModelInfo(id=m, provider=self.name, name=m, capabilities=sorted(self._features)) for m in self._models]

    def supports(self, feature: str) -> bool:
        return feature in self._features

    async def aclose(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    # Helpers

    def _default_model(self) -> str:
        if self._config is not None and self._config.default_model:
            return self._config.default_model
        return self._models[0] if self._models else DEFAULT_MODEL

    def _next_outcome(self, request: ChatRequest) -> Outcome:
        if self._script:
            return self._script.popleft()
        if self._persistent_error is not None:
            return self._persistent_error
        return self._reply_for(request)

    def _reply_for(self, request: ChatRequest) -> str:
        prompt = _extract_prompt(request)
        return self._responses.get(prompt) or self._responses.get("*") or DEFAULT_REPLY

    def _response(self, text: str, model: str) -> ChatResponse:
        completion = max(1, len(text.split()))
        return ChatResponse(
            id=f"mock-{self.chat_calls}",
            model=model,
            provider=self.name,
            choices=[ChatChoice(index=0, message=Message(role="assistant", content=text), finish_reason="stop")],
            usage=Usage(prompt_tokens=1, completion_tokens=completion, total_tokens=1 + completion),
            created=int(time.time()),
        )


def _chunk_text(text: str, chunk_size: int = 16) -> List[str]:
    if not text:
        return []
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def _vector_for(text: str, size: int) -> List[float]:
    return [((sum(ord(c) * (i + 1) for c in text) + i) % 1000) / 1000.0 for i in range(size)]


def _extract_prompt(request: ChatRequest) -> str:
    """Return the final user message text, or ``"*"`` when there is none."""
    for message in reversed(request.messages):
        if message.role == "user":
            return message.text().strip() or "*"
    return "*"


def mock_factory(**kwargs: Any) -> Callable[[ProviderConfig, EventEmitter, CredentialAccessor], MockProvider]:
    """Return a constructor that builds a fresh :class:`MockProvider` per registration."""

    def _construct(config: ProviderConfig, events: EventEmitter, get_api_key: CredentialAccessor) -> MockProvider:
        return MockProvider(config, events, get_api_key, **kwargs)

    return _construct


__all__ = ["DEFAULT_MODEL", "DEFAULT_REPLY", "MockProvider", "mock_factory"]
