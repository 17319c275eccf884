"""Request executor: one logical chat call from pipeline to provider and back.

Purpose
-------
Orchestrate a call through the middleware pipeline, the response cache, the
in-flight deduplication table and the registry's breaker-protected
invocation path, then route failures through the pipeline's error phase and
act on the retry/fallback signals it leaves in the scratchpad.

Flow (non-streaming)
--------------------
request phase → cache lookup → dedup check → registry call → timing →
cache store → response phase. The cache holds the provider response, so a
cache hit runs the response phase exactly like a fresh call. Identical
concurrent calls share one underlying provider call; each caller then runs
the response phase on its own copy and context. The entry leaves the table
as soon as the shared call settles, whatever the outcome.

Failure handling
----------------
Every exception is normalized to :class:`SutraError` and passed through the
error phase. A recovery response is returned as-is. ``should_retry`` sleeps
``retry_delay`` and re-issues the caller's original request; ``should_fallback``
re-issues it with the substituted provider and model. Re-issues carry the
retry attempt and attempted providers so both stay bounded. A fallback starts
a fresh retry budget on the new provider.

Streaming
---------
``chat_stream`` runs the request phase, streams through the registry and a
:class:`StreamAccumulator`, runs the response phase on the accumulated
response at the end and the error phase on failure. Streams are never
cached, deduplicated, retried or recovered.
"""
from __future__ import annotations

import asyncio
import copy
import dataclasses
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional

from ..base.cache import derive_cache_key
from ..base.cancellation import run_cancellable
from ..base.dto.client_config import StreamLimits
from ..base.errors import CacheKeyError, SutraError, to_sutra_error
from ..base.events import EventEmitter, EventType
from ..base.interfaces import CacheStore
from ..base.logging import get_logger, log_event, normalized_log_event
from ..base.middleware import (
    FALLBACK_MODEL,
    FALLBACK_PROVIDER,
    RETRY_ATTEMPT,
    RETRY_DELAY,
    SHOULD_FALLBACK,
    SHOULD_RETRY,
    MiddlewarePipeline,
    PipelineContext,
)
from ..base.models import ChatRequest, ChatResponse, ChatStreamDelta, Timing
from ..base.registry import ProviderRegistry
from ..base.streaming import StreamAccumulator, StreamProgress

_logger = get_logger("sutra.executor")

DEFAULT_RETRY_DELAY_SECONDS = 1.0


class RequestExecutor:
    """Run chat calls against a registry through a middleware pipeline.

    Parameters
    ----------
    registry:
        Provides adapters and the breaker-protected invocation path.
    pipeline:
        Middleware applied to every call.
    events:
        Sink for request, cache, retry and stream notifications.
    cache:
        Optional response store; ``None`` disables caching.
    cache_ttl:
        TTL in seconds passed to ``cache.set``.
    deduplicate:
        Share one in-flight call between identical concurrent requests.
    stream_limits:
        Defaults for stream timeout and size limits.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        pipeline: MiddlewarePipeline,
        events: EventEmitter,
        *,
        cache: Optional[CacheStore] = None,
        cache_ttl: Optional[float] = None,
        deduplicate: bool = True,
        stream_limits: Optional[StreamLimits] = None,
    ) -> None:
        self.registry = registry
        self.pipeline = pipeline
        self.events = events
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.deduplicate = deduplicate
        self.stream_limits = stream_limits or StreamLimits()
        self._in_flight: Dict[str, "asyncio.Future[ChatResponse]"] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _new_context(self, request: ChatRequest, carry: Optional[Mapping[str, Any]]) -> PipelineContext:
        """Create a call context whose token follows the caller's token while linked."""
        ctx = self.pipeline.create_context(carry)
        if request.token is not None:
            request.token.link_child(ctx.token)
        return ctx

    @staticmethod
    def _release_context(request: ChatRequest, ctx: PipelineContext) -> None:
        if request.token is not None:
            request.token.unlink_child(ctx.token)

    def _derive_key(self, request: ChatRequest, ctx: PipelineContext) -> Optional[str]:
        try:
            return derive_cache_key(request)
        except CacheKeyError as exc:
            log_event(
                _logger,
                "cache.key_failed",
                ctx.log_context(request.provider, request.model),
                error=exc.message,
            )
            return None

    def _emit(self, event_type: EventType, request: ChatRequest, ctx: PipelineContext, **data: Any) -> None:
        self.events.emit(
            event_type,
            provider=request.provider,
            model=request.model,
            request_id=ctx.request_id,
            **data,
        )

    def _store(self, key: str, response: ChatResponse, request: ChatRequest, ctx: PipelineContext) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, copy.deepcopy(response), self.cache_ttl)
        except Exception as exc:
            log_event(
                _logger,
                "cache.write_failed",
                ctx.log_context(request.provider, request.model),
                error=str(exc),
            )
            return
        self._emit(EventType.CACHE_SET, request, ctx)

    # ------------------------------------------------------------------ #
    # Non-streaming
    # ------------------------------------------------------------------ #
    async def chat(self, request: ChatRequest, *, carry: Optional[Mapping[str, Any]] = None) -> ChatResponse:
        """Execute one logical chat call (see module docstring)."""
        original = request
        ctx = self._new_context(request, carry)
        request = dataclasses.replace(request, stream=False, token=ctx.token)
        self._emit(EventType.REQUEST_START, request, ctx, attempt=ctx.data.get(RETRY_ATTEMPT, 0))
        try:
            processed = await self.pipeline.run_request_phase(request, ctx)
            key: Optional[str] = None
            use_cache = self.cache is not None and not processed.skip_cache
            if use_cache or self.deduplicate:
                key = self._derive_key(processed, ctx)
            cache_key = key if use_cache else None

            if cache_key is not None:
                cached = self.cache.get(cache_key)
                if cached is not None:
                    self._emit(EventType.CACHE_HIT, processed, ctx)
                    return await self._finish(copy.deepcopy(cached), processed, ctx, cached=True)
                self._emit(EventType.CACHE_MISS, processed, ctx)

            if self.deduplicate and key is not None:
                shared = self._in_flight.get(key)
                if shared is None:
                    shared = asyncio.ensure_future(self._invoke(processed, ctx, cache_key))
                    self._in_flight[key] = shared
                    shared.add_done_callback(lambda t, k=key: self._settle_in_flight(k, t))
                    deduplicated = False
                else:
                    log_event(_logger, "request.deduplicated", ctx.log_context(processed.provider, processed.model))
                    deduplicated = True
                # Every caller gets its own copy for its own response phase.
                response = copy.deepcopy(await asyncio.shield(shared))
                return await self._finish(response, processed, ctx, deduplicated=deduplicated)

            response = await self._invoke(processed, ctx, cache_key)
            return await self._finish(response, processed, ctx)
        except Exception as exc:
            return await self._handle_error(exc, original, request, ctx)
        finally:
            self._release_context(original, ctx)

    def _settle_in_flight(self, key: str, task: "asyncio.Future[ChatResponse]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the outcome retrieved; every waiter re-raises it on its own.
            task.exception()

    async def _invoke(self, request: ChatRequest, ctx: PipelineContext, cache_key: Optional[str]) -> ChatResponse:
        """Make the provider call once and store the timed response; shared by deduplicated callers."""
        adapter = self.registry.get_provider(request.provider)
        response = await self.registry.execute_with_circuit_breaker(
            request.provider, lambda: adapter.chat(request)
        )
        end = time.time()
        response = dataclasses.replace(
            response,
            timing=Timing(
                start_ms=ctx.start_time * 1000.0,
                end_ms=end * 1000.0,
                duration_ms=ctx.elapsed_ms(),
            ),
        )
        if cache_key is not None:
            self._store(cache_key, response, request, ctx)
        return response

    async def _finish(
        self, response: ChatResponse, request: ChatRequest, ctx: PipelineContext, **data: Any
    ) -> ChatResponse:
        final = await self.pipeline.run_response_phase(response, ctx)
        self._emit(
            EventType.REQUEST_END,
            request,
            ctx,
            duration_ms=ctx.elapsed_ms(),
            tokens=final.usage.total_tokens if final.usage else None,
            **data,
        )
        return final

    async def _handle_error(
        self,
        exc: Exception,
        original: ChatRequest,
        request: ChatRequest,
        ctx: PipelineContext,
    ) -> ChatResponse:
        error = to_sutra_error(exc, provider=request.provider, model=request.model, request_id=ctx.request_id)
        self._emit(EventType.REQUEST_ERROR, request, ctx, code=error.kind, retryable=error.retryable)
        result = await self.pipeline.run_error_phase(error, ctx)
        if isinstance(result, ChatResponse):
            return result

        if ctx.data.get(SHOULD_RETRY) and not original.no_retry:
            attempt = ctx.data.get(RETRY_ATTEMPT, 1)
            delay = float(ctx.data.get(RETRY_DELAY, DEFAULT_RETRY_DELAY_SECONDS))
            normalized_log_event(
                _logger,
                "request.retry",
                ctx.log_context(request.provider, request.model),
                phase="retry",
                attempt=attempt,
                error_code=result.kind,
                delay=delay,
            )
            self._emit(EventType.REQUEST_RETRY, request, ctx, attempt=attempt, delay=delay, code=result.kind)
            await run_cancellable(asyncio.sleep(delay), original.token)
            return await self.chat(original, carry=ctx.carry())

        if ctx.data.get(SHOULD_FALLBACK) and not original.no_retry:
            provider = ctx.data[FALLBACK_PROVIDER]
            model = ctx.data.get(FALLBACK_MODEL) or original.model
            normalized_log_event(
                _logger,
                "request.fallback",
                ctx.log_context(request.provider, request.model),
                phase="fallback",
                error_code=result.kind,
                fallback_provider=provider,
                fallback_model=model,
            )
            self._emit(EventType.REQUEST_FALLBACK, request, ctx, to_provider=provider, to_model=model)
            carry = ctx.carry()
            carry.pop(RETRY_ATTEMPT, None)
            return await self.chat(dataclasses.replace(original, provider=provider, model=model), carry=carry)

        if result is exc:
            raise result
        raise result from exc

    # ------------------------------------------------------------------ #
    # Streaming
    # ------------------------------------------------------------------ #
    def chat_stream(
        self,
        request: ChatRequest,
        *,
        timeout: Optional[float] = None,
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None,
        on_progress: Optional[Callable[[StreamProgress], None]] = None,
    ) -> AsyncIterator[ChatStreamDelta]:
        """Stream fragments of one call; see :meth:`chat_stream_collect` for the folded form."""
        return self._stream(
            request,
            timeout=timeout,
            max_chunks=max_chunks,
            max_tokens=max_tokens,
            on_progress=on_progress,
            sink=None,
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
        """Stream one call to completion and return the response-phase result."""
        sink: List[ChatResponse] = []
        stream = self._stream(
            request,
            timeout=timeout,
            max_chunks=max_chunks,
            max_tokens=max_tokens,
            on_progress=on_progress,
            sink=sink,
        )
        try:
            async for _ in stream:
                pass
        finally:
            await stream.aclose()
        return sink[0]

    async def _stream(
        self,
        request: ChatRequest,
        *,
        timeout: Optional[float],
        max_chunks: Optional[int],
        max_tokens: Optional[int],
        on_progress: Optional[Callable[[StreamProgress], None]],
        sink: Optional[List[ChatResponse]],
    ) -> AsyncIterator[ChatStreamDelta]:
        limits = self.stream_limits
        caller = request
        ctx = self._new_context(request, None)
        request = dataclasses.replace(request, stream=True, token=ctx.token)
        accumulator: Optional[StreamAccumulator] = None
        fragments: Optional[AsyncIterator[ChatStreamDelta]] = None
        try:
            processed = await self.pipeline.run_request_phase(request, ctx)
            adapter = self.registry.get_provider(processed.provider)
            accumulator = StreamAccumulator(
                request_id=ctx.request_id,
                provider=processed.provider,
                model=processed.model,
                events=self.events,
                token=ctx.token,
                timeout=timeout if timeout is not None else limits.timeout_seconds,
                max_chunks=max_chunks if max_chunks is not None else limits.max_chunks,
                max_tokens=max_tokens if max_tokens is not None else limits.max_tokens,
                on_progress=on_progress,
            )
            self._emit(EventType.STREAM_START, processed, ctx)
            source = self.registry.stream_with_circuit_breaker(
                processed.provider, lambda: adapter.chat_stream(processed)
            )
            fragments = accumulator.iterate(source)
            async for chunk in fragments:
                yield chunk
            final = await self.pipeline.run_response_phase(accumulator.get_response(), ctx)
            stats = accumulator.stats()
            self._emit(
                EventType.STREAM_END,
                processed,
                ctx,
                chunks=stats.chunk_count,
                duration_ms=stats.total_duration_ms,
                tokens=final.usage.total_tokens if final.usage else None,
            )
            if sink is not None:
                sink.append(final)
        except Exception as exc:
            error = to_sutra_error(exc, provider=request.provider, model=request.model, request_id=ctx.request_id)
            self._emit(EventType.STREAM_ERROR, request, ctx, code=error.kind)
            result = await self.pipeline.run_error_phase(error, ctx)
            if isinstance(result, ChatResponse) or result is error:
                if error is exc:
                    raise
                raise error from exc
            raise result from exc
        finally:
            if fragments is not None:
                await fragments.aclose()
            if accumulator is not None:
                accumulator.cleanup()
            self._release_context(caller, ctx)


__all__ = ["RequestExecutor"]
