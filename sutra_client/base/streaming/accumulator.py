"""Fold a streamed fragment sequence into one response.

Purpose
-------
``StreamAccumulator`` owns the state of one streaming call: per-choice
text, role, tool-call fragments and finish reason, cumulative usage, chunk
count and timing. It enforces the optional timeout, fragment-count and token
limits and tears its resources down exactly once.

Lifecycle
---------
``accumulating`` → ``completed`` (source exhausted) or ``aborted``
(cancellation token fired, timeout timer fired, or a limit was hit).
``cleanup()`` detaches the cancellation listener, cancels the timeout timer
and drops accumulated state; it is idempotent and the context-manager forms
guarantee it runs on every exit path.

``iterate(source)`` drives a fragment source and abandons the in-flight read
as soon as an abort fires, then raises :class:`StreamAbortedError`.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..cancellation import CancellationToken
from ..errors import StreamAbortedError
from ..events import EventEmitter, EventType
from ..logging import LogContext, get_logger, log_event
from ..models import (
    ChatChoice,
    ChatResponse,
    ChatStreamDelta,
    FunctionCall,
    Message,
    StreamChoice,
    Timing,
    ToolCall,
    ToolCallDelta,
    Usage,
)

_logger = get_logger("sutra.streaming")


class AccumulatorState(str, Enum):
    ACCUMULATING = "accumulating"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StreamProgress:
    chunk_count: int
    total_tokens: int
    content_length: int
    duration_ms: float
    tokens_per_second: float


@dataclass(frozen=True)
class StreamStats:
    chunk_count: int
    total_duration_ms: float
    average_chunk_size: float
    tokens_per_second: float
    time_to_first_token_ms: Optional[float] = None
    time_to_last_token_ms: Optional[float] = None


@dataclass
class _ChoiceState:
    content: str = ""
    role: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None


class StreamAccumulator:
    """Accumulate fragments of one streaming call.

    Args:
        request_id: Id of the owning call; also used for a synthetic response id.
        provider / model: Defaults reported until a fragment names a model.
        events: Optional sink for ``stream:chunk`` and ``stream:abort``.
        token: Cancellation token; firing it aborts the stream.
        timeout: Seconds before the stream is aborted (needs a running loop).
        max_chunks: Abort when more fragments than this arrive.
        max_tokens: Abort when reported total tokens exceed this.
        on_chunk / on_progress: Per-fragment callbacks.
        clock: Wall clock in seconds.
    """

    def __init__(
        self,
        *,
        request_id: str,
        provider: str,
        model: str,
        events: Optional[EventEmitter] = None,
        token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None,
        on_chunk: Optional[Callable[[ChatStreamDelta], None]] = None,
        on_progress: Optional[Callable[[StreamProgress], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.request_id = request_id
        self.provider = provider
        self._events = events
        self._max_chunks = max_chunks
        self._max_tokens = max_tokens
        self._on_chunk = on_chunk
        self._on_progress = on_progress
        self._clock = clock

        self._state = AccumulatorState.ACCUMULATING
        self._abort_reason: Optional[str] = None
        self._cleaned = False
        self._aborted_event = asyncio.Event()

        self._id = ""
        self._model = model
        self._choices: Dict[int, _ChoiceState] = {}
        self._usage: Optional[Usage] = None
        self._chunk_count = 0
        self._content_length = 0
        self._start = clock()
        self._end: Optional[float] = None
        self._first_chunk: Optional[float] = None

        self._remove_listener: Optional[Callable[[], None]] = None
        if token is not None:
            self._remove_listener = token.add_listener(
                lambda reason: self.abort(f"cancelled: {reason}" if reason else "cancelled")
            )

        self._timer: Optional[asyncio.TimerHandle] = None
        if timeout is not None and timeout > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._timer = loop.call_later(timeout, self.abort, "Stream timeout exceeded")

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> AccumulatorState:
        return self._state

    @property
    def aborted(self) -> bool:
        return self._state is AccumulatorState.ABORTED

    @property
    def abort_reason(self) -> Optional[str]:
        return self._abort_reason

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def cleaned_up(self) -> bool:
        return self._cleaned

    def current_content(self) -> str:
        """Text accumulated so far for choice 0."""
        choice = self._choices.get(0)
        return choice.content if choice else ""

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def stats(self) -> StreamStats:
        end = self._end if self._end is not None else self._clock()
        duration_ms = (end - self._start) * 1000.0
        tokens = self._usage.total_tokens if self._usage else 0
        return StreamStats(
            chunk_count=self._chunk_count,
            total_duration_ms=duration_ms,
            average_chunk_size=(self._content_length / self._chunk_count) if self._chunk_count else 0.0,
            tokens_per_second=(tokens / duration_ms * 1000.0) if duration_ms > 0 else 0.0,
            time_to_first_token_ms=(self._first_chunk - self._start) * 1000.0 if self._first_chunk else None,
            time_to_last_token_ms=(self._end - self._start) * 1000.0 if self._end else None,
        )

    # ------------------------------------------------------------------ #
    # Accumulation
    # ------------------------------------------------------------------ #
    def process_chunk(self, chunk: ChatStreamDelta) -> None:
        """Merge one fragment; ignored once aborted or cleaned up."""
        if self._state is not AccumulatorState.ACCUMULATING or self._cleaned:
            return
        now = self._clock()
        if self._first_chunk is None:
            self._first_chunk = now
        if self._max_chunks is not None and self._chunk_count >= self._max_chunks:
            self.abort("Maximum chunk count exceeded")
            return
        self._chunk_count += 1
        if chunk.id:
            self._id = chunk.id
        if chunk.model:
            self._model = chunk.model
        if chunk.usage is not None:
            self._usage = chunk.usage
            if self._max_tokens is not None and chunk.usage.total_tokens > self._max_tokens:
                self.abort("Maximum token count exceeded")
                return
        for choice in chunk.choices:
            self._merge_choice(choice)
        self._end = self._clock()

        if self._events is not None:
            self._events.emit(
                EventType.STREAM_CHUNK,
                provider=self.provider,
                model=self._model,
                request_id=self.request_id,
                chunk_index=self._chunk_count - 1,
                content=chunk.text,
            )
        if self._on_chunk is not None:
            self._on_chunk(chunk)
        if self._on_progress is not None:
            duration_ms = (self._end - self._start) * 1000.0
            tokens = self._usage.total_tokens if self._usage else 0
            self._on_progress(
                StreamProgress(
                    chunk_count=self._chunk_count,
                    total_tokens=tokens,
                    content_length=self._content_length,
                    duration_ms=duration_ms,
                    tokens_per_second=(tokens / duration_ms * 1000.0) if duration_ms > 0 else 0.0,
                )
            )

    def _merge_choice(self, choice: StreamChoice) -> None:
        state = self._choices.get(choice.index)
        if state is None:
            state = self._choices[choice.index] = _ChoiceState()
        delta = choice.delta
        if delta.content:
            state.content += delta.content
            self._content_length += len(delta.content)
        if delta.role:
            state.role = delta.role
        if delta.tool_calls:
            for fragment in delta.tool_calls:
                self._merge_tool_call(state.tool_calls, fragment)
        if choice.finish_reason:
            state.finish_reason = choice.finish_reason

    @staticmethod
    def _merge_tool_call(calls: List[ToolCall], fragment: ToolCallDelta) -> None:
        existing: Optional[ToolCall] = None
        if fragment.id:
            existing = next((c for c in calls if c.id == fragment.id), None)
        if existing is None and fragment.index is not None and fragment.index < len(calls):
            existing = calls[fragment.index]
        if existing is None:
            calls.append(
                ToolCall(
                    id=fragment.id or "",
                    type=fragment.type or "function",
                    function=FunctionCall(name=fragment.name or "", arguments=fragment.arguments or ""),
                )
            )
            return
        if fragment.name:
            existing.function.name = fragment.name
        if fragment.arguments:
            existing.function.arguments += fragment.arguments

    def get_response(self) -> ChatResponse:
        """Best-effort response from what has been accumulated so far."""
        choices = [
            ChatChoice(
                index=index,
                message=Message(
                    role=state.role or "assistant",
                    content=state.content,
                    tool_calls=list(state.tool_calls) or None,
                ),
                finish_reason=state.finish_reason,
            )
            for index, state in sorted(self._choices.items())
        ]
        if not choices:
            choices.append(
                ChatChoice(
                    index=0,
                    message=Message(role="assistant", content=""),
                    finish_reason="stop" if self.aborted else None,
                )
            )
        end = self._end if self._end is not None else self._clock()
        return ChatResponse(
            id=self._id or f"stream_{self.request_id}",
            model=self._model,
            provider=self.provider,
            choices=choices,
            usage=self._usage,
            created=int(self._start),
            timing=Timing(
                start_ms=self._start * 1000.0,
                end_ms=end * 1000.0,
                duration_ms=(end - self._start) * 1000.0,
                time_to_first_token_ms=(self._first_chunk - self._start) * 1000.0 if self._first_chunk else None,
            ),
        )

    # ------------------------------------------------------------------ #
    # Termination
    # ------------------------------------------------------------------ #
    def complete(self) -> None:
        if self._state is AccumulatorState.ACCUMULATING:
            self._state = AccumulatorState.COMPLETED
            self._end = self._end or self._clock()
            self._cancel_timer()

    def abort(self, reason: Optional[str] = None) -> None:
        """Mark the stream aborted; repeated calls keep the first reason."""
        if self._state is AccumulatorState.ABORTED:
            return
        self._state = AccumulatorState.ABORTED
        self._abort_reason = reason
        self._end = self._clock()
        self._aborted_event.set()
        self._cancel_timer()
        log_event(
            _logger,
            "stream.aborted",
            LogContext(provider=self.provider, model=self._model, request_id=self.request_id),
            reason=reason,
            chunks=self._chunk_count,
        )
        if self._events is not None:
            self._events.emit(
                EventType.STREAM_ABORT,
                provider=self.provider,
                model=self._model,
                request_id=self.request_id,
                reason=reason,
            )

    def cleanup(self) -> None:
        """Release the listener and timer and drop state; safe to repeat."""
        if self._cleaned:
            return
        self._cleaned = True
        self._cancel_timer()
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        self._choices.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def aborted_error(self) -> StreamAbortedError:
        return StreamAbortedError(
            self._abort_reason or "unknown reason",
            provider=self.provider,
            model=self._model,
            request_id=self.request_id,
            details={"chunk_count": self._chunk_count},
        )

    async def iterate(self, source: AsyncIterator[ChatStreamDelta]) -> AsyncIterator[ChatStreamDelta]:
        """Yield fragments from ``source`` while accumulating them.

        The pending read is abandoned the moment an abort fires. Exhausting
        the source completes the accumulator; an abort raises
        :class:`StreamAbortedError`. ``source`` is closed on every exit.
        Cleanup stays with the owner of the accumulator.
        """
        iterator = source.__aiter__()
        abort_wait = asyncio.ensure_future(self._aborted_event.wait())
        try:
            while not self.aborted:
                read = asyncio.ensure_future(iterator.__anext__())
                done, _ = await asyncio.wait({read, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
                if read not in done:
                    read.cancel()
                    # Abandoned read; its outcome is discarded.
                    with suppress(asyncio.CancelledError, Exception):
                        await read
                    break
                try:
                    chunk = read.result()
                except StopAsyncIteration:
                    self.complete()
                    return
                self.process_chunk(chunk)
                if self.aborted:
                    break
                yield chunk
            raise self.aborted_error()
        finally:
            abort_wait.cancel()
            close = getattr(iterator, "aclose", None)
            if close is not None:
                await close()

    # ------------------------------------------------------------------ #
    # Context manager support
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "StreamAccumulator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    async def __aenter__(self) -> "StreamAccumulator":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cleanup()


__all__ = [
    "AccumulatorState",
    "StreamAccumulator",
    "StreamProgress",
    "StreamStats",
]
