"""Convenience consumers built on top of fragment sequences."""
from __future__ import annotations

import time
import uuid
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..cancellation import CancellationToken
from ..events import EventEmitter
from ..models import ChatResponse, ChatStreamDelta, DeltaMessage, StreamChoice
from .accumulator import StreamAccumulator, StreamProgress


async def collect_stream(
    chunks: AsyncIterator[ChatStreamDelta],
    *,
    provider: str = "",
    model: str = "",
    request_id: Optional[str] = None,
    events: Optional[EventEmitter] = None,
    token: Optional[CancellationToken] = None,
    timeout: Optional[float] = None,
    max_chunks: Optional[int] = None,
    max_tokens: Optional[int] = None,
    on_progress: Optional[Callable[[StreamProgress], None]] = None,
) -> ChatResponse:
    """Drain ``chunks`` into one response.

    Raises :class:`StreamAbortedError` when a limit, the timeout or the
    token ends the stream early. The accumulator is always cleaned up.
    """
    async with StreamAccumulator(
        request_id=request_id or uuid.uuid4().hex,
        provider=provider,
        model=model,
        events=events,
        token=token,
        timeout=timeout,
        max_chunks=max_chunks,
        max_tokens=max_tokens,
        on_progress=on_progress,
    ) as accumulator:
        async for _ in accumulator.iterate(chunks):
            pass
        return accumulator.get_response()


async def stream_content(
    chunks: AsyncIterator[ChatStreamDelta],
    token: Optional[CancellationToken] = None,
) -> AsyncIterator[str]:
    """Yield only the non-empty text of each fragment; stops when ``token`` fires."""
    iterator = chunks.__aiter__()
    try:
        async for chunk in iterator:
            if token is not None and token.cancelled:
                break
            for choice in chunk.choices:
                if choice.delta.content:
                    yield choice.delta.content
    finally:
        close = getattr(iterator, "aclose", None)
        if close is not None:
            await close()


def _merge_chunks(chunks: List[ChatStreamDelta]) -> ChatStreamDelta:
    if len(chunks) == 1:
        return chunks[0]
    by_index: Dict[int, StreamChoice] = {}
    for chunk in chunks:
        for choice in chunk.choices:
            merged = by_index.get(choice.index)
            if merged is None:
                by_index[choice.index] = StreamChoice(
                    index=choice.index,
                    delta=DeltaMessage(
                        role=choice.delta.role,
                        content=choice.delta.content,
                        tool_calls=list(choice.delta.tool_calls) if choice.delta.tool_calls else None,
                    ),
                    finish_reason=choice.finish_reason,
                )
                continue
            if choice.delta.content:
                merged.delta.content = (merged.delta.content or "") + choice.delta.content
            if choice.delta.tool_calls:
                merged.delta.tool_calls = (merged.delta.tool_calls or []) + list(choice.delta.tool_calls)
            if choice.finish_reason:
                merged.finish_reason = choice.finish_reason
    last = chunks[-1]
    usage = next((c.usage for c in reversed(chunks) if c.usage is not None), None)
    return ChatStreamDelta(
        id=last.id,
        model=last.model,
        provider=last.provider,
        choices=[by_index[i] for i in sorted(by_index)],
        usage=usage,
        created=chunks[0].created,
    )


async def buffered_stream(
    chunks: AsyncIterator[ChatStreamDelta],
    *,
    buffer_size: int = 5,
    buffer_timeout: float = 0.05,
    token: Optional[CancellationToken] = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[ChatStreamDelta]:
    """Group fragments into merged batches to reduce downstream updates.

    A batch is flushed once it holds ``buffer_size`` fragments or when a
    fragment arrives ``buffer_timeout`` seconds after the batch started. The
    remainder is flushed when the source ends.
    """
    buffer: List[ChatStreamDelta] = []
    started: Optional[float] = None
    iterator = chunks.__aiter__()
    try:
        async for chunk in iterator:
            if token is not None and token.cancelled:
                break
            if not buffer:
                started = clock()
            buffer.append(chunk)
            if len(buffer) >= buffer_size or (started is not None and clock() - started >= buffer_timeout):
                merged, buffer = _merge_chunks(buffer), []
                yield merged
        if buffer:
            merged, buffer = _merge_chunks(buffer), []
            yield merged
    finally:
        buffer.clear()
        close = getattr(iterator, "aclose", None)
        if close is not None:
            await close()


__all__ = ["buffered_stream", "collect_stream", "stream_content"]
