"""Bounded-concurrency batch execution with a shared retry budget.

Requests run in fixed-size chunks of ``concurrency``; a chunk must settle
before the next starts. Results keep input order regardless of completion
order. A failing request becomes a :class:`SutraError` at its index instead of
aborting the batch, unless ``stop_on_error`` is set, in which case no further
chunk starts (unstarted entries stay ``None``).

Retryable failures count against ``max_total_retries``. Once the budget is
spent, later requests are issued with ``no_retry`` so an outage does not turn
into a retry storm.
"""
from __future__ import annotations

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union

from ..base.errors import SutraError, to_sutra_error
from ..base.events import EventEmitter, EventType
from ..base.logging import get_logger, log_event
from ..base.models import ChatRequest, ChatResponse
from ..config.defaults import BATCH_DEFAULT_CONCURRENCY

_logger = get_logger("sutra.batch")

BatchResult = Union[ChatResponse, SutraError, None]
ProgressCallback = Callable[[int, int, Optional[ChatResponse]], None]


@dataclass
class BatchRequest:
    """Batch input.

    Attributes:
        requests: Ordered requests.
        concurrency: Chunk size (simultaneously outstanding calls).
        stop_on_error: Start no further chunk after a chunk with a failure.
        on_progress: Called as ``(completed, total, response_or_None)``.
        max_total_retries: Retryable-failure budget shared by the batch.
    """

    requests: List[ChatRequest]
    concurrency: int = BATCH_DEFAULT_CONCURRENCY
    stop_on_error: bool = False
    on_progress: Optional[ProgressCallback] = None
    max_total_retries: Optional[int] = None


@dataclass
class BatchSummary:
    total: int
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    total_duration_ms: float = 0.0
    total_tokens: int = 0
    retryable_failures: int = 0
    retry_budget_exhausted: bool = False


@dataclass
class BatchResponse:
    results: List[BatchResult] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=lambda: BatchSummary(total=0))

    def successes(self) -> List[ChatResponse]:
        return [r for r in self.results if isinstance(r, ChatResponse)]

    def errors(self) -> List[SutraError]:
        return [r for r in self.results if isinstance(r, SutraError)]


async def run_batch(
    batch: BatchRequest,
    chat: Callable[[ChatRequest], Awaitable[ChatResponse]],
    *,
    events: Optional[EventEmitter] = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResponse:
    """Execute ``batch`` with ``chat`` as the per-request call."""
    if batch.concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    total = len(batch.requests)
    results: List[BatchResult] = [None] * total
    summary = BatchSummary(total=total)
    started = clock()
    completed = 0

    async def _run_one(index: int, request: ChatRequest) -> bool:
        nonlocal completed
        effective = dataclasses.replace(request, no_retry=True) if summary.retry_budget_exhausted else request
        try:
            response = await chat(effective)
        except Exception as exc:
            error = to_sutra_error(exc, provider=request.provider, model=request.model)
            results[index] = error
            summary.failed += 1
            if error.retryable:
                summary.retryable_failures += 1
                if (
                    batch.max_total_retries is not None
                    and summary.retryable_failures >= batch.max_total_retries
                    and not summary.retry_budget_exhausted
                ):
                    summary.retry_budget_exhausted = True
                    log_event(_logger, "batch.retry_budget_exhausted", budget=batch.max_total_retries)
            completed += 1
            _progress(None)
            return False
        results[index] = response
        summary.successful += 1
        summary.total_tokens += response.usage.total_tokens if response.usage else 0
        completed += 1
        _progress(response)
        return True

    def _progress(response: Optional[ChatResponse]) -> None:
        if events is not None:
            events.emit(EventType.BATCH_PROGRESS, completed=completed, total=total)
        if batch.on_progress is not None:
            batch.on_progress(completed, total, response)

    for start in range(0, total, batch.concurrency):
        chunk = batch.requests[start : start + batch.concurrency]
        outcomes = await asyncio.gather(*(_run_one(start + i, r) for i, r in enumerate(chunk)))
        if batch.stop_on_error and not all(outcomes):
            break

    summary.skipped = total - summary.successful - summary.failed
    summary.total_duration_ms = (clock() - started) * 1000.0
    log_event(
        _logger,
        "batch.complete",
        total=total,
        successful=summary.successful,
        failed=summary.failed,
        skipped=summary.skipped,
    )
    if events is not None:
        events.emit(EventType.BATCH_COMPLETE, **dataclasses.asdict(summary))
    return BatchResponse(results=results, summary=summary)


__all__ = ["BatchRequest", "BatchResponse", "BatchResult", "BatchSummary", "run_batch"]
