"""Client-side rate limiting over a rolling one-minute window.

Requests are admitted while fewer than ``requests_per_minute`` starts (and,
when configured, fewer than ``tokens_per_minute`` completion tokens) were
recorded in the last 60 seconds. Rejections are retryable and carry the
time until the oldest sample leaves the window as ``retry_after``.
"""
from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, Optional, Tuple

from ...errors import RateLimitedError
from ...events import EventEmitter, EventType
from ...models import ChatRequest, ChatResponse
from ..context import PipelineContext
from ..middleware_base import Middleware

WINDOW_SECONDS = 60.0


class RateLimitMiddleware(Middleware):
    name = "rate-limit"
    priority = 5

    def __init__(
        self,
        requests_per_minute: int,
        *,
        tokens_per_minute: Optional[int] = None,
        events: Optional[EventEmitter] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be >= 1")
        self.requests_per_minute = requests_per_minute
        self.tokens_per_minute = tokens_per_minute
        self._events = events
        self._clock = clock
        self._requests: Deque[float] = deque()
        self._tokens: Deque[Tuple[float, int]] = deque()

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while self._requests and self._requests[0] <= cutoff:
            self._requests.popleft()
        while self._tokens and self._tokens[0][0] <= cutoff:
            self._tokens.popleft()

    def _reject(self, message: str, oldest: float, now: float, request: ChatRequest) -> RateLimitedError:
        retry_after = max(0.0, WINDOW_SECONDS - (now - oldest))
        if self._events is not None:
            self._events.emit(
                EventType.RATE_LIMITED,
                provider=request.provider,
                model=request.model,
                retry_after=retry_after,
            )
        return RateLimitedError(
            message, retry_after=retry_after, provider=request.provider, model=request.model
        )

    @property
    def tokens_in_window(self) -> int:
        self._prune(self._clock())
        return sum(count for _, count in self._tokens)

    @property
    def requests_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._requests)

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        now = self._clock()
        self._prune(now)
        if len(self._requests) >= self.requests_per_minute:
            raise self._reject(
                f"Client rate limit of {self.requests_per_minute} requests/minute reached",
                self._requests[0],
                now,
                request,
            )
        if self.tokens_per_minute is not None and self._tokens:
            used = sum(count for _, count in self._tokens)
            if used >= self.tokens_per_minute:
                raise self._reject(
                    f"Client rate limit of {self.tokens_per_minute} tokens/minute reached",
                    self._tokens[0][0],
                    now,
                    request,
                )
        self._requests.append(now)
        return request

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        if self.tokens_per_minute is not None and response.usage is not None:
            self._tokens.append((self._clock(), response.usage.total_tokens))
        return response

    def reset(self) -> None:
        self._requests.clear()
        self._tokens.clear()


__all__ = ["RateLimitMiddleware", "WINDOW_SECONDS"]
