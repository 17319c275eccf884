"""Retry-intent middleware.

Marks the scratchpad when a failed call should be re-issued; the executor
performs the delayed re-issue. The attempt counter is carried across
re-issues so the budget in :class:`RetryConfig` holds for the whole logical
call.
"""
from __future__ import annotations

from typing import Optional, Union

from ...errors import SutraError
from ...logging import get_logger, normalized_log_event
from ...models import ChatResponse
from ...resilience.retry import DEFAULT_RETRY_CONFIG, RetryConfig
from ..context import RETRY_ATTEMPT, RETRY_DELAY, SHOULD_RETRY, PipelineContext
from ..middleware_base import Middleware

_logger = get_logger("sutra.middleware.retry")


class RetryMiddleware(Middleware):
    name = "retry"
    priority = 10

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        self.config = config or DEFAULT_RETRY_CONFIG

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        attempt = int(ctx.data.get(RETRY_ATTEMPT, 0))
        if not error.retryable or not self.config.should_retry(error, attempt):
            ctx.data[SHOULD_RETRY] = False
            return error
        delay = self.config.delay_for(attempt, error.retry_after)
        ctx.data[RETRY_ATTEMPT] = attempt + 1
        ctx.data[RETRY_DELAY] = delay
        ctx.data[SHOULD_RETRY] = True
        normalized_log_event(
            _logger,
            "retry.scheduled",
            ctx.log_context(error.provider, error.model),
            phase="on_error",
            attempt=attempt + 1,
            error_code=error.kind,
            delay_seconds=delay,
        )
        return error


__all__ = ["RetryMiddleware"]
