"""Structured logging middleware.

Emits ``request.start`` / ``request.end`` / ``request.error`` events through
the shared ``sutra`` logger. Message bodies are only logged when explicitly
enabled since they may contain user data.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from ...errors import SutraError
from ...logging import get_logger, normalized_log_event
from ...models import ChatRequest, ChatResponse
from ..context import RETRY_ATTEMPT, PipelineContext
from ..middleware_base import Middleware


class LoggingMiddleware(Middleware):
    name = "logging"
    priority = 1

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
        log_requests: bool = False,
        log_responses: bool = False,
    ) -> None:
        self.logger = logger or get_logger("sutra.requests")
        self.level = level
        self.log_requests = log_requests
        self.log_responses = log_responses

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        normalized_log_event(
            self.logger,
            "request.start",
            ctx.log_context(request.provider, request.model),
            phase="before_request",
            attempt=ctx.data.get(RETRY_ATTEMPT),
            level=self.level,
            stream=request.stream,
            message_count=len(request.messages),
            messages=[m.to_dict() for m in request.messages] if self.log_requests else None,
        )
        return request

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        normalized_log_event(
            self.logger,
            "request.end",
            ctx.log_context(response.provider, response.model),
            phase="after_response",
            attempt=ctx.data.get(RETRY_ATTEMPT),
            tokens=response.usage,
            level=self.level,
            duration_ms=round(ctx.elapsed_ms(), 2),
            text=response.text if self.log_responses else None,
        )
        return response

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        normalized_log_event(
            self.logger,
            "request.error",
            ctx.log_context(error.provider, error.model),
            phase="on_error",
            attempt=ctx.data.get(RETRY_ATTEMPT),
            error_code=error.kind,
            level=logging.WARNING,
            retryable=error.retryable,
            message=error.message,
            duration_ms=round(ctx.elapsed_ms(), 2),
        )
        return error


__all__ = ["LoggingMiddleware"]
