"""Request timeout middleware.

Arms a loop timer when the request phase runs; when it fires the context's
cancellation token is cancelled, which abandons the adapter call. The timer
is cleared in the response and error phases so it never outlives the call.
"""
from __future__ import annotations

import asyncio
import dataclasses
from typing import Union

from ...errors import ErrorCode, SutraError
from ...models import ChatRequest, ChatResponse
from ..context import PipelineContext
from ..middleware_base import Middleware

_TIMER_KEY = "timeout_handle"
_FIRED_KEY = "timeout_fired"


class TimeoutMiddleware(Middleware):
    name = "timeout"
    priority = 2

    def __init__(self, timeout_seconds: float) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        self._clear(ctx)
        token = ctx.token
        reason = f"Request timed out after {self.timeout_seconds}s"
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            ctx.data[_FIRED_KEY] = True
            token.cancel(reason)

        ctx.data[_TIMER_KEY] = loop.call_later(self.timeout_seconds, _fire)
        return request if request.token is token else dataclasses.replace(request, token=token)

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        self._clear(ctx)
        return response

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        self._clear(ctx)
        if error.code is ErrorCode.CANCELLED and ctx.token.cancelled and ctx.data.get(_FIRED_KEY):
            timed_out = SutraError(
                ErrorCode.TIMEOUT,
                ctx.token.reason or "Request timed out",
                provider=error.provider,
                model=error.model,
                request_id=ctx.request_id,
            )
            timed_out.__cause__ = error
            return timed_out
        return error

    @staticmethod
    def _clear(ctx: PipelineContext) -> None:
        handle = ctx.data.pop(_TIMER_KEY, None)
        if handle is not None:
            handle.cancel()


__all__ = ["TimeoutMiddleware"]
