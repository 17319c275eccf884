"""Middleware assembled from plain callables.

Lets callers register ad-hoc hooks without subclassing. Each callable may
be synchronous or a coroutine function; ``None`` hooks pass values through.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional, Union

from ..errors import SutraError
from ..models import ChatRequest, ChatResponse
from .context import PipelineContext
from .middleware_base import Middleware

Hook = Callable[..., Any]


async def _call(hook: Hook, value: Any, ctx: PipelineContext) -> Any:
    result = hook(value, ctx)
    if inspect.isawaitable(result):
        result = await result
    return value if result is None else result


class FunctionMiddleware(Middleware):
    """Wrap up to three callables as a pipeline middleware."""

    def __init__(
        self,
        name: str,
        *,
        priority: int = 100,
        before_request: Optional[Hook] = None,
        after_response: Optional[Hook] = None,
        on_error: Optional[Hook] = None,
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.priority = priority
        self.enabled = enabled
        self._before_request = before_request
        self._after_response = after_response
        self._on_error = on_error

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        if self._before_request is None:
            return request
        return await _call(self._before_request, request, ctx)

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        if self._after_response is None:
            return response
        return await _call(self._after_response, response, ctx)

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        if self._on_error is None:
            return error
        return await _call(self._on_error, error, ctx)


__all__ = ["FunctionMiddleware"]
