"""Base class for pipeline middleware.

This module defines the `Middleware` base class used by
:class:`~sutra_client.base.middleware.pipeline.MiddlewarePipeline`. It
provides pass-through implementations for all three phase hooks so
implementers override only the ones they need.

Design goals:
- Avoid dynamic `getattr`/`hasattr` checks by guaranteeing hook presence.
- Keep hooks fast; they run inline on every call.
- Each built-in owns its state on the instance so its lifetime is explicit.
"""

from __future__ import annotations

from typing import Union

from ..errors import SutraError
from ..models import ChatRequest, ChatResponse
from .context import PipelineContext


class Middleware:
    """Named, ordered transformer with request, response and error hooks.

    Attributes:
        name: Unique name within a pipeline; re-adding a name replaces it.
        priority: Lower values run earlier in the request phase and later in
            the response phase.
        enabled: Disabled middleware are skipped in every phase.

    Failure modes:
    - Raising from a hook aborts the phase; the pipeline wraps the exception
      in a ``PipelineError`` naming the middleware and phase.
    """

    name: str = "middleware"
    priority: int = 100
    enabled: bool = True

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        """Called before the provider is invoked.

        Parameters:
            request: The chat request to be processed.
            ctx: Execution context for the current logical call.

        Returns:
            The (possibly) modified chat request.
        """

        return request

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        """Called with every response before it reaches the caller.

        Parameters:
            response: The chat response (fresh or served from cache).
            ctx: Execution context for the current logical call.

        Returns:
            The (possibly) modified chat response.
        """

        return response

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        """Called when the call failed.

        Parameters:
            error: The structured error (possibly modified by earlier middleware).
            ctx: Execution context; set scratchpad keys to request retry or fallback.

        Returns:
            The (possibly) modified error, or a full ``ChatResponse`` to recover.
        """

        return error

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority}, enabled={self.enabled})"


__all__ = ["Middleware"]
