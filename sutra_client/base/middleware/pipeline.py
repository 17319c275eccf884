"""Ordered middleware pipeline with request, response and error phases.

Middleware are kept sorted by ascending priority (stable for ties). The
request phase walks that order, the response phase walks the exact reverse
of the request hooks that ran, and the error phase walks ascending order
again and may short-circuit with a recovery response. Any exception raised
by a hook is wrapped in :class:`PipelineError` naming the middleware and
phase.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from ..errors import PipelineError, SutraError
from ..logging import get_logger, normalized_log_event
from ..models import ChatRequest, ChatResponse
from .context import PipelineContext
from .middleware_base import Middleware

_logger = get_logger("sutra.middleware")


class MiddlewarePipeline:
    """Composable chain executing middleware hooks by priority.

    The pipeline is provider-agnostic: it only sees canonical requests,
    responses and errors. It holds no per-request state; everything a single
    call needs lives in its :class:`PipelineContext`.
    """

    def __init__(self, middleware: Iterable[Middleware] = ()) -> None:
        self._items: List[Middleware] = []
        for item in middleware:
            self.add(item)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def add(self, middleware: Middleware) -> None:
        """Insert ``middleware`` by priority, replacing one with the same name."""
        self.remove(middleware.name)
        index = len(self._items)
        for i, existing in enumerate(self._items):
            if existing.priority > middleware.priority:
                index = i
                break
        self._items.insert(index, middleware)

    def remove(self, name: str) -> bool:
        for i, existing in enumerate(self._items):
            if existing.name == name:
                del self._items[i]
                return True
        return False

    def toggle(self, name: str, enabled: bool) -> bool:
        middleware = self.get(name)
        if middleware is None:
            return False
        middleware.enabled = enabled
        return True

    def get(self, name: str) -> Optional[Middleware]:
        for existing in self._items:
            if existing.name == name:
                return existing
        return None

    def names(self) -> List[str]:
        return [m.name for m in self._items]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(list(self._items))

    def __contains__(self, name: object) -> bool:
        return any(m.name == name for m in self._items)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    @staticmethod
    def create_context(carry: Optional[Mapping[str, Any]] = None) -> PipelineContext:
        return PipelineContext.create(carry)

    async def run_request_phase(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        """Apply enabled ``before_request`` hooks in ascending priority."""
        current = request
        ctx.request_chain = []
        for middleware in list(self._items):
            if not middleware.enabled:
                continue
            ctx.request_chain.append(middleware.name)
            try:
                result = await middleware.before_request(current, ctx)
            except Exception as exc:
                raise self._wrap(middleware, "before_request", exc, ctx) from exc
            if result is not None:
                current = result
        return current

    async def run_response_phase(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        """Apply ``after_response`` hooks in the reverse order of the request phase."""
        current = response
        for middleware in self._response_order(ctx):
            try:
                result = await middleware.after_response(current, ctx)
            except Exception as exc:
                raise self._wrap(middleware, "after_response", exc, ctx) from exc
            if result is not None:
                current = result
        return current

    async def run_error_phase(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        """Apply enabled ``on_error`` hooks in ascending priority.

        Returns the final error, or the first ``ChatResponse`` a hook returns
        (recovery). A hook that raises ends the phase with a ``PipelineError``
        whose ``original_error`` is the error being handled.
        """
        current: SutraError = error
        for middleware in list(self._items):
            if not middleware.enabled:
                continue
            try:
                result = await middleware.on_error(current, ctx)
            except Exception as exc:
                wrapped = self._wrap(middleware, "on_error", exc, ctx)
                wrapped.details["original_error"] = current.to_dict()
                wrapped.original_error = current  # type: ignore[attr-defined]
                return wrapped
            if isinstance(result, ChatResponse):
                normalized_log_event(
                    _logger,
                    "middleware.recovered",
                    ctx.log_context(result.provider, result.model),
                    phase="on_error",
                    error_code=current.kind,
                    middleware=middleware.name,
                )
                return result
            if result is not None:
                current = result
        return current

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _response_order(self, ctx: PipelineContext) -> List[Middleware]:
        by_name: Dict[str, Middleware] = {m.name: m for m in self._items}
        if ctx.request_chain:
            ran = [by_name[n] for n in ctx.request_chain if n in by_name]
        else:
            ran = [m for m in self._items if m.enabled]
        return [m for m in reversed(ran) if m.enabled]

    @staticmethod
    def _wrap(middleware: Middleware, phase: str, exc: Exception, ctx: PipelineContext) -> PipelineError:
        error = PipelineError(middleware.name, phase, exc, request_id=ctx.request_id)
        normalized_log_event(
            _logger,
            "middleware.failed",
            ctx.log_context(),
            phase=phase,
            error_code=error.kind,
            middleware=middleware.name,
            cause=type(exc).__name__,
        )
        return error


__all__ = ["MiddlewarePipeline"]
