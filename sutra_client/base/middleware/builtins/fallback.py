"""Fallback-provider selection middleware.

When a call fails with one of ``fallback_on`` codes, picks the next
``(provider, model)`` pair that has not been attempted during this logical
call and marks the scratchpad; the executor re-issues the request with the
substitution. A pending retry takes precedence; no pair is consumed while
the retry middleware has asked for a re-issue. Attempted pairs are recorded
as ``"provider:model"``.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ...errors import ErrorCode, SutraError
from ...logging import get_logger, normalized_log_event
from ...models import ChatRequest, ChatResponse
from ..context import (
    ATTEMPTED_PROVIDERS,
    FALLBACK_MODEL,
    FALLBACK_PROVIDER,
    SHOULD_FALLBACK,
    SHOULD_RETRY,
    PipelineContext,
)
from ..middleware_base import Middleware

_logger = get_logger("sutra.middleware.fallback")

DEFAULT_FALLBACK_ON: Tuple[ErrorCode, ...] = (
    ErrorCode.RATE_LIMIT,
    ErrorCode.SERVER_ERROR,
    ErrorCode.UNAVAILABLE,
    ErrorCode.PROVIDER_UNAVAILABLE,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK,
    ErrorCode.TRANSIENT,
    ErrorCode.QUOTA_EXCEEDED,
)


def _pair_key(provider: str, model: str) -> str:
    return f"{provider}:{model}"


class FallbackMiddleware(Middleware):
    name = "fallback"
    priority = 90

    def __init__(
        self,
        fallbacks: Sequence[Tuple[str, str]],
        *,
        fallback_on: Optional[Iterable[ErrorCode]] = None,
    ) -> None:
        self.fallbacks: List[Tuple[str, str]] = list(fallbacks)
        self.fallback_on = frozenset(fallback_on if fallback_on is not None else DEFAULT_FALLBACK_ON)

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        attempted = ctx.data.setdefault(ATTEMPTED_PROVIDERS, [])
        key = _pair_key(request.provider, request.model)
        if key not in attempted:
            attempted.append(key)
        return request

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        ctx.data[SHOULD_FALLBACK] = False
        if ctx.data.get(SHOULD_RETRY) or error.code not in self.fallback_on:
            return error
        attempted = ctx.data.setdefault(ATTEMPTED_PROVIDERS, [])
        for provider, model in self.fallbacks:
            key = _pair_key(provider, model)
            if key in attempted:
                continue
            attempted.append(key)
            ctx.data[SHOULD_FALLBACK] = True
            ctx.data[FALLBACK_PROVIDER] = provider
            ctx.data[FALLBACK_MODEL] = model
            normalized_log_event(
                _logger,
                "fallback.selected",
                ctx.log_context(error.provider, error.model),
                phase="on_error",
                error_code=error.kind,
                fallback=key,
            )
            return error
        return error


__all__ = ["FallbackMiddleware", "DEFAULT_FALLBACK_ON"]
