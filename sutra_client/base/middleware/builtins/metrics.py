"""Metrics collection middleware.

Reports one :class:`RequestMetrics` record per settled logical call to a
callback (success in the response phase, failure in the error phase).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Union

from ...errors import SutraError
from ...logging import get_logger
from ...models import ChatRequest, ChatResponse
from ..context import PipelineContext
from ..middleware_base import Middleware

_logger = get_logger("sutra.middleware.metrics")

_PROVIDER_KEY = "metrics_provider"
_MODEL_KEY = "metrics_model"


@dataclass(frozen=True)
class RequestMetrics:
    request_id: str
    provider: Optional[str]
    model: Optional[str]
    duration_ms: float
    success: bool
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricsMiddleware(Middleware):
    name = "metrics"
    priority = 0

    def __init__(self, on_metrics: Callable[[RequestMetrics], None]) -> None:
        self.on_metrics = on_metrics

    def _report(self, metrics: RequestMetrics) -> None:
        try:
            self.on_metrics(metrics)
        except Exception:
            _logger.exception("metrics callback failed")

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        ctx.data[_PROVIDER_KEY] = request.provider
        ctx.data[_MODEL_KEY] = request.model
        return request

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        usage = response.usage
        self._report(
            RequestMetrics(
                request_id=ctx.request_id,
                provider=response.provider,
                model=response.model,
                duration_ms=ctx.elapsed_ms(),
                success=True,
                prompt_tokens=usage.prompt_tokens if usage else None,
                completion_tokens=usage.completion_tokens if usage else None,
                total_tokens=usage.total_tokens if usage else None,
            )
        )
        return response

    async def on_error(
        self, error: SutraError, ctx: PipelineContext
    ) -> Union[SutraError, ChatResponse]:
        self._report(
            RequestMetrics(
                request_id=ctx.request_id,
                provider=error.provider or ctx.data.get(_PROVIDER_KEY),
                model=error.model or ctx.data.get(_MODEL_KEY),
                duration_ms=ctx.elapsed_ms(),
                success=False,
                error_code=error.kind,
            )
        )
        return error


__all__ = ["MetricsMiddleware", "RequestMetrics"]
