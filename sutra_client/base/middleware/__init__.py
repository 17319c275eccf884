"""Middleware pipeline public surface."""

from .context import (
    ATTEMPTED_PROVIDERS,
    FALLBACK_MODEL,
    FALLBACK_PROVIDER,
    RETRY_ATTEMPT,
    RETRY_DELAY,
    SHOULD_FALLBACK,
    SHOULD_RETRY,
    PipelineContext,
)
from .function_middleware import FunctionMiddleware
from .middleware_base import Middleware
from .pipeline import MiddlewarePipeline

__all__ = [
    "ATTEMPTED_PROVIDERS",
    "FALLBACK_MODEL",
    "FALLBACK_PROVIDER",
    "RETRY_ATTEMPT",
    "RETRY_DELAY",
    "SHOULD_FALLBACK",
    "SHOULD_RETRY",
    "PipelineContext",
    "FunctionMiddleware",
    "Middleware",
    "MiddlewarePipeline",
]
