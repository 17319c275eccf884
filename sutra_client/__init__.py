"""sutra_client package

Client-side library for calling many LLM providers through one interface.

Purpose:
    Provide a stable entry point (:class:`SutraClient`) that routes chat and
    streaming requests through a middleware pipeline, a provider registry
    with per-provider circuit breakers and health metrics, and a request
    executor with caching, deduplication, retry and fallback.

Public API (re-exported):
    - Version: ``__version__``
    - Client: :class:`SutraClient`, batch and template types
    - DTOs: requests, responses, stream fragments, configuration
    - Errors: :class:`SutraError`, :class:`ErrorCode` and specific subclasses
    - Middleware: the pipeline contract and built-in middleware
"""

from .base.cancellation import CancellationToken, CancelledError
from .base.dto import (
    CacheOptions,
    CircuitBreakerConfig,
    ClientConfig,
    HealthWindowConfig,
    ProviderConfig,
    StreamLimits,
)
from .base.errors import (
    ErrorCode,
    KeyNotSetError,
    PipelineError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    StreamAbortedError,
    SutraError,
)
from .base.events import EventType, SutraEvent
from .base.interfaces import ProviderAdapter, ProviderPlugin
from .base.middleware import FunctionMiddleware, Middleware, PipelineContext
from .base.middleware.builtins import (
    ContentFilterMiddleware,
    FallbackMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    RetryMiddleware,
    TimeoutMiddleware,
)
from .base.models import ChatRequest, ChatResponse, ChatStreamDelta, Message, ModelInfo, Usage
from .base.resilience.circuit_breaker import CircuitState
from .client import BatchRequest, BatchResponse, PromptTemplate, SutraClient, TemplateVariable

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Client
    "SutraClient",
    "BatchRequest",
    "BatchResponse",
    "PromptTemplate",
    "TemplateVariable",
    # DTOs
    "ChatRequest",
    "ChatResponse",
    "ChatStreamDelta",
    "Message",
    "ModelInfo",
    "Usage",
    "CacheOptions",
    "CircuitBreakerConfig",
    "ClientConfig",
    "HealthWindowConfig",
    "ProviderConfig",
    "StreamLimits",
    # Errors
    "ErrorCode",
    "SutraError",
    "KeyNotSetError",
    "PipelineError",
    "ProviderNotFoundError",
    "ProviderUnavailableError",
    "StreamAbortedError",
    "CancellationToken",
    "CancelledError",
    # Events
    "EventType",
    "SutraEvent",
    # Extension points
    "ProviderAdapter",
    "ProviderPlugin",
    "Middleware",
    "FunctionMiddleware",
    "PipelineContext",
    "CircuitState",
    # Built-in middleware
    "ContentFilterMiddleware",
    "FallbackMiddleware",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "RetryMiddleware",
    "TimeoutMiddleware",
]
