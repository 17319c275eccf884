"""Built-in middleware. Each is an ordinary :class:`Middleware` owning its state."""

from .content_filter import ContentFilterMiddleware
from .fallback import DEFAULT_FALLBACK_ON, FallbackMiddleware
from .logging_middleware import LoggingMiddleware
from .metrics import MetricsMiddleware, RequestMetrics
from .rate_limit import RateLimitMiddleware
from .retry import RetryMiddleware
from .timeout import TimeoutMiddleware

__all__ = [
    "ContentFilterMiddleware",
    "DEFAULT_FALLBACK_ON",
    "FallbackMiddleware",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "RequestMetrics",
    "RateLimitMiddleware",
    "RetryMiddleware",
    "TimeoutMiddleware",
]
