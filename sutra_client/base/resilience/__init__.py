"""Resilience primitives: circuit breaker and retry policy."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerStats, CircuitState
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitState",
    "DEFAULT_RETRY_CONFIG",
    "RetryConfig",
]
