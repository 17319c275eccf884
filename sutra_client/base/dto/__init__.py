"""Configuration DTOs (Pydantic models)."""

from .provider_config import ProviderConfig
from .client_config import (
    CacheOptions,
    CircuitBreakerConfig,
    ClientConfig,
    HealthWindowConfig,
    StreamLimits,
)

__all__ = [
    "ProviderConfig",
    "CacheOptions",
    "CircuitBreakerConfig",
    "ClientConfig",
    "HealthWindowConfig",
    "StreamLimits",
]
