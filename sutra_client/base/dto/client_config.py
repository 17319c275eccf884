"""Typed configuration for the client and its resilience components.

All models are Pydantic v2 so configuration can be validated when built
from dictionaries (``ClientConfig.model_validate({...})``). Durations are in
seconds.
"""
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .provider_config import ProviderConfig


class CircuitBreakerConfig(BaseModel):
    """Per-provider breaker thresholds.

    ``success_threshold`` defaults to ``half_open_max_calls``: every admitted
    trial must succeed before the circuit closes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    failure_threshold: int = Field(default=5, ge=1)
    open_duration_seconds: float = Field(default=30.0, ge=0)
    half_open_max_calls: int = Field(default=3, ge=1)
    success_threshold: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_success_threshold(self) -> "CircuitBreakerConfig":
        if self.success_threshold is not None and self.success_threshold > self.half_open_max_calls:
            raise ValueError("success_threshold cannot exceed half_open_max_calls")
        return self

    @property
    def required_successes(self) -> int:
        return self.success_threshold or self.half_open_max_calls


class HealthWindowConfig(BaseModel):
    """Bounds of the rolling latency window kept per provider."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_samples: int = Field(default=100, ge=1)
    ttl_seconds: float = Field(default=300.0, gt=0)


class CacheOptions(BaseModel):
    """In-memory response cache limits; ``ttl_seconds=None`` never expires."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_entries: int = Field(default=100, ge=1)
    max_size_bytes: int = Field(default=50 * 1024 * 1024, ge=1)
    ttl_seconds: Optional[float] = Field(default=3600.0, gt=0)


class StreamLimits(BaseModel):
    """Defaults applied to every streamed call unless overridden per call."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    max_chunks: Optional[int] = Field(default=None, ge=1)
    max_tokens: Optional[int] = Field(default=None, ge=1)


class ClientConfig(BaseModel):
    """Top-level client configuration.

    Attributes
    ----------
    providers:
        User overrides per provider key, merged over registered defaults.
    cache:
        Response cache options; ``None`` disables caching.
    circuit_breaker / health_window:
        Registry resilience settings shared by all providers.
    deduplicate_requests:
        Collapse concurrent identical non-streaming calls into one.
    default_provider / default_model:
        Used by ``complete`` when the caller does not name them.
    stream:
        Default stream limits.
    """

    model_config = ConfigDict(extra="forbid")

    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    cache: Optional[CacheOptions] = Field(default_factory=CacheOptions)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    health_window: HealthWindowConfig = Field(default_factory=HealthWindowConfig)
    deduplicate_requests: bool = True
    default_provider: Optional[str] = None
    default_model: Optional[str] = None
    stream: StreamLimits = Field(default_factory=StreamLimits)


__all__ = [
    "CacheOptions",
    "CircuitBreakerConfig",
    "ClientConfig",
    "HealthWindowConfig",
    "StreamLimits",
]
