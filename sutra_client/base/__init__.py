"""
Client Base Package

Exports provider-agnostic contracts, DTOs, repositories and resilience
primitives used by the client layer and by adapters.

- Interfaces: adapter protocol, constructor and cache contracts
- Models (DTOs): canonical request/response dataclasses
- Repositories: credential resolution
- Resilience: circuit breaker and retry policy
"""

from .cancellation import CancellationToken, CancelledError, run_cancellable
from .dto import (
    CacheOptions,
    CircuitBreakerConfig,
    ClientConfig,
    HealthWindowConfig,
    ProviderConfig,
    StreamLimits,
)
from .errors import ErrorCode, SutraError
from .events import EventEmitter, EventType, SutraEvent
from .interfaces import CacheStore, ProviderAdapter, ProviderConstructor, ProviderPlugin
from .models import (
    ChatChoice,
    ChatRequest,
    ChatResponse,
    ChatStreamDelta,
    ContentPart,
    Message,
    ModelInfo,
    Role,
    Timing,
    ToolCall,
    Usage,
)
from .repositories.keys import KeyResolution, KeysRepository
from .resilience.circuit_breaker import CircuitBreaker, CircuitState
from .timeouts import TimeoutConfig, get_timeout_config

__all__ = [
    # Models
    "ChatChoice",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamDelta",
    "ContentPart",
    "Message",
    "ModelInfo",
    "Role",
    "Timing",
    "ToolCall",
    "Usage",
    # Config
    "CacheOptions",
    "CircuitBreakerConfig",
    "ClientConfig",
    "HealthWindowConfig",
    "ProviderConfig",
    "StreamLimits",
    # Interfaces
    "CacheStore",
    "ProviderAdapter",
    "ProviderConstructor",
    "ProviderPlugin",
    # Errors and cancellation
    "ErrorCode",
    "SutraError",
    "CancellationToken",
    "CancelledError",
    "run_cancellable",
    # Events
    "EventEmitter",
    "EventType",
    "SutraEvent",
    # Repositories and resilience
    "KeyResolution",
    "KeysRepository",
    "CircuitBreaker",
    "CircuitState",
    # Timeouts
    "TimeoutConfig",
    "get_timeout_config",
]
