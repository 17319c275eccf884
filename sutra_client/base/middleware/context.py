"""Per-request pipeline execution context.

One :class:`PipelineContext` is created for every logical call. Middleware
communicate through its ``data`` scratchpad; the executor reads the
well-known keys below to decide between retry, fallback and propagation.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..cancellation import CancellationToken
from ..logging import LogContext

SHOULD_RETRY = "should_retry"
RETRY_DELAY = "retry_delay"
RETRY_ATTEMPT = "retry_attempt"
SHOULD_FALLBACK = "should_fallback"
FALLBACK_PROVIDER = "fallback_provider"
FALLBACK_MODEL = "fallback_model"
ATTEMPTED_PROVIDERS = "attempted_providers"

# Keys copied into the context of a re-issued call so retry and fallback
# stay bounded across re-entries.
CARRIED_KEYS = (RETRY_ATTEMPT, ATTEMPTED_PROVIDERS)


@dataclass
class PipelineContext:
    """State shared by all middleware for one logical request.

    Attributes:
        request_id: Unique id, also attached to events and errors.
        start_time: Wall-clock start (``time.time()``).
        started_monotonic: Monotonic start used for durations.
        token: Cancellation token injected into the request by the executor.
        data: Open scratchpad for inter-middleware signalling.
        request_chain: Names of middleware whose request hook ran, in order.
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    start_time: float = field(default_factory=time.time)
    started_monotonic: float = field(default_factory=time.monotonic)
    token: CancellationToken = field(default_factory=CancellationToken)
    data: Dict[str, Any] = field(default_factory=dict)
    request_chain: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, carry: Optional[Mapping[str, Any]] = None) -> "PipelineContext":
        ctx = cls()
        if carry:
            for key in CARRIED_KEYS:
                if key in carry:
                    value = carry[key]
                    ctx.data[key] = list(value) if isinstance(value, list) else value
        return ctx

    def carry(self) -> Dict[str, Any]:
        """Return the scratchpad subset forwarded to a re-issued call."""
        return {k: self.data[k] for k in CARRIED_KEYS if k in self.data}

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_monotonic) * 1000.0

    def log_context(self, provider: Optional[str] = None, model: Optional[str] = None) -> LogContext:
        return LogContext(provider=provider, model=model, request_id=self.request_id)


__all__ = [
    "PipelineContext",
    "SHOULD_RETRY",
    "RETRY_DELAY",
    "RETRY_ATTEMPT",
    "SHOULD_FALLBACK",
    "FALLBACK_PROVIDER",
    "FALLBACK_MODEL",
    "ATTEMPTED_PROVIDERS",
    "CARRIED_KEYS",
]
