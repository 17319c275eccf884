"""Mutable per-provider health record.

Cumulative request/success/failure counts, the last error and its time,
and a bounded :class:`LatencyWindow`. Updated only by the registry's
circuit-breaker-protected execution path.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..latency_window import LatencyWindow
from .latency_stats_snapshot import LatencyStatsSnapshot
from .provider_health_snapshot import ProviderHealthSnapshot, classify_success_rate


class ProviderHealth:
    __slots__ = (
        "_provider",
        "_requests",
        "_successes",
        "_failures",
        "_in_flight",
        "_last_error",
        "_last_error_code",
        "_last_error_at",
        "_latency",
        "_wall_clock",
    )

    def __init__(
        self,
        provider: str,
        *,
        max_samples: int = 100,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._requests = 0
        self._successes = 0
        self._failures = 0
        self._in_flight = 0
        self._last_error: Optional[str] = None
        self._last_error_code: Optional[str] = None
        self._last_error_at: Optional[float] = None
        self._latency = LatencyWindow(max_samples, ttl_seconds, clock=clock)
        self._wall_clock = wall_clock

    @staticmethod
    def monotonic_ms() -> float:
        """Return current monotonic time in milliseconds for latency measurement."""
        return time.monotonic() * 1000.0

    @property
    def latency(self) -> LatencyWindow:
        return self._latency

    @property
    def success_rate(self) -> float:
        """Successes over requests; 1.0 before the first request."""
        if self._requests == 0:
            return 1.0
        return self._successes / self._requests

    def record_start(self) -> None:
        self._requests += 1
        self._in_flight += 1

    def record_success(self, latency_ms: float) -> None:
        self._successes += 1
        self._in_flight = max(0, self._in_flight - 1)
        if latency_ms >= 0:
            self._latency.add(latency_ms)

    def record_failure(self, message: str, code: Optional[str] = None, latency_ms: Optional[float] = None) -> None:
        self._failures += 1
        self._in_flight = max(0, self._in_flight - 1)
        self._last_error = message
        self._last_error_code = code
        self._last_error_at = self._wall_clock()
        if latency_ms is not None and latency_ms >= 0:
            self._latency.add(latency_ms)

    def record_cancelled(self) -> None:
        """Undo the request count of a call that ended by cooperative cancellation."""
        self._requests = max(0, self._requests - 1)
        self._in_flight = max(0, self._in_flight - 1)

    def snapshot(self, circuit_state: str) -> ProviderHealthSnapshot:
        samples = [v for _, v in self._latency.samples()]
        latency = LatencyStatsSnapshot(
            count=len(samples),
            avg_ms=(sum(samples) / len(samples)) if samples else None,
            min_ms=min(samples) if samples else None,
            max_ms=max(samples) if samples else None,
            p95_ms=self._latency.percentile(95),
        )
        rate = self.success_rate
        return ProviderHealthSnapshot(
            provider=self._provider,
            status=classify_success_rate(rate),
            success_rate=rate,
            request_count=self._requests,
            success_count=self._successes,
            failure_count=self._failures,
            in_flight=self._in_flight,
            circuit_state=circuit_state,
            last_error=self._last_error,
            last_error_code=self._last_error_code,
            last_error_at=self._last_error_at,
            latency=latency,
        )


__all__ = ["ProviderHealth"]
