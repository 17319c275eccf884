"""Per-provider circuit breaker.

States:
- CLOSED: normal operation. Consecutive failures are counted; a success
  resets the count. Reaching ``failure_threshold`` opens the circuit.
- OPEN: admission fails immediately until ``open_duration_seconds`` have
  elapsed since the circuit opened.
- HALF_OPEN: up to ``half_open_max_calls`` trial calls are admitted, first
  come first served. Any trial failure reopens the circuit with a fresh
  timestamp; ``required_successes`` trial successes close it.

The breaker does not invoke anything; the registry asks for admission and
reports outcomes. All mutation happens on one event loop between suspension
points, so no lock is taken.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..dto.client_config import CircuitBreakerConfig
from ..logging import get_logger, log_event

_logger = get_logger("sutra.resilience.breaker")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerStats:
    """Cumulative admission and outcome counts for one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


StateChangeHandler = Callable[[str, CircuitState, CircuitState], None]


class CircuitBreaker:
    """Three-state breaker guarding one provider.

    Parameters
    ----------
    name:
        Provider key, used in logs and state-change notifications.
    config:
        Thresholds; defaults to :class:`CircuitBreakerConfig`.
    clock:
        Monotonic time source in seconds (injectable for tests).
    on_state_change:
        Called as ``handler(name, old, new)`` after every transition.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateChangeHandler] = None,
    ) -> None:
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._on_state_change = on_state_change
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_admitted = 0
        self._half_open_successes = 0
        self._opened_at: Optional[float] = None
        self._last_change: float = clock()
        self.stats = CircuitBreakerStats()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> CircuitState:
        """Logical state: an expired OPEN circuit reports HALF_OPEN."""
        if self._state is CircuitState.OPEN and self._cooldown_remaining() <= 0:
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_change(self) -> float:
        return self._last_change

    def is_open(self) -> bool:
        """True while admission would be refused for cool-down reasons."""
        return self._state is CircuitState.OPEN and self._cooldown_remaining() > 0

    def retry_after(self) -> float:
        """Seconds until the open circuit admits a trial (0 when not open)."""
        if self._state is not CircuitState.OPEN:
            return 0.0
        return max(0.0, self._cooldown_remaining())

    def _cooldown_remaining(self) -> float:
        if self._opened_at is None:
            return 0.0
        return self.config.open_duration_seconds - (self._clock() - self._opened_at)

    # ------------------------------------------------------------------ #
    # Admission and outcomes
    # ------------------------------------------------------------------ #
    def try_acquire(self) -> bool:
        """Ask to start one call; returns False when it must be rejected."""
        self.stats.total_calls += 1
        if self._state is CircuitState.OPEN:
            if self._cooldown_remaining() > 0:
                self.stats.rejected_calls += 1
                return False
            self._transition(CircuitState.HALF_OPEN)
        if self._state is CircuitState.HALF_OPEN:
            if self._half_open_admitted >= self.config.half_open_max_calls:
                self.stats.rejected_calls += 1
                return False
            self._half_open_admitted += 1
        return True

    def release(self) -> None:
        """Give back an admission whose call ended without an outcome (cancelled)."""
        if self._state is CircuitState.HALF_OPEN and self._half_open_admitted > 0:
            self._half_open_admitted -= 1

    def record_success(self) -> None:
        self.stats.successful_calls += 1
        if self._state is CircuitState.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes >= self.config.required_successes:
                self._failure_count = 0
                self._transition(CircuitState.CLOSED)
        elif self._state is CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self.stats.failed_calls += 1
        if self._state is CircuitState.HALF_OPEN:
            self._open()
        elif self._state is CircuitState.CLOSED:
            self._failure_count += 1
            if self._failure_count >= self.config.failure_threshold:
                self._open()

    def reset(self) -> None:
        """Force the circuit closed and clear counters."""
        self._failure_count = 0
        self._transition(CircuitState.CLOSED)
        log_event(_logger, "breaker.reset", provider=self.name)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _open(self) -> None:
        self._opened_at = self._clock()
        if self._state is CircuitState.OPEN:
            return
        self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._half_open_admitted = 0
        self._half_open_successes = 0
        if new_state is not CircuitState.OPEN:
            self._opened_at = None if new_state is CircuitState.CLOSED else self._opened_at
        if old_state is new_state:
            return
        self._state = new_state
        self._last_change = self._clock()
        self.stats.state_changes += 1
        log_event(
            _logger,
            "breaker.state_change",
            provider=self.name,
            old=old_state.value,
            new=new_state.value,
            failures=self._failure_count,
        )
        if self._on_state_change is not None:
            try:
                self._on_state_change(self.name, old_state, new_state)
            except Exception:
                _logger.exception("circuit state change handler failed")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self._failure_count,
            "last_change": self._last_change,
            "retry_after": self.retry_after(),
            "stats": self.stats.to_dict(),
        }


__all__ = ["CircuitBreaker", "CircuitBreakerStats", "CircuitState"]
