"""Bounded, time-windowed latency samples.

Every write appends ``(timestamp, value)`` and then evicts from the front
while the window holds more than ``max_samples`` entries or the oldest entry
is older than ``ttl_seconds``. Reads prune expired entries the same way, so
no surviving sample ever exceeds either bound.
"""
from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple


class LatencyWindow:
    __slots__ = ("_samples", "_max_samples", "_ttl", "_clock")

    def __init__(
        self,
        max_samples: int = 100,
        ttl_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_samples < 1:
            raise ValueError("max_samples must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._samples: Deque[Tuple[float, float]] = deque()
        self._max_samples = max_samples
        self._ttl = ttl_seconds
        self._clock = clock

    def add(self, value_ms: float) -> None:
        now = self._clock()
        self._samples.append((now, float(value_ms)))
        self._evict(now)

    def _evict(self, now: float) -> None:
        samples = self._samples
        while samples and (len(samples) > self._max_samples or now - samples[0][0] > self._ttl):
            samples.popleft()

    def samples(self) -> List[Tuple[float, float]]:
        self._evict(self._clock())
        return list(self._samples)

    def __len__(self) -> int:
        self._evict(self._clock())
        return len(self._samples)

    def average(self) -> Optional[float]:
        """Mean of the surviving samples, ``None`` when empty."""
        self._evict(self._clock())
        if not self._samples:
            return None
        return sum(v for _, v in self._samples) / len(self._samples)

    def percentile(self, pct: float) -> Optional[float]:
        """Nearest-rank percentile (``pct`` in 0..100) of surviving samples."""
        self._evict(self._clock())
        if not self._samples:
            return None
        ordered = sorted(v for _, v in self._samples)
        rank = max(1, min(len(ordered), int(round(pct / 100.0 * len(ordered)))))
        return ordered[rank - 1]

    def clear(self) -> None:
        self._samples.clear()


__all__ = ["LatencyWindow"]
