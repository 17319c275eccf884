"""Latency statistics snapshot dataclass.

Immutable summary of a provider's latency window at one point in time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LatencyStatsSnapshot:
    """Immutable snapshot of windowed latency statistics.

    Attributes:
        count: Number of samples currently in the window.
        avg_ms: Mean latency (ms) or None if no samples.
        min_ms: Minimum latency (ms) or None if no samples.
        max_ms: Maximum latency (ms) or None if no samples.
        p95_ms: 95th percentile latency (ms) or None if no samples.
    """

    count: int
    avg_ms: Optional[float]
    min_ms: Optional[float]
    max_ms: Optional[float]
    p95_ms: Optional[float]


__all__ = ["LatencyStatsSnapshot"]
