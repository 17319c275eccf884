"""Provider health metrics: latency window, health records and snapshots."""

from .latency_window import LatencyWindow
from .health_parts import (
    HealthStatus,
    LatencyStatsSnapshot,
    ProviderHealth,
    ProviderHealthSnapshot,
    classify_success_rate,
)

__all__ = [
    "HealthStatus",
    "LatencyStatsSnapshot",
    "LatencyWindow",
    "ProviderHealth",
    "ProviderHealthSnapshot",
    "classify_success_rate",
]
