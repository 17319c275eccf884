"""One-class-per-file parts for provider health tracking."""

from .latency_stats_snapshot import LatencyStatsSnapshot
from .provider_health import ProviderHealth
from .provider_health_snapshot import HealthStatus, ProviderHealthSnapshot, classify_success_rate

__all__ = [
    "HealthStatus",
    "LatencyStatsSnapshot",
    "ProviderHealth",
    "ProviderHealthSnapshot",
    "classify_success_rate",
]
