"""Provider health snapshot dataclass.

Read-only projection returned by the registry's health queries. Designed
for serialization and logging via :meth:`to_dict`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .latency_stats_snapshot import LatencyStatsSnapshot


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def classify_success_rate(rate: float) -> HealthStatus:
    """Map a success rate to a status: >=0.9 healthy, >=0.5 degraded, else unhealthy."""
    if rate >= 0.9:
        return HealthStatus.HEALTHY
    if rate >= 0.5:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


@dataclass(frozen=True)
class ProviderHealthSnapshot:
    """Immutable point-in-time view of one provider's health."""

    provider: str
    status: HealthStatus
    success_rate: float
    request_count: int
    success_count: int
    failure_count: int
    in_flight: int
    circuit_state: str
    last_error: Optional[str]
    last_error_code: Optional[str]
    last_error_at: Optional[float]
    latency: LatencyStatsSnapshot

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


__all__ = ["HealthStatus", "ProviderHealthSnapshot", "classify_success_rate"]
