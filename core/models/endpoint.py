# ============================================================================
# ENDPOINT & SERVICE HEALTH STATE
# ============================================================================
# STATUS: Core model - Mutable per-endpoint and per-service health state
# PURPOSE: Staleness-aware quorum evaluation for POLL/PUSH services
# CREATED: 18 OCT 2026
# EXPORTS: EndpointState, ServiceHealthStatus, NEVER_SEEN
# DEPENDENCIES: dataclasses
# ============================================================================
"""
Endpoint & Service Health State

Runtime state owned by exactly one health source and mutated only
under that source's lock.

Timestamps are monotonic clock readings (seconds). NEVER_SEEN is the
pre-first-report sentinel: now - NEVER_SEEN is infinite, so an endpoint
that never reported is stale from the first evaluation.

Staleness never rewrites the stored boolean. It only removes the
endpoint's contribution to the quorum count.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.contracts import MonitoringMode

NEVER_SEEN = float("-inf")


@dataclass
class EndpointState:
    """Last known result of one remote endpoint."""
    endpoint_id: str
    healthy: bool = False
    last_seen: float = NEVER_SEEN

    @property
    def ever_seen(self) -> bool:
        return self.last_seen != NEVER_SEEN

    def is_stale(self, now: float, staleness_timeout: float) -> bool:
        return (now - self.last_seen) > staleness_timeout

    def contributes(self, now: float, staleness_timeout: float) -> bool:
        """Whether this endpoint counts toward the quorum right now."""
        return self.healthy and not self.is_stale(now, staleness_timeout)

    def record(self, healthy: bool, seen_at: float) -> bool:
        """
        Store a fresh result.

        Returns:
            True if the stored boolean changed
        """
        previous = self.healthy
        self.healthy = healthy
        self.last_seen = max(self.last_seen, seen_at)
        return previous != healthy

    def to_dict(self, now: float, staleness_timeout: float) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "stale": self.is_stale(now, staleness_timeout),
            "seconds_since_seen": (now - self.last_seen) if self.ever_seen else None,
        }


@dataclass
class ServiceHealthStatus:
    """
    Aggregated health of one service.

    For POLL/PUSH services `endpoints` holds one EndpointState per
    configured endpoint id. PING services leave it empty.
    """
    service_name: str
    source: MonitoringMode
    is_healthy: bool = False
    last_updated: float = NEVER_SEEN
    endpoints: Dict[str, EndpointState] = field(default_factory=dict)

    @classmethod
    def seeded(
        cls,
        service_name: str,
        source: MonitoringMode,
        endpoint_ids: List[str],
    ) -> "ServiceHealthStatus":
        """Create the pre-seeded, fail-closed status used at startup."""
        return cls(
            service_name=service_name,
            source=source,
            endpoints={eid: EndpointState(endpoint_id=eid) for eid in endpoint_ids},
        )

    def healthy_count(self, now: float, staleness_timeout: float) -> int:
        return sum(
            1 for e in self.endpoints.values()
            if e.contributes(now, staleness_timeout)
        )

    def stale_endpoints(self, now: float, staleness_timeout: float) -> List[str]:
        return [
            eid for eid, e in self.endpoints.items()
            if e.is_stale(now, staleness_timeout)
        ]

    def quorum_met(self, required: int, now: float, staleness_timeout: float) -> bool:
        """count(endpoint healthy AND not stale) >= required."""
        if not self.endpoints:
            return False
        return self.healthy_count(now, staleness_timeout) >= required

    def to_dict(self, now: float, staleness_timeout: float) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "service": self.service_name,
            "source": self.source.value,
            "healthy": self.is_healthy,
        }
        if self.endpoints:
            result["endpoints"] = {
                eid: e.to_dict(now, staleness_timeout)
                for eid, e in self.endpoints.items()
            }
        return result


__all__ = ["EndpointState", "ServiceHealthStatus", "NEVER_SEEN"]
