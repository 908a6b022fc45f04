# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums shared across the failover engine
# PURPOSE: Monitoring modes and reconciliation outcome states
# CREATED: 18 OCT 2026
# EXPORTS: MonitoringMode, OutcomeStatus
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the failover engine.

These enums cross every boundary of the system:
- YAML configuration (monitoring_mode)
- Health sources (which source owns a service)
- Reconciler outcomes (what happened to a domain)
- HTTP status responses
"""

from enum import Enum


# ============================================================================
# MONITORING MODE
# ============================================================================

class MonitoringMode(str, Enum):
    """
    How a service's liveness is observed.

    Selected per service at configuration time:
        PING - active ICMP probe against the service address
        POLL - periodic query of a remote status API (Gatus)
        PUSH - passive reports delivered by webhook
    """
    PING = "ping"
    POLL = "poll"
    PUSH = "push"

    @classmethod
    def _missing_(cls, value):
        # Names used by earlier AdGuardHomeHA configs
        aliases = {
            "gatus": cls.POLL,
            "webhook": cls.PUSH,
            "activeprobe": cls.PING,
            "active_probe": cls.PING,
        }
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
            return aliases.get(lowered)
        return None

    @property
    def uses_endpoints(self) -> bool:
        """Whether this mode aggregates remote endpoints with a quorum."""
        return self in (MonitoringMode.POLL, MonitoringMode.PUSH)


# ============================================================================
# RECONCILIATION OUTCOMES
# ============================================================================

class OutcomeStatus(str, Enum):
    """
    Result of reconciling one domain.

    APPLIED            - store updated to the desired address
    UNCHANGED          - applied address already matches, no write issued
    NO_HEALTHY_TARGET  - no owner is healthy, domain left as-is (critical)
    STORE_ERROR        - write failed, retried on the next tick
    """
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    NO_HEALTHY_TARGET = "no_healthy_target"
    STORE_ERROR = "store_error"

    def is_failure(self) -> bool:
        """Check if the domain is not converged after this outcome."""
        return self in (OutcomeStatus.NO_HEALTHY_TARGET, OutcomeStatus.STORE_ERROR)


__all__ = ["MonitoringMode", "OutcomeStatus"]
