# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for service, health and rewrite models
# CREATED: 18 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Static configuration models are pydantic (validated once at startup).
Runtime health state uses plain dataclasses mutated under source locks.
"""

from core.models.service import ServiceSpec
from core.models.endpoint import EndpointState, ServiceHealthStatus, NEVER_SEEN
from core.models.report import ConditionResult, GatusWebhookPayload, HealthReport
from core.models.rewrite import RewriteEntry, DomainOutcome

__all__ = [
    # Service
    "ServiceSpec",
    # Health state
    "EndpointState",
    "ServiceHealthStatus",
    "NEVER_SEEN",
    # Reports
    "ConditionResult",
    "GatusWebhookPayload",
    "HealthReport",
    # Rewrites
    "RewriteEntry",
    "DomainOutcome",
]
