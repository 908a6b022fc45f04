# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export contracts, errors and models
# CREATED: 18 OCT 2026
# ============================================================================

from core.contracts import MonitoringMode, OutcomeStatus
from core.errors import FailoverError, ConfigurationError, RewriteStoreError
from core.models import (
    ServiceSpec,
    EndpointState,
    ServiceHealthStatus,
    HealthReport,
    GatusWebhookPayload,
    RewriteEntry,
    DomainOutcome,
)

__all__ = [
    # Enums
    "MonitoringMode",
    "OutcomeStatus",
    # Errors
    "FailoverError",
    "ConfigurationError",
    "RewriteStoreError",
    # Models
    "ServiceSpec",
    "EndpointState",
    "ServiceHealthStatus",
    "HealthReport",
    "GatusWebhookPayload",
    "RewriteEntry",
    "DomainOutcome",
]
