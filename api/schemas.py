# ============================================================================
# API SCHEMAS
# ============================================================================
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Schemas

Response models for the status API and the webhook acknowledgement.
The webhook request body is core.models.GatusWebhookPayload.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from core.contracts import MonitoringMode


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class EndpointHealthResponse(BaseModel):
    """Last known state of one remote endpoint."""
    healthy: bool
    stale: bool
    seconds_since_seen: Optional[float] = Field(
        None,
        description="Seconds since the last definitive result (null if never seen)",
    )


class ServiceHealthResponse(BaseModel):
    """Health of one configured service."""
    service: str
    source: MonitoringMode
    healthy: bool
    ip_address: str
    priority: int
    domains: List[str] = Field(default_factory=list)
    endpoints: Optional[Dict[str, EndpointHealthResponse]] = None


class ServiceListResponse(BaseModel):
    """All configured services."""
    services: List[ServiceHealthResponse]
    healthy: int
    total: int


class DomainStatusResponse(BaseModel):
    """Desired vs applied target of one managed domain."""
    domain: str
    desired: Optional[str] = None
    desired_service: Optional[str] = None
    applied: Optional[str] = None
    no_healthy_target: bool = False
    owners: List[str] = Field(default_factory=list)


class DomainListResponse(BaseModel):
    """All managed domains."""
    domains: List[DomainStatusResponse]
    converged: int
    total: int


class WebhookAck(BaseModel):
    """Response to an accepted webhook report."""
    status: str = "accepted"
    endpoint: str
    known: bool


class WebhookHealthResponse(BaseModel):
    """Webhook receiver liveness."""
    status: str = "healthy"
    timestamp: datetime
    pending_reports: int = 0


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None


__all__ = [
    "EndpointHealthResponse",
    "ServiceHealthResponse",
    "ServiceListResponse",
    "DomainStatusResponse",
    "DomainListResponse",
    "WebhookAck",
    "WebhookHealthResponse",
    "ErrorResponse",
]
