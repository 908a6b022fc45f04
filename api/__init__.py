# ============================================================================
# API MODULE
# ============================================================================
# STATUS: Core - FastAPI routes
# PURPOSE: Status API and webhook receiver
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the failover engine.
"""

from .routes import router
from .webhook_routes import webhook_router
from .schemas import (
    ServiceHealthResponse,
    DomainStatusResponse,
    WebhookAck,
)

__all__ = [
    "router",
    "webhook_router",
    "ServiceHealthResponse",
    "DomainStatusResponse",
    "WebhookAck",
]
