# ============================================================================
# API ROUTES
# ============================================================================
# STATUS: Core - FastAPI route definitions
# PURPOSE: Read-only status endpoints for services and domains
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Routes

    GET  /services            - health of every configured service
    GET  /services/{name}     - health of one service
    GET  /domains             - desired and applied target per domain
    POST /reconcile           - queue a full reconcile sweep

Mounted under /api/v1 by main.py.
"""

import logging

from fastapi import APIRouter, HTTPException

from .schemas import (
    DomainListResponse,
    DomainStatusResponse,
    ServiceHealthResponse,
    ServiceListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_engine = None


def set_engine(engine) -> None:
    """Set the failover engine for dependency injection."""
    global _engine
    _engine = engine


def get_engine():
    if _engine is None:
        raise HTTPException(503, "Failover engine not initialized")
    return _engine


# ============================================================================
# SERVICES
# ============================================================================

@router.get("/services", response_model=ServiceListResponse, tags=["Services"])
async def list_services():
    """Current health of every configured service, in declaration order."""
    engine = get_engine()
    services = [ServiceHealthResponse(**item) for item in await engine.aggregator.describe()]
    return ServiceListResponse(
        services=services,
        healthy=sum(1 for s in services if s.healthy),
        total=len(services),
    )


@router.get("/services/{name}", response_model=ServiceHealthResponse, tags=["Services"])
async def get_service(name: str):
    """Current health of one service."""
    engine = get_engine()
    for item in await engine.aggregator.describe():
        if item["service"] == name:
            return ServiceHealthResponse(**item)
    raise HTTPException(404, f"Service not found: {name}")


# ============================================================================
# DOMAINS
# ============================================================================

@router.get("/domains", response_model=DomainListResponse, tags=["Domains"])
async def list_domains():
    """Desired and applied target of every managed domain."""
    engine = get_engine()
    domains = [DomainStatusResponse(**item) for item in await engine.domain_status()]
    return DomainListResponse(
        domains=domains,
        converged=sum(1 for d in domains if d.desired and d.desired == d.applied),
        total=len(domains),
    )


@router.post("/reconcile", status_code=202, tags=["Domains"])
async def request_reconcile():
    """Queue a full reconcile sweep."""
    engine = get_engine()
    engine.request_reconcile()
    logger.info("Full reconcile requested via API")
    return {"status": "queued"}


__all__ = ["router", "set_engine"]
