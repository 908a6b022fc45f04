# ============================================================================
# HEALTH CHECK ROUTER
# ============================================================================
# STATUS: Infrastructure - FastAPI health check endpoints
# PURPOSE: Liveness, readiness and engine status for this process
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Router

Health of THIS process (not of the monitored services):

Endpoints:
    GET /livez   - Liveness probe (is the process alive?)
                   Always 200 while the process answers.

    GET /readyz  - Readiness probe
                   200 once the engine runs and has seeded its applied
                   targets from the rewrite store, 503 before that.

    GET /health  - Engine statistics, domains without a healthy owner
                   200 when every domain has a healthy owner, 206 when
                   some do not, 503 when the engine is not running.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from __version__ import __version__, BUILD_DATE

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_engine = None


def set_engine(engine) -> None:
    """Set the failover engine for the health endpoints."""
    global _engine
    _engine = engine


# ============================================================================
# LIVENESS PROBE
# ============================================================================

@health_router.get("/livez")
async def liveness_probe():
    """
    Liveness probe.

    No external checks - just confirms the process is responsive.
    """
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


# ============================================================================
# READINESS PROBE
# ============================================================================

@health_router.get("/readyz")
async def readiness_probe():
    """
    Readiness probe.

    Ready means the engine loops are running and the current rewrites
    have been read from the store, so the first reconcile will not
    issue blind writes.
    """
    if _engine is None or not _engine.running:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "engine not running"},
        )

    if not _engine.ready:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "rewrite store not seeded"},
        )

    return {"status": "ready"}


# ============================================================================
# FULL HEALTH
# ============================================================================

@health_router.get("/health")
async def full_health_check():
    """
    Engine status.

    Returns:
        200: Running, every domain has a healthy owner
        206: Running, some domains have no healthy owner
        503: Engine not running
    """
    if _engine is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "message": "Engine not initialized"},
        )

    stats = _engine.stats
    unresolved = _engine.reconciler.unresolved

    if not _engine.running:
        status, http_code = "unhealthy", 503
    elif unresolved:
        status, http_code = "degraded", 206
    else:
        status, http_code = "healthy", 200

    body = {
        "status": status,
        "version": __version__,
        "build_date": BUILD_DATE,
        "no_healthy_target": unresolved,
        "engine": stats,
    }
    return JSONResponse(status_code=http_code, content=body)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "health_router",
    "set_engine",
]
