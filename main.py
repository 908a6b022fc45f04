# ============================================================================
# DNS FAILOVER ENGINE - MAIN APPLICATION
# ============================================================================
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application with the failover engine
# CREATED: 18 OCT 2026
# ============================================================================
"""
DNS Failover Engine Main Application

FastAPI application that:
1. Loads and validates the failover configuration
2. Runs the health sources and reconciler in the background
3. Receives Gatus webhook reports for PUSH services
4. Exposes service/domain status and liveness/readiness probes

An invalid configuration stops the process during startup.

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE

from core.config import get_config, set_config
from core.errors import ConfigurationError
from failover import FailoverEngine
from infrastructure import AdGuardHomeClient
from api.routes import router, set_engine as set_api_engine
from api.webhook_routes import webhook_router, set_engine as set_webhook_engine

# Health check routes
from health.router import health_router, set_engine as set_health_engine

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_engine: FailoverEngine = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Loads configuration and starts the engine on startup, stops it on
    shutdown.
    """
    global _engine

    logger.info(f"Starting DNS Failover Engine v{__version__} (Build {BUILD_DATE})")

    try:
        config = get_config()
    except ConfigurationError as e:
        logger.critical(f"Refusing to start: {e}")
        raise

    store = AdGuardHomeClient.from_config(config.adguard_home)
    _engine = FailoverEngine(config, store)

    # Set engine for routes
    set_api_engine(_engine)
    set_health_engine(_engine)
    set_webhook_engine(
        _engine,
        auth_token=config.webhook.auth_token,
        enabled=config.webhook.enabled,
    )

    if config.webhook.enabled and not config.webhook.auth_token:
        logger.warning("Webhook endpoint accepts unauthenticated reports (no auth_token set)")

    await _engine.start()
    logger.info("Failover engine started")

    yield

    # Shutdown
    logger.info("Shutting down DNS Failover Engine...")

    await _engine.stop()
    await store.close()
    set_config(None)

    logger.info("DNS Failover Engine stopped")


# Create FastAPI app
app = FastAPI(
    title="DNS Failover Engine",
    description="Health-driven failover of AdGuard Home DNS rewrites",
    version=__version__,
    lifespan=lifespan,
)

# Include health check routes (no prefix - /livez, /readyz, /health)
app.include_router(health_router)

# Include status API routes
app.include_router(router, prefix="/api/v1")

# Include webhook receiver (/webhook, /webhook/health)
app.include_router(webhook_router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "DNS Failover Engine",
        "version": __version__,
        "build_date": BUILD_DATE,
        "status": "running" if _engine is not None and _engine.running else "starting",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
