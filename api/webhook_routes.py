# ============================================================================
# WEBHOOK ROUTES
# ============================================================================
# STATUS: Core - Inbound push report channel
# PURPOSE: Receive Gatus webhook alerts for PUSH services
# CREATED: 18 OCT 2026
# ============================================================================
"""
Webhook Routes

    POST /webhook         - Gatus custom alert payload
    GET  /webhook/health  - receiver liveness

When webhook.auth_token is configured, POST requires
`Authorization: Bearer <token>` (401 otherwise), checked before the body
is read. A body that is not JSON gets 400, one that fails validation
gets 422, and a payload without an endpoint name is rejected with 400.

Accepted reports are only enqueued; the push source applies them in
its own consumer task. Reports for endpoints no service declares are
still acknowledged (202) and then dropped by the push source.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import ValidationError

from core.models import GatusWebhookPayload
from .schemas import WebhookAck, WebhookHealthResponse

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/webhook", tags=["Webhook"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_engine = None
_auth_token: Optional[str] = None
_enabled = True


def set_engine(engine, auth_token: Optional[str] = None, enabled: bool = True) -> None:
    """Set the failover engine, the expected bearer token and whether reports are accepted."""
    global _engine, _auth_token, _enabled
    _engine = engine
    _auth_token = auth_token
    _enabled = enabled


def _check_auth(authorization: Optional[str]) -> None:
    if not _auth_token:
        return

    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Webhook received without proper authorization header")
        raise HTTPException(401, "Unauthorized")

    token = authorization[len("Bearer "):]
    if not hmac.compare_digest(token.encode(), _auth_token.encode()):
        logger.warning("Webhook received with invalid auth token")
        raise HTTPException(401, "Unauthorized")


# ============================================================================
# ROUTES
# ============================================================================

@webhook_router.post("", status_code=202, response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    authorization: Optional[str] = Header(None),
):
    """Accept one endpoint report. The body is read only after authentication."""
    if not _enabled:
        raise HTTPException(404, "Webhook receiver is disabled")

    _check_auth(authorization)

    try:
        body = await request.json()
    except ValueError:
        logger.warning("Webhook received with a body that is not JSON")
        raise HTTPException(400, "Invalid payload: body must be JSON")

    try:
        payload = GatusWebhookPayload.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Webhook payload failed validation: {e.error_count()} errors")
        raise HTTPException(
            422,
            e.errors(include_url=False, include_context=False),
        )

    if not payload.endpoint_name:
        logger.warning("Webhook received without an endpoint name")
        raise HTTPException(400, "Invalid payload: endpointName is required")

    if _engine is None:
        raise HTTPException(503, "Failover engine not initialized")

    logger.info(
        f"Received webhook for endpoint {payload.endpoint_name} "
        f"in group {payload.endpoint_group}: {payload.success}"
    )

    if not _engine.report(payload.endpoint_name, payload.success, payload.timestamp):
        raise HTTPException(503, "Report queue full")

    return WebhookAck(
        endpoint=payload.endpoint_name,
        known=_engine.push.knows(payload.endpoint_name),
    )


@webhook_router.get("/health", response_model=WebhookHealthResponse)
async def webhook_health():
    """Webhook receiver liveness."""
    pending = _engine.push.pending if _engine is not None else 0
    return WebhookHealthResponse(
        timestamp=datetime.now(timezone.utc),
        pending_reports=pending,
    )


__all__ = ["webhook_router", "set_engine"]
