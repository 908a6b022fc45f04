# ============================================================================
# HEALTH REPORT MODELS
# ============================================================================
# STATUS: Core model - Inbound push reports
# PURPOSE: Gatus webhook payload and the queued report it becomes
# CREATED: 18 OCT 2026
# EXPORTS: GatusWebhookPayload, ConditionResult, HealthReport
# DEPENDENCIES: pydantic
# ============================================================================
"""
Health Report Models

GatusWebhookPayload mirrors the JSON body Gatus posts to a custom
alerting provider. It is converted into a HealthReport before it reaches
the push source, so the core never depends on the transport schema.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field


class ConditionResult(BaseModel):
    """One evaluated Gatus condition."""
    condition: Optional[str] = None
    success: bool = False


class GatusWebhookPayload(BaseModel):
    """Body of a Gatus webhook call."""

    endpoint_name: Optional[str] = Field(default=None, alias="endpointName")
    endpoint_group: Optional[str] = Field(default=None, alias="endpointGroup")
    endpoint_url: Optional[str] = Field(default=None, alias="endpointURL")
    condition_results: Optional[List[ConditionResult]] = Field(
        default=None, alias="conditionResults"
    )
    success: bool = False
    timestamp: Optional[str] = None
    message: Optional[str] = None

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class HealthReport:
    """
    A push report waiting in a source's inbound queue.

    received_at is the monotonic time the report entered the process;
    it becomes the endpoint's last-seen time. timestamp is the sender's
    own wall-clock string, kept for logging only.
    """
    endpoint_id: str
    success: bool
    received_at: float
    timestamp: Optional[str] = None


__all__ = ["ConditionResult", "GatusWebhookPayload", "HealthReport"]
