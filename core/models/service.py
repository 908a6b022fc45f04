# ============================================================================
# SERVICE SPEC MODEL
# ============================================================================
# STATUS: Core model - Static service definition
# PURPOSE: One monitored failover member and the domains it owns
# CREATED: 18 OCT 2026
# EXPORTS: ServiceSpec
# DEPENDENCIES: pydantic
# ============================================================================
"""
Service Spec Model

A ServiceSpec is loaded once from configuration and never mutated.
The process-wide AppConfig snapshot owns every spec.

Field aliases accept the names used by the AdGuardHomeHA appsettings
layout (gatus_endpoint_names, required_gatus_endpoints, ...), so existing
configs can be ported without renaming keys.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from core.contracts import MonitoringMode


class ServiceSpec(BaseModel):
    """
    Static definition of one failover member.

    Priority: lower number wins. Ties are broken by `order`, the position
    of the service in the configuration file.
    """

    name: str = Field(..., min_length=1, max_length=128)
    monitoring_mode: MonitoringMode = Field(
        default=MonitoringMode.PING,
        validation_alias=AliasChoices("monitoring_mode", "mode"),
    )
    ip_address: str = Field(
        ...,
        min_length=1,
        description="Address the owned domains are rewritten to",
    )
    priority: int = Field(default=0, description="Lower number = higher preference")
    timeout_ms: int = Field(default=5000, gt=0, description="Per-probe timeout")
    dns_rewrites: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dns_rewrites", "domains"),
    )
    endpoints: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("endpoints", "gatus_endpoint_names"),
        description="Remote endpoint ids aggregated by POLL/PUSH services",
    )
    status_sources: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("status_sources", "gatus_instance_urls"),
        description="Remote status API base URLs (POLL only)",
    )
    required_endpoints: int = Field(
        default=1,
        validation_alias=AliasChoices("required_endpoints", "required_gatus_endpoints"),
        description="Quorum R: healthy, non-stale endpoints needed",
    )
    staleness_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds before an endpoint signal is untrusted (global default if unset)",
    )
    order: int = Field(default=0, ge=0, description="Declaration order, set by the loader")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("monitoring_mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value):
        if isinstance(value, str):
            return MonitoringMode(value)
        return value

    @property
    def sort_key(self) -> tuple:
        """Deterministic preference key: priority, then declaration order."""
        return (self.priority, self.order)

    def owns(self, domain: str) -> bool:
        return domain in self.dns_rewrites


__all__ = ["ServiceSpec"]
