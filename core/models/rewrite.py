# ============================================================================
# REWRITE MODELS
# ============================================================================
# STATUS: Core model - DNS rewrite entries and reconciliation outcomes
# PURPOSE: Wire format of the rewrite store and per-domain results
# CREATED: 18 OCT 2026
# EXPORTS: RewriteEntry, DomainOutcome
# DEPENDENCIES: pydantic, dataclasses
# ============================================================================
"""
Rewrite Models

RewriteEntry is the AdGuard Home rewrite JSON shape ({"domain", "answer"}).
DomainOutcome is what the reconciler reports for each domain it touches.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel

from core.contracts import OutcomeStatus


class RewriteEntry(BaseModel):
    """One DNS rewrite: domain resolves to answer."""
    domain: str
    answer: str


@dataclass(frozen=True)
class DomainOutcome:
    """Result of reconciling one domain."""
    domain: str
    status: OutcomeStatus
    desired: Optional[str] = None
    previous: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "domain": self.domain,
            "status": self.status.value,
            "desired": self.desired,
            "previous": self.previous,
        }
        if self.error:
            result["error"] = self.error
        return result


__all__ = ["RewriteEntry", "DomainOutcome"]
