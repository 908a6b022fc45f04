# ============================================================================
# FAILOVER SELECTOR
# ============================================================================
# STATUS: Core - Desired target computation
# PURPOSE: Pick the address each managed domain should resolve to
# CREATED: 18 OCT 2026
# ============================================================================
"""
Failover Selector

Pure function of (configuration, health snapshot). For each domain:

    owners  = services whose dns_rewrites include the domain
    healthy = owners with health[name] == True
    target  = min(healthy, key=(priority, declaration order)).ip_address

No healthy owner means no target (None). The reconciler decides what to
do about that; the selector never invents an address.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set

from core.models import ServiceSpec


class FailoverSelector:
    """Computes desired targets from health."""

    def __init__(self, services: Iterable[ServiceSpec]):
        self._services: List[ServiceSpec] = sorted(services, key=lambda s: s.order)

        self._owners: Dict[str, List[ServiceSpec]] = {}
        for spec in self._services:
            for domain in spec.dns_rewrites:
                self._owners.setdefault(domain, []).append(spec)

        for owners in self._owners.values():
            owners.sort(key=lambda s: s.sort_key)

    @property
    def domains(self) -> List[str]:
        """Every managed domain, in first-declaration order."""
        return list(self._owners)

    def owners(self, domain: str) -> List[ServiceSpec]:
        """Owners of a domain, most preferred first."""
        return list(self._owners.get(domain, []))

    def desired_service(
        self,
        domain: str,
        health: Mapping[str, bool],
    ) -> Optional[ServiceSpec]:
        for spec in self._owners.get(domain, []):
            if health.get(spec.name, False):
                return spec
        return None

    def desired_target(
        self,
        domain: str,
        health: Mapping[str, bool],
    ) -> Optional[str]:
        """Address of the most preferred healthy owner, or None."""
        spec = self.desired_service(domain, health)
        return spec.ip_address if spec is not None else None

    def desired_targets(
        self,
        health: Mapping[str, bool],
        domains: Optional[Iterable[str]] = None,
    ) -> Dict[str, Optional[str]]:
        """desired_target for each domain (all managed domains if None)."""
        selected = self.domains if domains is None else list(domains)
        return {domain: self.desired_target(domain, health) for domain in selected}

    def domains_for(self, service_names: Iterable[str]) -> List[str]:
        """Domains owned by any of the given services."""
        names: Set[str] = set(service_names)
        return [
            domain for domain, owners in self._owners.items()
            if any(spec.name in names for spec in owners)
        ]


__all__ = ["FailoverSelector"]
