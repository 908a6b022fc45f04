# ============================================================================
# RECONCILER
# ============================================================================
# STATUS: Core - Desired vs applied DNS state
# PURPOSE: Minimal, per-domain isolated writes to the rewrite store
# CREATED: 18 OCT 2026
# ============================================================================
"""
Reconciler

The single writer of the rewrite store.

State:
    _applied     domain -> address last confirmed in the store
    _unresolved  domains that currently have no healthy owner

For each domain it is asked about:
    1. desired := selector.desired_target(domain, current health)
    2. desired is None        -> NO_HEALTHY_TARGET, store untouched
    3. desired == applied     -> UNCHANGED, no write
    4. otherwise              -> set_rewrite; cache updated only on success
                                 (STORE_ERROR otherwise, retried next tick)

Domains are reconciled concurrently. Each domain has its own lock, so two
reconciliations of one domain never interleave their read/write.

initialize() seeds _applied from list_rewrites(). If the store is down
at startup the seed is retried at the start of every reconcile() until
it succeeds. A converged store therefore produces zero writes on the
first tick after a restart.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

from core.contracts import OutcomeStatus
from core.logging import log_context, log_transition
from core.models import DomainOutcome
from failover.selector import FailoverSelector
from infrastructure.rewrite_store import RewriteStore

logger = logging.getLogger(__name__)

HealthProvider = Callable[[], Awaitable[Dict[str, bool]]]
OutcomeListener = Callable[[DomainOutcome], Union[None, Awaitable[None]]]


class Reconciler:
    """Applies desired targets to the rewrite store."""

    def __init__(
        self,
        store: RewriteStore,
        selector: FailoverSelector,
        health_provider: HealthProvider,
    ):
        """
        Args:
            store: Rewrite store to write through
            selector: Desired target computation
            health_provider: Coroutine returning service -> healthy
                (HealthAggregator.current_health)
        """
        self.store = store
        self.selector = selector
        self._health_provider = health_provider

        self._applied: Dict[str, str] = {}
        self._unresolved: Set[str] = set()
        self._domain_locks: Dict[str, asyncio.Lock] = {
            domain: asyncio.Lock() for domain in selector.domains
        }
        self._listeners: List[OutcomeListener] = []
        self._seeded = False

        self._runs = 0
        self._writes = 0
        self._write_failures = 0

    # =========================================================================
    # LISTENERS & READS
    # =========================================================================

    def add_listener(self, listener: OutcomeListener) -> None:
        """Register a callback for every DomainOutcome produced."""
        self._listeners.append(listener)

    @property
    def seeded(self) -> bool:
        """Whether the applied cache has been loaded from the store."""
        return self._seeded

    def applied_target(self, domain: str) -> Optional[str]:
        return self._applied.get(domain)

    @property
    def applied(self) -> Dict[str, str]:
        return dict(self._applied)

    @property
    def unresolved(self) -> List[str]:
        """Domains currently without a healthy owner."""
        return sorted(self._unresolved)

    # =========================================================================
    # SEEDING
    # =========================================================================

    async def initialize(self) -> bool:
        """
        Seed the applied cache from the store.

        Returns:
            True if the store was read; False means retry later
        """
        if not await self.store.test_connection():
            logger.warning("Rewrite store is not reachable or not running; seeding deferred")

        try:
            entries = await self.store.list_rewrites()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Cannot read current rewrites, will retry: {e}")
            return False

        managed = set(self.selector.domains)
        answers: Dict[str, Set[str]] = {}
        for entry in entries:
            if entry.domain in managed:
                answers.setdefault(entry.domain, set()).add(entry.answer)

        self._applied.clear()
        for domain, addresses in answers.items():
            if len(addresses) == 1:
                self._applied[domain] = next(iter(addresses))
            else:
                # Left out of the cache so the next reconcile rewrites it
                logger.warning(
                    f"Domain {domain} has {len(addresses)} rewrites "
                    f"({', '.join(sorted(addresses))}); it will be rewritten"
                )

        self._seeded = True
        logger.info(
            f"Seeded applied targets from store: {len(self._applied)}/{len(managed)} "
            f"managed domains present"
        )
        return True

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def reconcile(self, domains: Optional[Iterable[str]] = None) -> List[DomainOutcome]:
        """
        Reconcile domains against current health.

        Args:
            domains: Domains to reconcile (every managed domain if None).
                Unmanaged names are ignored.

        Returns:
            One DomainOutcome per reconciled domain
        """
        if not self._seeded:
            await self.initialize()

        if domains is None:
            selected = self.selector.domains
        else:
            selected = [d for d in dict.fromkeys(domains) if d in self._domain_locks]

        if not selected:
            return []

        outcomes = await asyncio.gather(*(self._reconcile_domain(d) for d in selected))

        self._runs += 1
        applied = sum(1 for o in outcomes if o.status == OutcomeStatus.APPLIED)
        failed = sum(1 for o in outcomes if o.status.is_failure())
        logger.debug(
            f"Reconciled {len(outcomes)} domains: {applied} applied, {failed} not converged"
        )
        return list(outcomes)

    async def _reconcile_domain(self, domain: str) -> DomainOutcome:
        with log_context(domain=domain):
            async with self._domain_locks[domain]:
                outcome = await self._apply(domain)
            await self._notify(outcome)
            return outcome

    async def _apply(self, domain: str) -> DomainOutcome:
        """Decide and write one domain. Caller holds the domain lock."""
        health = await self._health_provider()
        desired_service = self.selector.desired_service(domain, health)
        previous = self._applied.get(domain)

        if desired_service is None:
            if domain not in self._unresolved:
                self._unresolved.add(domain)
                log_transition(
                    "no_healthy_target",
                    {
                        "domain": domain,
                        "owners": [s.name for s in self.selector.owners(domain)],
                        "kept": previous,
                    },
                    level=logging.CRITICAL,
                )
            return DomainOutcome(
                domain=domain,
                status=OutcomeStatus.NO_HEALTHY_TARGET,
                previous=previous,
            )

        desired = desired_service.ip_address

        if domain in self._unresolved:
            self._unresolved.discard(domain)
            logger.info(f"Domain {domain} has a healthy owner again: {desired_service.name}")

        if desired == previous:
            return DomainOutcome(
                domain=domain,
                status=OutcomeStatus.UNCHANGED,
                desired=desired,
                previous=previous,
            )

        error: Optional[str] = None
        try:
            written = await self.store.set_rewrite(domain, desired)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            written = False
            error = str(e)

        if not written:
            self._write_failures += 1
            logger.warning(
                f"Failed to point {domain} at {desired} "
                f"(still {previous or 'unknown'}): {error or 'store refused'}"
            )
            return DomainOutcome(
                domain=domain,
                status=OutcomeStatus.STORE_ERROR,
                desired=desired,
                previous=previous,
                error=error or "store refused the write",
            )

        self._applied[domain] = desired
        self._writes += 1
        log_transition(
            "domain_target_changed",
            {
                "domain": domain,
                "previous": previous,
                "target": desired,
                "service": desired_service.name,
            },
        )
        return DomainOutcome(
            domain=domain,
            status=OutcomeStatus.APPLIED,
            desired=desired,
            previous=previous,
        )

    async def _notify(self, outcome: DomainOutcome) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(outcome)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Outcome listener failed for {outcome.domain}: {e}")

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "domains": len(self._domain_locks),
            "applied": len(self._applied),
            "unresolved": len(self._unresolved),
            "runs": self._runs,
            "writes": self._writes,
            "write_failures": self._write_failures,
        }


__all__ = ["Reconciler", "HealthProvider", "OutcomeListener"]
