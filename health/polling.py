# ============================================================================
# POLLING HEALTH SOURCE
# ============================================================================
# STATUS: Core - Remote status polling health source
# PURPOSE: Periodic endpoint queries with quorum and staleness for POLL services
# CREATED: 18 OCT 2026
# ============================================================================
"""
Polling Health Source

Each tick queries every endpoint of every POLL service against each of
the service's status sources (Gatus instances). The results are folded
per endpoint:

    any source answered True   -> True
    else any answered False    -> False
    else                       -> unknown

An unknown result (timeout, transport error, bad status, bad body)
changes nothing: the endpoint keeps its previous boolean and its
previous last-seen time. Repeated failures therefore degrade health only
once the endpoint goes stale.

All queries run outside the lock. Results are applied and every service
is re-evaluated in one critical section at the end of the tick.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from core.contracts import MonitoringMode
from core.logging import log_context
from core.models import ServiceSpec
from health.core import Clock, QuorumHealthSource
from infrastructure.status_source import RemoteStatusSource

logger = logging.getLogger(__name__)


def combine_results(results: Iterable[Optional[bool]]) -> Optional[bool]:
    """Fold per-source answers for one endpoint: True wins, then False."""
    results = list(results)
    if any(r is True for r in results):
        return True
    if any(r is False for r in results):
        return False
    return None


class PollingHealthSource(QuorumHealthSource):
    """Health source for services monitored through a remote status API."""

    mode = MonitoringMode.POLL

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        status_client: RemoteStatusSource,
        timeout_seconds: float = 10.0,
        default_staleness_seconds: float = 300.0,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize polling source.

        Args:
            services: All configured services
            status_client: Queries one endpoint on one status source
            timeout_seconds: Per-query timeout
            default_staleness_seconds: Window used when a service sets none
            clock: Monotonic clock
        """
        super().__init__(
            services,
            default_staleness_seconds=default_staleness_seconds,
            clock=clock,
        )
        self.status_client = status_client
        self.timeout_seconds = timeout_seconds
        self._polling = False
        self._ticks = 0
        self._unknown_results = 0

    async def poll_once(self) -> Dict[str, bool]:
        """
        Run one polling tick.

        Returns:
            service -> healthy after the tick
        """
        if self._polling:
            logger.debug("Poll tick already in progress, returning cached results")
            return await self.current_health()

        self._polling = True
        try:
            targets: List[Tuple[str, str]] = [
                (spec.name, endpoint_id)
                for spec in self._specs.values()
                for endpoint_id in spec.endpoints
            ]

            results = await asyncio.gather(
                *(self._query_endpoint(self._specs[name], eid) for name, eid in targets)
            )

            async with self._emit_lock:
                async with self._lock:
                    now = self._clock()
                    for (name, endpoint_id), result in zip(targets, results):
                        if result is None:
                            self._unknown_results += 1
                            continue
                        self._record_endpoint(name, endpoint_id, result, now)
                    changes = self._recompute_all(now)
                    snapshot = {n: s.is_healthy for n, s in self._status.items()}
                await self._emit(changes)

            self._ticks += 1
            return snapshot
        finally:
            self._polling = False

    async def _query_endpoint(self, spec: ServiceSpec, endpoint_id: str) -> Optional[bool]:
        """Ask every status source of a service about one endpoint."""
        with log_context(service=spec.name, endpoint=endpoint_id):
            answers = await asyncio.gather(
                *(self._query_source(url, endpoint_id) for url in spec.status_sources)
            )
            result = combine_results(answers)
            if result is None:
                logger.debug(
                    f"No definitive answer for endpoint {endpoint_id} "
                    f"from {len(spec.status_sources)} sources"
                )
            return result

    async def _query_source(self, source_url: str, endpoint_id: str) -> Optional[bool]:
        try:
            return await self.status_client.query_endpoint(
                source_url, endpoint_id, self.timeout_seconds
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Status query to {source_url} for {endpoint_id} failed: {e}")
            return None

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "services": len(self._specs),
            "ticks": self._ticks,
            "unknown_results": self._unknown_results,
        }


__all__ = ["PollingHealthSource", "combine_results"]
