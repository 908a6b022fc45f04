# ============================================================================
# PING HEALTH SOURCE
# ============================================================================
# STATUS: Core - Active probe health source
# PURPOSE: Deduplicated per-address probing for PING services
# CREATED: 18 OCT 2026
# ============================================================================
"""
Ping Health Source

Services in PING mode are judged by probing their ip_address directly.

Several services may share one address (one host serving several
applications). Each check cycle runs exactly one probe sequence per
unique address and fans the result out to every service on it:

    address -> [service, service, ...]

Probe sequence for one address:
    - up to retry_attempts sequential probes, first success wins
    - retry_delay_ms between failed attempts
    - timeout is the largest timeout_ms among the services on the address

Addresses are probed concurrently, bounded by a semaphore. A cycle that
is still running when the next one is requested is not duplicated; the
late caller gets the cached results.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from core.contracts import MonitoringMode
from core.models import ServiceSpec
from health.core import Clock, HealthChange, HealthSource
from health.probe import ProbeRunner

logger = logging.getLogger(__name__)


class PingHealthSource(HealthSource):
    """Active ICMP-style health source."""

    mode = MonitoringMode.PING

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        probe_runner: ProbeRunner,
        retry_attempts: int = 3,
        retry_delay_ms: int = 1000,
        max_parallel: int = 10,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize ping source.

        Args:
            services: All configured services
            probe_runner: Executes individual probes
            retry_attempts: Probes per address per cycle before giving up
            retry_delay_ms: Delay between failed attempts
            max_parallel: Max addresses probed at once
            clock: Monotonic clock
        """
        super().__init__(services, clock=clock)
        self.probe_runner = probe_runner
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_ms = retry_delay_ms
        self.max_parallel = max(1, max_parallel)

        self._groups: Dict[str, List[ServiceSpec]] = {}
        for spec in self._specs.values():
            self._groups.setdefault(spec.ip_address, []).append(spec)

        self._checking = False
        self._cycles = 0
        self._probes = 0

    @property
    def address_groups(self) -> Dict[str, List[str]]:
        """address -> service names sharing it."""
        return {addr: [s.name for s in specs] for addr, specs in self._groups.items()}

    # =========================================================================
    # CHECK CYCLE
    # =========================================================================

    async def check_all(self) -> Dict[str, bool]:
        """
        Run one check cycle over every unique address.

        Returns:
            service -> healthy after the cycle
        """
        if self._checking:
            logger.debug("Ping cycle already in progress, returning cached results")
            return await self.current_health()

        if not self._groups:
            return {}

        self._checking = True
        try:
            semaphore = asyncio.Semaphore(self.max_parallel)

            async def run_group(address: str, specs: List[ServiceSpec]) -> bool:
                timeout_ms = max(s.timeout_ms for s in specs)
                async with semaphore:
                    return await self._probe_address(address, timeout_ms)

            addresses = list(self._groups)
            results = await asyncio.gather(
                *(run_group(addr, self._groups[addr]) for addr in addresses)
            )

            async with self._emit_lock:
                async with self._lock:
                    now = self._clock()
                    changes: List[HealthChange] = []
                    for address, healthy in zip(addresses, results):
                        for spec in self._groups[address]:
                            change = self._set_health(spec.name, healthy, now)
                            if change is not None:
                                changes.append(change)
                    snapshot = {n: s.is_healthy for n, s in self._status.items()}
                await self._emit(changes)

            self._cycles += 1
            healthy_count = sum(1 for v in snapshot.values() if v)
            logger.debug(
                f"Ping cycle complete: {len(addresses)} addresses, "
                f"{healthy_count}/{len(snapshot)} services healthy"
            )
            return snapshot
        finally:
            self._checking = False

    async def _probe_address(self, address: str, timeout_ms: int) -> bool:
        """Sequential retries against one address; first success wins."""
        for attempt in range(1, self.retry_attempts + 1):
            self._probes += 1
            try:
                if await self.probe_runner.probe(address, timeout_ms):
                    if attempt > 1:
                        logger.debug(f"Ping to {address} succeeded on attempt {attempt}")
                    return True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Probe of {address} raised on attempt {attempt}: {e}")

            if attempt < self.retry_attempts:
                logger.debug(
                    f"Ping to {address} failed (attempt {attempt}/{self.retry_attempts}), "
                    f"retrying in {self.retry_delay_ms}ms"
                )
                await asyncio.sleep(self.retry_delay_ms / 1000.0)

        logger.warning(f"{address} is unreachable after {self.retry_attempts} attempts")
        return False

    # =========================================================================
    # READS
    # =========================================================================

    async def best_known(self, service_name: str) -> bool:
        """Cached result of the last cycle (False before the first one)."""
        return await self.health(service_name)

    async def best_available(self) -> Optional[str]:
        """Address of the most preferred healthy PING service, if any."""
        async with self._lock:
            healthy = [
                spec for name, spec in self._specs.items()
                if self._status[name].is_healthy
            ]
        if not healthy:
            return None
        return min(healthy, key=lambda s: s.sort_key).ip_address

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "services": len(self._specs),
            "addresses": len(self._groups),
            "cycles": self._cycles,
            "probes": self._probes,
        }


__all__ = ["PingHealthSource"]
