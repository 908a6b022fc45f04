# ============================================================================
# PUSH HEALTH SOURCE
# ============================================================================
# STATUS: Core - Passive webhook health source
# PURPOSE: Queue-driven endpoint reports with quorum and staleness sweep
# CREATED: 18 OCT 2026
# ============================================================================
"""
Push Health Source

Services in PUSH mode are judged by reports that arrive on their own
schedule (Gatus webhook alerts). The transport calls report(), which
only enqueues; a single consumer (run()) applies reports one at a time.

Applying a report:
    1. Unknown endpoint id -> logged and dropped
    2. Endpoint boolean := success, last-seen := time the report arrived
    3. Owning service re-evaluated (quorum over healthy, non-stale endpoints)
    4. Change event emitted if the service flipped

Reports only arrive when something happens, so a silent sender never
triggers step 3. sweep() re-evaluates every PUSH service on a timer and
emits the flips caused purely by endpoints going stale.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from core.contracts import MonitoringMode
from core.logging import log_context
from core.models import HealthReport, ServiceSpec
from health.core import Clock, QuorumHealthSource

logger = logging.getLogger(__name__)


class PushHealthSource(QuorumHealthSource):
    """Health source fed by inbound reports."""

    mode = MonitoringMode.PUSH

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        default_staleness_seconds: float = 300.0,
        queue_size: int = 1000,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize push source.

        Args:
            services: All configured services
            default_staleness_seconds: Window used when a service sets none
            queue_size: Max reports waiting to be applied
            clock: Monotonic clock
        """
        super().__init__(
            services,
            default_staleness_seconds=default_staleness_seconds,
            clock=clock,
        )
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

        # Each endpoint id belongs to one PUSH service (enforced by config)
        self._endpoint_owner: Dict[str, str] = {}
        for spec in self._specs.values():
            for endpoint_id in spec.endpoints:
                self._endpoint_owner.setdefault(endpoint_id, spec.name)

        self._stale: Dict[str, List[str]] = {}

        self._received = 0
        self._applied = 0
        self._dropped = 0
        self._sweeps = 0

    def knows(self, endpoint_id: str) -> bool:
        return endpoint_id in self._endpoint_owner

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # =========================================================================
    # INBOUND
    # =========================================================================

    def report(
        self,
        endpoint_id: str,
        success: bool,
        timestamp: Optional[str] = None,
    ) -> bool:
        """
        Enqueue a report without waiting for it to be applied.

        Reports for endpoints no PUSH service declares are logged and
        dropped here, so they never occupy the queue.

        Returns:
            False only if the queue is full and the report was dropped
        """
        if not self.knows(endpoint_id):
            self._dropped += 1
            logger.warning(
                f"Report for unknown endpoint {endpoint_id} dropped (success={success})"
            )
            return True

        report = HealthReport(
            endpoint_id=endpoint_id,
            success=success,
            received_at=self._clock(),
            timestamp=timestamp,
        )
        try:
            self._queue.put_nowait(report)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(f"Report queue full, dropping report for {endpoint_id}")
            return False
        self._received += 1
        return True

    async def handle_report(self, report: HealthReport) -> Optional[bool]:
        """
        Apply one report.

        Returns:
            Owning service's health afterwards, or None if the endpoint is unknown
        """
        service_name = self._endpoint_owner.get(report.endpoint_id)
        if service_name is None:
            self._dropped += 1
            logger.warning(
                f"Report for unknown endpoint {report.endpoint_id} dropped "
                f"(success={report.success})"
            )
            return None

        with log_context(service=service_name, endpoint=report.endpoint_id):
            async with self._emit_lock:
                async with self._lock:
                    self._record_endpoint(
                        service_name, report.endpoint_id, report.success, report.received_at
                    )
                    change = self._recompute(service_name, self._clock())
                    healthy = self._status[service_name].is_healthy
                if change is not None:
                    await self._emit([change])

            self._applied += 1
            logger.debug(
                f"Applied report {report.endpoint_id}={report.success}, "
                f"service {service_name} healthy={healthy}"
            )
            return healthy

    async def drain(self) -> int:
        """Apply every report currently queued. Returns how many were applied."""
        count = 0
        while True:
            try:
                report = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return count
            try:
                await self.handle_report(report)
            finally:
                self._queue.task_done()
            count += 1

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume the report queue until stop_event is set."""
        logger.info("Push report consumer started")

        stopped = asyncio.create_task(stop_event.wait())
        try:
            while not stop_event.is_set():
                getter = asyncio.create_task(self._queue.get())
                try:
                    done, _ = await asyncio.wait(
                        {getter, stopped}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    if not getter.done():
                        # A report not yet taken stays in the queue
                        getter.cancel()

                if getter not in done:
                    break

                report = getter.result()
                try:
                    await self.handle_report(report)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"Error applying report for {report.endpoint_id}: {e}")
                finally:
                    self._queue.task_done()
        finally:
            stopped.cancel()

        logger.info("Push report consumer stopped")

    # =========================================================================
    # STALENESS SWEEP
    # =========================================================================

    async def sweep(self) -> Dict[str, bool]:
        """
        Re-evaluate every PUSH service against the current time.

        Returns:
            service -> healthy after the sweep
        """
        async with self._emit_lock:
            async with self._lock:
                now = self._clock()
                changes = self._recompute_all(now)
                stale = {
                    name: status.stale_endpoints(now, self.staleness_timeout(self._specs[name]))
                    for name, status in self._status.items()
                }
                snapshot = {n: s.is_healthy for n, s in self._status.items()}
            await self._emit(changes)

        self._log_staleness(stale)
        self._sweeps += 1
        return snapshot

    def _log_staleness(self, stale: Dict[str, List[str]]) -> None:
        """Log endpoints that went stale or recovered since the last sweep."""
        for service_name, endpoints in stale.items():
            previous = set(self._stale.get(service_name, []))
            current = set(endpoints)
            newly_stale = sorted(current - previous)
            recovered = sorted(previous - current)
            if newly_stale:
                logger.warning(
                    f"Service {service_name}: endpoints stale (no report within "
                    f"{self.staleness_timeout(self._specs[service_name]):.0f}s): "
                    f"{', '.join(newly_stale)}"
                )
            if recovered:
                logger.info(
                    f"Service {service_name}: endpoints reporting again: {', '.join(recovered)}"
                )
        self._stale = stale

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "services": len(self._specs),
            "endpoints": len(self._endpoint_owner),
            "pending": self.pending,
            "received": self._received,
            "applied": self._applied,
            "dropped": self._dropped,
            "sweeps": self._sweeps,
        }


__all__ = ["PushHealthSource"]
