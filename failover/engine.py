# ============================================================================
# FAILOVER ENGINE
# ============================================================================
# STATUS: Core - Background drivers for health and reconciliation
# PURPOSE: Run probe, poll, sweep and reconcile loops inside the app process
# CREATED: 18 OCT 2026
# ============================================================================
"""
Failover Engine

Wires the health sources, aggregator, selector and reconciler together
and runs them as background tasks in the FastAPI application.

Background tasks:
    main loop        ping cycle + full reconcile every check_interval_seconds
    poll loop        remote status tick every polling.interval_seconds
    push consumer    applies queued webhook reports one at a time
    sweep loop       push staleness sweep every webhook.sweep_interval_seconds
    reconcile worker applies pending reconcile requests

Health change events only record which domains need attention and wake
the reconcile worker. Requests that pile up while a reconcile is running
are merged into one follow-up run.

Every loop catches and logs its own errors and keeps going. stop() sets
the stop event, gives the loops grace_seconds to finish, then cancels
whatever is left.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from core.config import AppConfig
from core.contracts import MonitoringMode
from health.aggregator import HealthAggregator
from health.core import Clock
from health.ping import PingHealthSource
from health.polling import PollingHealthSource
from health.probe import PingProbeRunner, ProbeRunner
from health.push import PushHealthSource
from failover.reconciler import Reconciler
from failover.selector import FailoverSelector
from infrastructure.rewrite_store import RewriteStore
from infrastructure.status_source import GatusStatusSource, RemoteStatusSource

logger = logging.getLogger(__name__)


class FailoverEngine:
    """
    Owns every health source and the reconciler.

    One instance per process. The HTTP layer reaches it through
    report() (webhook) and the read methods (status API).
    """

    def __init__(
        self,
        config: AppConfig,
        store: RewriteStore,
        probe_runner: Optional[ProbeRunner] = None,
        status_client: Optional[RemoteStatusSource] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize engine.

        Args:
            config: Validated configuration
            store: Rewrite store (caller closes it)
            probe_runner: Probe implementation (PingProbeRunner if None)
            status_client: Remote status client (GatusStatusSource if None,
                closed by the engine)
            clock: Monotonic clock shared by every source
        """
        self.config = config
        self.store = store

        self._owns_status_client = status_client is None
        self.status_client = status_client or GatusStatusSource()

        services = config.services
        self.ping = PingHealthSource(
            services,
            probe_runner or PingProbeRunner(),
            retry_attempts=config.monitoring.retry_attempts,
            retry_delay_ms=config.monitoring.retry_delay_ms,
            max_parallel=config.monitoring.max_parallel_probes,
            clock=clock,
        )
        self.polling = PollingHealthSource(
            services,
            self.status_client,
            timeout_seconds=config.polling.timeout_seconds,
            default_staleness_seconds=config.webhook.health_status_timeout_seconds,
            clock=clock,
        )
        self.push = PushHealthSource(
            services,
            default_staleness_seconds=config.webhook.health_status_timeout_seconds,
            queue_size=config.webhook.queue_size,
            clock=clock,
        )

        self.aggregator = HealthAggregator(services, [self.ping, self.polling, self.push])
        self.selector = FailoverSelector(services)
        self.reconciler = Reconciler(store, self.selector, self.aggregator.current_health)

        self.aggregator.add_listener(self._on_health_change)

        # Pending reconcile work
        self._pending_domains: Set[str] = set()
        self._full_pending = False
        self._reconcile_wakeup = asyncio.Event()

        # State
        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: List[asyncio.Task] = []

        # Metrics
        self._started_at: Optional[datetime] = None
        self._cycles = 0
        self._reconcile_runs = 0
        self._errors = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_reconcile_at: Optional[datetime] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ready(self) -> bool:
        """Running and the applied cache has been seeded from the store."""
        return self._running and self.reconciler.seeded

    async def start(self) -> None:
        """Seed from the store and start background tasks."""
        if self._running:
            logger.warning("Failover engine already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._stop_event.clear()

        await self.reconciler.initialize()

        monitoring = self.config.monitoring
        self._tasks = [
            asyncio.create_task(
                self._run_periodic("main", monitoring.check_interval_seconds, self._main_cycle),
                name="failover-main",
            ),
            asyncio.create_task(self._reconcile_worker(), name="failover-reconcile"),
        ]

        if self.polling.service_names:
            self._tasks.append(asyncio.create_task(
                self._run_periodic(
                    "poll", self.config.polling.interval_seconds, self.polling.poll_once
                ),
                name="failover-poll",
            ))

        if self.push.service_names:
            self._tasks.append(asyncio.create_task(
                self.push.run(self._stop_event), name="failover-push-consumer"
            ))
            self._tasks.append(asyncio.create_task(
                self._run_periodic(
                    "sweep", self.config.webhook.sweep_interval_seconds, self.push.sweep
                ),
                name="failover-push-sweep",
            ))

        logger.info(
            f"Failover engine started: {len(self.config.services)} services "
            f"(ping={len(self.ping.service_names)}, poll={len(self.polling.service_names)}, "
            f"push={len(self.push.service_names)}), "
            f"{len(self.selector.domains)} domains"
        )

    async def stop(self, grace_seconds: Optional[float] = None) -> None:
        """
        Stop background tasks.

        Loops see the stop event and exit on their own; anything still
        running after grace_seconds is cancelled.
        """
        if grace_seconds is None:
            grace_seconds = self.config.monitoring.shutdown_grace_seconds

        logger.info(f"Stopping failover engine (grace={grace_seconds}s)")

        self._running = False
        self._stop_event.set()
        self._reconcile_wakeup.set()

        tasks = [t for t in self._tasks if not t.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=grace_seconds)
            for task in pending:
                task.cancel()
            for task in pending:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            if pending:
                logger.warning(f"Cancelled {len(pending)} tasks after grace period")
        self._tasks = []

        if self._owns_status_client:
            await self.status_client.close()

        logger.info(
            f"Failover engine stopped (cycles={self._cycles}, "
            f"reconcile_runs={self._reconcile_runs}, errors={self._errors})"
        )

    # =========================================================================
    # LOOPS
    # =========================================================================

    async def _run_periodic(
        self,
        name: str,
        interval: float,
        cycle: Callable[[], Awaitable[Any]],
    ) -> None:
        """Run cycle() every interval seconds until stopped."""
        logger.info(f"Starting {name} loop (interval={interval}s)")

        while self._running and not self._stop_event.is_set():
            delay = interval
            try:
                await cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                delay = min(interval, self.config.monitoring.error_backoff_seconds)
                logger.exception(f"Error in {name} loop: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break  # Stop event was set
            except asyncio.TimeoutError:
                pass  # Continue loop

        logger.info(f"{name.capitalize()} loop stopped")

    async def _main_cycle(self) -> None:
        """Probe PING services, then queue a full reconcile sweep."""
        if self.ping.service_names:
            await self.ping.check_all()
        self.request_reconcile()
        self._cycles += 1
        self._last_cycle_at = datetime.now(timezone.utc)

    async def _reconcile_worker(self) -> None:
        """Apply pending reconcile requests until stopped."""
        logger.info("Starting reconcile worker")

        while self._running and not self._stop_event.is_set():
            await self._reconcile_wakeup.wait()
            self._reconcile_wakeup.clear()
            if self._stop_event.is_set():
                break

            try:
                await self.reconcile_pending()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                logger.exception(f"Error in reconcile worker: {e}")

        logger.info("Reconcile worker stopped")

    async def reconcile_pending(self) -> None:
        """Run one reconcile covering every request made so far."""
        full = self._full_pending
        domains = self._pending_domains
        self._full_pending = False
        self._pending_domains = set()

        if not full and not domains:
            return

        await self.reconciler.reconcile(None if full else sorted(domains))
        self._reconcile_runs += 1
        self._last_reconcile_at = datetime.now(timezone.utc)

    # =========================================================================
    # EVENTS
    # =========================================================================

    def _on_health_change(self, service_name: str, healthy: bool) -> None:
        domains = self.selector.domains_for([service_name])
        logger.debug(
            f"Service {service_name} is now {'healthy' if healthy else 'unhealthy'}, "
            f"reconciling {len(domains)} domains"
        )
        self.request_reconcile(domains)

    def request_reconcile(self, domains: Optional[List[str]] = None) -> None:
        """Queue domains for reconciliation (every domain if None)."""
        if domains is None:
            self._full_pending = True
        else:
            self._pending_domains.update(domains)
        self._reconcile_wakeup.set()

    def report(
        self,
        endpoint_id: str,
        success: bool,
        timestamp: Optional[str] = None,
    ) -> bool:
        """Hand a push report to the push source. Returns False if dropped."""
        return self.push.report(endpoint_id, success, timestamp)

    # =========================================================================
    # ONE-SHOT CYCLE
    # =========================================================================

    async def run_once(self) -> List:
        """
        Run every source once, then reconcile all domains.

        Used by tests and for a manual convergence check.
        """
        if self.ping.service_names:
            await self.ping.check_all()
        if self.polling.service_names:
            await self.polling.poll_once()
        if self.push.service_names:
            await self.push.drain()
            await self.push.sweep()
        self._full_pending = False
        self._pending_domains = set()
        return await self.reconciler.reconcile()

    # =========================================================================
    # READS
    # =========================================================================

    async def current_health(self, service_name: Optional[str] = None):
        """service -> healthy for every service, or one service's health."""
        if service_name is not None:
            return await self.aggregator.is_healthy(service_name)
        return await self.aggregator.current_health()

    async def desired_target(self, domain: str) -> Optional[str]:
        health = await self.aggregator.current_health()
        return self.selector.desired_target(domain, health)

    async def domain_status(self) -> List[Dict[str, Any]]:
        """Desired and applied target of every managed domain."""
        health = await self.aggregator.current_health()
        unresolved = set(self.reconciler.unresolved)
        result = []
        for domain in self.selector.domains:
            desired = self.selector.desired_service(domain, health)
            result.append({
                "domain": domain,
                "desired": desired.ip_address if desired else None,
                "desired_service": desired.name if desired else None,
                "applied": self.reconciler.applied_target(domain),
                "no_healthy_target": domain in unresolved,
                "owners": [s.name for s in self.selector.owners(domain)],
            })
        return result

    @property
    def stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "ready": self.ready,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "check_interval": self.config.monitoring.check_interval_seconds,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "reconcile_runs": self._reconcile_runs,
            "last_reconcile_at": self._last_reconcile_at.isoformat() if self._last_reconcile_at else None,
            "errors": self._errors,
            "sources": {
                MonitoringMode.PING.value: self.ping.stats,
                MonitoringMode.POLL.value: self.polling.stats,
                MonitoringMode.PUSH.value: self.push.stats,
            },
            "reconciler": self.reconciler.stats,
        }


__all__ = ["FailoverEngine"]
