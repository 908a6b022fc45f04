# ============================================================================
# HEALTH SOURCE CORE
# ============================================================================
# STATUS: Core - Base classes for health sources
# PURPOSE: Per-source locking, change listeners and quorum evaluation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Source Core

Every monitoring mode has one health source. A source owns the
ServiceHealthStatus of each service in its mode and is the only writer
of that state.

Locking:
- _lock guards the status map. No network call runs while it is held.
- _emit_lock serializes "mutate then emit" so listeners observe each
  service's transitions in the order they happened. It is taken before
  _lock and held while listeners run, after _lock is released.

Listeners receive (service_name, healthy) and may be plain functions or
coroutines. A failing listener is logged and does not stop the others.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from core.contracts import MonitoringMode
from core.logging import log_transition
from core.models import ServiceHealthStatus, ServiceSpec

logger = logging.getLogger(__name__)

HealthListener = Callable[[str, bool], Union[None, Awaitable[None]]]
Clock = Callable[[], float]

# (service_name, healthy)
HealthChange = Tuple[str, bool]


class HealthSource(ABC):
    """
    Base class for the PING, POLL and PUSH health sources.

    Subclasses set `mode` and mutate self._status inside
    `async with self._emit_lock: async with self._lock:` blocks, then call
    self._emit(changes) once the state lock is released.
    """

    mode: MonitoringMode

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        clock: Optional[Clock] = None,
    ):
        """
        Initialize source.

        Args:
            services: All configured services; only those in this mode are kept
            clock: Monotonic clock in seconds (time.monotonic if None)
        """
        self._specs: Dict[str, ServiceSpec] = {
            s.name: s for s in services if s.monitoring_mode == self.mode
        }
        self._clock: Clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self._emit_lock = asyncio.Lock()
        self._listeners: List[HealthListener] = []

        # Fail closed: every service starts unhealthy
        self._status: Dict[str, ServiceHealthStatus] = {
            name: ServiceHealthStatus.seeded(name, self.mode, spec.endpoints)
            for name, spec in self._specs.items()
        }

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: HealthListener) -> None:
        """Register a callback for service health transitions."""
        self._listeners.append(listener)

    async def _emit(self, changes: List[HealthChange]) -> None:
        """Deliver transitions to listeners. Caller holds _emit_lock only."""
        for service_name, healthy in changes:
            for listener in list(self._listeners):
                try:
                    result = listener(service_name, healthy)
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(
                        f"Health listener failed for {service_name}={healthy}: {e}"
                    )

    # =========================================================================
    # READS
    # =========================================================================

    @property
    def service_names(self) -> List[str]:
        return list(self._specs)

    def owns(self, service_name: str) -> bool:
        return service_name in self._specs

    async def current_health(self) -> Dict[str, bool]:
        """Snapshot of service -> healthy for every service in this mode."""
        async with self._lock:
            return {name: status.is_healthy for name, status in self._status.items()}

    async def health(self, service_name: str) -> bool:
        """Health of one service; unknown services are unhealthy."""
        async with self._lock:
            status = self._status.get(service_name)
            return status.is_healthy if status is not None else False

    async def describe(self) -> List[Dict]:
        """Per-service detail for the status API."""
        async with self._lock:
            now = self._clock()
            return [
                status.to_dict(now, self.staleness_timeout(self._specs[name]))
                for name, status in self._status.items()
            ]

    def staleness_timeout(self, spec: ServiceSpec) -> float:
        """Staleness window for a service's endpoints (unused by PING)."""
        return float("inf")

    # =========================================================================
    # STATE UPDATES (caller holds _lock)
    # =========================================================================

    def _set_health(self, service_name: str, healthy: bool, now: float) -> Optional[HealthChange]:
        """
        Store a service's aggregate health.

        Returns:
            (service_name, healthy) if the value flipped, else None
        """
        status = self._status[service_name]
        previous = status.is_healthy
        status.is_healthy = healthy
        status.last_updated = now

        if previous == healthy:
            return None

        log_transition(
            "service_health_changed",
            {
                "service": service_name,
                "source": self.mode.value,
                "previous": previous,
                "healthy": healthy,
            },
        )
        return (service_name, healthy)


class QuorumHealthSource(HealthSource):
    """
    Health source whose services aggregate remote endpoints.

    A service is healthy iff at least `required_endpoints` of its
    endpoints are healthy and not stale. Shared by POLL and PUSH.
    """

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        default_staleness_seconds: float = 300.0,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            services: All configured services
            default_staleness_seconds: Window used when a service sets none
            clock: Monotonic clock in seconds
        """
        super().__init__(services, clock=clock)
        self.default_staleness_seconds = default_staleness_seconds

    def staleness_timeout(self, spec: ServiceSpec) -> float:
        if spec.staleness_timeout_seconds is not None:
            return spec.staleness_timeout_seconds
        return self.default_staleness_seconds

    def _recompute(self, service_name: str, now: float) -> Optional[HealthChange]:
        """Re-evaluate the quorum of one service. Caller holds _lock."""
        spec = self._specs[service_name]
        status = self._status[service_name]
        healthy = status.quorum_met(
            spec.required_endpoints, now, self.staleness_timeout(spec)
        )
        return self._set_health(service_name, healthy, now)

    def _recompute_all(self, now: float) -> List[HealthChange]:
        """Re-evaluate every service. Caller holds _lock."""
        changes = []
        for name in self._status:
            change = self._recompute(name, now)
            if change is not None:
                changes.append(change)
        return changes

    def _record_endpoint(
        self,
        service_name: str,
        endpoint_id: str,
        healthy: bool,
        seen_at: float,
    ) -> bool:
        """
        Store one endpoint result. Caller holds _lock.

        Returns:
            True if the endpoint's stored boolean changed
        """
        state = self._status[service_name].endpoints[endpoint_id]
        previous = state.healthy
        changed = state.record(healthy, seen_at)
        if changed:
            logger.info(
                f"Endpoint {endpoint_id} for service {service_name} changed "
                f"from {previous} to {healthy}"
            )
        return changed


__all__ = [
    "HealthSource",
    "QuorumHealthSource",
    "HealthListener",
    "HealthChange",
    "Clock",
]
