# ============================================================================
# HEALTH AGGREGATOR
# ============================================================================
# STATUS: Core - Unified service health view
# PURPOSE: Merge the PING, POLL and PUSH sources into one service -> healthy map
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Aggregator

Read-through composition: the aggregator stores nothing itself. Each
service is answered by the source that owns its monitoring mode, and a
service no source has an answer for is unhealthy.

Change events from every source are forwarded unchanged to the
aggregator's own listeners, so the engine subscribes in one place.
"""

import asyncio
import inspect
import logging
from typing import Dict, Iterable, List, Optional

from core.contracts import MonitoringMode
from core.models import ServiceSpec
from health.core import HealthListener, HealthSource

logger = logging.getLogger(__name__)


class HealthAggregator:
    """Single health view over all sources."""

    def __init__(
        self,
        services: Iterable[ServiceSpec],
        sources: Iterable[HealthSource],
    ):
        """
        Args:
            services: All configured services, in declaration order
            sources: One source per monitoring mode in use
        """
        self._services: Dict[str, ServiceSpec] = {s.name: s for s in services}
        self._sources: Dict[MonitoringMode, HealthSource] = {}
        for source in sources:
            self._sources[source.mode] = source
            source.add_listener(self._forward)

        self._lock = asyncio.Lock()
        self._listeners: List[HealthListener] = []

    def add_listener(self, listener: HealthListener) -> None:
        self._listeners.append(listener)

    async def _forward(self, service_name: str, healthy: bool) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(service_name, healthy)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Aggregator listener failed for {service_name}: {e}")

    def source_for(self, service_name: str) -> Optional[HealthSource]:
        spec = self._services.get(service_name)
        if spec is None:
            return None
        return self._sources.get(spec.monitoring_mode)

    @property
    def sources(self) -> List[HealthSource]:
        return list(self._sources.values())

    async def current_health(self) -> Dict[str, bool]:
        """
        Consistent snapshot of every configured service.

        Services are listed in declaration order. Services whose source
        has no answer (or whose mode has no source) are False.
        """
        async with self._lock:
            merged: Dict[str, bool] = {}
            for source in self._sources.values():
                merged.update(await source.current_health())

        return {name: merged.get(name, False) for name in self._services}

    async def is_healthy(self, service_name: str) -> bool:
        source = self.source_for(service_name)
        if source is None:
            return False
        return await source.health(service_name)

    async def describe(self) -> List[Dict]:
        """Per-service detail from every source, in declaration order."""
        async with self._lock:
            details: Dict[str, Dict] = {}
            for source in self._sources.values():
                for item in await source.describe():
                    details[item["service"]] = item

        result = []
        for name, spec in self._services.items():
            item = details.get(
                name,
                {"service": name, "source": spec.monitoring_mode.value, "healthy": False},
            )
            item.update({
                "ip_address": spec.ip_address,
                "priority": spec.priority,
                "domains": list(spec.dns_rewrites),
            })
            result.append(item)
        return result


__all__ = ["HealthAggregator"]
