# ============================================================================
# HEALTH MODULE
# ============================================================================
# STATUS: Core - Health sources and aggregation
# PURPOSE: Turn probes, polled status and pushed reports into service health
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Module

One health source per monitoring mode, merged by the aggregator:

- PingHealthSource: active probes, deduplicated per address
- PollingHealthSource: periodic remote status queries (Gatus)
- PushHealthSource: inbound reports through a queue, plus staleness sweep
- HealthAggregator: service -> healthy across all sources

Probe execution lives behind ProbeRunner (PingProbeRunner shells out
to ping). The liveness/readiness router for this process is
health_router.

Usage:
    from health import HealthAggregator, PingHealthSource, PingProbeRunner

    ping = PingHealthSource(config.services, PingProbeRunner())
    aggregator = HealthAggregator(config.services, [ping])
    aggregator.add_listener(on_change)

    await ping.check_all()
    health = await aggregator.current_health()
"""

from health.core import (
    HealthSource,
    QuorumHealthSource,
    HealthListener,
)
from health.probe import ProbeRunner, PingProbeRunner
from health.ping import PingHealthSource
from health.polling import PollingHealthSource, combine_results
from health.push import PushHealthSource
from health.aggregator import HealthAggregator
from health.router import health_router

__all__ = [
    # Core types
    "HealthSource",
    "QuorumHealthSource",
    "HealthListener",
    # Probes
    "ProbeRunner",
    "PingProbeRunner",
    # Sources
    "PingHealthSource",
    "PollingHealthSource",
    "combine_results",
    "PushHealthSource",
    # Aggregation
    "HealthAggregator",
    # Router
    "health_router",
]
