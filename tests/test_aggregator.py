# ============================================================================
# HEALTH AGGREGATOR TESTS
# ============================================================================
# STATUS: Tests - Unified health view
# PURPOSE: Verify source routing, defaults and event forwarding
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Aggregator Tests

Run with:
    pytest tests/test_aggregator.py -v
"""

import asyncio

from core.models import HealthReport, ServiceSpec
from health.aggregator import HealthAggregator
from health.ping import PingHealthSource
from health.probe import ProbeRunner
from health.push import PushHealthSource


# ============================================================================
# HELPERS
# ============================================================================

class _AlwaysUp(ProbeRunner):
    async def probe(self, address, timeout_ms):
        return True


def _services():
    return [
        ServiceSpec(name="primary", monitoring_mode="ping", ip_address="10.0.0.10",
                    priority=1, dns_rewrites=["app.lan"], order=0),
        ServiceSpec(name="offsite", monitoring_mode="push", ip_address="10.0.0.30",
                    priority=2, dns_rewrites=["app.lan"], endpoints=["web"], order=1),
        ServiceSpec(name="polled", monitoring_mode="poll", ip_address="10.0.0.20",
                    priority=3, dns_rewrites=["app.lan"], endpoints=["x"],
                    status_sources=["http://gatus"], order=2),
    ]


def _build():
    services = _services()
    ping = PingHealthSource(services, _AlwaysUp(), retry_delay_ms=0)
    push = PushHealthSource(services, clock=lambda: 1000.0)
    # No poll source: services in that mode have no answer
    aggregator = HealthAggregator(services, [ping, push])
    return aggregator, ping, push


# ============================================================================
# TESTS
# ============================================================================

class TestHealthAggregator:

    def test_all_unhealthy_before_any_signal(self):
        aggregator, _, _ = _build()

        health = asyncio.run(aggregator.current_health())

        assert health == {"primary": False, "offsite": False, "polled": False}

    def test_merges_sources_in_declaration_order(self):
        aggregator, ping, push = _build()

        async def scenario():
            await ping.check_all()
            await push.handle_report(HealthReport("web", True, 1000.0))
            return await aggregator.current_health()

        health = asyncio.run(scenario())

        assert list(health) == ["primary", "offsite", "polled"]
        assert health == {"primary": True, "offsite": True, "polled": False}

    def test_is_healthy_routes_to_owning_source(self):
        aggregator, ping, _ = _build()

        async def scenario():
            await ping.check_all()
            return (
                await aggregator.is_healthy("primary"),
                await aggregator.is_healthy("offsite"),
                await aggregator.is_healthy("polled"),
                await aggregator.is_healthy("unknown"),
            )

        assert asyncio.run(scenario()) == (True, False, False, False)

    def test_forwards_events_from_every_source(self):
        aggregator, ping, push = _build()
        events = []
        aggregator.add_listener(lambda name, healthy: events.append((name, healthy)))

        async def scenario():
            await ping.check_all()
            await push.handle_report(HealthReport("web", True, 1000.0))

        asyncio.run(scenario())

        assert events == [("primary", True), ("offsite", True)]

    def test_describe_includes_static_fields(self):
        aggregator, ping, _ = _build()

        async def scenario():
            await ping.check_all()
            return await aggregator.describe()

        items = asyncio.run(scenario())

        assert [i["service"] for i in items] == ["primary", "offsite", "polled"]
        assert items[0]["healthy"] is True
        assert items[0]["ip_address"] == "10.0.0.10"
        assert items[1]["endpoints"]["web"]["healthy"] is False
        assert items[2] == {
            "service": "polled",
            "source": "poll",
            "healthy": False,
            "ip_address": "10.0.0.20",
            "priority": 3,
            "domains": ["app.lan"],
        }
