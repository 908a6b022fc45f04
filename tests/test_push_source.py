# ============================================================================
# PUSH HEALTH SOURCE TESTS
# ============================================================================
# STATUS: Tests - Webhook-fed health source
# PURPOSE: Verify report queueing, quorum, staleness sweep and unknown endpoints
# CREATED: 18 OCT 2026
# ============================================================================
"""
Push Health Source Tests

Run with:
    pytest tests/test_push_source.py -v
"""

import asyncio

from core.models import HealthReport, ServiceSpec
from health.push import PushHealthSource


# ============================================================================
# HELPERS
# ============================================================================

class _FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _push_service(name="offsite", endpoints=("a", "b"), required=1, staleness=None):
    return ServiceSpec(
        name=name,
        monitoring_mode="push",
        ip_address="10.0.0.30",
        dns_rewrites=["app.lan"],
        endpoints=list(endpoints),
        required_endpoints=required,
        staleness_timeout_seconds=staleness,
    )


def _source(services, clock, staleness=300.0, queue_size=100):
    return PushHealthSource(
        services,
        default_staleness_seconds=staleness,
        queue_size=queue_size,
        clock=clock,
    )


def _collect(source):
    events = []
    source.add_listener(lambda name, healthy: events.append((name, healthy)))
    return events


# ============================================================================
# REPORT HANDLING
# ============================================================================

class TestHandleReport:

    def test_report_makes_service_healthy(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)
        events = _collect(source)

        healthy = asyncio.run(source.handle_report(HealthReport("a", True, clock())))

        assert healthy is True
        assert events == [("offsite", True)]

    def test_quorum_of_two(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a", "b", "c"), required=2)], clock)

        async def scenario():
            first = await source.handle_report(HealthReport("a", True, clock()))
            second = await source.handle_report(HealthReport("b", True, clock()))
            return first, second

        assert asyncio.run(scenario()) == (False, True)

    def test_unknown_endpoint_dropped(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)
        events = _collect(source)

        async def scenario():
            result = await source.handle_report(HealthReport("stranger", True, clock()))
            return result, await source.current_health()

        result, health = asyncio.run(scenario())

        assert result is None
        assert health == {"offsite": False}
        assert events == []
        assert source.stats["dropped"] == 1

    def test_endpoint_change_without_service_flip_emits_nothing(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a", "b"), required=1)], clock)
        events = _collect(source)

        async def scenario():
            await source.handle_report(HealthReport("a", True, clock()))
            await source.handle_report(HealthReport("b", True, clock()))
            await source.handle_report(HealthReport("b", False, clock()))

        asyncio.run(scenario())

        assert events == [("offsite", True)]

    def test_last_seen_is_receive_time(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)

        source.report("a", True)
        clock.advance(50)

        async def scenario():
            await source.drain()
            return source._status["offsite"].endpoints["a"].last_seen

        assert asyncio.run(scenario()) == 1000.0

    def test_stale_report_applied_late_still_counts_as_stale(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock, staleness=30)

        source.report("a", True)
        clock.advance(31)

        async def scenario():
            await source.drain()
            return await source.current_health()

        assert asyncio.run(scenario()) == {"offsite": False}


# ============================================================================
# QUEUE
# ============================================================================

class TestReportQueue:

    def test_report_only_enqueues(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)

        assert source.report("a", True) is True
        assert source.pending == 1
        assert asyncio.run(source.current_health()) == {"offsite": False}

    def test_drain_applies_in_order(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a",))], clock)
        events = _collect(source)

        source.report("a", True)
        source.report("a", False)
        source.report("a", True)

        applied = asyncio.run(source.drain())

        assert applied == 3
        assert events == [("offsite", True), ("offsite", False), ("offsite", True)]
        assert source.pending == 0

    def test_full_queue_drops_report(self):
        source = _source([_push_service()], _FakeClock(), queue_size=1)

        assert source.report("a", True) is True
        assert source.report("b", True) is False
        assert source.stats["dropped"] == 1

    def test_consumer_applies_reports_and_stops(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)

        async def scenario():
            stop = asyncio.Event()
            consumer = asyncio.create_task(source.run(stop))
            source.report("a", True)
            for _ in range(100):
                if source.stats["applied"]:
                    break
                await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(consumer, timeout=1.0)
            return await source.current_health()

        assert asyncio.run(scenario()) == {"offsite": True}

    def test_unknown_endpoint_never_queued(self):
        source = _source([_push_service()], _FakeClock(), queue_size=2)

        accepted = [source.report("stranger", True) for _ in range(5)]

        assert accepted == [True] * 5
        assert source.pending == 0
        assert source.stats["dropped"] == 5
        # Known endpoints still have the whole queue
        assert source.report("a", True) is True
        assert source.report("b", True) is True

    def test_idle_consumer_stops_promptly(self):
        source = _source([_push_service()], _FakeClock())

        async def scenario():
            stop = asyncio.Event()
            consumer = asyncio.create_task(source.run(stop))
            await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(consumer, timeout=0.5)
            # Reports arriving after shutdown stay queued
            source.report("a", True)
            return source.pending

        assert asyncio.run(scenario()) == 1


# ============================================================================
# EVENT ORDERING
# ============================================================================

class TestEventOrdering:
    """Transitions of one service reach listeners in the order they happened."""

    def test_back_to_back_flips_delivered_in_order(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a",))], clock)
        log = []

        async def slow_listener(name, healthy):
            log.append(("start", healthy))
            await asyncio.sleep(0.02)
            log.append(("end", healthy))

        source.add_listener(slow_listener)

        async def scenario():
            await asyncio.gather(
                source.handle_report(HealthReport("a", True, clock())),
                source.handle_report(HealthReport("a", False, clock())),
            )

        asyncio.run(scenario())

        assert log == [
            ("start", True),
            ("end", True),
            ("start", False),
            ("end", False),
        ]

    def test_consumer_preserves_order_with_slow_listener(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a",))], clock)
        seen = []

        async def slow_listener(name, healthy):
            await asyncio.sleep(0.01)
            seen.append(healthy)

        source.add_listener(slow_listener)

        async def scenario():
            stop = asyncio.Event()
            consumer = asyncio.create_task(source.run(stop))
            for healthy in (True, False, True, False):
                source.report("a", healthy)
            for _ in range(200):
                if source.stats["applied"] == 4:
                    break
                await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(consumer, timeout=1.0)

        asyncio.run(scenario())

        assert seen == [True, False, True, False]


# ============================================================================
# STALENESS SWEEP
# ============================================================================

class TestSweep:

    def test_sweep_alone_degrades_silent_service(self):
        """Both endpoints healthy at t0, no reports afterwards: the sweep flips the service."""
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a", "b"), required=1)], clock, staleness=300)
        events = _collect(source)

        async def scenario():
            await source.handle_report(HealthReport("a", True, clock()))
            await source.handle_report(HealthReport("b", True, clock()))

            clock.advance(299)
            before = await source.sweep()

            clock.advance(2)
            after = await source.sweep()
            return before, after

        before, after = asyncio.run(scenario())

        assert before == {"offsite": True}
        assert after == {"offsite": False}
        assert events == [("offsite", True), ("offsite", False)]
        # Staleness never rewrites the stored boolean
        endpoints = source._status["offsite"].endpoints
        assert endpoints["a"].healthy is True
        assert endpoints["b"].healthy is True

    def test_sweep_without_change_emits_nothing(self):
        clock = _FakeClock()
        source = _source([_push_service()], clock)
        events = _collect(source)

        asyncio.run(source.sweep())

        assert events == []

    def test_fresh_report_recovers_stale_service(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a",))], clock, staleness=60)
        events = _collect(source)

        async def scenario():
            await source.handle_report(HealthReport("a", True, clock()))
            clock.advance(61)
            await source.sweep()
            await source.handle_report(HealthReport("a", True, clock()))

        asyncio.run(scenario())

        assert events == [("offsite", True), ("offsite", False), ("offsite", True)]

    def test_describe_reports_staleness(self):
        clock = _FakeClock()
        source = _source([_push_service(endpoints=("a", "b"))], clock, staleness=60)

        async def scenario():
            await source.handle_report(HealthReport("a", True, clock()))
            clock.advance(10)
            return await source.describe()

        (item,) = asyncio.run(scenario())

        assert item["service"] == "offsite"
        assert item["endpoints"]["a"] == {"healthy": True, "stale": False, "seconds_since_seen": 10.0}
        assert item["endpoints"]["b"]["stale"] is True
        assert item["endpoints"]["b"]["seconds_since_seen"] is None
