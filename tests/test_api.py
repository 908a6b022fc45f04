# ============================================================================
# HTTP API TESTS
# ============================================================================
# STATUS: Tests - Status API, webhook receiver and process probes
# PURPOSE: Verify routes, webhook authentication and readiness semantics
# CREATED: 18 OCT 2026
# ============================================================================
"""
HTTP API Tests

Route tests use FastAPI TestClient against an app built from the
routers only (no lifespan). Status and webhook routes run against a
real, unstarted FailoverEngine with in-memory dependencies; the process
probes use a MagicMock engine.

Run with:
    pytest tests/test_api.py -v
"""

from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router, set_engine as set_api_engine
from api.webhook_routes import webhook_router, set_engine as set_webhook_engine
from core.config import parse_config
from failover.engine import FailoverEngine
from health.probe import ProbeRunner
from health.router import health_router, set_engine as set_health_engine
from infrastructure.rewrite_store import RewriteStore
from infrastructure.status_source import RemoteStatusSource


# ============================================================================
# FIXTURES
# ============================================================================

class _NullStore(RewriteStore):
    async def test_connection(self):
        return True

    async def list_rewrites(self):
        return []

    async def set_rewrite(self, domain, address):
        return True


class _Down(ProbeRunner):
    async def probe(self, address, timeout_ms):
        return False


class _Unknown(RemoteStatusSource):
    async def query_endpoint(self, source_url, endpoint_ref, timeout):
        return None


def _make_engine(queue_size=10, push=True):
    services = [
        {
            "name": "primary",
            "monitoring_mode": "ping",
            "ip_address": "10.0.0.10",
            "priority": 1,
            "dns_rewrites": ["app.lan"],
        },
        {
            "name": "offsite",
            "monitoring_mode": "push",
            "ip_address": "10.0.0.30",
            "priority": 2,
            "dns_rewrites": ["app.lan"],
            "endpoints": ["off-web"],
        },
    ]
    if not push:
        services = services[:1]
    config = parse_config(
        {
            "adguard_home": {"base_url": "http://adguard.lan:3000"},
            "webhook": {"queue_size": queue_size},
            "services": services,
        },
        env={},
    )
    return FailoverEngine(config, _NullStore(), probe_runner=_Down(), status_client=_Unknown())


def _make_test_app(engine, auth_token=None, enabled=True):
    """Create a test FastAPI app with every router and the given engine."""
    app = FastAPI()
    app.include_router(health_router)
    app.include_router(router, prefix="/api/v1")
    app.include_router(webhook_router)
    set_api_engine(engine)
    set_health_engine(engine)
    set_webhook_engine(engine, auth_token=auth_token, enabled=enabled)
    return app


def _payload(name="off-web", success=True):
    return {
        "endpointName": name,
        "endpointGroup": "offsite",
        "endpointURL": "https://offsite.example",
        "conditionResults": [{"condition": "[STATUS] == 200", "success": success}],
        "success": success,
        "timestamp": "2026-10-18T12:00:00Z",
        "message": "",
    }


# ============================================================================
# WEBHOOK
# ============================================================================

class TestWebhook:
    """Tests for POST /webhook."""

    def test_report_accepted_and_queued(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine))

        resp = client.post("/webhook", json=_payload())

        assert resp.status_code == 202
        assert resp.json() == {"status": "accepted", "endpoint": "off-web", "known": True}
        assert engine.push.pending == 1

    def test_unknown_endpoint_acknowledged(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine))

        resp = client.post("/webhook", json=_payload(name="somebody-else"))

        assert resp.status_code == 202
        assert resp.json()["known"] is False

    def test_missing_endpoint_name_rejected(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine))

        resp = client.post("/webhook", json={"success": True})

        assert resp.status_code == 400
        assert engine.push.pending == 0

    def test_token_required_when_configured(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine, auth_token="s3cret"))

        missing = client.post("/webhook", json=_payload())
        wrong = client.post("/webhook", json=_payload(), headers={"Authorization": "Bearer nope"})
        basic = client.post("/webhook", json=_payload(), headers={"Authorization": "Basic s3cret"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert basic.status_code == 401
        assert engine.push.pending == 0

    def test_valid_token_accepted(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine, auth_token="s3cret"))

        resp = client.post(
            "/webhook", json=_payload(), headers={"Authorization": "Bearer s3cret"}
        )

        assert resp.status_code == 202

    def test_auth_checked_before_body(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine, auth_token="s3cret"))
        bad_body = {"endpointName": "off-web", "success": "not-a-bool"}

        missing = client.post("/webhook", json=bad_body)
        wrong = client.post("/webhook", json=bad_body, headers={"Authorization": "Bearer nope"})
        garbage = client.post(
            "/webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert garbage.status_code == 401
        assert engine.push.pending == 0

    def test_body_errors_after_valid_token(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine, auth_token="s3cret"))
        headers = {"Authorization": "Bearer s3cret", "Content-Type": "application/json"}

        garbage = client.post("/webhook", content=b"{not json", headers=headers)
        invalid = client.post(
            "/webhook", json={"endpointName": "off-web", "success": "not-a-bool"}, headers=headers
        )

        assert garbage.status_code == 400
        assert invalid.status_code == 422
        assert engine.push.pending == 0

    def test_ping_only_engine_keeps_accepting_reports(self):
        """Stray reports never fill a queue that nothing consumes."""
        engine = _make_engine(queue_size=2, push=False)
        client = TestClient(_make_test_app(engine))

        codes = [client.post("/webhook", json=_payload()).status_code for _ in range(5)]

        assert codes == [202] * 5
        assert engine.push.pending == 0

    def test_disabled_receiver(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine, enabled=False))

        resp = client.post("/webhook", json=_payload())

        assert resp.status_code == 404
        assert engine.push.pending == 0

    def test_full_queue_returns_503(self):
        engine = _make_engine(queue_size=1)
        client = TestClient(_make_test_app(engine))

        first = client.post("/webhook", json=_payload())
        second = client.post("/webhook", json=_payload())

        assert first.status_code == 202
        assert second.status_code == 503

    def test_receiver_health(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine))
        client.post("/webhook", json=_payload())

        resp = client.get("/webhook/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["pending_reports"] == 1


# ============================================================================
# STATUS API
# ============================================================================

class TestStatusRoutes:
    """Tests for /api/v1/services, /api/v1/domains and /api/v1/reconcile."""

    def test_list_services(self):
        client = TestClient(_make_test_app(_make_engine()))

        resp = client.get("/api/v1/services")

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert data["healthy"] == 0
        assert [s["service"] for s in data["services"]] == ["primary", "offsite"]
        assert data["services"][0]["source"] == "ping"
        assert data["services"][1]["endpoints"]["off-web"]["stale"] is True

    def test_get_service(self):
        client = TestClient(_make_test_app(_make_engine()))

        resp = client.get("/api/v1/services/offsite")

        assert resp.status_code == 200
        assert resp.json()["ip_address"] == "10.0.0.30"
        assert resp.json()["domains"] == ["app.lan"]

    def test_get_unknown_service(self):
        client = TestClient(_make_test_app(_make_engine()))

        assert client.get("/api/v1/services/nope").status_code == 404

    def test_list_domains(self):
        client = TestClient(_make_test_app(_make_engine()))

        resp = client.get("/api/v1/domains")

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["converged"] == 0
        assert data["domains"][0]["domain"] == "app.lan"
        assert data["domains"][0]["desired"] is None
        assert data["domains"][0]["owners"] == ["primary", "offsite"]

    def test_request_reconcile(self):
        engine = _make_engine()
        client = TestClient(_make_test_app(engine))

        resp = client.post("/api/v1/reconcile")

        assert resp.status_code == 202
        assert resp.json() == {"status": "queued"}
        assert engine._full_pending is True

    def test_engine_not_initialized(self):
        client = TestClient(_make_test_app(None))

        assert client.get("/api/v1/services").status_code == 503
        assert client.post("/webhook", json=_payload()).status_code == 503


# ============================================================================
# PROCESS PROBES
# ============================================================================

def _mock_engine(running=True, ready=True, unresolved=()):
    engine = MagicMock()
    engine.running = running
    engine.ready = ready
    engine.stats = {"running": running, "cycles": 3}
    engine.reconciler.unresolved = list(unresolved)
    return engine


class TestProcessProbes:
    """Tests for /livez, /readyz and /health."""

    def test_livez(self):
        client = TestClient(_make_test_app(None))

        resp = client.get("/livez")

        assert resp.status_code == 200
        assert resp.json()["status"] == "alive"

    def test_readyz_before_start(self):
        client = TestClient(_make_test_app(_make_engine()))

        resp = client.get("/readyz")

        assert resp.status_code == 503
        assert resp.json()["reason"] == "engine not running"

    def test_readyz_waits_for_seed(self):
        client = TestClient(_make_test_app(_mock_engine(ready=False)))

        resp = client.get("/readyz")

        assert resp.status_code == 503
        assert resp.json()["reason"] == "rewrite store not seeded"

    def test_readyz_ready(self):
        client = TestClient(_make_test_app(_mock_engine()))

        assert client.get("/readyz").status_code == 200

    def test_health_all_domains_covered(self):
        client = TestClient(_make_test_app(_mock_engine()))

        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["engine"]["cycles"] == 3

    def test_health_degraded_when_domain_has_no_target(self):
        client = TestClient(_make_test_app(_mock_engine(unresolved=["app.lan"])))

        resp = client.get("/health")

        assert resp.status_code == 206
        assert resp.json()["no_healthy_target"] == ["app.lan"]

    def test_health_engine_stopped(self):
        client = TestClient(_make_test_app(_mock_engine(running=False)))

        assert client.get("/health").status_code == 503
