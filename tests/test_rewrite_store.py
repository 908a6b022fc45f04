# ============================================================================
# REWRITE STORE CLIENT TESTS
# ============================================================================
# STATUS: Tests - AdGuard Home control API client
# PURPOSE: Verify login, re-authentication, rewrite edits and error mapping
# CREATED: 18 OCT 2026
# ============================================================================
"""
Rewrite Store Client Tests

AdGuard Home is simulated with httpx.MockTransport; no sockets are opened.

Run with:
    pytest tests/test_rewrite_store.py -v
"""

import asyncio
import json

import httpx
import pytest

from core.config import RewriteStoreConfig
from core.errors import RewriteStoreError
from infrastructure.rewrite_store import AdGuardHomeClient


# ============================================================================
# HELPERS
# ============================================================================

class _FakeAdGuard:
    """Minimal AdGuard Home control API."""

    def __init__(self, rewrites=None, running=True):
        self.rewrites = [dict(domain=d, answer=a) for d, a in (rewrites or [])]
        self.running = running
        self.requests = []
        self.logins = 0
        self.reject_next = 0
        self.fail_path = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if path == "/control/login":
            if body != {"name": "admin", "password": "pw"}:
                return httpx.Response(403, text="invalid credentials")
            self.logins += 1
            return httpx.Response(200, headers={"Set-Cookie": "agh_session=abc; Path=/"})

        if self.reject_next:
            self.reject_next -= 1
            return httpx.Response(401, text="unauthorized")

        if path == self.fail_path:
            return httpx.Response(500, text="internal error")

        if path == "/control/status":
            return httpx.Response(200, json={"running": self.running, "version": "v0.107.0"})
        if path == "/control/rewrite/list":
            return httpx.Response(200, json=self.rewrites)
        if path == "/control/rewrite/add":
            self.rewrites.append(body)
            return httpx.Response(200, text="OK")
        if path == "/control/rewrite/delete":
            self.rewrites.remove(body)
            return httpx.Response(200, text="OK")
        return httpx.Response(404)

    def writes(self):
        return [
            (path.rsplit("/", 1)[-1], body)
            for method, path, body in self.requests
            if path in ("/control/rewrite/add", "/control/rewrite/delete")
        ]


def _client(fake, username="admin", password="pw"):
    return AdGuardHomeClient(
        "http://adguard.lan:3000/",
        username=username,
        password=password,
        transport=httpx.MockTransport(fake.handler),
    )


# ============================================================================
# READS
# ============================================================================

class TestReads:

    def test_list_rewrites(self):
        fake = _FakeAdGuard([("app.lan", "10.0.0.1"), ("api.lan", "10.0.0.2")])
        client = _client(fake)

        entries = asyncio.run(client.list_rewrites())

        assert [(e.domain, e.answer) for e in entries] == [
            ("app.lan", "10.0.0.1"),
            ("api.lan", "10.0.0.2"),
        ]
        assert fake.logins == 1

    def test_test_connection_reports_running(self):
        assert asyncio.run(_client(_FakeAdGuard(running=True)).test_connection()) is True
        assert asyncio.run(_client(_FakeAdGuard(running=False)).test_connection()) is False

    def test_test_connection_never_raises(self):
        fake = _FakeAdGuard()
        fake.fail_path = "/control/status"

        assert asyncio.run(_client(fake).test_connection()) is False

    def test_from_config(self):
        config = RewriteStoreConfig(base_url="http://adguard.lan:3000", username="admin", password="pw")

        client = AdGuardHomeClient.from_config(config)

        assert client.base_url == "http://adguard.lan:3000"
        assert client.username == "admin"
        asyncio.run(client.close())


# ============================================================================
# WRITES
# ============================================================================

class TestSetRewrite:

    def test_absent_domain_is_added(self):
        fake = _FakeAdGuard()

        assert asyncio.run(_client(fake).set_rewrite("app.lan", "10.0.0.1")) is True
        assert fake.writes() == [("add", {"domain": "app.lan", "answer": "10.0.0.1"})]

    def test_existing_answer_replaced(self):
        fake = _FakeAdGuard([("app.lan", "10.0.0.1")])

        asyncio.run(_client(fake).set_rewrite("app.lan", "10.0.0.2"))

        assert fake.writes() == [
            ("delete", {"domain": "app.lan", "answer": "10.0.0.1"}),
            ("add", {"domain": "app.lan", "answer": "10.0.0.2"}),
        ]
        assert fake.rewrites == [{"domain": "app.lan", "answer": "10.0.0.2"}]

    def test_already_pointing_is_a_no_op(self):
        fake = _FakeAdGuard([("app.lan", "10.0.0.1")])

        asyncio.run(_client(fake).set_rewrite("app.lan", "10.0.0.1"))

        assert fake.writes() == []

    def test_extra_answers_removed(self):
        fake = _FakeAdGuard([("app.lan", "10.0.0.1"), ("app.lan", "10.0.0.2")])

        asyncio.run(_client(fake).set_rewrite("app.lan", "10.0.0.1"))

        assert fake.writes() == [("delete", {"domain": "app.lan", "answer": "10.0.0.2"})]
        assert fake.rewrites == [{"domain": "app.lan", "answer": "10.0.0.1"}]

    def test_other_domains_untouched(self):
        fake = _FakeAdGuard([("api.lan", "10.0.0.9")])

        asyncio.run(_client(fake).set_rewrite("app.lan", "10.0.0.1"))

        assert {"domain": "api.lan", "answer": "10.0.0.9"} in fake.rewrites


# ============================================================================
# AUTHENTICATION & ERRORS
# ============================================================================

class TestAuthentication:

    def test_no_username_skips_login(self):
        fake = _FakeAdGuard()

        asyncio.run(_client(fake, username="").list_rewrites())

        assert fake.logins == 0
        assert all(path != "/control/login" for _, path, _ in fake.requests)

    def test_session_rejected_triggers_one_relogin(self):
        fake = _FakeAdGuard([("app.lan", "10.0.0.1")])
        client = _client(fake)

        async def scenario():
            await client.list_rewrites()
            fake.reject_next = 1
            return await client.list_rewrites()

        entries = asyncio.run(scenario())

        assert len(entries) == 1
        assert fake.logins == 2

    def test_repeated_rejection_raises(self):
        fake = _FakeAdGuard()
        fake.reject_next = 2

        with pytest.raises(RewriteStoreError) as exc_info:
            asyncio.run(_client(fake).list_rewrites())

        assert exc_info.value.status_code == 401

    def test_bad_credentials_raise(self):
        fake = _FakeAdGuard()

        with pytest.raises(RewriteStoreError) as exc_info:
            asyncio.run(_client(fake, password="wrong").list_rewrites())

        assert exc_info.value.status_code == 403


class TestErrorMapping:

    def test_server_error_raises(self):
        fake = _FakeAdGuard()
        fake.fail_path = "/control/rewrite/list"

        with pytest.raises(RewriteStoreError) as exc_info:
            asyncio.run(_client(fake).list_rewrites())

        assert exc_info.value.status_code == 500

    def test_connection_refused_raises(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = AdGuardHomeClient("http://adguard.lan:3000", transport=httpx.MockTransport(refuse))

        with pytest.raises(RewriteStoreError):
            asyncio.run(client.list_rewrites())

    def test_timeout_raises(self):
        def hang(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = AdGuardHomeClient("http://adguard.lan:3000", transport=httpx.MockTransport(hang))

        with pytest.raises(RewriteStoreError):
            asyncio.run(client.set_rewrite("app.lan", "10.0.0.1"))

    def test_unreadable_list_raises(self):
        def garbage(request):
            return httpx.Response(200, json=[{"unexpected": True}])

        client = AdGuardHomeClient("http://adguard.lan:3000", transport=httpx.MockTransport(garbage))

        with pytest.raises(RewriteStoreError):
            asyncio.run(client.list_rewrites())
