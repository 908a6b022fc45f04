# ============================================================================
# REWRITE STORE - ADGUARD HOME
# ============================================================================
# STATUS: Infrastructure - DNS rewrite store client
# PURPOSE: Read and write AdGuard Home DNS rewrites over its control API
# CREATED: 18 OCT 2026
# ============================================================================
"""
Rewrite Store

RewriteStore is the only interface the reconciler writes through.
AdGuardHomeClient implements it against the AdGuard Home control API:

    POST /control/login            {"name", "password"} -> session cookie
    GET  /control/status           {"running", "version", ...}
    GET  /control/rewrite/list     [{"domain", "answer"}, ...]
    POST /control/rewrite/add      {"domain", "answer"}
    POST /control/rewrite/delete   {"domain", "answer"}

AdGuard Home has no update call. set_rewrite() reads the current entries
for the domain and then:
    - already pointing at the address  -> nothing to do
    - absent                           -> add
    - pointing elsewhere               -> delete old entries, add new

The session cookie is kept by the httpx client's cookie jar. A 401/403
triggers one re-login and one retry of the request.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from core.config import RewriteStoreConfig
from core.errors import RewriteStoreError
from core.models import RewriteEntry

logger = logging.getLogger(__name__)


class RewriteStore(ABC):
    """Abstract DNS rewrite store."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Check the store is reachable and serving. Never raises."""

    @abstractmethod
    async def list_rewrites(self) -> List[RewriteEntry]:
        """
        Current rewrites.

        Raises:
            RewriteStoreError: If the store cannot be read
        """

    @abstractmethod
    async def set_rewrite(self, domain: str, address: str) -> bool:
        """
        Point a domain at an address.

        Returns:
            True once the store holds domain -> address

        Raises:
            RewriteStoreError: If a request fails
        """

    async def close(self) -> None:
        """Release connections."""


class AdGuardHomeClient(RewriteStore):
    """AdGuard Home control API client."""

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: AdGuard Home URL (e.g., http://adguard.lan:3000)
            username: Login name; login is skipped when empty
            password: Login password
            timeout_seconds: Per-request timeout
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        self._auth_lock = asyncio.Lock()
        self._authenticated = False

    @classmethod
    def from_config(
        cls,
        config: RewriteStoreConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AdGuardHomeClient":
        return cls(
            base_url=config.base_url,
            username=config.username,
            password=config.password,
            timeout_seconds=config.timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    async def _login(self) -> None:
        """
        Open a session.

        Raises:
            RewriteStoreError: If login is rejected or the store is unreachable
        """
        async with self._auth_lock:
            if self._authenticated:
                return

            if not self.username:
                self._authenticated = True
                return

            logger.debug(f"Authenticating with AdGuard Home as {self.username}")
            try:
                resp = await self._client.post(
                    "/control/login",
                    json={"name": self.username, "password": self.password},
                )
            except httpx.HTTPError as e:
                raise RewriteStoreError(f"Cannot reach AdGuard Home at {self.base_url}: {e}") from e

            if resp.status_code >= 400:
                raise RewriteStoreError(
                    f"AdGuard Home login failed: {resp.status_code} {resp.text[:200]}",
                    status_code=resp.status_code,
                )

            if not self._client.cookies:
                logger.warning("AdGuard Home login succeeded but no session cookie was set")

            self._authenticated = True
            logger.info(f"Authenticated with AdGuard Home at {self.base_url}")

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Authenticated request with one re-login on 401/403.

        Raises:
            RewriteStoreError: On transport errors and non-2xx responses
        """
        await self._login()

        for attempt in (1, 2):
            try:
                resp = await self._client.request(method, path, json=json_body)
            except httpx.ConnectError as e:
                raise RewriteStoreError(f"Cannot reach AdGuard Home at {self.base_url}: {e}") from e
            except httpx.TimeoutException as e:
                raise RewriteStoreError(f"AdGuard Home timeout: {method} {path}: {e}") from e
            except httpx.HTTPError as e:
                raise RewriteStoreError(f"AdGuard Home request failed: {method} {path}: {e}") from e

            if resp.status_code in (401, 403) and attempt == 1 and self.username:
                logger.info(f"AdGuard Home session rejected ({resp.status_code}), re-authenticating")
                self._authenticated = False
                self._client.cookies.clear()
                await self._login()
                continue

            if resp.status_code >= 400:
                raise RewriteStoreError(
                    f"AdGuard Home error {resp.status_code}: {method} {path} -> {resp.text[:200]}",
                    status_code=resp.status_code,
                )
            return resp

        # Unreachable: the second attempt either returns or raises
        raise RewriteStoreError(f"AdGuard Home rejected {method} {path}")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def test_connection(self) -> bool:
        try:
            resp = await self._request("GET", "/control/status")
            status = resp.json()
        except RewriteStoreError as e:
            logger.warning(f"AdGuard Home connection test failed: {e}")
            return False
        except ValueError as e:
            logger.warning(f"AdGuard Home returned an unreadable status: {e}")
            return False

        running = bool(status.get("running")) if isinstance(status, dict) else False
        version = status.get("version", "unknown") if isinstance(status, dict) else "unknown"
        logger.info(f"Connected to AdGuard Home {version}, running={running}")
        return running

    async def list_rewrites(self) -> List[RewriteEntry]:
        resp = await self._request("GET", "/control/rewrite/list")
        try:
            body = resp.json()
            return [RewriteEntry.model_validate(item) for item in (body or [])]
        except (ValueError, TypeError, ValidationError) as e:
            raise RewriteStoreError(f"Unreadable rewrite list from AdGuard Home: {e}") from e

    async def add_rewrite(self, domain: str, address: str) -> None:
        await self._request(
            "POST", "/control/rewrite/add", RewriteEntry(domain=domain, answer=address).model_dump()
        )
        logger.info(f"Added rewrite {domain} -> {address}")

    async def delete_rewrite(self, domain: str, address: str) -> None:
        await self._request(
            "POST", "/control/rewrite/delete", RewriteEntry(domain=domain, answer=address).model_dump()
        )
        logger.info(f"Deleted rewrite {domain} -> {address}")

    async def set_rewrite(self, domain: str, address: str) -> bool:
        current = [r.answer for r in await self.list_rewrites() if r.domain == domain]

        if current == [address]:
            logger.debug(f"Rewrite {domain} already points to {address}")
            return True

        for old in current:
            if old != address:
                await self.delete_rewrite(domain, old)

        if address not in current:
            await self.add_rewrite(domain, address)

        if current:
            logger.info(f"Updated rewrite {domain}: {', '.join(current)} -> {address}")
        return True


__all__ = ["RewriteStore", "AdGuardHomeClient"]
