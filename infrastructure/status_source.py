# ============================================================================
# REMOTE STATUS SOURCE - GATUS
# ============================================================================
# STATUS: Infrastructure - Remote status API client
# PURPOSE: Ask a Gatus instance whether one endpoint is currently healthy
# CREATED: 18 OCT 2026
# ============================================================================
"""
Remote Status Source

query_endpoint() returns a tri-state answer:

    True   the most recent result reports success
    False  the most recent result reports failure (or there is none)
    None   unknown: timeout, transport error, non-2xx, unreadable body

Unknown answers never change stored endpoint state.

Gatus API:
    GET {base}/api/v1/endpoints/{key}/statuses
    -> {"name", "group", "key", "results": [{"success", "timestamp", ...}, ...]}

results[0] is the most recent result.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class RemoteStatusSource(ABC):
    """Answers health questions about remote endpoints."""

    @abstractmethod
    async def query_endpoint(
        self,
        source_url: str,
        endpoint_ref: str,
        timeout: float,
    ) -> Optional[bool]:
        """
        Query one endpoint on one status source.

        Args:
            source_url: Status API base URL
            endpoint_ref: Endpoint key on that source
            timeout: Seconds before the answer is unknown

        Returns:
            True/False, or None when unknown. Never raises.
        """

    async def close(self) -> None:
        """Release connections."""


class GatusStatusSource(RemoteStatusSource):
    """Gatus /api/v1/endpoints/{key}/statuses client."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._client = httpx.AsyncClient(transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def statuses_url(source_url: str, endpoint_ref: str) -> str:
        return f"{source_url.rstrip('/')}/api/v1/endpoints/{quote(endpoint_ref, safe='')}/statuses"

    async def query_endpoint(
        self,
        source_url: str,
        endpoint_ref: str,
        timeout: float,
    ) -> Optional[bool]:
        url = self.statuses_url(source_url, endpoint_ref)

        try:
            resp = await self._client.get(url, timeout=timeout)
        except httpx.TimeoutException:
            logger.warning(f"Timeout polling {source_url} for endpoint {endpoint_ref}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Cannot reach {source_url} for endpoint {endpoint_ref}: {e}")
            return None

        if resp.status_code >= 400:
            logger.warning(
                f"Gatus API returned {resp.status_code} for endpoint {endpoint_ref} at {url}"
            )
            return None

        try:
            body = resp.json()
        except ValueError as e:
            logger.warning(f"Unreadable Gatus response for {endpoint_ref} from {source_url}: {e}")
            return None

        if not isinstance(body, dict):
            logger.warning(f"Unexpected Gatus response shape for {endpoint_ref} from {source_url}")
            return None

        results = body.get("results") or []
        if not results or not isinstance(results[0], dict):
            logger.debug(f"Endpoint {endpoint_ref} has no results on {source_url}")
            return False

        latest = results[0]
        healthy = latest.get("success") is True
        logger.debug(
            f"Polled {endpoint_ref} from {source_url}: {healthy} "
            f"(timestamp: {latest.get('timestamp')})"
        )
        return healthy


__all__ = ["RemoteStatusSource", "GatusStatusSource"]
