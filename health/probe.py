# ============================================================================
# PROBE RUNNERS
# ============================================================================
# STATUS: Infrastructure - Single liveness probe execution
# PURPOSE: Run one probe against one address with a timeout
# CREATED: 18 OCT 2026
# ============================================================================
"""
Probe Runners

A ProbeRunner answers one question: did this address respond within the
timeout? It is stateless and never raises; every failure (binary
missing, non-zero exit, timeout) is reported as False. Cancellation is
the only exception that propagates.

PingProbeRunner shells out to the system `ping` binary:

    ping -c 1 -W <seconds> <address>

The subprocess gets timeout_ms plus a grace period to exit. On timeout
or cancellation it is killed and reaped before returning.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import List

logger = logging.getLogger(__name__)


class ProbeRunner(ABC):
    """Executes a single liveness probe."""

    @abstractmethod
    async def probe(self, address: str, timeout_ms: int) -> bool:
        """
        Probe an address.

        Args:
            address: Host name or IP address
            timeout_ms: Probe timeout in milliseconds

        Returns:
            True if the address responded in time
        """


class PingProbeRunner(ProbeRunner):
    """ICMP echo via the system ping binary."""

    def __init__(self, ping_binary: str = "ping", grace_ms: int = 1000):
        """
        Args:
            ping_binary: Executable to run
            grace_ms: Extra time the process gets beyond timeout_ms
        """
        self.ping_binary = ping_binary
        self.grace_ms = grace_ms

    def build_command(self, address: str, timeout_ms: int) -> List[str]:
        # ping -W takes whole seconds
        seconds = max(1, math.ceil(timeout_ms / 1000))
        return [self.ping_binary, "-c", "1", "-W", str(seconds), address]

    async def probe(self, address: str, timeout_ms: int) -> bool:
        if not address or address.startswith("-"):
            logger.warning(f"Refusing to ping invalid address {address!r}")
            return False

        command = self.build_command(address, timeout_ms)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"Cannot start {self.ping_binary} for {address}: {e}")
            return False

        wait_seconds = (timeout_ms + self.grace_ms) / 1000.0
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=wait_seconds)
        except asyncio.TimeoutError:
            logger.debug(f"Ping to {address} timed out after {wait_seconds:.1f}s")
            await self._terminate(process)
            return False
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        if returncode != 0:
            logger.debug(f"Ping to {address} failed (exit code {returncode})")
        return returncode == 0

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        """Kill and reap a probe process."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()


__all__ = ["ProbeRunner", "PingProbeRunner"]
