# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - External system clients
# PURPOSE: Rewrite store and remote status API clients
# CREATED: 18 OCT 2026
# ============================================================================
"""
Infrastructure module for the failover engine.

Provides:
- RewriteStore / AdGuardHomeClient: DNS rewrites (the only thing we write)
- RemoteStatusSource / GatusStatusSource: remote endpoint health (POLL mode)

Usage:
    from infrastructure import AdGuardHomeClient, GatusStatusSource

    store = AdGuardHomeClient.from_config(config.adguard_home)
    rewrites = await store.list_rewrites()

    gatus = GatusStatusSource()
    healthy = await gatus.query_endpoint("http://gatus.lan:8080", "core_web", 10.0)
"""

from infrastructure.rewrite_store import (
    RewriteStore,
    AdGuardHomeClient,
)
from infrastructure.status_source import (
    RemoteStatusSource,
    GatusStatusSource,
)

__all__ = [
    "RewriteStore",
    "AdGuardHomeClient",
    "RemoteStatusSource",
    "GatusStatusSource",
]
