# ============================================================================
# FAILOVER MODULE
# ============================================================================
# STATUS: Core - Failover decision and DNS reconciliation
# PURPOSE: Desired targets, store writes and the background engine
# CREATED: 18 OCT 2026
# ============================================================================
"""
Failover Module

- FailoverSelector: which address each domain should resolve to
- Reconciler: writes the difference to the rewrite store
- FailoverEngine: runs health sources and reconciliation in the background

Usage:
    from failover import FailoverEngine

    engine = FailoverEngine(config, AdGuardHomeClient.from_config(config.adguard_home))
    await engine.start()
    ...
    await engine.stop()
"""

from failover.selector import FailoverSelector
from failover.reconciler import Reconciler
from failover.engine import FailoverEngine

__all__ = [
    "FailoverSelector",
    "Reconciler",
    "FailoverEngine",
]
