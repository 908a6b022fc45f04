# ============================================================================
# ERRORS
# ============================================================================
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Typed errors for configuration and rewrite store failures
# CREATED: 18 OCT 2026
# ============================================================================
"""
Exception hierarchy.

Only ConfigurationError is allowed to stop the process, and only at
startup. Everything raised inside a probe, poll, report or reconcile
cycle is caught by that cycle and logged.
"""

from typing import List, Optional


class FailoverError(Exception):
    """Base class for failover engine errors."""


class ConfigurationError(FailoverError):
    """
    Configuration violates an invariant.

    Carries every violation found so the operator can fix them in one pass.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        message = "Configuration validation failed:\n" + "\n".join(
            f"  - {e}" for e in self.errors
        )
        super().__init__(message)


class RewriteStoreError(FailoverError):
    """The rewrite store rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


__all__ = ["FailoverError", "ConfigurationError", "RewriteStoreError"]
