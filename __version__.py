# ============================================================================
# VERSION - DNS FAILOVER ENGINE
# ============================================================================
"""
Version information for the DNS failover engine.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch
__version__ = "0.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-18"

IMAGE = f"adguard-failover:v{__version__}"
CODENAME = "DNS Failover"
