# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration loading
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Loads and validates the failover configuration.
"""

from core.config.settings import (
    AppConfig,
    RewriteStoreConfig,
    MonitoringConfig,
    PollingConfig,
    WebhookConfig,
    parse_config,
    load_config,
    get_config,
    set_config,
)

__all__ = [
    "AppConfig",
    "RewriteStoreConfig",
    "MonitoringConfig",
    "PollingConfig",
    "WebhookConfig",
    "parse_config",
    "load_config",
    "get_config",
    "set_config",
]
