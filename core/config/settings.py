# ============================================================================
# APPLICATION SETTINGS
# ============================================================================
# STATUS: Core - Configuration loading and validation
# PURPOSE: YAML config + environment overrides, validated once at startup
# CREATED: 18 OCT 2026
# ============================================================================
"""
Application Settings

Loads the failover configuration from a YAML (or JSON) file, applies
environment overrides, and validates every invariant before the engine
starts. A ConfigurationError here is the only fatal error in the process.

Layout (snake_case; PascalCase keys from an AdGuardHomeHA appsettings
file are converted, and an enclosing "AdGuardHomeHA" section is unwrapped):

    adguard_home:
      base_url: http://adguard.lan:3000
      username: admin
      password: secret
    monitoring:
      check_interval_seconds: 30
      retry_attempts: 3
      retry_delay_ms: 1000
    polling:
      interval_seconds: 30
      timeout_seconds: 10
    webhook:
      health_status_timeout_seconds: 300
      sweep_interval_seconds: 60
      auth_token: change-me
    services:
      - name: primary
        monitoring_mode: ping
        ip_address: 10.0.0.5
        priority: 1
        dns_rewrites: [app.lan]

Environment overrides:
    FAILOVER_CONFIG_PATH  - config file path (default: config.yaml)
    ADGUARD_BASE_URL      - adguard_home.base_url
    ADGUARD_USERNAME      - adguard_home.username
    ADGUARD_PASSWORD      - adguard_home.password
    WEBHOOK_AUTH_TOKEN    - webhook.auth_token
"""

import logging
import os
import re
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator

from core.contracts import MonitoringMode
from core.errors import ConfigurationError
from core.models import ServiceSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
LEGACY_SECTION_NAME = "AdGuardHomeHA"


# ============================================================================
# SECTIONS
# ============================================================================

class RewriteStoreConfig(BaseModel):
    """AdGuard Home connection settings."""
    base_url: str = ""
    username: str = ""
    password: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)


class MonitoringConfig(BaseModel):
    """Active probe cycle and engine loop settings."""
    check_interval_seconds: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=1000, ge=0)
    max_parallel_probes: int = Field(default=10, ge=1)
    error_backoff_seconds: float = Field(default=10.0, ge=0)
    shutdown_grace_seconds: float = Field(default=5.0, ge=0)


class PollingConfig(BaseModel):
    """Remote status (Gatus) polling settings."""
    interval_seconds: float = Field(default=30.0, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)


class WebhookConfig(BaseModel):
    """Push report settings."""
    enabled: bool = True
    health_status_timeout_seconds: float = Field(default=300.0, gt=0)
    sweep_interval_seconds: float = Field(default=60.0, gt=0)
    auth_token: Optional[str] = None
    queue_size: int = Field(default=1000, ge=1)


# ============================================================================
# ROOT CONFIG
# ============================================================================

class AppConfig(BaseModel):
    """
    Process-wide configuration snapshot.

    Owns every ServiceSpec. Immutable in practice after load_config().
    """

    adguard_home: RewriteStoreConfig = Field(
        default_factory=RewriteStoreConfig,
        validation_alias=AliasChoices("adguard_home", "ad_guard_home", "rewrite_store"),
    )
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    polling: PollingConfig = Field(
        default_factory=PollingConfig,
        validation_alias=AliasChoices("polling", "gatus_polling"),
    )
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    services: List[ServiceSpec] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _assign_declaration_order(self) -> "AppConfig":
        self.services = [
            s if s.order == i else s.model_copy(update={"order": i})
            for i, s in enumerate(self.services)
        ]
        return self

    # ------------------------------------------------------------------
    # LOOKUPS
    # ------------------------------------------------------------------

    @property
    def managed_domains(self) -> List[str]:
        """Every domain owned by at least one service, in declaration order."""
        seen: Dict[str, None] = {}
        for service in self.services:
            for domain in service.dns_rewrites:
                seen.setdefault(domain, None)
        return list(seen)

    # ------------------------------------------------------------------
    # VALIDATION
    # ------------------------------------------------------------------

    def validate_invariants(self) -> List[str]:
        """
        Check cross-field invariants.

        Returns:
            List of human-readable violations (empty when valid)
        """
        errors: List[str] = []

        if not self.adguard_home.base_url.strip():
            errors.append("adguard_home.base_url is required")

        if not self.services:
            errors.append("At least one service must be configured")

        name_counts = Counter(s.name for s in self.services)
        for name, count in name_counts.items():
            if count > 1:
                errors.append(f"Service name '{name}' is declared {count} times")

        push_owners: Dict[str, str] = {}

        for i, service in enumerate(self.services):
            prefix = f"services[{i}] ({service.name})"

            if not service.ip_address.strip():
                errors.append(f"{prefix}: ip_address is required")

            if not service.dns_rewrites:
                errors.append(f"{prefix}: at least one DNS rewrite domain is required")
            for domain in service.dns_rewrites:
                if not domain.strip():
                    errors.append(f"{prefix}: DNS rewrite domains cannot be empty")

            if not service.monitoring_mode.uses_endpoints:
                continue

            if not service.endpoints:
                errors.append(
                    f"{prefix}: {service.monitoring_mode.value} mode requires at least one endpoint"
                )
            duplicates = [e for e, c in Counter(service.endpoints).items() if c > 1]
            if duplicates:
                errors.append(f"{prefix}: duplicate endpoints {duplicates}")

            if not 1 <= service.required_endpoints <= max(len(service.endpoints), 1):
                errors.append(
                    f"{prefix}: required_endpoints={service.required_endpoints} must be "
                    f"between 1 and the endpoint count ({len(service.endpoints)})"
                )

            if service.monitoring_mode == MonitoringMode.POLL and not service.status_sources:
                errors.append(f"{prefix}: poll mode requires at least one status source")

            if service.monitoring_mode == MonitoringMode.PUSH:
                for endpoint in service.endpoints:
                    owner = push_owners.get(endpoint)
                    if owner is not None and owner != service.name:
                        errors.append(
                            f"{prefix}: push endpoint '{endpoint}' is already owned by '{owner}'"
                        )
                    push_owners.setdefault(endpoint, service.name)

        return errors


# ============================================================================
# LOADING
# ============================================================================

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize_keys(value: Any) -> Any:
    """Recursively convert dict keys to snake_case."""
    if isinstance(value, dict):
        return {
            _to_snake(k) if isinstance(k, str) else k: _normalize_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_normalize_keys(v) for v in value]
    return value


def _format_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}")
    return messages


def parse_config(
    raw: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Build and validate an AppConfig from already-parsed data.

    Args:
        raw: Mapping loaded from YAML/JSON
        env: Environment used for overrides (os.environ if None)

    Raises:
        ConfigurationError: If any invariant is violated
    """
    env = os.environ if env is None else env

    data = dict(raw or {})
    if LEGACY_SECTION_NAME in data and isinstance(data[LEGACY_SECTION_NAME], dict):
        data = data[LEGACY_SECTION_NAME]
    data = _normalize_keys(data)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e

    overrides = {
        "base_url": env.get("ADGUARD_BASE_URL"),
        "username": env.get("ADGUARD_USERNAME"),
        "password": env.get("ADGUARD_PASSWORD"),
    }
    overrides = {k: v for k, v in overrides.items() if v}
    if overrides:
        config.adguard_home = config.adguard_home.model_copy(update=overrides)

    token = env.get("WEBHOOK_AUTH_TOKEN")
    if token:
        config.webhook = config.webhook.model_copy(update={"auth_token": token})

    errors = config.validate_invariants()
    if errors:
        raise ConfigurationError(errors)

    return config


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Load configuration from a YAML or JSON file.

    Args:
        path: Config file (FAILOVER_CONFIG_PATH or config.yaml if None)
        env: Environment used for overrides (os.environ if None)

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    env = os.environ if env is None else env
    config_path = Path(path or env.get("FAILOVER_CONFIG_PATH", DEFAULT_CONFIG_PATH))

    if not config_path.exists():
        raise ConfigurationError([f"Config file not found: {config_path}"])

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError([f"Cannot parse {config_path}: {e}"]) from e

    if not isinstance(raw, dict):
        raise ConfigurationError([f"{config_path} must contain a mapping at the top level"])

    config = parse_config(raw, env=env)
    logger.info(
        f"Loaded configuration from {config_path}: "
        f"{len(config.services)} services, {len(config.managed_domains)} domains"
    )
    return config


# Global config singleton
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration singleton."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Replace the global configuration (tests and embedding)."""
    global _config
    _config = config


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
