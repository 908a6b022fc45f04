# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across all components
# CREATED: 18 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted logging for the failover engine.
Transition lines (service health flips, domain target changes, domains
without a healthy owner) are the only observability surface of the
engine, so they are emitted through log_transition() with a stable name
and a data payload.

Features:
- Contextual fields (service, domain, endpoint) per asyncio task
- JSON output for log aggregation (LOG_FORMAT=json)
- Named transitions for querying

Usage:
    from core.logging import get_logger, log_context, log_transition

    logger = get_logger("health.push")

    with log_context(service="primary"):
        logger.info("Processing report")

    log_transition("service_health_changed", {"service": "primary", "healthy": False})
"""

import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


@dataclass
class LogContext:
    """
    Context for structured logging.

    Stored in a ContextVar so each asyncio task sees its own stack.
    """
    service: Optional[str] = None
    domain: Optional[str] = None
    endpoint: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_current_context: contextvars.ContextVar[Optional[LogContext]] = contextvars.ContextVar(
    "failover_log_context", default=None
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    context = _current_context.get()
    return context if context is not None else LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Args:
        **kwargs: Context fields to add

    Example:
        with log_context(service="primary", endpoint="gatus-a"):
            logger.info("Endpoint updated")
    """
    parent = get_current_context()
    new_context = LogContext(
        service=kwargs.get("service", parent.service),
        domain=kwargs.get("domain", parent.domain),
        endpoint=kwargs.get("endpoint", parent.endpoint),
        component=kwargs.get("component", parent.component),
        operation=kwargs.get("operation", parent.operation),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    token = _current_context.set(new_context)
    try:
        yield new_context
    finally:
        _current_context.reset(token)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_context: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = _utc_now().isoformat()

        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.getMessage()

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes context fields inline for easy reading.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = _utc_now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.service:
            context_parts.append(f"service={context.service}")
        if context.domain:
            context_parts.append(f"domain={context.domain}")
        if context.endpoint:
            context_parts.append(f"endpoint={context.endpoint}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = record.getMessage()

        extra_str = ""
        if hasattr(record, "extra") and record.extra:
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {message}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Automatically includes the task-local context in all log messages.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        context = get_current_context()

        extra = dict(kwargs.get("extra", {}))
        extra.update(context.to_dict())

        # Stored as an attribute for formatter access
        kwargs["extra"] = {"extra": extra}

        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "failover.engine")
    """
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for production)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================================
# TRANSITION LOGGING
# ============================================================================

TRANSITION_LOGGER = "failover.transitions"


def log_transition(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named state transition.

    Transitions are the queryable markers of the engine: a service health
    flip, a domain moving to a new address, a domain left without a
    healthy owner.

    Args:
        name: Transition name (e.g., "service_health_changed")
        data: Transition payload
        level: Log level (CRITICAL for no_healthy_target)
        logger: Optional specific logger to use
    """
    if logger is None:
        logger = logging.getLogger(TRANSITION_LOGGER)

    transition_data: Dict[str, Any] = {
        "transition": name,
        "timestamp": _utc_now().isoformat(),
    }

    context = get_current_context().to_dict()
    if context:
        transition_data["context"] = context

    if data:
        transition_data["data"] = data

    summary = ", ".join(f"{k}={v}" for k, v in (data or {}).items())
    logger.log(level, f"TRANSITION: {name} ({summary})", extra={"extra": transition_data})


__all__ = [
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_transition",
    "TRANSITION_LOGGER",
]
