"""
Shared logging configuration for the feature flag exporter.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variable correlating every log line of one scrape cycle
cycle_id_var: ContextVar[Optional[str]] = ContextVar('cycle_id', default=None)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(service_name: str, log_level: str = "info", log_format: str = "json") -> None:
    """Configure structured logging for a service."""

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Unknown levels fall back to info
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=LOG_LEVELS.get(log_level.lower(), logging.INFO),
        force=True,
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the current scrape cycle id to log events."""
    cycle_id = cycle_id_var.get()
    if cycle_id:
        event_dict["cycle_id"] = cycle_id

    return event_dict


def set_cycle_id(cycle_id: Optional[str] = None) -> str:
    """Set scrape cycle ID in context."""
    if cycle_id is None:
        cycle_id = uuid.uuid4().hex[:12]
    cycle_id_var.set(cycle_id)
    return cycle_id


def clear_context():
    """Clear all context variables."""
    cycle_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
