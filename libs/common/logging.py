"""Structured logging configuration for the search gateway.

Standardizes logging with ``structlog``. Produces either JSON (for machines)
or a pretty console format (for humans) and binds the service name, plus a
per-request id, through ``structlog.contextvars`` so concurrent requests stay
distinguishable in aggregated logs.

Typical usage
- Call ``configure_logging(service_name, log_level, log_format)`` at startup
- Acquire loggers via ``structlog.get_logger(name)``
- Call ``bind_request_context(request_id=...)`` at the start of each request

Bearer credentials never reach the log sink: any event key listed in
``REDACTED_KEYS`` is masked before rendering.
"""

import logging
import sys
from typing import Any, MutableMapping

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

REDACTED_KEYS = frozenset({"authorization", "token", "password", "secret"})
REDACTED = "***"


def redact_credentials(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]):
    """structlog processor masking credential-bearing keys."""
    for key in event_dict:
        if key.lower() in REDACTED_KEYS and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Logical service identifier bound to each log line
    - log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` (case-insensitive)
    - log_format: ``json`` for production; anything else renders for a console
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        redact_credentials,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Service context survives for the process; request context is per task
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request_context(**context: Any) -> None:
    """Bind request-scoped values (e.g. ``request_id``) to every log line."""
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context(*keys: str) -> None:
    """Drop request-scoped values bound with ``bind_request_context``."""
    structlog.contextvars.unbind_contextvars(*keys)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log the duration of a unit of work.

    Parameters
    - operation: A stable identifier for the measured unit of work
    - duration_ms: Elapsed time in milliseconds
    - kwargs: Additional dimensions (e.g., domain, outcome)
    """
    get_logger("performance").info(
        f"Operation {operation} completed",
        operation=operation,
        duration_ms=round(duration_ms, 3),
        **kwargs
    )
