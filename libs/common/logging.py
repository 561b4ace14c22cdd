"""Structured logging for the embedding service.

Every component logs through ``structlog`` with key/value events (provider,
document id, attempt, latency) rather than formatted strings, so provider
failovers and batch progress can be filtered in aggregated logs.

- ``configure_logging`` is called once from the application lifespan
- ``get_logger`` returns a logger named after the component
- ``log_performance`` records the duration of a finished pipeline run
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

# Backend HTTP clients log every request at INFO; provider attempts are
# already logged by the failover governor.
HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Configure structured logging for the service.

    Parameters
    - service_name: bound to every event as ``service``
    - log_level: ``DEBUG`` shows cache hits and per-batch progress
    - log_format: ``json`` for deployments; ``console`` for local runs
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log how long ``operation`` took; ``kwargs`` add context such as the document id."""
    get_logger("embedding_service.performance").info(
        "Operation completed",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **kwargs
    )
