"""
Structured logging configuration using structlog.

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("login_succeeded", user_id="123", organization_id="456")

Event names are snake_case; context goes in keyword fields. Request-scoped
fields (request_id, request.ip_address, request.user_agent) are bound by
RequestContextMiddleware and merged into every event.

Sensitive keys (password, token, secret, ...) are redacted by a processor before
rendering, using the same rules as audit payloads.
"""

import logging
import sys
from collections.abc import Mapping
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from apps.core.redaction import REDACTED, is_sensitive_key, redact

_RESERVED_KEYS = frozenset({"event", "level", "logger", "timestamp", "exc_info", "stack_info"})


def _redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace values of sensitive keys and walk nested containers."""
    for key, value in event_dict.items():
        if key.startswith("_") or key in _RESERVED_KEYS:
            continue
        if is_sensitive_key(key):
            event_dict[key] = REDACTED
        elif isinstance(value, Mapping | list | tuple):
            event_dict[key] = redact(value)
    return event_dict


# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("django.db.backends", "django.utils.autoreload")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive_fields,
    ]


def configure_logging(
    json_format: bool = True,
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """
    Route structlog and stdlib logging through one redacting handler.

    Args:
        json_format: JSON lines when True, colored console output otherwise.
        log_level: Minimum level for the root logger.
        stream: Where records are written. Defaults to stdout.
    """
    processors = _shared_processors()
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_logger.level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Services accept a logger argument and fall back to the module logger
    obtained here, so tests can pass their own.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current request/task context.

    Usage:
        bind_contextvars(request_id=request_id, **{"request.ip_address": ip})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Clear all bound context variables. Call at the end of each request."""
    structlog.contextvars.clear_contextvars()
