"""Structured logging for rotauth.

Every log line carries a correlation id, and secret-bearing fields are
masked before rendering so raw refresh or access tokens never reach the log.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from rotauth.core.config import get_settings

SECRET_FIELDS = frozenset({"refresh_token", "access_token", "token", "admin_api_key"})


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add a correlation id to entries logged outside a request."""
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = f"cid_{uuid.uuid4().hex[:12]}"
    return event_dict


def mask_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask secret-bearing fields."""
    for key in SECRET_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def _renderer(settings: Any) -> list[Processor]:
    if settings.is_development or settings.log_format == "console":
        return [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer("message"),
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(settings: Any | None = None) -> None:
    """Configure structlog and route uvicorn's stdlib loggers to stdout.

    JSON output is used unless the environment is development or
    ``log_format`` is ``console``.
    """
    if settings is None:
        settings = get_settings()

    level = getattr(logging, settings.log_level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        mask_secrets,
    ]

    structlog.configure(
        processors=processors + _renderer(settings),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=not settings.is_development,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(logger_name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or "rotauth")


@contextmanager
def log_context(**fields: str) -> Iterator[None]:
    """Bind fields, such as ``family_id`` and ``client_id``, for the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_context() -> None:
    """Drop everything bound for the current request."""
    structlog.contextvars.clear_contextvars()
