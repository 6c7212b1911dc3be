"""
Structured logging for UrbanFix.

Every log line is a structlog event dict: human-readable in development,
one JSON object per line elsewhere. Request-scoped values (request_id) are
carried in contextvars and merged into each event.

Usage:
    from urbanfix.logging import get_logger

    logger = get_logger("service.issue_lifecycle")
    logger.info("issue_upvoted", issue_id=issue.id, upvotes=issue.upvotes)
"""

import logging
import os
import sys
import time
from collections.abc import MutableMapping
from functools import lru_cache
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from . import __version__

# Event keys never written out verbatim
_SECRET_KEYS = frozenset({"authorization", "token", "access_token", "password"})

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _is_development() -> bool:
    from .config import get_settings

    settings = get_settings()
    return settings.debug or os.getenv("ENV", "development") == "development"


def _add_service_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> EventDict:
    event_dict.setdefault("service", "urbanfix")
    event_dict.setdefault("version", __version__)
    return event_dict  # type: ignore[return-value]


def _mask_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> EventDict:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict  # type: ignore[return-value]


def get_processors(json_logs: bool) -> list[Processor]:
    """Build the processor chain, ending in a console or JSON renderer."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        _add_service_context,
        _mask_secrets,
    ]
    if json_logs:
        return processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return processors + [
        structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


@lru_cache(maxsize=1)
def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger. Idempotent.

    Args:
        level: Log level name; defaults to LOG_LEVEL (DEBUG when DEBUG=true).
        json_logs: Force JSON on or off; defaults to LOG_JSON, else JSON
            everywhere except development.
    """
    from .config import get_settings

    settings = get_settings()
    if level is None:
        level = "DEBUG" if settings.debug else settings.log_level
    if json_logs is None:
        json_logs = settings.log_json if settings.log_json is not None else not _is_development()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    if not settings.debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=get_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: Any) -> None:
    """Bind values that every later event in this context will carry."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class RequestLoggingMiddleware:
    """
    ASGI middleware emitting one ``request_complete`` event per HTTP request.

    The level follows the response: info below 400, warning for 4xx, error
    for 5xx. Exceptions escaping the app are logged as ``request_failed``
    and re-raised. The request's log context is cleared afterwards.
    """

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status_code = 500
        client = scope.get("client")
        request_fields = {
            "method": scope.get("method", ""),
            "path": scope.get("path", ""),
            "client_ip": client[0] if client else None,
        }

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            self.logger.exception("request_failed", **request_fields)
            raise
        else:
            if status_code >= 500:
                log = self.logger.error
            elif status_code >= 400:
                log = self.logger.warning
            else:
                log = self.logger.info
            log(
                "request_complete",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                **request_fields,
            )
        finally:
            clear_context()


__all__ = [
    "configure_logging",
    "get_logger",
    "get_processors",
    "bind_context",
    "clear_context",
    "RequestLoggingMiddleware",
]
