"""Structured logging for the share service.

structlog renders both structlog loggers and plain ``logging.getLogger``
loggers through one processor chain, so every line carries the level,
logger name, timestamp and the current request id.

Usage::

    from buildshare.observability.logging import configure_logging, get_logger

    configure_logging()  # once, at app startup
    logger = get_logger(__name__)
    logger.info("share_audit", event_type="share.denied", detail="share_expired")
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar

import structlog

# Request-scoped correlation id, set by the request-ID middleware.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Event keys that must never reach a log sink.
SECRET_KEYS = frozenset({"password", "password_hash", "authorization", "token"})

_configured = False


def _add_request_id(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _drop_secrets(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    for key in SECRET_KEYS & event_dict.keys():
        event_dict[key] = "<redacted>"
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        _drop_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(*, level: str | None = None, json_output: bool | None = None) -> None:
    """Install the structlog pipeline on the root logger. Idempotent.

    Args:
        level: Level name; defaults to ``LOG_LEVEL`` or INFO.
        json_output: JSON lines when True, console output when False.
            Defaults to ``LOG_FORMAT == "json"`` (the default format).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def _reset_for_tests() -> None:
    global _configured
    _configured = False
