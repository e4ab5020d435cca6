"""structlog configuration and per-request log context.

Log events never carry raw email addresses unless ``log_user_emails`` is on:
``redact_emails`` masks any ``email``-like keys before rendering.
"""

import logging
import sys
from typing import Any
from uuid import UUID

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

EMAIL_KEYS = frozenset({"email", "user_email", "identifier"})
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "httpx", "httpcore")


def _emails_enabled() -> bool:
    from src.tally.core.config import get_settings

    return get_settings().log_user_emails


def mask_email(value: str) -> str:
    """``jane.doe@school.org`` -> ``j***@school.org``."""
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def redact_emails(
    logger: Any, method_name: str, event_dict: structlog.typing.EventDict
) -> structlog.typing.EventDict:
    if _emails_enabled():
        return event_dict
    for key in EMAIL_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def setup_logging(debug: bool = False) -> None:
    """Console output in debug, one JSON object per line otherwise."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )

    renderer: structlog.typing.Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_emails,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str | None) -> None:
    if request_id:
        bind_contextvars(request_id=request_id)


def bind_user_context(user_id: UUID, organization_id: UUID, email: str | None = None) -> None:
    """Attach the authenticated principal to every later log line of this request."""
    bind_contextvars(user_id=str(user_id), organization_id=str(organization_id))
    if email and _emails_enabled():
        bind_contextvars(user_email=email)


def clear_request_context() -> None:
    clear_contextvars()
