"""
Logging setup for Showcase Guard.

Every record carries the request id (set by RequestIdMiddleware) and the
resolved actor label (set by get_actor once the credential is checked).
Production emits one JSON object per line; development emits a short
readable line.

Usage:
    from showcase.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Invite sent", extra={"invite_id": str(invite.id)})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_var: ContextVar[Optional[str]] = ContextVar("actor", default=None)

CONTEXT_FIELDS = ("request_id", "actor")

# Fields every LogRecord has; anything else on a record came from extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    *CONTEXT_FIELDS,
}

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def bind_actor(label: Optional[str]) -> None:
    """Attach the actor label (``kind:id``) to log records for the rest of the request."""
    actor_var.set(label)


class RequestContextFilter(logging.Filter):
    """Stamp the request id and actor from context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"  # type: ignore[attr-defined]
        record.actor = actor_var.get() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with extra= fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, "-")
            if value != "-":
                payload[field] = value

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or value is None:
                continue
            payload[key] = value if _is_json(value) else str(value)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _is_json(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Install the single root handler. Safe to call again on reload.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        environment: 'production' switches to JSON output
        debug: forces DEBUG regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s actor=%(actor)s %(message)s",
            datefmt="%H:%M:%S",
        ))

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger. Pass structured fields with extra={}."""
    return logging.getLogger(name)
