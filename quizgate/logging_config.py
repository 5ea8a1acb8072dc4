"""
Central logging configuration for QuizGate.

Every record carries two correlation ids taken from contextvars:
- request_id: set by RequestIdMiddleware for the duration of a request
- session_id: set when a request resolves a live quiz session

Quiz lifecycle facts that matter after the fact (violations, lockouts,
persisted attempts, refused entries) go through `audit()`, which writes to
the dedicated "quizgate.audit" logger so they can be routed separately.

Usage:
    from quizgate.logging_config import audit, get_logger
    logger = get_logger(__name__)
    audit("attempt_stored", user_id=str(uid), level=level.value, score=score)
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("quiz_session_id", default=None)

AUDIT_LOGGER = "quizgate.audit"

_CORRELATION_ATTRS = ("request_id", "session_id")

# Attributes every LogRecord has; anything else came in through extra=
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", *_CORRELATION_ATTRS}


class CorrelationFilter(logging.Filter):
    """Stamp request_id and session_id from context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Explicit extra= values win over the context
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"  # type: ignore[attr-defined]
        if not getattr(record, "session_id", None):
            record.session_id = session_id_var.get() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extra= fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in _CORRELATION_ATTRS:
            value = getattr(record, attr, "-")
            if value != "-":
                payload[attr] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or value is None:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            payload[key] = value

        return json.dumps(payload)


def _dev_formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s sess=%(session_id)s %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_handler(environment: str) -> logging.Handler:
    # Level is gated per logger, not on the handler
    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(CorrelationFilter())
    handler.setFormatter(JsonFormatter() if environment == "production" else _dev_formatter())
    return handler


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: 'production' switches to JSON output
        debug: If True, use DEBUG level regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(_build_handler(environment))

    # Audit records are kept even when the app runs at WARNING
    logging.getLogger(AUDIT_LOGGER).setLevel(logging.INFO)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def audit(event: str, **fields: Any) -> None:
    """
    Record one quiz lifecycle fact on the audit logger.

        audit("violation", signal="became_hidden", user_id=str(uid))
    """
    logging.getLogger(AUDIT_LOGGER).info(event, extra={"event": event, **fields})
