"""JSON log lines for NoteX, keyed by note, subscriber and request.

Every line carries the request correlation id when one is bound. Fields that
identify a note or a change-stream subscriber are lifted to the top level so
log queries can filter on them directly; any other ``extra`` values are
grouped under ``context``.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any

SERVICE_NAME = "notex"

# extras that name the object a line is about
PROMOTED_FIELDS = ("note_id", "subscriber_id", "event_type")

# attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Correlation id of the request being handled, if any."""
    return correlation_id.get()


def set_correlation_id(cid: str | None) -> None:
    correlation_id.set(cid)


def _iso(created: float) -> str:
    return datetime.fromtimestamp(created, UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": _iso(record.created),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        cid = get_correlation_id()
        if cid:
            log_data["correlation_id"] = cid

        context: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if key in PROMOTED_FIELDS:
                log_data[key] = value
            else:
                context[key] = value
        if context:
            log_data["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


def configure_structured_logging(level: str = "INFO", stream: IO[str] | None = None) -> None:
    """Send all loggers, uvicorn's included, through one JSON handler."""
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True


__all__ = [
    "PROMOTED_FIELDS",
    "StructuredFormatter",
    "configure_structured_logging",
    "get_correlation_id",
    "set_correlation_id",
]
