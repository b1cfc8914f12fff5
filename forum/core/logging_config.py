"""Structured logging configuration for the forum core.

JSON lines in production, plain text in development. Two contextvars, the
request id and the acting user, are copied onto every record so permission
denials and repair steps can be traced back to the call that caused them.
A host's request layer sets them per request; the maintenance CLI sets them
per command through ``log_context``.
"""

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional


request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
acting_user_var: contextvars.ContextVar[str] = contextvars.ContextVar("acting_user", default="")

# Record attributes added by _ContextFilter. Left out of JSON output when empty.
_CONTEXT_FIELDS = ("request_id", "acting_user")


@contextmanager
def log_context(request_id: Optional[str] = None, acting_user: Optional[str] = None) -> Iterator[None]:
    """Bind a request id and acting user for every log record in the block."""
    rid_token = request_id_var.set(request_id or "")
    user_token = acting_user_var.set(acting_user or "")
    try:
        yield
    finally:
        acting_user_var.reset(user_token)
        request_id_var.reset(rid_token)


class _ContextFilter(logging.Filter):
    """Copy the bound request id and acting user onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        record.acting_user = acting_user_var.get("")
        return True


class _JsonFormatter(logging.Formatter):
    """Emit each log record as a single JSON line.

    ``extra`` fields are merged into the top-level object, so
    ``logger.info("Role assigned", extra={"role_id": 3})`` yields
    ``{"role_id": 3}`` next to the standard fields.
    """

    _RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in payload:
                continue
            if key in _CONTEXT_FIELDS and not value:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure application-wide logging.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Defaults to INFO.
        log_format: ``"json"`` for structured output, ``"text"`` for human-readable.
                    Defaults to ``"json"``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_ContextFilter())

    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Every permission check queries; engine logging would drown the rest.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured", extra={"level": level, "format": fmt})
