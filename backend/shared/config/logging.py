"""
Structured logging for the datastore.

Call sites pass context as keyword arguments:

    logger.debug("Cache hit", entity="device", entity_id="d-1")

The JSON formatter lifts ``entity`` and ``operation`` to the top level so
log pipelines can group store traffic per table; everything else goes
under ``context``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from shared.config.settings import settings

# Context keys promoted to top-level JSON fields
TOP_LEVEL_KEYS = ("entity", "operation")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "context", None) or {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        context = dict(_context(record))
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in TOP_LEVEL_KEYS:
            if key in context:
                payload[key] = context.pop(key)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """logfmt-style single line for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname:<8} {record.name}: {record.getMessage()}"
        context = _context(record)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept structured context as kwargs."""

    def _emit(self, level: int, msg: str, args: tuple, kwargs: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        self._log(level, msg, args, exc_info=exc_info, extra={"context": kwargs})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.CRITICAL, msg, args, kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """
    Install a single root handler. The datastore never calls this itself;
    the embedding application does, once, at startup.
    """
    log_level = (level or settings.log_level).upper()
    use_json = settings.log_json if json_output is None else json_output

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredFormatter() if use_json else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # SQL echo is controlled by settings.database_echo instead
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    return handler


def get_logger(name: str) -> StructuredLogger:
    """Return the structured logger for a module: ``get_logger(__name__)``."""
    return logging.getLogger(name)  # type: ignore


def mask_user_id(user_id: int | str | None) -> str:
    """Keep the first two characters of a user id for audit logs."""
    if user_id is None:
        return "<anonymous>"
    text = str(user_id)
    return f"{text[:2]}***"
