"""Logging setup: console and rotating file handlers, optional JSON lines, request context."""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"

# Loggers that are too chatty at the service's level
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "urllib3": logging.WARNING,
}

_request_context: ContextVar[Dict[str, Any]] = ContextVar("vaultx_request_context", default={})


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, including request context and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "extra_fields", {}))

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


class RequestContextFilter(logging.Filter):
    """Copies the current request's context (id, method, path, client) onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _request_context.get()
        if context:
            fields = dict(getattr(record, "extra_fields", {}))
            for key, value in context.items():
                fields.setdefault(key, value)
            record.extra_fields = fields
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the root logger for the service.

    Existing root handlers are replaced, so calling this again (CLI, then
    app lifespan) does not duplicate output.

    Args:
        level: Root logging level name
        log_file: Also write to this file, rotated at max_size bytes
        log_format: Format for plain-text output
        structured: Emit JSON lines instead of plain text
        max_size: Rotation size of the log file in bytes
        backup_count: Rotated files to keep

    Returns:
        The root logger
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count))

    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_logging_context(**fields):
    """Attach fields to every record logged while handling the current request."""
    _request_context.set({**_request_context.get(), **fields})


def clear_logging_context():
    _request_context.set({})
