"""Logging setup for natfwd.

Console output goes through Rich. An optional rotating log file receives
either one JSON object per record or plain text lines. Every record carries
the correlation id of the context that emitted it, so all lines about one
gateway can be picked out of a busy log.
"""

from __future__ import annotations

import json
import logging
import logging.config
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler

from natfwd.utils.exceptions import NATFwdError

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.models import LogLevel, ObservabilityConfig

LOGGER_NAMESPACE = "natfwd"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s"

correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else was passed through ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "correlation_id"}


class CorrelationFilter(logging.Filter):
    """Stamps records with the current correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """Formats each record as a single JSON object.

    Values passed through ``extra`` are copied into the object as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
            "correlation_id": getattr(record, "correlation_id", None),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        )
        try:
            return json.dumps(entry, default=str)
        except ValueError:
            # Circular extras; fall back to a plain line
            return f"{record.levelname} {record.name}: {entry['message']}"


def create_rich_handler(
    level: int | str = logging.INFO,
    console: Console | None = None,
) -> logging.Handler:
    """Create the console handler."""
    handler = RichHandler(
        console=console or Console(file=sys.stdout),
        level=level,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.addFilter(CorrelationFilter())
    return handler


def _file_handler_config(config: ObservabilityConfig, level: str) -> dict[str, Any]:
    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "json" if config.structured_logging else "plain",
        "filters": ["correlation"],
        "filename": str(log_path),
        "maxBytes": LOG_FILE_MAX_BYTES,
        "backupCount": LOG_FILE_BACKUPS,
        "encoding": "utf-8",
    }


def setup_logging(
    config: ObservabilityConfig,
    level: LogLevel | None = None,
) -> None:
    """Configure the ``natfwd`` logger tree from the observability settings.

    ``level`` overrides ``config.log_level`` without touching the config.
    """
    level_name = (level or config.log_level).value
    handlers: dict[str, Any] = {}
    if config.log_file:
        handlers["file"] = _file_handler_config(config, level_name)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": StructuredFormatter},
                "plain": {"format": PLAIN_FORMAT},
            },
            "filters": {"correlation": {"()": CorrelationFilter}},
            "handlers": handlers,
            "loggers": {
                LOGGER_NAMESPACE: {
                    "level": level_name,
                    "handlers": list(handlers),
                    "propagate": False,
                },
            },
        }
    )
    # RichHandler needs a live Console, so it is attached outside dictConfig
    logging.getLogger(LOGGER_NAMESPACE).addHandler(
        create_rich_handler(level_name)
    )

    if config.log_correlation_id:
        set_correlation_id()


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``natfwd`` namespace."""
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def set_correlation_id(corr_id: str | None = None) -> str:
    """Set the correlation id for the current context, generating one if needed."""
    corr_id = corr_id or uuid.uuid4().hex[:12]
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str | None:
    return correlation_id.get()


def log_exception(logger: logging.Logger, exc: Exception, context: str = "") -> None:
    """Log ``exc`` at error level, attaching natfwd error details as ``error_details``."""
    message = exc.message if isinstance(exc, NATFwdError) else str(exc)
    if context:
        message = f"{context}: {message}"
    extra = {"error_details": exc.details} if isinstance(exc, NATFwdError) and exc.details else None
    logger.error("%s", message, exc_info=exc, extra=extra)
