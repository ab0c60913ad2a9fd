"""
Structured logging configuration.

Production emits JSON lines on stdout so log aggregation can
index the ledger fields (entry_id, account_id, ...). Debug
runs use a human-readable console format.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from ledger_core.config import get_settings

# Attributes every LogRecord carries; anything else came in via extra=
STANDARD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "exc_info", "exc_text", "stack_info",
    "message", "taskName",
}


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.

    Outputs one object per record with timestamp, level, logger
    and message. Extra fields passed to the logger are nested
    under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extras = {}
        for key, value in record.__dict__.items():
            if key in STANDARD_ATTRS:
                continue
            try:
                json.dumps(value)
                extras[key] = value
            except (TypeError, ValueError):
                extras[key] = str(value)

        if extras:
            log_entry["extra"] = extras

        return json.dumps(log_entry, default=str)


def get_logging_config(log_level: str, log_format: str) -> dict:
    """Build a dictConfig for the given level and format."""
    if log_format == "json":
        formatter = {"()": "ledger_core.logging_config.JsonFormatter"}
    else:
        formatter = {
            "format": "[{asctime}] {levelname} {name} {message}",
            "style": "{",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": log_level},
            "ledger_core": {"level": log_level},
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "INFO" if log_level == "DEBUG" else "WARNING",
                "propagate": False,
            },
        },
    }


def configure_logging() -> None:
    """Install the logging configuration from settings."""
    settings = get_settings()
    logging.config.dictConfig(
        get_logging_config(settings.LOG_LEVEL.upper(), settings.LOG_FORMAT)
    )
