"""Logging setup for the CLI and other process entry points.

Text (human-readable) or single-line JSON output, chosen by LOG_FORMAT.
LOG_LEVEL defaults to INFO.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from config import get_settings


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for log aggregators."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


# Driver-level loggers that are noisy at INFO
_NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "asyncpg",
    "alembic.runtime.migration",
]


def configure_logging(level_name: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Set up the root logger. Arguments default to the LOG_LEVEL / LOG_FORMAT settings."""
    settings = get_settings()
    level_name = (level_name or settings.log_level).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    log_format = (log_format or settings.log_format).lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
