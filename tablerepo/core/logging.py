"""
Logging configuration.

- **Console handler** — human-readable coloured output on stdout.
- **Rotating JSON file** — one JSON object per line, rotated by size.
- **Error-only file** — a separate stream holding ERROR and above.
- **Debug toggle** — ``DEBUG=true`` switches every logger to DEBUG and lets
  SQLAlchemy's engine logger through.

Usage:
    Applications embedding tablerepo call ``setup_logging()`` once at
    startup.  Library modules only ever call ``logging.getLogger(__name__)``
    and inherit whatever handlers the application configured.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional

from tablerepo.core.config import settings

LOG_DIR = os.path.join(os.getcwd(), "logs")

# ``extra=`` keys the repository attaches to its records.
EXTRA_FIELDS = ("table", "operation", "row_id", "rowcount")


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Output example::

        {"timestamp": "2025-02-17T10:30:00.123+00:00", "level": "DEBUG",
         "logger": "tablerepo.repositories.base", "message": "load users id=1",
         "module": "base", "function": "find", "line": 120,
         "table": "users", "operation": "load", "row_id": 1}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter with ANSI-coloured level names."""

    COLOURS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        table = getattr(record, "table", None)
        table_str = f" [{table}]" if table else ""

        base = (
            f"{timestamp} | {colour}{record.levelname:<8}{self.RESET} | "
            f"{record.name}{table_str} | {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def own_handlers(logger: logging.Logger) -> List[logging.Handler]:
    """Handlers on ``logger`` that ``setup_logging()`` installed."""
    return [
        handler
        for handler in logger.handlers
        if isinstance(handler.formatter, (ConsoleFormatter, JSONFormatter))
    ]


def setup_logging(log_dir: Optional[str] = None) -> None:
    """
    Configure the root logger with console + rotating file handlers.

    Subsequent calls are no-ops once tablerepo handlers are installed.
    Handlers added by the host application (or a test runner) are left alone.

    Parameters
    ----------
    log_dir : str, optional
        Directory for the rotating log files.  Defaults to ``./logs``.
    """
    root_logger = logging.getLogger()

    if own_handlers(root_logger):
        return

    level = (
        logging.DEBUG
        if settings.DEBUG
        else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    )
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    log_dir = log_dir or LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "tablerepo.log")
    file_handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(file_handler)

    error_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, "tablerepo-error.log"),
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(error_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.DEBUG else logging.WARNING
    )

    root_logger.info(
        "Logging initialized — level=%s, file=%s, max_size=%s MB, backups=%d",
        logging.getLevelName(level),
        log_file,
        settings.LOG_FILE_MAX_BYTES // (1024 * 1024),
        settings.LOG_FILE_BACKUP_COUNT,
    )
