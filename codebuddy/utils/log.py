"""Logging for Codebuddy.

Messages are tagged by area (``"[providers] ..."``) and carry structured
context through ``extra=``. The console shows warnings by default; a log file
opened with :func:`enable_file_logging` records everything, with the context
appended as JSON.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_LEVEL_ENV = "CODEBUDDY_LOG_LEVEL"

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """UTC millisecond timestamps plus a JSON suffix for ``extra=`` context."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        try:
            suffix = json.dumps(context, sort_keys=True, ensure_ascii=True, default=str)
        except (TypeError, ValueError):
            suffix = repr(context)
        return f"{line} | {suffix}"


def _console_level() -> int:
    name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


class CodeBuddyLogger:
    """Thin wrapper owning the ``codebuddy`` logger and its handlers."""

    def __init__(self, name: str = "codebuddy"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        if not self.logger.handlers:
            console = logging.StreamHandler(sys.stderr)
            console.setLevel(_console_level())
            console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self.logger.addHandler(console)
        self._file_handler: Optional[logging.FileHandler] = None

    @property
    def log_file(self) -> Optional[Path]:
        if self._file_handler is None:
            return None
        return Path(self._file_handler.baseFilename)

    def attach_file_handler(self, log_file: Path) -> Path:
        """Send every record to ``log_file``, replacing any previous file."""
        log_file = log_file.resolve()
        if self.log_file == log_file:
            return log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if self._file_handler is not None:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(StructuredFormatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(handler)
        self._file_handler = handler
        return log_file

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(message, *args, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log at ERROR level with the active traceback."""
        self.logger.exception(message, *args, **kwargs)


_logger: Optional[CodeBuddyLogger] = None


def get_logger() -> CodeBuddyLogger:
    global _logger
    if _logger is None:
        _logger = CodeBuddyLogger()
    return _logger


def enable_file_logging(log_file: Path) -> Path:
    """Ensure the shared logger also writes to ``log_file``."""
    logger = get_logger()
    path = logger.attach_file_handler(log_file)
    logger.debug(f"[logging] File logging enabled at {path}")
    return path
