"""
Logging setup for the TUI and the CLI subcommands.

Three outputs are managed here: a rotating JSON debug log, the append-only
error log that mirrors every error shown in the status bar, and a rich console
handler used only outside the TUI (which owns the terminal).
"""

import json
import logging
import logging.handlers
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.logging import RichHandler

ERROR_LOGGER_NAME = "bags.errors"
ERROR_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message',
}


class StructuredFormatter(logging.Formatter):
    """
    Formatter for structured JSON logging.

    Each record becomes one JSON object with location, thread and exception
    details plus any ``extra`` fields attached by the caller.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        if self.include_extra:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_ATTRS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)

            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class ErrorLogFormatter(logging.Formatter):
    """Plain ``[YYYY-mm-dd HH:MM:SS] message`` lines for the error log."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime(ERROR_TIMESTAMP_FORMAT)
        return f"[{stamp}] {record.getMessage()}"


class ContextFilter(logging.Filter):
    """Adds the active command stack and debug flags to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            from .context import get_current_context

            app_ctx = get_current_context()
            if app_ctx.command_stack:
                record.command_stack = " -> ".join(app_ctx.command_stack)
            record.debug_mode = app_ctx.debug
        except (ValueError, ImportError):
            pass

        return True


class LoggingManager:
    """
    Owns the handlers installed on the ``bags`` logger tree.

    Configuration is a plain dict in the shape of the ``logging`` section of
    the config file::

        {"level": "INFO", "console": True, "file": "/path/debug.log",
         "error_file": "/path/errors.log", "max_bytes": 1048576, "backup_count": 3}
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.handlers: List[logging.Handler] = []
        self._error_handler: Optional[logging.Handler] = None

    def setup_logging(self) -> None:
        """Install handlers according to the current configuration."""
        self.teardown()

        level = getattr(logging, str(self.config.get('level', 'INFO')).upper(), logging.INFO)
        app_logger = logging.getLogger('bags')
        app_logger.setLevel(level)
        app_logger.propagate = False

        self._setup_console_handler(level)
        self._setup_file_handler()

        context_filter = ContextFilter()
        for handler in self.handlers:
            handler.addFilter(context_filter)
            app_logger.addHandler(handler)

        self._setup_error_log()

        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)

    def _setup_console_handler(self, level: int) -> None:
        """Set up rich console output; disabled while the TUI runs."""
        if not self.config.get('console', True):
            return

        handler = RichHandler(
            level=level,
            show_path=False,
            rich_tracebacks=True,
            markup=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self.handlers.append(handler)

    def _setup_file_handler(self) -> None:
        """Set up the rotating JSON debug log."""
        filename = self.config.get('file')
        if not filename:
            return

        log_file = Path(filename)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=self.config.get('max_bytes', 1024 * 1024),
            backupCount=self.config.get('backup_count', 3),
            encoding='utf-8'
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(StructuredFormatter())
        self.handlers.append(handler)

    def _setup_error_log(self) -> None:
        """Attach the append-only error log to the ``bags.errors`` logger."""
        filename = self.config.get('error_file')
        if not filename:
            return

        error_file = Path(filename)
        error_file.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(error_file, mode='a', encoding='utf-8')
        handler.setFormatter(ErrorLogFormatter())

        error_logger = logging.getLogger(ERROR_LOGGER_NAME)
        error_logger.setLevel(logging.ERROR)
        error_logger.addHandler(handler)
        self._error_handler = handler

    def teardown(self) -> None:
        """Remove and close every handler this manager installed."""
        app_logger = logging.getLogger('bags')
        for handler in self.handlers:
            app_logger.removeHandler(handler)
            handler.close()
        self.handlers = []

        if self._error_handler is not None:
            logging.getLogger(ERROR_LOGGER_NAME).removeHandler(self._error_handler)
            self._error_handler.close()
            self._error_handler = None


def log_user_error(message: str) -> None:
    """Record an error shown to the user, untruncated, in the error log."""
    logging.getLogger(ERROR_LOGGER_NAME).error(message)
