"""Structured logging configuration for Intonation Lab."""

import logging
import logging.handlers
import os
import sys
import json
import socket
import threading
import time
from functools import wraps
from pathlib import Path
from typing import Dict, Any, Optional

# Attributes every LogRecord carries; anything else was passed via ``extra``
_RECORD_ATTRIBUTES = frozenset([
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName",
])


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        super().__init__()
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "hostname": self.hostname,
            "process": record.process,
            "thread": record.thread,
            "thread_name": record.threadName,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        # numpy scalars and paths are not JSON-native
        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output in development."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m'  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        # Colour a copy so file handlers sharing the record see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """
    Set up structured logging configuration.

    Console output goes to stderr so stdout stays free for command output.
    Rotating file handlers are added only when a log directory is configured.

    Args:
        config: Optional ``logging`` config section (``level``, ``format``,
            ``log_dir``); the LOG_LEVEL, LOG_FORMAT and LOG_DIR environment
            variables take precedence
    """
    config = config or {}
    log_level = os.getenv('LOG_LEVEL', config.get('level') or 'INFO').upper()
    log_format = os.getenv('LOG_FORMAT', config.get('format') or 'text').lower()
    log_dir = os.getenv('LOG_DIR', config.get('log_dir') or '')

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))

    # Remove existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))

    if log_format == 'json':
        console_handler.setFormatter(JSONFormatter())
    else:
        # Use colored formatter for development
        console_formatter = ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(console_formatter)

    root_logger.addHandler(console_handler)

    if log_dir:
        # Create log directory if it doesn't exist
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        # File handler for all logs
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, 'intonation_lab.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

        # Separate error file handler
        error_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, 'error.log'),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(error_handler)

    # Set up exception hook to log uncaught exceptions
    def exception_hook(exc_type, exc_value, exc_traceback):
        """Log uncaught exceptions."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        root_logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = exception_hook

    root_logger.debug(
        "Logging configured",
        extra={"log_level": log_level, "log_format": log_format, "log_dir": log_dir or None}
    )


class LogContext:
    """Context manager for adding contextual information to logs."""

    _context = threading.local()

    def __init__(self, **kwargs):
        self.context = kwargs
        self.old_factory = None

    def __enter__(self):
        """Enter context manager."""
        # Store current context
        if not hasattr(self._context, 'data'):
            self._context.data = {}

        self._context.data.update(self.context)

        # Inject context into log records
        self.old_factory = logging.getLogRecordFactory()
        context = self._context

        def record_factory(*args, **kwargs):
            record = self.old_factory(*args, **kwargs)
            for key, value in getattr(context, 'data', {}).items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager."""
        # Restore old factory
        if self.old_factory:
            logging.setLogRecordFactory(self.old_factory)

        # Clean up context
        for key in self.context:
            if hasattr(self._context, 'data'):
                self._context.data.pop(key, None)


def log_execution_time(operation_name: str):
    """Decorator to log function execution time."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
                execution_time = time.time() - start_time

                logger.info(
                    f"{operation_name} completed in {execution_time:.2f}s",
                    extra={
                        "operation": operation_name,
                        "execution_time": execution_time,
                        "function_name": func.__name__
                    }
                )

                # Log slow operations as warnings
                if execution_time > 5.0:
                    logger.warning(
                        f"{operation_name} took longer than expected",
                        extra={
                            "operation": operation_name,
                            "execution_time": execution_time,
                            "threshold": 5.0
                        }
                    )

                return result

            except Exception as e:
                execution_time = time.time() - start_time
                logger.error(
                    f"{operation_name} failed",
                    extra={
                        "operation": operation_name,
                        "execution_time": execution_time,
                        "error": str(e)
                    },
                    exc_info=True
                )
                raise

        return wrapper
    return decorator
