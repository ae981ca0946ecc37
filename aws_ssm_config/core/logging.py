"""
Logging utilities for configuration loading, optimized for AWS Lambda and CloudWatch.

Records are emitted as JSON when running inside Lambda and as readable lines during
development. Extra context passed as keyword arguments is attached to the record, and
any extra field whose name looks sensitive (password, token, ...) is masked by the
formatter so secret material never reaches a log sink.
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from .normalization import mask_value

DEFAULT_LOGGER_NAME = "aws_ssm_config"


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON for Lambda/CloudWatch or human-readable for development.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self.is_lambda = bool(os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))

    def format(self, record: logging.LogRecord) -> str:
        if self.is_lambda:
            return self._format_json(record)
        return self._format_human(record)

    def _masked_extra(self, record: logging.LogRecord) -> Dict[str, Any]:
        if not self.include_extra:
            return {}
        extra = getattr(record, "extra_data", None) or {}
        return {key: mask_value(value, key) for key, value in extra.items()}

    def _format_json(self, record: logging.LogRecord) -> str:
        """Format log record as JSON for CloudWatch."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        log_data.update(self._masked_extra(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)

    def _format_human(self, record: logging.LogRecord) -> str:
        """Format log record for human readability in development."""
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        extra_parts = [f"{k}={v}" for k, v in self._masked_extra(record).items()]
        if extra_parts:
            message += f" [{', '.join(extra_parts)}]"

        formatted = f"{timestamp} - {record.levelname:8} - {record.name} - {message}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class ConfigLogger:
    """
    Logger wrapper that attaches keyword context to records and times operations.
    """

    def __init__(self, name: str = DEFAULT_LOGGER_NAME, level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self._setup_logger(level)

    def _setup_logger(self, level: Optional[str] = None):
        """Configure the root package logger once; children propagate to it."""
        root = logging.getLogger(DEFAULT_LOGGER_NAME)
        level_name = level or os.environ.get("LOG_LEVEL")
        if level_name:
            root.setLevel(getattr(logging, level_name.upper()))

        if root.handlers:
            return

        if not level_name:
            root.setLevel(logging.INFO)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)

        # Prevent duplicate logs in Lambda
        root.propagate = False

    def info(self, message: str, **extra):
        """Log info message with optional extra context."""
        self._log_with_extra(logging.INFO, message, extra)

    def debug(self, message: str, **extra):
        """Log debug message with optional extra context."""
        self._log_with_extra(logging.DEBUG, message, extra)

    def warning(self, message: str, **extra):
        """Log warning message with optional extra context."""
        self._log_with_extra(logging.WARNING, message, extra)

    def error(self, message: str, exc_info: bool = False, **extra):
        """Log error message with optional exception info and extra context."""
        self._log_with_extra(logging.ERROR, message, extra, exc_info=exc_info)

    def is_debug_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def _log_with_extra(
        self, level: int, message: str, extra: Dict[str, Any], exc_info: bool = False
    ):
        if not self.logger.isEnabledFor(level):
            return
        if extra:
            exc_info_tuple = sys.exc_info() if exc_info else None
            record = self.logger.makeRecord(
                self.logger.name, level, "", 0, message, (), exc_info_tuple
            )
            record.extra_data = extra
            self.logger.handle(record)
        else:
            self.logger.log(level, message, exc_info=exc_info)

    @contextmanager
    def timer(self, operation: str, **extra):
        """Context manager for timing operations."""
        start_time = time.time()
        self.debug(f"Starting {operation}", **extra)

        try:
            yield
        except Exception as e:
            duration = time.time() - start_time
            self.error(
                f"Failed {operation}",
                duration_seconds=f"{duration:.2f}",
                error=str(e),
                **extra,
            )
            raise

        duration = time.time() - start_time
        self.info(f"Completed {operation}", duration_seconds=f"{duration:.2f}", **extra)


def setup_logging(level: str = "INFO") -> ConfigLogger:
    """
    Set up logging for the package.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured ConfigLogger instance
    """
    return ConfigLogger(level=level)


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> ConfigLogger:
    """
    Get a logger under the package namespace.

    Args:
        name: Logger name, relative to the package logger

    Returns:
        ConfigLogger instance
    """
    if name != DEFAULT_LOGGER_NAME and not name.startswith(f"{DEFAULT_LOGGER_NAME}."):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return ConfigLogger(name)
