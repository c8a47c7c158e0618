"""
Logging configuration for Markform.

The library itself only creates module loggers under the ``markform``
namespace. Applications that want output call configure_logging() or
build a LoggingManager, which attaches handlers to the package logger
rather than the root logger.
"""

import json
import logging
import logging.handlers
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config.settings import MarkformSettings


PACKAGE_LOGGER = "markform"


class LogLevel(Enum):
    """Log level enumeration."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class LogFormat(Enum):
    """Log format types."""
    STANDARD = "standard"
    JSON = "json"
    DETAILED = "detailed"


# LogRecord attributes that are not user-supplied ``extra`` data.
_STANDARD_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'taskName',
})


class JSONFormatter(logging.Formatter):
    """Formats records as one JSON object per line, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        for attr_name, attr_value in record.__dict__.items():
            if attr_name.startswith('_') or attr_name in _STANDARD_ATTRS or callable(attr_value):
                continue
            log_data[attr_name] = attr_value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str, ensure_ascii=False, separators=(',', ':'))


class LoggingManager:
    """Attaches console and file handlers to the package logger."""

    def __init__(
        self,
        log_level: LogLevel = LogLevel.WARNING,
        log_format: LogFormat = LogFormat.STANDARD,
        log_file: Optional[Union[str, Path]] = None,
        enable_console: bool = True,
        logger_name: str = PACKAGE_LOGGER,
    ):
        self.log_level = log_level
        self.log_format = log_format
        self.log_file = Path(log_file) if log_file else None
        self.enable_console = enable_console
        self.logger_name = logger_name
        self._setup_package_logger()

    def _setup_package_logger(self) -> None:
        package_logger = logging.getLogger(self.logger_name)
        package_logger.setLevel(self.log_level.value)
        package_logger.handlers.clear()

        formatter = self._create_formatters()[self.log_format]
        if self.enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(self.log_level.value)
            console_handler.setFormatter(formatter)
            package_logger.addHandler(console_handler)
        if self.log_file:
            file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
            file_handler.setLevel(self.log_level.value)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    def _create_formatters(self) -> Dict[LogFormat, logging.Formatter]:
        return {
            LogFormat.STANDARD: logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ),
            LogFormat.JSON: JSONFormatter(),
            LogFormat.DETAILED: logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s'
            ),
        }

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger below the package namespace."""
        if name == self.logger_name or name.startswith(f"{self.logger_name}."):
            return logging.getLogger(name)
        return logging.getLogger(f"{self.logger_name}.{name}")


def configure_logging(
    settings: Optional[MarkformSettings] = None,
    log_file: Optional[Union[str, Path]] = None,
    enable_console: bool = True,
) -> LoggingManager:
    """Configure package logging from settings."""
    settings = settings or MarkformSettings()
    return LoggingManager(
        log_level=LogLevel[settings.log_level.upper()],
        log_format=LogFormat(settings.log_format),
        log_file=log_file,
        enable_console=enable_console,
    )
