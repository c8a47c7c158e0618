"""
Utility modules for Markform: logging and configuration.
"""

from .logging_config import (
    LogLevel,
    LogFormat,
    JSONFormatter,
    LoggingManager,
    configure_logging,
)
from .config import (
    ConfigManager,
    MarkformSettings,
    get_settings,
)

__all__ = [
    'LogLevel',
    'LogFormat',
    'JSONFormatter',
    'LoggingManager',
    'configure_logging',
    'ConfigManager',
    'MarkformSettings',
    'get_settings',
]
