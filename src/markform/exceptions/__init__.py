"""
Exceptions package for Markform.

This package contains custom exception classes for parse, coercion,
patch decoding, serialization and configuration failures.
"""

from .system_exceptions import (
    ErrorSeverity,
    MarkformError,
)

from .form_exceptions import (
    FormatError,
    FormParseError,
    CellValueError,
    UnknownColumnTypeError,
    PatchDecodeError,
    SerializationError,
)

from .config_exceptions import (
    ConfigurationError,
    ConfigurationValidationError,
    EnvironmentVariableError,
)

__all__ = [
    'ErrorSeverity',
    'MarkformError',
    'FormatError',
    'FormParseError',
    'CellValueError',
    'UnknownColumnTypeError',
    'PatchDecodeError',
    'SerializationError',
    'ConfigurationError',
    'ConfigurationValidationError',
    'EnvironmentVariableError',
]
