"""
Configuration-related exceptions for Markform.

Custom exception classes for handling settings loading, validation,
and environment variable errors with user-friendly messages.
"""

from typing import List, Optional

from .system_exceptions import ErrorSeverity, MarkformError


class ConfigurationError(MarkformError):
    """Base exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ) -> None:
        """
        Initialize configuration error.

        Args:
            message: Error description
            config_file: Configuration file path that caused the error
            suggestions: List of suggested fixes
        """
        super().__init__(message, ErrorSeverity.HIGH, context={"config_file": config_file})
        self.config_file = config_file
        self.suggestions = suggestions or []

    def __str__(self) -> str:
        """Return formatted error message with suggestions."""
        msg = super().__str__()

        if self.config_file:
            msg = f"{msg}\nConfig file: {self.config_file}"

        if self.suggestions:
            msg += "\n\nSuggestions:"
            for i, suggestion in enumerate(self.suggestions, 1):
                msg += f"\n  {i}. {suggestion}"

        return msg


class ConfigurationValidationError(ConfigurationError):
    """Exception raised when settings fail schema validation."""

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        validation_errors: Optional[List[str]] = None
    ) -> None:
        super().__init__(
            message,
            config_file=config_file,
            suggestions=["Check the setting names and value types against the settings schema"],
        )
        self.validation_errors = validation_errors or []

    def __str__(self) -> str:
        msg = super().__str__()
        if self.validation_errors:
            msg += "\n\nValidation errors:"
            for error in self.validation_errors:
                msg += f"\n  - {error}"
        return msg


class EnvironmentVariableError(ConfigurationError):
    """Exception raised when an environment override cannot be interpreted."""

    def __init__(self, message: str, variable_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            suggestions=[f"Check the value of {variable_name}"] if variable_name else None,
        )
        self.variable_name = variable_name
