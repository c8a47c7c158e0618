"""
Root of the Markform error hierarchy.

Every error raised by the package derives from MarkformError, so callers
can catch the whole family in one place. Errors carry a severity and a
context mapping describing where they happened (line, field, patch).
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)

_SEVERITY_RANK = ("low", "medium", "high", "critical")


class ErrorSeverity(Enum):
    """Severity of an error; members compare by rank."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK.index(self.value)

    def __lt__(self, other):
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __str__(self) -> str:
        return self.value


class MarkformError(Exception):
    """
    Base class for errors raised by Markform.

    Construction logs the error once: ``CRITICAL`` errors at ``ERROR``, the
    rest at ``DEBUG``.
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.context = {key: value for key, value in (context or {}).items() if value is not None}
        self.cause = cause
        self.created_at = datetime.now()

        level = logging.ERROR if self.severity is ErrorSeverity.CRITICAL else logging.DEBUG
        logger.log(level, f"{type(self).__name__}: {message}", extra={"error_context": self.context})

    def to_dict(self) -> Dict[str, Any]:
        """Describe the error as a JSON-friendly mapping."""
        result: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "severity": str(self.severity),
            "created_at": self.created_at.isoformat(),
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __str__(self) -> str:
        return self.message
