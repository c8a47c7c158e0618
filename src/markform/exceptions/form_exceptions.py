"""
Form document exceptions for Markform.

Parse-tier errors are fatal for the document being read. Cell and value
coercion errors are scoped to one field or cell so the patch applier can
turn them into per-patch rejections.
"""

from typing import Any, Optional

from .system_exceptions import ErrorSeverity, MarkformError


class FormatError(MarkformError):
    """
    Raised when document text is structurally malformed.

    Attributes:
        line_number: 1-based line where the problem was detected
        column: 1-based column, when known
        content_preview: short excerpt of the offending text
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        column: Optional[int] = None,
        content_preview: Optional[str] = None,
        **kwargs
    ) -> None:
        severity = kwargs.pop('severity', ErrorSeverity.HIGH)
        context = kwargs.pop('context', None) or {}
        if line_number is not None:
            context.setdefault('line_number', line_number)
        if column is not None:
            context.setdefault('column', column)
        super().__init__(message, severity, context=context, **kwargs)
        self.line_number = line_number
        self.column = column
        self.content_preview = content_preview

    def __str__(self) -> str:
        msg = self.message
        if self.line_number is not None:
            location = f"line {self.line_number}"
            if self.column is not None:
                location += f", column {self.column}"
            msg = f"{msg} ({location})"
        return msg


class FormParseError(FormatError):
    """Raised when a document cannot be turned into a form model."""
    pass


class CellValueError(MarkformError, ValueError):
    """
    Raised when a cell or scalar value cannot be coerced to its declared type.

    Attributes:
        raw: the text or value that failed
        column_id: column (or field) id the value belongs to
        column_type: declared type that coercion targeted
    """

    def __init__(
        self,
        message: str,
        raw: Any = None,
        column_id: Optional[str] = None,
        column_type: Optional[str] = None
    ) -> None:
        super().__init__(
            message,
            ErrorSeverity.LOW,
            context={"column_id": column_id, "column_type": column_type},
        )
        self.raw = raw
        self.column_id = column_id
        self.column_type = column_type


class UnknownColumnTypeError(MarkformError, TypeError):
    """Raised for a column type outside the supported set; always a bug."""

    def __init__(self, column_type: Any) -> None:
        super().__init__(
            f"Unknown column type: {column_type!r}",
            ErrorSeverity.CRITICAL,
            context={"column_type": column_type},
        )
        self.column_type = column_type


class PatchDecodeError(MarkformError):
    """Raised when a patch batch cannot be decoded into operations."""

    def __init__(self, message: str, patch_index: Optional[int] = None) -> None:
        super().__init__(message, ErrorSeverity.MEDIUM, context={"patch_index": patch_index})
        self.patch_index = patch_index


class SerializationError(MarkformError):
    """Raised when a model cannot be rendered back to text."""
    pass
