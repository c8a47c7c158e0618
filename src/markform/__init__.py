"""
Markform - structured forms in Markdown documents.

Parse a form document, validate and inspect its answers, apply patches
and write it back out:

    >>> from markform import parse_form, apply_patches, serialize
    >>> form = parse_form(text)
    >>> form, result = apply_patches(form, [{"op": "set", "field_id": "name", "value": "Ada"}])
    >>> output = serialize(form)
"""

__version__ = "0.1.0"

from .core import (
    parse_form,
    validate,
    inspect,
    apply_patches,
    serialize,
    to_raw_markdown,
    form_to_json_schema,
    form_to_values,
)
from .exceptions import (
    MarkformError,
    FormatError,
    FormParseError,
    CellValueError,
    UnknownColumnTypeError,
    SerializationError,
)
from .models import ParsedForm, FieldResponse, Issue, ApplyResult, InspectResult

__all__ = [
    "__version__",
    "parse_form",
    "validate",
    "inspect",
    "apply_patches",
    "serialize",
    "to_raw_markdown",
    "form_to_json_schema",
    "form_to_values",
    "MarkformError",
    "FormatError",
    "FormParseError",
    "CellValueError",
    "UnknownColumnTypeError",
    "SerializationError",
    "ParsedForm",
    "FieldResponse",
    "Issue",
    "ApplyResult",
    "InspectResult",
]
