"""
Core modules for Markform.

This package contains the document pipeline: frontmatter extraction, the
table sub-parser, the structural parser, validation, patch application and
serialization.
"""

from .frontmatter import FrontmatterExtractor, FrontmatterResult
from .table import (
    RawTable,
    escape_cell,
    unescape_cell,
    parse_raw_table,
    parse_cell_value,
    parse_table_body,
    serialize_table_body,
)
from .sentinels import Sentinel, parse_sentinel, detect_sentinel, format_sentinel
from .parser import FormParser, parse_form
from .validator import validate
from .inspect import inspect
from .summaries import structure_summary, progress_summary, form_state, is_complete
from .apply import apply_patches
from .serializer import FormSerializer, serialize, to_raw_markdown
from .json_schema import form_to_json_schema, form_to_values

__all__ = [
    "FrontmatterExtractor",
    "FrontmatterResult",
    "RawTable",
    "escape_cell",
    "unescape_cell",
    "parse_raw_table",
    "parse_cell_value",
    "parse_table_body",
    "serialize_table_body",
    "Sentinel",
    "parse_sentinel",
    "detect_sentinel",
    "format_sentinel",
    "FormParser",
    "parse_form",
    "validate",
    "inspect",
    "structure_summary",
    "progress_summary",
    "form_state",
    "is_complete",
    "apply_patches",
    "FormSerializer",
    "serialize",
    "to_raw_markdown",
    "form_to_json_schema",
    "form_to_values",
]
