"""
Table sub-format: parsing, cell escaping, typed cell decoding and serialization.

Tables are Markdown pipe grids embedded in table fields. The first content
row is always the header; a dash-only separator row directly below it is
optional and never treated as data. Cells are single-line: a literal pipe
is written ``\\|`` and a backslash in front of a pipe is itself escaped, so
escape_cell and unescape_cell are exact inverses.

Key Components:
- RawTable: headers plus string rows, before typing
- parse_raw_table / parse_table_body: grid text to raw or typed rows
- escape_cell / unescape_cell: pipe escaping
- parse_cell_value: sentinel and typed decoding of one cell
- serialize_table_body: typed rows back to grid text
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from ..exceptions import CellValueError, FormParseError, UnknownColumnTypeError
from ..models.enums import AnswerState, ColumnType
from ..models.fields import TableColumn
from ..models.responses import CellResponse, TableRow
from .sentinels import format_sentinel, parse_sentinel


logger = logging.getLogger(__name__)

_SEPARATOR_CELL = re.compile(r'^:?-+:?$')
_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_INTEGER_PATTERN = re.compile(r'^[+-]?\d+$')
# A pipe, optionally preceded by the backslash it would otherwise merge with.
_RAW_PIPE = re.compile(r'\\?\|')
# Escaped forms: ``\\|`` is a literal backslash-pipe, ``\|`` a literal pipe.
_ESCAPED_PIPE = re.compile(r'\\\\\||\\\|')

MIN_YEAR = 1000
MAX_YEAR = 9999


@dataclass
class RawTable:
    """Untyped table content."""
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def check_cell_text(text: str) -> None:
    """
    Reject text that cannot sit in a single-line cell.

    Raises:
        CellValueError: if the text contains a newline or a control character
            other than tab.
    """
    for char in text:
        if char in "\n\r":
            raise CellValueError("Table cells cannot contain line breaks", raw=text)
        if ord(char) < 0x20 and char != "\t":
            raise CellValueError(
                f"Table cells cannot contain control character U+{ord(char):04X}", raw=text
            )


def escape_cell(text: str) -> str:
    """Escape cell text for embedding in a pipe grid; see check_cell_text for what is rejected."""
    check_cell_text(text)
    return _RAW_PIPE.sub(lambda m: "\\\\|" if len(m.group()) == 2 else "\\|", text)


def unescape_cell(text: str) -> str:
    """Inverse of escape_cell."""
    return _ESCAPED_PIPE.sub(lambda m: "\\|" if len(m.group()) == 3 else "|", text)


# ---------------------------------------------------------------------------
# Raw grid parsing
# ---------------------------------------------------------------------------

def split_row(line: str) -> List[str]:
    """Split one grid line into raw (still escaped) cell strings."""
    content = line.strip()
    cells: List[str] = []
    current: List[str] = []
    ended_on_separator = False
    i = 0
    while i < len(content):
        # Escape tokens are matched the same way unescape_cell matches them.
        token = _ESCAPED_PIPE.match(content, i)
        if token:
            current.append(token.group())
            i = token.end()
            ended_on_separator = False
            continue
        char = content[i]
        if char == "|":
            cells.append("".join(current))
            current = []
            ended_on_separator = True
        else:
            current.append(char)
            ended_on_separator = False
        i += 1
    if not ended_on_separator:
        cells.append("".join(current))

    if content.startswith("|") and cells:
        cells = cells[1:]
    return cells


def is_separator_row(cells: Sequence[str]) -> bool:
    """True for a row whose cells are all dash runs, optionally with alignment colons."""
    stripped = [cell.strip() for cell in cells]
    return bool(stripped) and all(_SEPARATOR_CELL.match(cell) for cell in stripped)


def parse_raw_table(text: str) -> RawTable:
    """
    Parse grid text into headers and rows of unescaped, trimmed cells.

    Rows are padded with empty strings or truncated to the header width.
    """
    lines = [line for line in text.splitlines() if line.strip().startswith("|")]
    if not lines:
        return RawTable()

    headers = [unescape_cell(cell).strip() for cell in split_row(lines[0])]
    body = lines[1:]
    if body and is_separator_row(split_row(body[0])):
        body = body[1:]

    rows: List[List[str]] = []
    width = len(headers)
    for line in body:
        cells = [unescape_cell(cell).strip() for cell in split_row(line)]
        if len(cells) < width:
            cells.extend([""] * (width - len(cells)))
        rows.append(cells[:width])
    return RawTable(headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Typed cells
# ---------------------------------------------------------------------------

def coerce_number(raw: Any, column_id: Optional[str] = None) -> Any:
    """Parse a number; integral values come back as int."""
    if isinstance(raw, bool):
        raise CellValueError(f"Expected a number, got {raw!r}", raw, column_id, "number")
    if isinstance(raw, (int, float)):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = int(text) if _INTEGER_PATTERN.match(text) else float(text)
        except ValueError:
            raise CellValueError(
                f"Expected a number, got '{text}'", raw, column_id, "number"
            ) from None
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise CellValueError(f"Expected a finite number, got '{raw}'", raw, column_id, "number")
        if value.is_integer():
            return int(value)
    return value


def is_absolute_url(text: str) -> bool:
    """An absolute URL has a scheme and a network location."""
    if not isinstance(text, str) or any(char.isspace() for char in text):
        return False
    parsed = urlparse(text)
    return bool(parsed.scheme) and bool(parsed.netloc)


def coerce_url(raw: Any, column_id: Optional[str] = None) -> str:
    text = str(raw).strip()
    if not is_absolute_url(text):
        raise CellValueError(f"Expected an absolute URL, got '{text}'", raw, column_id, "url")
    return text


def coerce_date(raw: Any, column_id: Optional[str] = None) -> str:
    text = str(raw).strip()
    if not _DATE_PATTERN.match(text):
        raise CellValueError(f"Expected a date as YYYY-MM-DD, got '{text}'", raw, column_id, "date")
    return text


def coerce_year(raw: Any, column_id: Optional[str] = None) -> int:
    if isinstance(raw, bool):
        raise CellValueError(f"Expected a year, got {raw!r}", raw, column_id, "year")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float) and raw.is_integer():
        value = int(raw)
    else:
        text = str(raw).strip()
        if not _INTEGER_PATTERN.match(text):
            raise CellValueError(f"Expected a year, got '{text}'", raw, column_id, "year")
        value = int(text)
    if not MIN_YEAR <= value <= MAX_YEAR:
        raise CellValueError(
            f"Year must be between {MIN_YEAR} and {MAX_YEAR}, got {value}", raw, column_id, "year"
        )
    return value


def coerce_string(raw: Any, column_id: Optional[str] = None) -> str:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise CellValueError(f"Expected text, got {type(raw).__name__}", raw, column_id, "string")
    return raw if isinstance(raw, str) else str(raw)


CELL_COERCERS: Dict[ColumnType, Callable[[Any, Optional[str]], Any]] = {
    ColumnType.STRING: coerce_string,
    ColumnType.NUMBER: coerce_number,
    ColumnType.URL: coerce_url,
    ColumnType.DATE: coerce_date,
    ColumnType.YEAR: coerce_year,
}


def _resolve_column_type(column_type: Any) -> ColumnType:
    if isinstance(column_type, ColumnType):
        return column_type
    try:
        return ColumnType(column_type)
    except ValueError:
        raise UnknownColumnTypeError(column_type) from None


def coerce_cell(value: Any, column_type: Any, column_id: Optional[str] = None) -> CellResponse:
    """
    Turn a cell value (text, number or None) into a CellResponse.

    Text goes through sentinel decoding first. Used for both parsed grid
    cells and patch-supplied row values.
    """
    resolved = _resolve_column_type(column_type)
    if value is None:
        return CellResponse.answered(None)
    if isinstance(value, str):
        sentinel = parse_sentinel(value)
        if sentinel is not None:
            return CellResponse(sentinel.state, None, sentinel.reason)
        if not value.strip():
            return CellResponse.answered(None)
        value = value.strip()
    return CellResponse.answered(CELL_COERCERS[resolved](value, column_id))


def parse_cell_value(raw: str, column_type: Any, column_id: Optional[str] = None) -> CellResponse:
    """
    Decode one cell string.

    Raises:
        CellValueError: if the text does not parse as the column type.
        UnknownColumnTypeError: if the column type is not supported.
    """
    return coerce_cell(raw, column_type, column_id)


def match_headers(
    headers: Sequence[str],
    columns: Sequence[TableColumn],
    field_id: str = "",
    line_offset: int = 0,
) -> List[TableColumn]:
    """
    Resolve grid headers to declared columns.

    Headers equal to the declared labels (or ids) in declared order map by
    position, so duplicate labels still resolve. Otherwise each header
    matches exact labels first, then ids.

    Raises:
        FormParseError: for a header naming no column, naming more than one
            column, or naming a column another header already took.
    """
    if list(headers) in ([column.label for column in columns], [column.id for column in columns]):
        return list(columns)

    def fail(message: str, header: str) -> FormParseError:
        return FormParseError(
            f"Table '{field_id}' {message}", line_number=line_offset or None, content_preview=header
        )

    resolved: List[TableColumn] = []
    for header in headers:
        candidates = [column for column in columns if column.label == header]
        if not candidates:
            candidates = [column for column in columns if column.id == header]
        if not candidates:
            raise fail(f"has a column '{header}' that is not declared in columnIds", header)
        if len(candidates) > 1:
            raise fail(f"header '{header}' matches more than one column", header)
        if candidates[0] in resolved:
            raise fail(f"names column '{candidates[0].id}' more than once", header)
        resolved.append(candidates[0])
    return resolved


def parse_table_body(
    text: str,
    columns: Sequence[TableColumn],
    field_id: str = "",
    line_offset: int = 0,
) -> List[TableRow]:
    """
    Parse a table field body into typed rows keyed by column id.

    Headers are matched to columns as described in match_headers; declared
    columns missing from the grid read as empty.
    """
    raw = parse_raw_table(text)
    if not raw.headers:
        return []

    header_columns = match_headers(raw.headers, columns, field_id, line_offset)

    rows: List[TableRow] = []
    for row_index, cells in enumerate(raw.rows):
        row: TableRow = {column.id: CellResponse.answered(None) for column in columns}
        for column, cell in zip(header_columns, cells):
            try:
                row[column.id] = parse_cell_value(cell, column.type, column.id)
            except CellValueError as e:
                raise FormParseError(
                    f"Table '{field_id}' row {row_index + 1}, column '{column.id}': {e.message}",
                    line_number=line_offset or None,
                    content_preview=cell,
                ) from e
        rows.append(row)

    logger.debug(f"Parsed table '{field_id}': {len(rows)} rows, {len(columns)} columns")
    return rows


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def format_number(value: Any) -> str:
    """Stringify a number without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_cell(cell: Optional[CellResponse]) -> str:
    """Encode one cell for the grid, escaped."""
    if cell is None:
        return ""
    if cell.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
        return escape_cell(format_sentinel(cell.state, cell.reason))
    if cell.value is None:
        return ""
    if isinstance(cell.value, (int, float)) and not isinstance(cell.value, bool):
        return format_number(cell.value)
    return escape_cell(str(cell.value))


def format_row(cells: Sequence[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def serialize_table_body(columns: Sequence[TableColumn], rows: Sequence[TableRow]) -> str:
    """Render the header, separator and data rows of a table field."""
    lines = [
        format_row([escape_cell(column.label) for column in columns]),
        format_row(["---"] * len(columns)),
    ]
    for row in rows:
        lines.append(format_row([format_cell(row.get(column.id)) for column in columns]))
    return "\n".join(lines)
