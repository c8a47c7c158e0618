"""
Annotation tag scanner.

This module turns document text into a minimal tree of recognised tags.
Each TagNode exposes only its node type, attributes, children and source
span; everything form-specific about tag names lives in TAG_TABLE.

Two syntaxes are recognised:
- Markdoc style: ``{% field id="x" %}...{% /field %}`` and ``{% x /%}``
- Comment style: ``<!-- f:field id="x" -->...<!-- /f:field -->``

Text inside fenced code blocks is never scanned, so value fences may hold
arbitrary text.

Usage:
    >>> roots = scan_tags('{% form id="f" %}{% /form %}')
    >>> roots[0].name, roots[0].attributes
    ('form', {'id': 'f'})
"""

import bisect
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..exceptions import FormParseError
from ..models.enums import FieldKind, SyntaxStyle
from ..models.form import SourceSpan


logger = logging.getLogger(__name__)


class TagType(Enum):
    """Node types of the tag tree."""
    FORM = "form"
    GROUP = "group"
    FIELD = "field"
    DOC = "doc"
    NOTE = "note"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TagSpec:
    """What a tag name means."""
    name: str
    tag_type: TagType
    kind: Optional[FieldKind] = None


# The single table of recognised tag names.
TAG_TABLE: Dict[str, TagSpec] = {
    spec.name: spec
    for spec in (
        TagSpec("form", TagType.FORM),
        TagSpec("group", TagType.GROUP),
        TagSpec("field-group", TagType.GROUP),
        TagSpec("field", TagType.FIELD),
        TagSpec("string-field", TagType.FIELD, FieldKind.STRING),
        TagSpec("number-field", TagType.FIELD, FieldKind.NUMBER),
        TagSpec("string-list", TagType.FIELD, FieldKind.STRING_LIST),
        TagSpec("checkboxes", TagType.FIELD, FieldKind.CHECKBOXES),
        TagSpec("single-select", TagType.FIELD, FieldKind.SINGLE_SELECT),
        TagSpec("multi-select", TagType.FIELD, FieldKind.MULTI_SELECT),
        TagSpec("url-field", TagType.FIELD, FieldKind.URL),
        TagSpec("url-list", TagType.FIELD, FieldKind.URL_LIST),
        TagSpec("date-field", TagType.FIELD, FieldKind.DATE),
        TagSpec("year-field", TagType.FIELD, FieldKind.YEAR),
        TagSpec("table-field", TagType.FIELD, FieldKind.TABLE),
        TagSpec("description", TagType.DOC),
        TagSpec("instructions", TagType.DOC),
        TagSpec("documentation", TagType.DOC),
        TagSpec("note", TagType.NOTE),
    )
}

DOC_TAGS = tuple(name for name, spec in TAG_TABLE.items() if spec.tag_type is TagType.DOC)

_MARKDOC_TAG = re.compile(
    r'\{%\s*(?P<close>/)?(?P<name>[A-Za-z][\w-]*)'
    r'(?P<attrs>(?:"(?:\\.|[^"\\])*"|[^"%]|%(?!\}))*?)'
    r'\s*(?P<self>/)?\s*%\}'
)
_COMMENT_TAG = re.compile(
    r'<!--\s*(?P<close>/)?f:(?P<name>[A-Za-z][\w-]*)'
    r'(?P<attrs>(?:"(?:\\.|[^"\\])*"|[^"-]|-(?!-?>))*?)'
    r'\s*(?P<self>/)?-->'
)
_FENCE_LINE = re.compile(r'^[ \t]{0,3}(?P<fence>`{3,}|~{3,})')
_TAG_MARKER = re.compile(r'\{%|%\}|<!--\s*/?f:')


class LineIndex:
    """Offset to 1-based line number lookup."""

    def __init__(self, text: str) -> None:
        self._starts = [0] + [m.end() for m in re.finditer(r'\n', text)]

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)

    def column_of(self, offset: int) -> int:
        return offset - self._starts[self.line_of(offset) - 1] + 1


@dataclass
class TagNode:
    """A recognised tag with its attributes, children and location."""
    name: str
    attributes: Dict[str, Any]
    syntax: SyntaxStyle
    start: int
    inner_start: int
    inner_end: int = -1
    end: int = -1
    line: int = 1
    end_line: int = 1
    self_closing: bool = False
    children: List['TagNode'] = field(default_factory=list)

    @property
    def spec(self) -> TagSpec:
        return TAG_TABLE[self.name]

    @property
    def node_type(self) -> TagType:
        return self.spec.tag_type

    @property
    def span(self) -> SourceSpan:
        return SourceSpan(
            tag_type=self.name,
            start=self.start,
            end=self.end,
            inner_start=self.inner_start,
            inner_end=self.inner_end,
            start_line=self.line,
            end_line=self.end_line,
        )

    def body(self, source: str) -> str:
        """Text between the opening and closing tags."""
        return source[self.inner_start:self.inner_end]

    def walk(self) -> Iterator['TagNode']:
        """Yield this node and its descendants in document order."""
        yield self
        for child in self.children:
            yield from child.walk()


class TagVisitor:
    """
    Dispatches nodes to ``visit_<node_type>`` methods.

    Subclasses implement the node types they care about; unhandled types
    fall through to generic_visit, which visits children.
    """

    def visit(self, node: TagNode) -> Any:
        handler = getattr(self, f"visit_{node.node_type.value}", self.generic_visit)
        return handler(node)

    def generic_visit(self, node: TagNode) -> Any:
        for child in node.children:
            self.visit(child)
        return None


# ---------------------------------------------------------------------------
# Attribute lists
# ---------------------------------------------------------------------------

_NAME = re.compile(r'[A-Za-z_][\w-]*')
_NUMBER = re.compile(r'-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?')
_KEYWORDS = {"true": True, "false": False, "null": None}


class _AttributeReader:
    """Recursive-descent reader for tag attribute lists."""

    def __init__(self, text: str, line: int) -> None:
        self.text = text
        self.pos = 0
        self.line = line

    def error(self, message: str) -> FormParseError:
        preview = self.text[max(0, self.pos - 20):self.pos + 20]
        return FormParseError(
            f"Malformed attribute list: {message}",
            line_number=self.line,
            column=self.pos + 1,
            content_preview=preview,
        )

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        self.skip_ws()
        if self.peek() != char:
            raise self.error(f"expected '{char}'")
        self.pos += 1

    def read_attributes(self) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {}
        while True:
            self.skip_ws()
            if self.pos >= len(self.text):
                return attributes
            match = _NAME.match(self.text, self.pos)
            if not match:
                raise self.error("expected an attribute name")
            name = match.group()
            self.pos = match.end()
            self.expect("=")
            self.skip_ws()
            if name in attributes:
                raise self.error(f"duplicate attribute '{name}'")
            attributes[name] = self.read_value()

    def read_value(self) -> Any:
        self.skip_ws()
        char = self.peek()
        if char == '"':
            return self.read_string()
        if char == "[":
            return self.read_array()
        if char == "{":
            return self.read_object()
        match = _NUMBER.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            literal = match.group()
            if any(c in literal for c in ".eE"):
                return float(literal)
            return int(literal)
        match = _NAME.match(self.text, self.pos)
        if match and match.group() in _KEYWORDS:
            self.pos = match.end()
            return _KEYWORDS[match.group()]
        raise self.error("expected a value")

    def read_string(self) -> str:
        self.pos += 1
        chars: List[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\" and self.pos + 1 < len(self.text):
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char == '"':
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        raise self.error("unterminated string")

    def read_array(self) -> List[Any]:
        self.pos += 1
        items: List[Any] = []
        while True:
            self.skip_ws()
            if self.peek() == "]":
                self.pos += 1
                return items
            items.append(self.read_value())
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.error("expected ',' or ']'")

    def read_object(self) -> Dict[str, Any]:
        self.pos += 1
        result: Dict[str, Any] = {}
        while True:
            self.skip_ws()
            if self.peek() == "}":
                self.pos += 1
                return result
            if self.peek() == '"':
                key = self.read_string()
            else:
                match = _NAME.match(self.text, self.pos)
                if not match:
                    raise self.error("expected an object key")
                key = match.group()
                self.pos = match.end()
            self.expect(":")
            result[key] = self.read_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "}":
                raise self.error("expected ',' or '}'")


def parse_attributes(text: str, line: int = 1) -> Dict[str, Any]:
    """
    Parse ``name=value`` pairs.

    Values are double-quoted strings with backslash escapes, numbers,
    ``true``/``false``/``null``, ``[...]`` arrays or ``{key: value}`` objects.

    Raises:
        FormParseError: if the list is malformed.
    """
    return _AttributeReader(text, line).read_attributes()


def format_attr_value(value: Any) -> str:
    """Render one attribute value in tag syntax."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_attr_value(item) for item in value) + "]"
    if isinstance(value, dict):
        parts = [f"{key}: {format_attr_value(item)}" for key, item in value.items()]
        return "{" + ", ".join(parts) + "}"
    raise TypeError(f"Cannot render attribute value of type {type(value).__name__}")


def format_attributes(attributes: Dict[str, Any], leading: Sequence[str] = ("kind",)) -> str:
    """Render attributes: names in ``leading`` first, the rest alphabetically."""
    names = [name for name in leading if name in attributes]
    names += sorted(name for name in attributes if name not in leading)
    return " ".join(
        f"{name}={format_attr_value(attributes[name])}"
        for name in names
        if attributes[name] is not None
    )


def format_open_tag(name: str, attributes: Dict[str, Any], syntax: SyntaxStyle) -> str:
    rendered = format_attributes(attributes)
    inner = f"{name} {rendered}" if rendered else name
    if syntax is SyntaxStyle.COMMENT:
        return f"<!-- f:{inner} -->"
    return f"{{% {inner} %}}"


def format_close_tag(name: str, syntax: SyntaxStyle) -> str:
    if syntax is SyntaxStyle.COMMENT:
        return f"<!-- /f:{name} -->"
    return f"{{% /{name} %}}"


def format_option_annotation(option_id: str, syntax: SyntaxStyle) -> str:
    if syntax is SyntaxStyle.COMMENT:
        return f"<!-- #{option_id} -->"
    return f"{{% #{option_id} %}}"


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def fenced_ranges(text: str, start: int = 0) -> List[range]:
    """Offsets covered by fenced code blocks, including the fence lines."""
    ranges: List[range] = []
    open_fence: Optional[str] = None
    open_at = 0
    offset = 0
    for line in text.splitlines(keepends=True):
        line_start = offset
        offset += len(line)
        if line_start < start:
            continue
        match = _FENCE_LINE.match(line)
        if not match:
            continue
        fence = match.group("fence")
        if open_fence is None:
            open_fence = fence
            open_at = line_start
        elif fence[0] == open_fence[0] and len(fence) >= len(open_fence) and not line.strip()[len(fence):]:
            ranges.append(range(open_at, offset))
            open_fence = None
    if open_fence is not None:
        ranges.append(range(open_at, len(text)))
    return ranges


def unfenced_segments(text: str, start: int = 0) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` offsets of the text between fenced code blocks."""
    position = start
    for fence in fenced_ranges(text, start):
        if fence.start > position:
            yield position, fence.start
        position = max(position, fence.stop)
    if position < len(text):
        yield position, len(text)


def _find_tags(pattern: re.Pattern, text: str, start: int) -> Iterator[re.Match]:
    # Matching per segment keeps a tag-like run inside a fence from
    # swallowing real tags after it.
    for segment_start, segment_end in unfenced_segments(text, start):
        yield from pattern.finditer(text, segment_start, segment_end)


def detect_syntax(text: str) -> SyntaxStyle:
    """Syntax of the first tag outside code fences; Markdoc when there is none."""
    markdoc = next(_find_tags(_MARKDOC_TAG, text, 0), None)
    comment = next(_find_tags(_COMMENT_TAG, text, 0), None)
    if comment and (not markdoc or comment.start() < markdoc.start()):
        return SyntaxStyle.COMMENT
    return SyntaxStyle.MARKDOC


def has_tag_syntax(text: str) -> bool:
    """True when text placed in a tag body would be read as markup (tags or fences)."""
    if _TAG_MARKER.search(text):
        return True
    return any(_FENCE_LINE.match(line) for line in text.splitlines())


def scan_tags(text: str, start: int = 0) -> List[TagNode]:
    """
    Scan text from ``start`` and return the root tag nodes.

    Raises:
        FormParseError: for unknown tag names, mismatched or unclosed tags
            and malformed attribute lists.
    """
    lines = LineIndex(text)
    matches = []
    for syntax, pattern in ((SyntaxStyle.MARKDOC, _MARKDOC_TAG), (SyntaxStyle.COMMENT, _COMMENT_TAG)):
        for match in _find_tags(pattern, text, start):
            matches.append((match.start(), syntax, match))
    matches.sort(key=lambda item: item[0])

    roots: List[TagNode] = []
    stack: List[TagNode] = []
    for offset, syntax, match in matches:
        name = match.group("name")
        line = lines.line_of(offset)
        if name not in TAG_TABLE:
            raise FormParseError(
                f"Unknown tag '{name}'",
                line_number=line,
                column=lines.column_of(offset),
                content_preview=match.group()[:60],
            )

        if match.group("close"):
            if not stack:
                raise FormParseError(f"Closing tag '{name}' has no opening tag", line_number=line)
            node = stack.pop()
            if node.name != name:
                raise FormParseError(
                    f"Closing tag '{name}' does not match open tag '{node.name}' from line {node.line}",
                    line_number=line,
                )
            node.inner_end = offset
            node.end = match.end()
            node.end_line = lines.line_of(match.end())
            continue

        node = TagNode(
            name=name,
            attributes=parse_attributes(match.group("attrs"), line),
            syntax=syntax,
            start=offset,
            inner_start=match.end(),
            line=line,
        )
        (stack[-1].children if stack else roots).append(node)
        if match.group("self"):
            node.self_closing = True
            node.inner_end = node.end = match.end()
            node.end_line = lines.line_of(match.end())
        else:
            stack.append(node)

    if stack:
        node = stack[-1]
        raise FormParseError(f"Tag '{node.name}' is never closed", line_number=node.line)

    logger.debug(f"Scanned {len(matches)} tags into {len(roots)} root nodes")
    return roots
