"""
Structural Parser - document text to form model.

Walks the tag tree produced by the tag scanner and builds the FormSchema,
the response store, documentation blocks, notes and the SourceIndex. Any
structural problem refuses the whole parse with FormParseError; no partial
model is ever returned.

Key Components:
- FormParser: the tree visitor that builds a ParsedForm
- parse_form: convenience entry point
- parse_value_fence / decode_scalar_text: field body decoding shared with tests

Usage:
    >>> form = parse_form(text)
    >>> form.schema.id
    'intake'
"""

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..exceptions import CellValueError, FormParseError
from ..models.enums import (
    AnswerState,
    CHECKBOX_STATES_BY_MODE,
    CHOOSER_KINDS,
    CheckboxMode,
    FieldKind,
)
from ..models.fields import (
    BaseField,
    CheckboxesField,
    FIELD_CLASSES,
    FieldOption,
    TableField,
)
from ..models.form import DocBlock, FieldGroup, FormSchema, Note, ParsedForm, SourceIndex
from ..models.responses import FieldResponse
from ..utils.config import MarkformSettings, get_settings
from .attributes import build_table_columns, convert_field_attributes
from .frontmatter import FrontmatterExtractor, build_form_metadata
from .sentinels import Sentinel, parse_sentinel
from .table import coerce_date, coerce_number, coerce_url, coerce_year, parse_table_body
from .tags import LineIndex, TagNode, TagType, TagVisitor, detect_syntax, scan_tags


logger = logging.getLogger(__name__)

VALUE_FENCE = re.compile(
    r'^[ \t]*(?P<fence>`{3,})value[ \t]*\r?\n(?P<content>.*?)^[ \t]*(?P=fence)[ \t]*$',
    re.DOTALL | re.MULTILINE,
)
OPTION_LINE = re.compile(
    r'^\s*[-*+]\s+\[(?P<marker>[^\]])\]\s+(?P<label>.*?)\s*'
    r'(?:\{%\s*#(?P<id>[\w-]+)\s*%\}|<!--\s*#(?P<comment_id>[\w-]+)\s*-->)\s*$'
)

# Marker character to checkbox state, per mode.
CHECKBOX_MARKERS: Dict[CheckboxMode, Dict[str, str]] = {
    CheckboxMode.MULTI: {" ": "todo", "x": "done", "X": "done", "/": "incomplete", "*": "active", "-": "na"},
    CheckboxMode.SIMPLE: {" ": "todo", "x": "done", "X": "done"},
    CheckboxMode.EXPLICIT: {" ": "unfilled", "y": "yes", "Y": "yes", "n": "no", "N": "no"},
}
SELECT_MARKERS = {" ": False, "x": True, "X": True}

IMPLICIT_GROUP_ID = "_default"
_STATE_ATTRIBUTE_VALUES = {"skipped": AnswerState.SKIPPED, "aborted": AnswerState.ABORTED}


@dataclass
class FieldBody:
    """A field body split into its value fence and the remaining text."""
    fence: Optional[str]
    rest: str
    sentinel: Optional[Sentinel]


def parse_value_fence(body: str) -> Tuple[Optional[str], str]:
    """
    Split a field body into the content of its ``value`` fence and the rest.

    Returns ``(None, body)`` when the body has no value fence.
    """
    matches = list(VALUE_FENCE.finditer(body))
    if not matches:
        return None, body
    if len(matches) > 1:
        raise ValueError("a field body can hold only one value block")
    match = matches[0]
    content = match.group("content")
    if content.endswith("\n"):
        content = content[:-1]
    if content.endswith("\r"):
        content = content[:-1]
    return content, body[:match.start()] + body[match.end():]


def _split_lines(content: str) -> List[str]:
    return [line.strip() for line in content.splitlines() if line.strip()]


# Text decoders for value-fence kinds; each raises CellValueError on bad input.
TEXT_DECODERS: Dict[FieldKind, Callable[[str, str], Any]] = {
    FieldKind.STRING: lambda content, field_id: content.strip(),
    FieldKind.NUMBER: lambda content, field_id: coerce_number(content, field_id),
    FieldKind.URL: lambda content, field_id: coerce_url(content, field_id),
    FieldKind.DATE: lambda content, field_id: coerce_date(content, field_id),
    FieldKind.YEAR: lambda content, field_id: coerce_year(content, field_id),
    FieldKind.STRING_LIST: lambda content, field_id: _split_lines(content),
    FieldKind.URL_LIST: lambda content, field_id: [coerce_url(line, field_id) for line in _split_lines(content)],
}


def decode_scalar_text(kind: FieldKind, content: str, field_id: str = "") -> FieldResponse:
    """
    Decode value-fence content into a response.

    Sentinels become skipped/aborted, blank content is an answered null and
    anything else is coerced by kind.

    Raises:
        CellValueError: if the content does not coerce.
    """
    sentinel = parse_sentinel(content)
    if sentinel is not None:
        return FieldResponse(sentinel.state, None, sentinel.reason)
    if not content.strip():
        return FieldResponse.answered(None)
    value = TEXT_DECODERS[kind](content, field_id)
    if isinstance(value, list) and not value:
        value = None
    return FieldResponse.answered(value)


class FormParser(TagVisitor):
    """
    Builds a ParsedForm from document text.

    A parser instance handles one document at a time; create one per call
    or reuse it sequentially.
    """

    def __init__(self, settings: Optional[MarkformSettings] = None) -> None:
        self.settings = settings or get_settings()
        self.frontmatter = FrontmatterExtractor()
        self._reset("")

    def _reset(self, source: str) -> None:
        self.source = source
        self.lines = LineIndex(source)
        self.responses: Dict[str, FieldResponse] = {}
        self.docs: List[DocBlock] = []
        self.notes: List[Note] = []
        self.index = SourceIndex()
        self.ids: Set[str] = set()
        self.refs: Set[str] = set()
        self.doc_nodes: List[TagNode] = []
        self.note_nodes: List[TagNode] = []
        self.implicit_count = 0
        self.group_stack: List[FieldGroup] = []

    # -- errors ------------------------------------------------------------

    def error(self, message: str, node: Optional[TagNode] = None) -> FormParseError:
        if node is None:
            return FormParseError(message)
        return FormParseError(
            message,
            line_number=node.line,
            column=self.lines.column_of(node.start),
            content_preview=self.source[node.start:node.inner_start][:80],
        )

    def _claim_id(self, node_id: str, node: TagNode) -> None:
        if node_id in self.ids:
            raise self.error(f"Duplicate id '{node_id}'", node)
        self.ids.add(node_id)
        self.refs.add(node_id)

    # -- entry point ---------------------------------------------------------

    def parse(self, text: str) -> ParsedForm:
        """
        Parse a form document.

        Raises:
            FormatError: if the metadata block is malformed.
            FormParseError: if the body is not a valid form.
        """
        self._reset(text)
        fm = self.frontmatter.extract(text)
        metadata = build_form_metadata(fm.metadata, self.settings)
        if fm.span is not None:
            self.index.frontmatter = fm.span

        roots = scan_tags(text, fm.end_offset)
        forms = [node for node in roots if node.node_type is TagType.FORM]
        if not forms:
            raise FormParseError("Document contains no form tag")
        if len(forms) > 1:
            raise self.error("Document contains more than one form tag", forms[1])
        for node in roots:
            if node.node_type is not TagType.FORM:
                raise self.error(f"Tag '{node.name}' must appear inside the form", node)

        schema = self.visit(forms[0])
        self._finish_docs_and_notes()

        form = ParsedForm(
            source=text,
            schema=schema,
            responses=self.responses,
            metadata=metadata,
            docs=self.docs,
            notes=self.notes,
            source_index=self.index,
            syntax=detect_syntax(text[fm.end_offset:]),
            baseline_responses=copy.deepcopy(self.responses),
            baseline_note_ids=[note.id for note in self.notes],
        )
        logger.debug(
            f"Parsed form '{schema.id}': {len(self.responses)} fields, "
            f"{len(self.docs)} doc blocks, {len(self.notes)} notes"
        )
        return form

    # -- visitors -------------------------------------------------------------

    def visit_form(self, node: TagNode) -> FormSchema:
        form_id = node.attributes.get("id")
        if not isinstance(form_id, str) or not form_id:
            raise self.error("Form tag requires an 'id' attribute", node)
        title = node.attributes.get("title")
        if title is not None and not isinstance(title, str):
            raise self.error("Form 'title' must be a string", node)
        self._claim_id(form_id, node)
        self.index.add(SourceIndex.FORM_KEY, node.span)

        schema = FormSchema(id=form_id, title=title)
        current_implicit: Optional[FieldGroup] = None
        for child in node.children:
            if child.node_type is TagType.FIELD:
                if current_implicit is None:
                    current_implicit = self._new_implicit_group()
                    schema.groups.append(current_implicit)
                current_implicit.children.append(self.visit(child))
                continue
            if child.node_type is TagType.GROUP:
                current_implicit = None
                schema.groups.append(self.visit(child))
            elif child.node_type in (TagType.DOC, TagType.NOTE):
                self.visit(child)
            else:
                raise self.error(f"Tag '{child.name}' is not allowed inside a form", child)
        return schema

    def _new_implicit_group(self) -> FieldGroup:
        self.implicit_count += 1
        suffix = "" if self.implicit_count == 1 else f"_{self.implicit_count}"
        return FieldGroup(id=f"{IMPLICIT_GROUP_ID}{suffix}", implicit=True)

    def visit_group(self, node: TagNode) -> FieldGroup:
        group_id = node.attributes.get("id")
        if not isinstance(group_id, str) or not group_id:
            raise self.error(f"Tag '{node.name}' requires an 'id' attribute", node)
        title = node.attributes.get("title")
        if title is not None and not isinstance(title, str):
            raise self.error(f"Group '{group_id}' title must be a string", node)
        self._claim_id(group_id, node)
        self.index.add(SourceIndex.group_key(group_id), node.span)

        group = FieldGroup(id=group_id, title=title, validate=node.attributes.get("validate"))
        for child in node.children:
            if child.node_type is TagType.FORM:
                raise self.error("Form tags cannot be nested", child)
            result = self.visit(child)
            if child.node_type in (TagType.FIELD, TagType.GROUP):
                group.children.append(result)
        return group

    def visit_doc(self, node: TagNode) -> None:
        if node.children:
            raise self.error(f"Tag '{node.name}' cannot contain other tags", node.children[0])
        self.doc_nodes.append(node)

    def visit_note(self, node: TagNode) -> None:
        if node.children:
            raise self.error("Notes cannot contain other tags", node.children[0])
        self.note_nodes.append(node)

    def visit_field(self, node: TagNode) -> BaseField:
        kind = self._field_kind(node)
        attributes = node.attributes
        for name in ("id", "label"):
            if not isinstance(attributes.get(name), str) or not attributes.get(name):
                raise self.error(f"Field tag requires a non-empty '{name}' attribute", node)
        field_id = attributes["id"]
        if node.children:
            raise self.error(f"Field '{field_id}' cannot contain other tags", node.children[0])
        self._claim_id(field_id, node)

        try:
            kwargs = convert_field_attributes(kind, attributes)
            if kind is FieldKind.TABLE:
                kwargs["columns"] = build_table_columns(attributes)
        except ValueError as e:
            raise self.error(f"Field '{field_id}': {e}", node) from None

        try:
            body = self._split_body(node, field_id)
        except ValueError as e:
            raise self.error(f"Field '{field_id}': {e}", node) from None

        if kind in CHOOSER_KINDS:
            options, markers = self._parse_options(node, field_id, body.rest)
            kwargs["options"] = options
        try:
            form_field = FIELD_CLASSES[kind](**kwargs)
        except (TypeError, ValueError) as e:
            raise self.error(f"Field '{field_id}': {e}", node) from None

        state = self._state_attribute(node, field_id, body)
        if kind in CHOOSER_KINDS:
            response = self._chooser_response(node, form_field, markers, state, body)
        elif kind is FieldKind.TABLE:
            response = self._table_response(node, form_field, state, body)
        else:
            response = self._value_response(node, form_field, state, body)

        self.responses[field_id] = response
        self.index.add(SourceIndex.field_key(field_id), node.span)
        for option in getattr(form_field, "options", []):
            self.refs.add(f"{field_id}.{option.id}")
        return form_field

    # -- field helpers ----------------------------------------------------------

    def _field_kind(self, node: TagNode) -> FieldKind:
        declared = node.attributes.get("kind")
        alias_kind = node.spec.kind
        if alias_kind is not None:
            if declared is not None and declared != alias_kind.value:
                raise self.error(
                    f"Tag '{node.name}' declares conflicting kind '{declared}'", node
                )
            return alias_kind
        if declared is None:
            raise self.error("Field tag requires a 'kind' attribute", node)
        try:
            return FieldKind(declared)
        except ValueError:
            raise self.error(f"Unknown field kind '{declared}'", node) from None

    def _split_body(self, node: TagNode, field_id: str) -> FieldBody:
        fence, rest = parse_value_fence(node.body(self.source))
        sentinel = parse_sentinel(fence) if fence is not None else None
        return FieldBody(fence=fence, rest=rest, sentinel=sentinel)

    def _state_attribute(self, node: TagNode, field_id: str, body: FieldBody) -> Optional[AnswerState]:
        raw_state = node.attributes.get("state")
        if raw_state is None:
            return None
        state = _STATE_ATTRIBUTE_VALUES.get(raw_state)
        if state is None:
            raise self.error(
                f"Field '{field_id}': state must be 'skipped' or 'aborted', got '{raw_state}'", node
            )
        if body.fence is not None:
            if body.sentinel is None:
                raise self.error(
                    f"Field '{field_id}' is marked {raw_state} but carries a value", node
                )
            if body.sentinel.state is not state:
                raise self.error(
                    f"Field '{field_id}' is marked {raw_state} but its value says {body.sentinel.state}",
                    node,
                )
        return state

    def _sentinel_or_state(self, state: Optional[AnswerState], body: FieldBody) -> Optional[FieldResponse]:
        if body.sentinel is not None:
            return FieldResponse(body.sentinel.state, None, body.sentinel.reason)
        if state is not None:
            return FieldResponse(state)
        return None

    def _value_response(
        self,
        node: TagNode,
        form_field: BaseField,
        state: Optional[AnswerState],
        body: FieldBody,
    ) -> FieldResponse:
        if body.rest.strip():
            raise self.error(
                f"Field '{form_field.id}' has content outside its value block", node
            )
        special = self._sentinel_or_state(state, body)
        if special is not None:
            return special
        if body.fence is None:
            return FieldResponse.unanswered()
        try:
            return decode_scalar_text(form_field.kind, body.fence, form_field.id)
        except CellValueError as e:
            raise self.error(f"Field '{form_field.id}': {e.message}", node) from e

    def _parse_options(
        self,
        node: TagNode,
        field_id: str,
        text: str,
    ) -> Tuple[List[FieldOption], Dict[str, str]]:
        options: List[FieldOption] = []
        markers: Dict[str, str] = {}
        for line in text.splitlines():
            if not line.strip():
                continue
            match = OPTION_LINE.match(line)
            if not match:
                raise self.error(
                    f"Field '{field_id}' has a line that is not an option: '{line.strip()[:60]}'", node
                )
            option_id = match.group("id") or match.group("comment_id")
            if option_id in markers:
                raise self.error(f"Field '{field_id}' has duplicate option id '{option_id}'", node)
            label = match.group("label")
            if not label:
                raise self.error(f"Option '{option_id}' of field '{field_id}' has no label", node)
            options.append(FieldOption(id=option_id, label=label))
            markers[option_id] = match.group("marker")
        if not options:
            raise self.error(f"Field '{field_id}' declares no options", node)
        return options, markers

    def _chooser_response(
        self,
        node: TagNode,
        form_field: BaseField,
        markers: Dict[str, str],
        state: Optional[AnswerState],
        body: FieldBody,
    ) -> FieldResponse:
        if body.fence is not None and body.sentinel is None:
            raise self.error(f"Field '{form_field.id}' cannot hold a value block", node)

        if isinstance(form_field, CheckboxesField):
            table = CHECKBOX_MARKERS[form_field.checkbox_mode]
            default_state = CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode][0]
            values: Dict[str, str] = {}
            for option_id, marker in markers.items():
                if marker not in table:
                    raise self.error(
                        f"Option '{option_id}' of field '{form_field.id}' has marker '[{marker}]', "
                        f"which {form_field.checkbox_mode} checkboxes do not allow",
                        node,
                    )
                values[option_id] = table[marker]
            touched = any(value != default_state for value in values.values())
            answered = FieldResponse.answered(values) if touched else FieldResponse.unanswered()
        else:
            selected = []
            for option_id, marker in markers.items():
                if marker not in SELECT_MARKERS:
                    raise self.error(
                        f"Option '{option_id}' of field '{form_field.id}' has marker '[{marker}]'; "
                        f"select options use '[ ]' or '[x]'",
                        node,
                    )
                if SELECT_MARKERS[marker]:
                    selected.append(option_id)
            touched = bool(selected)
            if form_field.kind is FieldKind.SINGLE_SELECT:
                if len(selected) > 1:
                    raise self.error(f"Field '{form_field.id}' selects more than one option", node)
                answered = FieldResponse.answered(selected[0]) if selected else FieldResponse.unanswered()
            else:
                answered = FieldResponse.answered(selected) if selected else FieldResponse.unanswered()

        special = self._sentinel_or_state(state, body)
        if special is not None:
            if touched:
                raise self.error(
                    f"Field '{form_field.id}' is {special.state} but has marked options", node
                )
            return special
        return answered

    def _table_response(
        self,
        node: TagNode,
        form_field: TableField,
        state: Optional[AnswerState],
        body: FieldBody,
    ) -> FieldResponse:
        if body.fence is not None and body.sentinel is None:
            raise self.error(f"Table '{form_field.id}' cannot hold a value block", node)
        for line in body.rest.splitlines():
            if line.strip() and not line.strip().startswith("|"):
                raise self.error(
                    f"Table '{form_field.id}' has a line that is not a table row: '{line.strip()[:60]}'",
                    node,
                )
        rows = parse_table_body(body.rest, form_field.columns, form_field.id, node.line)
        special = self._sentinel_or_state(state, body)
        if special is not None:
            if rows:
                raise self.error(f"Table '{form_field.id}' is {special.state} but has rows", node)
            return special
        if not rows:
            return FieldResponse.unanswered()
        return FieldResponse.answered(rows)

    # -- doc blocks and notes -------------------------------------------------

    def _finish_docs_and_notes(self) -> None:
        doc_counts: Dict[str, int] = {}
        for node in self.doc_nodes:
            ref = node.attributes.get("ref")
            if not isinstance(ref, str) or ref not in self.refs:
                raise self.error(f"Tag '{node.name}' references unknown id '{ref}'", node)
            self.docs.append(DocBlock(tag=node.name, ref=ref, body=node.body(self.source).strip()))
            key = f"doc:{node.name}:{ref}"
            doc_counts[key] = doc_counts.get(key, 0) + 1
            if doc_counts[key] > 1:
                key = f"{key}:{doc_counts[key]}"
            self.index.add(key, node.span)

        for node in self.note_nodes:
            attributes = node.attributes
            for name in ("id", "ref", "role"):
                if not isinstance(attributes.get(name), str) or not attributes.get(name):
                    raise self.error(f"Note requires a non-empty '{name}' attribute", node)
            if attributes["ref"] not in self.refs:
                raise self.error(f"Note '{attributes['id']}' references unknown id '{attributes['ref']}'", node)
            if any(note.id == attributes["id"] for note in self.notes):
                raise self.error(f"Duplicate note id '{attributes['id']}'", node)
            self.notes.append(Note(
                id=attributes["id"],
                ref=attributes["ref"],
                role=attributes["role"],
                text=node.body(self.source).strip(),
            ))
            self.index.add(SourceIndex.note_key(attributes["id"]), node.span)


def parse_form(text: str, settings: Optional[MarkformSettings] = None) -> ParsedForm:
    """Parse a form document into a ParsedForm."""
    return FormParser(settings).parse(text)
