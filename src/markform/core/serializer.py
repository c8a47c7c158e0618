"""
Serializer - form model back to document text.

Two modes:
- full: regenerate the whole document from the model in canonical layout
- preserve: copy the source text and re-emit only the fields and notes that
  changed since parsing

to_raw_markdown renders a plain Markdown report with no tags at all.
"""

import copy
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..exceptions import SerializationError
from ..models.enums import AnswerState, CheckboxMode, FieldKind
from ..models.fields import BaseField, CheckboxesField, TableField, field_options
from ..models.form import FieldGroup, Note, ParsedForm, SourceIndex
from ..models.responses import FieldResponse, table_rows
from ..utils.config import get_settings
from .attributes import field_attributes
from .sentinels import format_sentinel
from .table import format_cell, format_number, serialize_table_body
from .tags import (
    TAG_TABLE,
    format_close_tag,
    format_open_tag,
    format_option_annotation,
)


logger = logging.getLogger(__name__)

FULL_MODE = "full"
PRESERVE_MODE = "preserve"

STATE_MARKERS = {
    "todo": " ",
    "done": "x",
    "incomplete": "/",
    "active": "*",
    "na": "-",
    "unfilled": " ",
    "yes": "y",
    "no": "n",
}

_BACKTICK_RUN = re.compile(r'`{3,}')


def value_fence(content: str) -> str:
    """Wrap content in a ``value`` fence longer than any backtick run inside it."""
    longest = max((len(run) for run in _BACKTICK_RUN.findall(content)), default=2)
    fence = "`" * max(3, longest + 1)
    if content:
        return f"{fence}value\n{content}\n{fence}"
    return f"{fence}value\n{fence}"


def _scalar_text(form_field: BaseField, value: Any) -> str:
    if form_field.kind in (FieldKind.STRING_LIST, FieldKind.URL_LIST):
        return "\n".join(str(item) for item in value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return str(value)


class FormSerializer:
    """Renders a ParsedForm in the document syntax it was read in."""

    def __init__(self, form: ParsedForm, spec_version: Optional[str] = None) -> None:
        self.form = form
        self.syntax = form.syntax
        self.spec_version = spec_version or get_settings().spec_version

    # -- pieces ----------------------------------------------------------------

    def render_tag(self, name: str, attributes: Dict[str, Any], body: str) -> str:
        open_tag = format_open_tag(name, attributes, self.syntax)
        close_tag = format_close_tag(name, self.syntax)
        if body:
            return f"{open_tag}\n{body}\n{close_tag}"
        return f"{open_tag}\n{close_tag}"

    def render_options(self, form_field: BaseField, response: FieldResponse) -> str:
        answered = response.state is AnswerState.ANSWERED and response.value is not None
        lines = []
        for option in field_options(form_field):
            if isinstance(form_field, CheckboxesField):
                state = response.value.get(option.id) if answered else None
                marker = STATE_MARKERS.get(state, " ")
            elif form_field.kind is FieldKind.SINGLE_SELECT:
                marker = "x" if answered and response.value == option.id else " "
            else:
                marker = "x" if answered and option.id in response.value else " "
            annotation = format_option_annotation(option.id, self.syntax)
            lines.append(f"- [{marker}] {option.label} {annotation}")
        return "\n".join(lines)

    def render_field_body(self, form_field: BaseField, response: FieldResponse) -> str:
        parts = []
        if form_field.kind in (FieldKind.CHECKBOXES, FieldKind.SINGLE_SELECT, FieldKind.MULTI_SELECT):
            parts.append(self.render_options(form_field, response))
        elif isinstance(form_field, TableField):
            rows = table_rows(response)
            if rows:
                parts.append(serialize_table_body(form_field.columns, rows))
        elif response.state is AnswerState.ANSWERED:
            if response.value is None:
                parts.append(value_fence(""))
            else:
                parts.append(value_fence(_scalar_text(form_field, response.value)))

        if response.state in (AnswerState.SKIPPED, AnswerState.ABORTED) and response.reason:
            parts.append(value_fence(format_sentinel(response.state, response.reason)))
        return "\n\n".join(parts)

    def render_field(self, form_field: BaseField, tag_name: str = "field") -> str:
        response = self.form.get_response(form_field.id)
        attributes = field_attributes(form_field)
        if TAG_TABLE[tag_name].kind is not None:
            attributes.pop("kind", None)
        if response.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
            attributes["state"] = response.state.value
        return self.render_tag(tag_name, attributes, self.render_field_body(form_field, response))

    def render_note(self, note: Note) -> str:
        return self.render_tag("note", {"id": note.id, "ref": note.ref, "role": note.role}, note.text)

    def render_docs(self, ref: str) -> List[str]:
        return [self.render_tag(doc.tag, {"ref": doc.ref}, doc.body) for doc in self.form.docs_for(ref)]

    def render_field_with_docs(self, form_field: BaseField) -> List[str]:
        blocks = [self.render_field(form_field)]
        blocks.extend(self.render_docs(form_field.id))
        for option in field_options(form_field):
            blocks.extend(self.render_docs(f"{form_field.id}.{option.id}"))
        return blocks

    def render_group(self, group: FieldGroup) -> List[str]:
        inner: List[str] = [] if group.implicit else self.render_docs(group.id)
        for child in group.children:
            if isinstance(child, FieldGroup):
                inner.extend(self.render_group(child))
            else:
                inner.extend(self.render_field_with_docs(child))
        if group.implicit:
            return inner
        attributes = {"id": group.id, "title": group.title, "validate": group.validate}
        body = "\n\n".join(inner)
        return [self.render_tag("group", attributes, f"\n{body}\n" if body else "")]

    def render_frontmatter(self) -> str:
        data = copy.deepcopy(self.form.metadata.extra)
        section = data.get("markform")
        if not isinstance(section, dict):
            section = {}
        data["markform"] = section
        section["spec"] = self.spec_version
        dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return f"---\n{dumped}---\n"

    # -- modes -----------------------------------------------------------------

    def full(self) -> str:
        schema = self.form.schema
        blocks = self.render_docs(schema.id)
        for group in schema.groups:
            blocks.extend(self.render_group(group))
        blocks.extend(self.render_note(note) for note in self.form.notes)
        body = "\n\n".join(blocks)
        form_tag = self.render_tag("form", {"id": schema.id, "title": schema.title}, f"\n{body}\n" if body else "")
        return f"{self.render_frontmatter()}\n{form_tag}\n"

    def changed_field_ids(self) -> List[str]:
        baseline = self.form.baseline_responses
        return [
            form_field.id for form_field in self.form.iter_fields()
            if self.form.get_response(form_field.id) != baseline.get(form_field.id, FieldResponse.unanswered())
        ]

    def preserve(self) -> str:
        source = self.form.source
        index = self.form.source_index
        form_span = index.get(SourceIndex.FORM_KEY)
        if not source or form_span is None:
            raise SerializationError(
                "Content-preserving output needs a form parsed from text; use full mode"
            )

        edits: List[Tuple[int, int, str]] = []
        for field_id in self.changed_field_ids():
            span = index.get(SourceIndex.field_key(field_id))
            if span is None:
                raise SerializationError(f"Field '{field_id}' has no source location")
            form_field = self.form.get_field(field_id)
            edits.append((span.start, span.end, self.render_field(form_field, span.tag_type)))

        current_ids = {note.id for note in self.form.notes}
        for note_id in self.form.baseline_note_ids:
            if note_id in current_ids:
                continue
            span = index.get(SourceIndex.note_key(note_id))
            end = span.end
            if source.startswith("\n\n", end):
                end += 2
            elif source.startswith("\n", end):
                end += 1
            edits.append((span.start, end, ""))

        baseline_ids = set(self.form.baseline_note_ids)
        added = [note for note in self.form.notes if note.id not in baseline_ids]
        if added:
            text = "".join(self.render_note(note) + "\n\n" for note in added)
            edits.append((form_span.inner_end, form_span.inner_end, text))

        result = source
        for start, end, text in sorted(edits, key=lambda edit: (edit[0], edit[1]), reverse=True):
            result = result[:start] + text + result[end:]
        logger.debug(f"Preserve-mode output for '{self.form.schema.id}': {len(edits)} edits")
        return result


def serialize(form: ParsedForm, mode: Optional[str] = None, spec_version: Optional[str] = None) -> str:
    """
    Render a form as document text.

    Args:
        form: Form to render
        mode: ``"full"`` or ``"preserve"``; defaults to the configured serializer mode
        spec_version: Version written to the metadata block in full mode

    Raises:
        SerializationError: for an unknown mode, or preserve mode on a form
            that has no source text.
    """
    mode = mode or get_settings().serializer_mode
    serializer = FormSerializer(form, spec_version)
    if mode == FULL_MODE:
        return serializer.full()
    if mode == PRESERVE_MODE:
        return serializer.preserve()
    raise SerializationError(f"Unknown serializer mode '{mode}'; expected 'full' or 'preserve'")


# ---------------------------------------------------------------------------
# Plain Markdown report
# ---------------------------------------------------------------------------

def _raw_value(form_field: BaseField, response: FieldResponse) -> str:
    if response.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
        label = "Skipped" if response.state is AnswerState.SKIPPED else "Aborted"
        return f"_{label}: {response.reason}_" if response.reason else f"_{label}_"
    if not response.has_value:
        return "_(no answer)_"
    value = response.value
    if isinstance(form_field, CheckboxesField):
        lines = []
        for option in form_field.options:
            state = value.get(option.id, "")
            mark = "x" if state in ("done", "yes") else " "
            suffix = f" ({state})" if form_field.checkbox_mode is not CheckboxMode.SIMPLE and state else ""
            lines.append(f"- [{mark}] {option.label}{suffix}")
        return "\n".join(lines)
    if form_field.kind is FieldKind.SINGLE_SELECT:
        labels = {option.id: option.label for option in field_options(form_field)}
        return labels.get(value, value)
    if form_field.kind is FieldKind.MULTI_SELECT:
        labels = {option.id: option.label for option in field_options(form_field)}
        return "\n".join(f"- {labels.get(item, item)}" for item in value)
    if form_field.kind in (FieldKind.STRING_LIST, FieldKind.URL_LIST):
        return "\n".join(f"- {item}" for item in value)
    if isinstance(form_field, TableField):
        header = "| " + " | ".join(column.label for column in form_field.columns) + " |"
        lines = [header, "| " + " | ".join("---" for _ in form_field.columns) + " |"]
        for row in value:
            lines.append("| " + " | ".join(format_cell(row.get(column.id)) for column in form_field.columns) + " |")
        return "\n".join(lines)
    return _scalar_text(form_field, value)


def to_raw_markdown(form: ParsedForm) -> str:
    """Render the form's content as plain Markdown, without tags or metadata."""
    schema = form.schema
    lines = [f"# {schema.title or schema.id}", ""]
    description = form.description_for(schema.id)
    if description:
        lines.extend([description, ""])

    def emit_group(group: FieldGroup, level: int) -> None:
        if not group.implicit:
            lines.extend([f"{'#' * level} {group.title or group.id}", ""])
        for child in group.children:
            if isinstance(child, FieldGroup):
                emit_group(child, level + 1)
                continue
            response = form.get_response(child.id)
            value = _raw_value(child, response)
            if "\n" in value:
                lines.extend([f"**{child.label}:**", "", value, ""])
            else:
                lines.extend([f"**{child.label}:** {value}", ""])

    for group in schema.groups:
        emit_group(group, 2)
    return "\n".join(lines).rstrip() + "\n"
