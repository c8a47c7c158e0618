"""
JSON Schema projection of a form schema.

form_to_json_schema describes the shape of a form's answers as a JSON
Schema document (2020-12 by default). form_to_values produces the matching
answer object, so exported schemas can be checked with any JSON Schema
validator.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..models.enums import AnswerState, CHECKBOX_STATES_BY_MODE, ApprovalMode, ColumnType, FieldKind, FieldPriority
from ..models.fields import BaseField, TableColumn, field_options
from ..models.form import FieldGroup, ParsedForm
from .table import MAX_YEAR, MIN_YEAR


logger = logging.getLogger(__name__)

SCHEMA_URLS = {
    "2020-12": "https://json-schema.org/draft/2020-12/schema",
    "2019-09": "https://json-schema.org/draft/2019-09/schema",
    "draft-07": "http://json-schema.org/draft-07/schema#",
}
DEFAULT_DRAFT = "2020-12"

_COLUMN_SCHEMAS: Dict[ColumnType, Dict[str, Any]] = {
    ColumnType.STRING: {"type": "string"},
    ColumnType.NUMBER: {"type": "number"},
    ColumnType.URL: {"type": "string", "format": "uri"},
    ColumnType.DATE: {"type": "string", "format": "date"},
    ColumnType.YEAR: {"type": "integer", "minimum": MIN_YEAR, "maximum": MAX_YEAR},
}


def _set_if(schema: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        schema[key] = value


def _string_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {"type": "string"}
    _set_if(schema, "minLength", form_field.min_length)
    _set_if(schema, "maxLength", form_field.max_length)
    _set_if(schema, "pattern", form_field.pattern)
    return schema


def _number_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {"type": "integer" if form_field.integer else "number"}
    _set_if(schema, "minimum", form_field.min)
    _set_if(schema, "maximum", form_field.max)
    return schema


def _string_list_schema(form_field, draft: str) -> Dict[str, Any]:
    items = {"type": "string"}
    _set_if(items, "minLength", form_field.item_min_length)
    _set_if(items, "maxLength", form_field.item_max_length)
    schema = {"type": "array", "items": items}
    _set_if(schema, "minItems", form_field.min_items)
    _set_if(schema, "maxItems", form_field.max_items)
    if form_field.unique_items:
        schema["uniqueItems"] = True
    return schema


def _url_list_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {"type": "array", "items": {"type": "string", "format": "uri"}}
    _set_if(schema, "minItems", form_field.min_items)
    _set_if(schema, "maxItems", form_field.max_items)
    if form_field.unique_items:
        schema["uniqueItems"] = True
    return schema


def _checkboxes_schema(form_field, draft: str) -> Dict[str, Any]:
    states = list(CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode])
    properties = {
        option.id: {"type": "string", "enum": states, "title": option.label}
        for option in form_field.options
    }
    return {"type": "object", "properties": properties}


def _single_select_schema(form_field, draft: str) -> Dict[str, Any]:
    return {"type": "string", "enum": [option.id for option in form_field.options]}


def _multi_select_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {
        "type": "array",
        "items": {"type": "string", "enum": [option.id for option in form_field.options]},
    }
    _set_if(schema, "minItems", form_field.min_selections)
    _set_if(schema, "maxItems", form_field.max_selections)
    return schema


def _url_schema(form_field, draft: str) -> Dict[str, Any]:
    return {"type": "string", "format": "uri"}


def _date_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {"type": "string", "format": "date"}
    # formatMinimum/formatMaximum do not exist in draft-07.
    if draft != "draft-07":
        _set_if(schema, "formatMinimum", form_field.min)
        _set_if(schema, "formatMaximum", form_field.max)
    return schema


def _year_schema(form_field, draft: str) -> Dict[str, Any]:
    schema = {"type": "integer"}
    _set_if(schema, "minimum", form_field.min)
    _set_if(schema, "maximum", form_field.max)
    return schema


def _column_schema(column: TableColumn) -> Dict[str, Any]:
    schema = {"title": column.label}
    schema.update(_COLUMN_SCHEMAS[column.type])
    return schema


def _table_schema(form_field, draft: str) -> Dict[str, Any]:
    row = {
        "type": "object",
        "properties": {column.id: _column_schema(column) for column in form_field.columns},
    }
    required = [column.id for column in form_field.columns if column.required]
    if required:
        row["required"] = required
    schema = {"type": "array", "items": row}
    _set_if(schema, "minItems", form_field.min_rows)
    _set_if(schema, "maxItems", form_field.max_rows)
    return schema


FIELD_SCHEMAS: Dict[FieldKind, Callable[[Any, str], Dict[str, Any]]] = {
    FieldKind.STRING: _string_schema,
    FieldKind.NUMBER: _number_schema,
    FieldKind.STRING_LIST: _string_list_schema,
    FieldKind.CHECKBOXES: _checkboxes_schema,
    FieldKind.SINGLE_SELECT: _single_select_schema,
    FieldKind.MULTI_SELECT: _multi_select_schema,
    FieldKind.URL: _url_schema,
    FieldKind.URL_LIST: _url_list_schema,
    FieldKind.DATE: _date_schema,
    FieldKind.YEAR: _year_schema,
    FieldKind.TABLE: _table_schema,
}


def _field_extension(form_field: BaseField, group_id: Optional[str]) -> Dict[str, Any]:
    extension: Dict[str, Any] = {"role": form_field.role}
    if form_field.priority is not FieldPriority.MEDIUM:
        extension["priority"] = form_field.priority.value
    if group_id:
        extension["group"] = group_id
    _set_if(extension, "placeholder", form_field.placeholder)
    if form_field.examples:
        extension["examples"] = list(form_field.examples)
    if form_field.kind is FieldKind.CHECKBOXES:
        extension["checkboxMode"] = form_field.checkbox_mode.value
        _set_if(extension, "minDone", form_field.min_done)
        if form_field.approval_mode is not ApprovalMode.NONE:
            extension["approvalMode"] = form_field.approval_mode.value
    if form_field.kind is FieldKind.DATE:
        _set_if(extension, "minDate", form_field.min)
        _set_if(extension, "maxDate", form_field.max)
    return extension


def _description(form: ParsedForm, ref: str) -> Optional[str]:
    for doc in form.docs_for(ref):
        if doc.tag in ("description", "documentation"):
            return doc.body.strip()
    return None


def field_to_json_schema(
    form: ParsedForm,
    form_field: BaseField,
    draft: str = DEFAULT_DRAFT,
    include_extensions: bool = True,
    group_id: Optional[str] = None,
) -> Dict[str, Any]:
    """JSON Schema for one field's answer value."""
    schema: Dict[str, Any] = {"title": form_field.label}
    schema.update(FIELD_SCHEMAS[form_field.kind](form_field, draft))
    _set_if(schema, "description", _description(form, form_field.id))
    if include_extensions:
        schema["x-markform"] = _field_extension(form_field, group_id)
    return schema


def form_to_json_schema(
    form: ParsedForm,
    draft: str = DEFAULT_DRAFT,
    include_extensions: bool = True,
) -> Dict[str, Any]:
    """
    Project a form's schema to a JSON Schema document.

    Args:
        form: Parsed form
        draft: ``"2020-12"``, ``"2019-09"`` or ``"draft-07"``
        include_extensions: Add ``x-markform`` metadata at form and field level

    Raises:
        ValueError: for an unsupported draft.
    """
    if draft not in SCHEMA_URLS:
        raise ValueError(f"Unsupported JSON Schema draft '{draft}'; use one of: {', '.join(SCHEMA_URLS)}")

    schema = form.schema
    properties: Dict[str, Any] = {}
    required: List[str] = []

    def walk(group: FieldGroup) -> None:
        group_id = None if group.implicit else group.id
        for child in group.children:
            if isinstance(child, FieldGroup):
                walk(child)
                continue
            properties[child.id] = field_to_json_schema(form, child, draft, include_extensions, group_id)
            if child.is_required:
                required.append(child.id)

    for group in schema.groups:
        walk(group)

    result: Dict[str, Any] = {
        "$schema": SCHEMA_URLS[draft],
        "$id": schema.id,
        "type": "object",
    }
    _set_if(result, "title", schema.title)
    _set_if(result, "description", _description(form, schema.id) or form.metadata.description)
    result["properties"] = properties
    if required:
        result["required"] = required

    if include_extensions:
        extension: Dict[str, Any] = {"spec": form.metadata.spec_version}
        if form.metadata.roles:
            extension["roles"] = list(form.metadata.roles)
        if form.metadata.role_instructions:
            extension["roleInstructions"] = dict(form.metadata.role_instructions)
        groups = [
            {"id": group.id, **({"title": group.title} if group.title else {})}
            for group in schema.iter_groups()
            if not group.implicit
        ]
        if groups:
            extension["groups"] = groups
        result["x-markform"] = extension

    logger.debug(f"Exported JSON Schema for '{schema.id}' with {len(properties)} properties")
    return result


def form_to_values(form: ParsedForm) -> Dict[str, Any]:
    """
    Answer values keyed by field id, shaped to match form_to_json_schema.

    Only fields answered with a value are included; table cells without a
    value are left out of their row.
    """
    values: Dict[str, Any] = {}
    for form_field in form.iter_fields():
        response = form.get_response(form_field.id)
        if response.state is not AnswerState.ANSWERED or response.value is None:
            continue
        if form_field.kind is FieldKind.TABLE:
            values[form_field.id] = [
                {
                    column_id: cell.value
                    for column_id, cell in row.items()
                    if cell.state is AnswerState.ANSWERED and cell.value is not None
                }
                for row in response.value
            ]
        elif form_field.kind is FieldKind.CHECKBOXES:
            values[form_field.id] = {
                option.id: response.value[option.id]
                for option in field_options(form_field)
                if option.id in response.value
            }
        else:
            values[form_field.id] = response.value
    return values
