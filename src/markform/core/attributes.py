"""
Field attribute schemas.

One table per field kind maps tag attribute names (as written in documents,
camelCase) to dataclass attribute names and converters. The structural
parser reads attributes through these tables and the serializer writes
them back through the same tables, so both directions stay in step.
"""

import dataclasses
import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.enums import ApprovalMode, CheckboxMode, ColumnType, FieldKind, FieldPriority
from ..models.fields import BaseField, TableColumn, TableField


logger = logging.getLogger(__name__)

_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value


def as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError("expected true or false")
    return value


def as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValueError("expected an integer")
    return value


def as_count(value: Any) -> int:
    count = as_int(value)
    if count < 0:
        raise ValueError("expected a non-negative integer")
    return count


def as_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("expected a number")
    return value


def as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError("expected a list of strings")
    return list(value)


def as_pattern(value: Any) -> str:
    pattern = as_str(value)
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"invalid regular expression: {e}") from None
    return pattern


def as_date(value: Any) -> str:
    text = as_str(value)
    if not _DATE.match(text):
        raise ValueError("expected a date as YYYY-MM-DD")
    return text


def as_any(value: Any) -> Any:
    return value


def as_enum(enum_class) -> Callable[[Any], Any]:
    def convert(value: Any):
        try:
            return enum_class(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_class)
            raise ValueError(f"expected one of: {allowed}") from None
    return convert


AttributeTable = Dict[str, Tuple[str, Callable[[Any], Any]]]

COMMON_ATTRIBUTES: AttributeTable = {
    "id": ("id", as_str),
    "label": ("label", as_str),
    "role": ("role", as_str),
    "priority": ("priority", as_enum(FieldPriority)),
    "required": ("required", as_bool),
    "report": ("report", as_bool),
    "placeholder": ("placeholder", as_str),
    "examples": ("examples", as_str_list),
    "validate": ("validate", as_any),
}

KIND_ATTRIBUTES: Dict[FieldKind, AttributeTable] = {
    FieldKind.STRING: {
        "multiline": ("multiline", as_bool),
        "pattern": ("pattern", as_pattern),
        "minLength": ("min_length", as_count),
        "maxLength": ("max_length", as_count),
    },
    FieldKind.NUMBER: {
        "min": ("min", as_number),
        "max": ("max", as_number),
        "integer": ("integer", as_bool),
    },
    FieldKind.STRING_LIST: {
        "minItems": ("min_items", as_count),
        "maxItems": ("max_items", as_count),
        "itemMinLength": ("item_min_length", as_count),
        "itemMaxLength": ("item_max_length", as_count),
        "uniqueItems": ("unique_items", as_bool),
    },
    FieldKind.CHECKBOXES: {
        "checkboxMode": ("checkbox_mode", as_enum(CheckboxMode)),
        "minDone": ("min_done", as_count),
        "approvalMode": ("approval_mode", as_enum(ApprovalMode)),
    },
    FieldKind.SINGLE_SELECT: {},
    FieldKind.MULTI_SELECT: {
        "minSelections": ("min_selections", as_count),
        "maxSelections": ("max_selections", as_count),
    },
    FieldKind.URL: {},
    FieldKind.URL_LIST: {
        "minItems": ("min_items", as_count),
        "maxItems": ("max_items", as_count),
        "uniqueItems": ("unique_items", as_bool),
    },
    FieldKind.DATE: {
        "min": ("min", as_date),
        "max": ("max", as_date),
    },
    FieldKind.YEAR: {
        "min": ("min", as_int),
        "max": ("max", as_int),
    },
    FieldKind.TABLE: {
        "minRows": ("min_rows", as_count),
        "maxRows": ("max_rows", as_count),
    },
}

# Attributes handled outside the tables.
STRUCTURAL_ATTRIBUTES = frozenset({"kind", "state"})
TABLE_COLUMN_ATTRIBUTES = frozenset({"columnIds", "columnLabels", "columnTypes"})

# Pairs of (min, max) dataclass attributes that must be ordered.
_BOUND_PAIRS = (
    ("min_length", "max_length"),
    ("min", "max"),
    ("min_items", "max_items"),
    ("item_min_length", "item_max_length"),
    ("min_selections", "max_selections"),
    ("min_rows", "max_rows"),
)


def attribute_table(kind: FieldKind) -> AttributeTable:
    table = dict(COMMON_ATTRIBUTES)
    table.update(KIND_ATTRIBUTES[kind])
    return table


def convert_field_attributes(kind: FieldKind, attributes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert tag attributes into dataclass keyword arguments.

    Unknown attribute names are logged and dropped.

    Raises:
        ValueError: naming the attribute whose value has the wrong type.
    """
    table = attribute_table(kind)
    kwargs: Dict[str, Any] = {}
    for name, value in attributes.items():
        if name in STRUCTURAL_ATTRIBUTES:
            continue
        if kind is FieldKind.TABLE and name in TABLE_COLUMN_ATTRIBUTES:
            continue
        entry = table.get(name)
        if entry is None:
            logger.warning(f"Ignoring unknown attribute '{name}' on {kind} field")
            continue
        python_name, converter = entry
        if value is None:
            continue
        try:
            kwargs[python_name] = converter(value)
        except ValueError as e:
            raise ValueError(f"attribute '{name}': {e}") from None

    for low, high in _BOUND_PAIRS:
        low_value, high_value = kwargs.get(low), kwargs.get(high)
        if low_value is not None and high_value is not None and low_value > high_value:
            raise ValueError(f"'{low}' ({low_value}) is greater than '{high}' ({high_value})")
    return kwargs


def build_table_columns(attributes: Dict[str, Any]) -> List[TableColumn]:
    """
    Build columns from ``columnIds``, ``columnLabels`` and ``columnTypes``.

    ``columnTypes`` entries are a type name or ``{type: ..., required: ...}``.

    Raises:
        ValueError: if the lists are missing, mistyped or of unequal length.
    """
    if "columnIds" not in attributes:
        raise ValueError("table fields require a 'columnIds' attribute")
    try:
        ids = as_str_list(attributes["columnIds"])
    except ValueError:
        raise ValueError("attribute 'columnIds': expected a list of strings") from None
    if not ids:
        raise ValueError("attribute 'columnIds' cannot be empty")

    labels = attributes.get("columnLabels")
    if labels is None:
        labels = list(ids)
    else:
        try:
            labels = as_str_list(labels)
        except ValueError:
            raise ValueError("attribute 'columnLabels': expected a list of strings") from None
        if len(labels) != len(ids):
            raise ValueError(
                f"'columnLabels' has {len(labels)} entries but 'columnIds' has {len(ids)}"
            )

    types = attributes.get("columnTypes")
    if types is None:
        types = ["string"] * len(ids)
    elif not isinstance(types, list) or len(types) != len(ids):
        raise ValueError("'columnTypes' must be a list with one entry per column id")

    columns = []
    for column_id, label, type_spec in zip(ids, labels, types):
        required = False
        if isinstance(type_spec, dict):
            required = type_spec.get("required", False)
            if not isinstance(required, bool):
                raise ValueError(f"column '{column_id}': 'required' must be true or false")
            type_spec = type_spec.get("type", "string")
        try:
            column_type = ColumnType(type_spec)
        except ValueError:
            allowed = ", ".join(member.value for member in ColumnType)
            raise ValueError(f"column '{column_id}': type must be one of {allowed}") from None
        columns.append(TableColumn(id=column_id, label=label, type=column_type, required=required))
    return columns


def _default_of(dc_field: dataclasses.Field) -> Any:
    if dc_field.default is not dataclasses.MISSING:
        return dc_field.default
    if dc_field.default_factory is not dataclasses.MISSING:
        return dc_field.default_factory()
    return dataclasses.MISSING


def field_attributes(form_field: BaseField) -> Dict[str, Any]:
    """
    Tag attributes describing a field; values equal to their defaults are left out.

    ``kind`` is always included; callers drop it for kind-specific tag names.
    """
    defaults = {f.name: _default_of(f) for f in dataclasses.fields(form_field)}
    attributes: Dict[str, Any] = {"kind": form_field.kind.value}
    for name, (python_name, _converter) in attribute_table(form_field.kind).items():
        value = getattr(form_field, python_name)
        if value is None or value == defaults.get(python_name):
            continue
        attributes[name] = value.value if isinstance(value, Enum) else value

    if isinstance(form_field, TableField):
        attributes["columnIds"] = [column.id for column in form_field.columns]
        attributes["columnLabels"] = [column.label for column in form_field.columns]
        if not all(column.is_default for column in form_field.columns):
            attributes["columnTypes"] = [
                {"type": column.type.value, "required": True} if column.required else column.type.value
                for column in form_field.columns
            ]
    return attributes


def required_attribute(attributes: Dict[str, Any], name: str) -> Optional[str]:
    value = attributes.get(name)
    return value if isinstance(value, str) and value else None
