"""
Field definitions for form schemas.

Each field kind is its own dataclass sharing the common attributes in
BaseField. Consumers dispatch on ``field.kind`` (a ClassVar) through
kind-keyed tables; FIELD_CLASSES is the closed registry of variants.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

from .enums import (
    ApprovalMode,
    CheckboxMode,
    ColumnType,
    DEFAULT_ROLE,
    FieldKind,
    FieldPriority,
)


logger = logging.getLogger(__name__)


@dataclass
class FieldOption:
    """One selectable option of a chooser field."""
    id: str
    label: str

    def __post_init__(self):
        if not self.id:
            raise ValueError("Option id cannot be empty")


@dataclass
class TableColumn:
    """A typed column of a table field."""
    id: str
    label: str
    type: ColumnType = ColumnType.STRING
    required: bool = False

    def __post_init__(self):
        if not self.id:
            raise ValueError("Column id cannot be empty")
        if not isinstance(self.type, ColumnType):
            self.type = ColumnType(self.type)

    @property
    def is_default(self) -> bool:
        """True for a plain optional string column."""
        return self.type is ColumnType.STRING and not self.required


@dataclass
class BaseField:
    """Attributes shared by every field kind."""
    kind: ClassVar[FieldKind]

    id: str
    label: str
    role: str = DEFAULT_ROLE
    priority: FieldPriority = FieldPriority.MEDIUM
    required: bool = False
    report: Optional[bool] = None
    placeholder: Optional[str] = None
    examples: Optional[List[str]] = None
    validate: Any = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Field id cannot be empty")
        if not isinstance(self.priority, FieldPriority):
            self.priority = FieldPriority(self.priority)

    @property
    def is_required(self) -> bool:
        """Whether the field must be resolved before the form is complete."""
        return self.required


@dataclass
class StringField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.STRING

    multiline: bool = False
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None


@dataclass
class NumberField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.NUMBER

    min: Optional[float] = None
    max: Optional[float] = None
    integer: bool = False


@dataclass
class StringListField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.STRING_LIST

    min_items: Optional[int] = None
    max_items: Optional[int] = None
    item_min_length: Optional[int] = None
    item_max_length: Optional[int] = None
    unique_items: bool = False


@dataclass
class CheckboxesField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.CHECKBOXES

    options: List[FieldOption] = field(default_factory=list)
    checkbox_mode: CheckboxMode = CheckboxMode.MULTI
    min_done: Optional[int] = None
    approval_mode: ApprovalMode = ApprovalMode.NONE

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.checkbox_mode, CheckboxMode):
            self.checkbox_mode = CheckboxMode(self.checkbox_mode)
        if not isinstance(self.approval_mode, ApprovalMode):
            self.approval_mode = ApprovalMode(self.approval_mode)

    @property
    def is_required(self) -> bool:
        # Explicit mode demands a yes/no on every option.
        return self.required or self.checkbox_mode is CheckboxMode.EXPLICIT


@dataclass
class SingleSelectField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.SINGLE_SELECT

    options: List[FieldOption] = field(default_factory=list)


@dataclass
class MultiSelectField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.MULTI_SELECT

    options: List[FieldOption] = field(default_factory=list)
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None


@dataclass
class UrlField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.URL


@dataclass
class UrlListField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.URL_LIST

    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False


@dataclass
class DateField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.DATE

    min: Optional[str] = None
    max: Optional[str] = None


@dataclass
class YearField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.YEAR

    min: Optional[int] = None
    max: Optional[int] = None


@dataclass
class TableField(BaseField):
    kind: ClassVar[FieldKind] = FieldKind.TABLE

    columns: List[TableColumn] = field(default_factory=list)
    min_rows: Optional[int] = None
    max_rows: Optional[int] = None

    def __post_init__(self):
        super().__post_init__()
        if not self.columns:
            raise ValueError(f"Table field '{self.id}' declares no columns")
        seen = set()
        for column in self.columns:
            if column.id in seen:
                raise ValueError(f"Duplicate column id '{column.id}' in table '{self.id}'")
            seen.add(column.id)

    @property
    def column_ids(self) -> List[str]:
        return [column.id for column in self.columns]

    def get_column(self, column_id: str) -> Optional[TableColumn]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None


Field = Union[
    StringField,
    NumberField,
    StringListField,
    CheckboxesField,
    SingleSelectField,
    MultiSelectField,
    UrlField,
    UrlListField,
    DateField,
    YearField,
    TableField,
]

FIELD_CLASSES: Dict[FieldKind, Type[BaseField]] = {
    FieldKind.STRING: StringField,
    FieldKind.NUMBER: NumberField,
    FieldKind.STRING_LIST: StringListField,
    FieldKind.CHECKBOXES: CheckboxesField,
    FieldKind.SINGLE_SELECT: SingleSelectField,
    FieldKind.MULTI_SELECT: MultiSelectField,
    FieldKind.URL: UrlField,
    FieldKind.URL_LIST: UrlListField,
    FieldKind.DATE: DateField,
    FieldKind.YEAR: YearField,
    FieldKind.TABLE: TableField,
}


def field_options(form_field: BaseField) -> List[FieldOption]:
    """Return the options of a chooser field, or an empty list."""
    return list(getattr(form_field, "options", None) or [])


def option_ids(form_field: BaseField) -> Tuple[str, ...]:
    return tuple(option.id for option in field_options(form_field))
