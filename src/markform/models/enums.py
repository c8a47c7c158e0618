"""
Enumeration types for the form model.

This module defines the closed vocabularies used throughout the form
schema, response store, validator output and patch protocol.
"""

from enum import Enum


class FieldKind(Enum):
    """Field kind discriminator."""
    STRING = "string"
    NUMBER = "number"
    STRING_LIST = "string_list"
    CHECKBOXES = "checkboxes"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    URL = "url"
    URL_LIST = "url_list"
    DATE = "date"
    YEAR = "year"
    TABLE = "table"

    def __str__(self) -> str:
        return self.value


class AnswerState(Enum):
    """Fill state of a field or table cell."""
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    SKIPPED = "skipped"
    ABORTED = "aborted"

    def __str__(self) -> str:
        return self.value


class FieldPriority(Enum):
    """Relative importance of a field when ordering issues."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Numeric weight used in issue priority scoring."""
        return {"high": 3, "medium": 2, "low": 1}[self.value]

    def __str__(self) -> str:
        return self.value


class CheckboxMode(Enum):
    """How a checkboxes field interprets its markers."""
    MULTI = "multi"
    SIMPLE = "simple"
    EXPLICIT = "explicit"

    def __str__(self) -> str:
        return self.value


class ApprovalMode(Enum):
    """Whether an incomplete checkboxes field blocks the fields after it."""
    NONE = "none"
    BLOCKING = "blocking"

    def __str__(self) -> str:
        return self.value


class ColumnType(Enum):
    """Cell type of a table column."""
    STRING = "string"
    NUMBER = "number"
    URL = "url"
    DATE = "date"
    YEAR = "year"

    def __str__(self) -> str:
        return self.value


class RunMode(Enum):
    """Declared fill mode from the metadata block."""
    INTERACTIVE = "interactive"
    FILL = "fill"
    RESEARCH = "research"

    def __str__(self) -> str:
        return self.value


class SyntaxStyle(Enum):
    """Tag syntax used by a document."""
    MARKDOC = "markdoc"
    COMMENT = "comment"

    def __str__(self) -> str:
        return self.value


class IssueScope(Enum):
    """What an issue reference points at."""
    FORM = "form"
    GROUP = "group"
    FIELD = "field"
    OPTION = "option"
    COLUMN = "column"
    CELL = "cell"

    def __str__(self) -> str:
        return self.value


class IssueSeverity(Enum):
    """Whether an issue blocks completion."""
    REQUIRED = "required"
    RECOMMENDED = "recommended"

    def __str__(self) -> str:
        return self.value


class IssueReason(Enum):
    """Reason codes carried by issues."""
    MISSING_REQUIRED = "missing-required"
    OUT_OF_RANGE = "out-of-range"
    PATTERN_MISMATCH = "pattern-mismatch"
    LENGTH_VIOLATION = "length-violation"
    ROW_COUNT_VIOLATION = "row-count-violation"
    ITEM_COUNT_VIOLATION = "item-count-violation"
    INVALID_OPTION = "invalid-option"
    INVALID_VALUE = "invalid-value"
    CHECKBOX_INCOMPLETE = "checkbox-incomplete"
    DUPLICATE_ITEMS = "duplicate-items"
    CELL_REQUIRED = "cell-required"
    CELL_TYPE_MISMATCH = "cell-type-mismatch"
    OPTIONAL_UNANSWERED = "optional-unanswered"

    @property
    def score(self) -> int:
        """Issue score added to the field weight when computing priority."""
        if self is IssueReason.MISSING_REQUIRED:
            return 3
        if self is IssueReason.OPTIONAL_UNANSWERED:
            return 1
        return 2

    def __str__(self) -> str:
        return self.value


class PatchOp(Enum):
    """Patch operations accepted by the applier."""
    SET = "set"
    SET_STRING = "set_string"
    SET_NUMBER = "set_number"
    SET_STRING_LIST = "set_string_list"
    SET_CHECKBOXES = "set_checkboxes"
    SET_SINGLE_SELECT = "set_single_select"
    SET_MULTI_SELECT = "set_multi_select"
    SET_URL = "set_url"
    SET_URL_LIST = "set_url_list"
    SET_DATE = "set_date"
    SET_YEAR = "set_year"
    SET_TABLE = "set_table"
    APPEND_ROW = "append_row"
    APPEND_ITEM = "append_item"
    DELETE_ROW = "delete_row"
    DELETE_ITEM = "delete_item"
    CLEAR_FIELD = "clear_field"
    SKIP_FIELD = "skip_field"
    ABORT_FIELD = "abort_field"
    ADD_NOTE = "add_note"
    REMOVE_NOTE = "remove_note"

    def __str__(self) -> str:
        return self.value


class ApplyStatus(Enum):
    """Outcome of a patch batch."""
    APPLIED = "applied"
    PARTIAL = "partial"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


class FormState(Enum):
    """Overall fill state derived from the progress summary."""
    EMPTY = "empty"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    INVALID = "invalid"

    def __str__(self) -> str:
        return self.value


# Checkbox value vocabularies per mode; the first entry is the default.
MULTI_CHECKBOX_STATES = ("todo", "done", "incomplete", "active", "na")
SIMPLE_CHECKBOX_STATES = ("todo", "done")
EXPLICIT_CHECKBOX_STATES = ("unfilled", "yes", "no")

CHECKBOX_STATES_BY_MODE = {
    CheckboxMode.MULTI: MULTI_CHECKBOX_STATES,
    CheckboxMode.SIMPLE: SIMPLE_CHECKBOX_STATES,
    CheckboxMode.EXPLICIT: EXPLICIT_CHECKBOX_STATES,
}

CHOOSER_KINDS = frozenset({FieldKind.CHECKBOXES, FieldKind.SINGLE_SELECT, FieldKind.MULTI_SELECT})
LIST_KINDS = frozenset({FieldKind.STRING_LIST, FieldKind.URL_LIST})

DEFAULT_ROLE = "agent"
USER_ROLE = "user"
DEFAULT_ROLES = (USER_ROLE, DEFAULT_ROLE)
