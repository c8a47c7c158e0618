"""
Data models for Markform.

This package contains the form schema, response store, issue, patch and
result types shared by the parser, validator, applier and serializer.
"""

from .enums import (
    FieldKind,
    AnswerState,
    FieldPriority,
    CheckboxMode,
    ApprovalMode,
    ColumnType,
    RunMode,
    SyntaxStyle,
    IssueScope,
    IssueSeverity,
    IssueReason,
    PatchOp,
    ApplyStatus,
    FormState,
    CHECKBOX_STATES_BY_MODE,
    DEFAULT_ROLE,
    USER_ROLE,
)

from .fields import (
    FieldOption,
    TableColumn,
    BaseField,
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
    Field,
    FIELD_CLASSES,
)

from .responses import (
    CellResponse,
    FieldResponse,
    TableRow,
    ResponseStore,
)

from .form import (
    FieldGroup,
    FormSchema,
    DocBlock,
    Note,
    HarnessConfig,
    FormMetadata,
    SourceSpan,
    SourceIndex,
    ParsedForm,
    DEFAULT_SPEC_VERSION,
)

from .issues import Issue, priority_tier
from .patches import Patch, decode_patch, decode_patches
from .results import (
    StructureSummary,
    CheckboxProgress,
    FieldProgress,
    ProgressSummary,
    PatchRejection,
    PatchWarning,
    ApplyResult,
    InspectResult,
)

__all__ = [
    "FieldKind",
    "AnswerState",
    "FieldPriority",
    "CheckboxMode",
    "ApprovalMode",
    "ColumnType",
    "RunMode",
    "SyntaxStyle",
    "IssueScope",
    "IssueSeverity",
    "IssueReason",
    "PatchOp",
    "ApplyStatus",
    "FormState",
    "CHECKBOX_STATES_BY_MODE",
    "DEFAULT_ROLE",
    "USER_ROLE",
    "FieldOption",
    "TableColumn",
    "BaseField",
    "StringField",
    "NumberField",
    "StringListField",
    "CheckboxesField",
    "SingleSelectField",
    "MultiSelectField",
    "UrlField",
    "UrlListField",
    "DateField",
    "YearField",
    "TableField",
    "Field",
    "FIELD_CLASSES",
    "CellResponse",
    "FieldResponse",
    "TableRow",
    "ResponseStore",
    "FieldGroup",
    "FormSchema",
    "DocBlock",
    "Note",
    "HarnessConfig",
    "FormMetadata",
    "SourceSpan",
    "SourceIndex",
    "ParsedForm",
    "DEFAULT_SPEC_VERSION",
    "Issue",
    "priority_tier",
    "Patch",
    "decode_patch",
    "decode_patches",
    "StructureSummary",
    "CheckboxProgress",
    "FieldProgress",
    "ProgressSummary",
    "PatchRejection",
    "PatchWarning",
    "ApplyResult",
    "InspectResult",
]
