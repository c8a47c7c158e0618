"""
Summary and apply-result types.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import AnswerState, ApplyStatus, FieldKind, FormState
from .issues import Issue


@dataclass
class StructureSummary:
    """Counts and indices over the schema."""
    group_count: int = 0
    field_count: int = 0
    option_count: int = 0
    column_count: int = 0
    field_count_by_kind: Dict[str, int] = field(default_factory=dict)
    field_count_by_role: Dict[str, int] = field(default_factory=dict)
    groups_by_id: Dict[str, Optional[str]] = field(default_factory=dict)
    fields_by_id: Dict[str, str] = field(default_factory=dict)
    options_by_id: Dict[str, Dict[str, str]] = field(default_factory=dict)
    columns_by_id: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class CheckboxProgress:
    """Per-state counts for a checkboxes field."""
    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class FieldProgress:
    """Fill progress of one field."""
    kind: FieldKind
    required: bool
    answer_state: AnswerState
    has_value: bool
    is_empty: bool
    valid: bool
    issue_count: int = 0
    checkbox_progress: Optional[CheckboxProgress] = None
    row_count: Optional[int] = None


@dataclass
class ProgressSummary:
    """Counts over the response store."""
    total_fields: int = 0
    required_fields: int = 0
    unanswered_fields: int = 0
    answered_fields: int = 0
    skipped_fields: int = 0
    aborted_fields: int = 0
    valid_fields: int = 0
    invalid_fields: int = 0
    empty_fields: int = 0
    filled_fields: int = 0
    empty_required_fields: int = 0
    total_notes: int = 0
    fields: Dict[str, FieldProgress] = field(default_factory=dict)


@dataclass
class PatchRejection:
    """A patch the applier refused, with the reason."""
    patch_index: int
    patch: Dict[str, Any]
    message: str
    field_id: Optional[str] = None
    field_kind: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class PatchWarning:
    """A coercion the applier performed on an accepted patch."""
    patch_index: int
    field_id: Optional[str]
    coercion: str
    message: str


@dataclass
class ApplyResult:
    """Outcome of one apply_patches call."""
    apply_status: ApplyStatus
    structure_summary: StructureSummary
    progress_summary: ProgressSummary
    issues: List[Issue] = field(default_factory=list)
    is_complete: bool = False
    form_state: FormState = FormState.EMPTY
    applied_patches: List[Dict[str, Any]] = field(default_factory=list)
    rejected_patches: List[PatchRejection] = field(default_factory=list)
    warnings: List[PatchWarning] = field(default_factory=list)


@dataclass
class InspectResult:
    """Prioritised issue view of a form."""
    issues: List[Issue]
    structure_summary: StructureSummary
    progress_summary: ProgressSummary
    is_complete: bool
    form_state: FormState
