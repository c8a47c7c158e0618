"""
Structure and progress summaries, form state and completion.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

from ..models.enums import AnswerState, CHECKBOX_STATES_BY_MODE, FieldKind, FormState, IssueReason
from ..models.fields import CheckboxesField, TableField, field_options
from ..models.form import ParsedForm
from ..models.issues import Issue
from ..models.results import CheckboxProgress, FieldProgress, ProgressSummary, StructureSummary
from ..models.responses import table_rows


logger = logging.getLogger(__name__)

COMPLETION_REASONS = frozenset({IssueReason.MISSING_REQUIRED, IssueReason.CHECKBOX_INCOMPLETE})


def structure_summary(form: ParsedForm) -> StructureSummary:
    """Count groups, fields, options and columns and index them by id."""
    summary = StructureSummary()
    for group in form.schema.iter_groups():
        summary.group_count += 1
        summary.groups_by_id[group.id] = group.title

    kinds: Counter = Counter()
    roles: Counter = Counter()
    for form_field in form.iter_fields():
        summary.field_count += 1
        kinds[form_field.kind.value] += 1
        roles[form_field.role] += 1
        summary.fields_by_id[form_field.id] = form_field.kind.value
        for option in field_options(form_field):
            summary.option_count += 1
            summary.options_by_id[f"{form_field.id}.{option.id}"] = {
                "field_id": form_field.id,
                "label": option.label,
            }
        if isinstance(form_field, TableField):
            for column in form_field.columns:
                summary.column_count += 1
                summary.columns_by_id[f"{form_field.id}.{column.id}"] = {
                    "field_id": form_field.id,
                    "label": column.label,
                    "type": column.type.value,
                }
    summary.field_count_by_kind = dict(kinds)
    summary.field_count_by_role = dict(roles)
    return summary


def _checkbox_progress(form_field: CheckboxesField, values: Optional[Dict[str, str]]) -> CheckboxProgress:
    states = CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode]
    counts = {state: 0 for state in states}
    values = values or {}
    for option in form_field.options:
        counts[values.get(option.id, states[0])] += 1
    return CheckboxProgress(total=len(form_field.options), counts=counts)


def progress_summary(form: ParsedForm, issues: List[Issue]) -> ProgressSummary:
    """
    Count fields by answer state and validity.

    ``issues`` are validator findings. A field is invalid when it carries a
    constraint violation; a field with a completion finding (such as an
    unfinished required checkbox set) counts as empty-required.
    """
    invalid_ids = {
        issue.field_id for issue in issues
        if issue.field_id and issue.reason not in COMPLETION_REASONS
    }
    incomplete_ids = {
        issue.field_id for issue in issues
        if issue.field_id and issue.reason in COMPLETION_REASONS
    }
    issue_counts: Counter = Counter(issue.field_id for issue in issues if issue.field_id)

    summary = ProgressSummary(total_notes=len(form.notes))
    for form_field in form.iter_fields():
        response = form.get_response(form_field.id)
        required = form_field.is_required
        valid = form_field.id not in invalid_ids
        summary.total_fields += 1
        summary.required_fields += int(required)
        if response.state is AnswerState.UNANSWERED:
            summary.unanswered_fields += 1
        elif response.state is AnswerState.ANSWERED:
            summary.answered_fields += 1
        elif response.state is AnswerState.SKIPPED:
            summary.skipped_fields += 1
        else:
            summary.aborted_fields += 1
        if valid:
            summary.valid_fields += 1
        else:
            summary.invalid_fields += 1
        if response.has_value:
            summary.filled_fields += 1
        else:
            summary.empty_fields += 1
        if (required and not response.is_resolved) or form_field.id in incomplete_ids:
            summary.empty_required_fields += 1

        progress = FieldProgress(
            kind=form_field.kind,
            required=required,
            answer_state=response.state,
            has_value=response.has_value,
            is_empty=not response.has_value,
            valid=valid,
            issue_count=issue_counts.get(form_field.id, 0),
        )
        if isinstance(form_field, CheckboxesField):
            values = response.value if response.state is AnswerState.ANSWERED else None
            progress.checkbox_progress = _checkbox_progress(form_field, values)
        if form_field.kind is FieldKind.TABLE:
            progress.row_count = len(table_rows(response))
        summary.fields[form_field.id] = progress
    return summary


def form_state(progress: ProgressSummary) -> FormState:
    """Overall state: invalid, empty, complete or incomplete, checked in that order."""
    if progress.invalid_fields > 0 or progress.aborted_fields > 0:
        return FormState.INVALID
    if progress.answered_fields + progress.skipped_fields == 0:
        return FormState.EMPTY
    if progress.empty_required_fields == 0:
        return FormState.COMPLETE
    return FormState.INCOMPLETE


def is_complete(progress: ProgressSummary) -> bool:
    """
    A form is complete when every field is answered or skipped, nothing is
    aborted or invalid, and no required field is left empty.
    """
    return (
        progress.aborted_fields == 0
        and progress.invalid_fields == 0
        and progress.empty_required_fields == 0
        and progress.answered_fields + progress.skipped_fields == progress.total_fields
    )
