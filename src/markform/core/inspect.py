"""
Inspect - the prioritised issue view used by fill loops.

Extends validator output with recommended issues for unanswered optional
fields, filters by role and marks fields that sit behind an unfinished
blocking checkpoint.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..models.enums import (
    AnswerState,
    ApprovalMode,
    CheckboxMode,
    IssueReason,
    IssueScope,
    IssueSeverity,
)
from ..models.fields import CheckboxesField, option_ids
from ..models.form import ParsedForm
from ..models.issues import Issue
from ..models.results import InspectResult
from .summaries import form_state, is_complete, progress_summary, structure_summary
from .validator import Finding, to_issue, validate


logger = logging.getLogger(__name__)

ALL_ROLES = "*"


def _checkpoint_finished(form_field: CheckboxesField, response) -> bool:
    if response.state is AnswerState.SKIPPED:
        return True
    if response.state is not AnswerState.ANSWERED or not response.value:
        return False
    if form_field.checkbox_mode is CheckboxMode.EXPLICIT:
        finished = ("yes", "no")
    elif form_field.checkbox_mode is CheckboxMode.MULTI:
        finished = ("done", "na")
    else:
        finished = ("done",)
    return all(response.value.get(option_id) in finished for option_id in option_ids(form_field))


def blocking_checkpoints(form: ParsedForm) -> Dict[str, str]:
    """
    Map each field id behind an unfinished blocking checkpoint to that checkpoint's id.

    Only the first unfinished checkpoint counts; every field after it in
    document order is blocked by it.
    """
    blocked: Dict[str, str] = {}
    checkpoint: Optional[str] = None
    for form_field in form.iter_fields():
        if checkpoint is not None:
            blocked[form_field.id] = checkpoint
            continue
        if (
            isinstance(form_field, CheckboxesField)
            and form_field.approval_mode is ApprovalMode.BLOCKING
            and not _checkpoint_finished(form_field, form.get_response(form_field.id))
        ):
            checkpoint = form_field.id
    return blocked


def _role_filter(target_roles: Optional[Iterable[str]]):
    if target_roles is None:
        return None
    roles = set(target_roles)
    if ALL_ROLES in roles:
        return None
    return roles


def sort_issues(issues: List[Issue]) -> List[Issue]:
    """Order by priority tier; ties keep document order."""
    return sorted(issues, key=lambda issue: issue.priority)


def inspect(form: ParsedForm, target_roles: Optional[Iterable[str]] = None) -> InspectResult:
    """
    Build the prioritised issue list and summaries for a form.

    Args:
        form: Parsed form
        target_roles: Roles whose fields to report on; None or ``"*"`` means all

    Returns:
        InspectResult with issues sorted by priority tier
    """
    validator_issues = validate(form)
    issues_by_field: Dict[str, List[Issue]] = {}
    for issue in validator_issues:
        issues_by_field.setdefault(issue.field_id, []).append(issue)

    roles = _role_filter(target_roles)
    blocked = blocking_checkpoints(form)
    collected: List[Issue] = []
    for form_field in form.iter_fields():
        if roles is not None and form_field.role not in roles:
            continue
        field_issues = list(issues_by_field.get(form_field.id, []))
        response = form.get_response(form_field.id)
        if response.state is AnswerState.UNANSWERED and not form_field.is_required:
            finding = Finding(
                form_field.id, IssueScope.FIELD, IssueReason.OPTIONAL_UNANSWERED,
                f"'{form_field.label}' is optional and not yet answered",
            )
            field_issues.append(to_issue(form_field, finding, IssueSeverity.RECOMMENDED))
        blocker = blocked.get(form_field.id)
        if blocker is not None:
            field_issues = [replace(issue, blocked_by=blocker) for issue in field_issues]
        collected.extend(field_issues)

    progress = progress_summary(form, validator_issues)
    result = InspectResult(
        issues=sort_issues(collected),
        structure_summary=structure_summary(form),
        progress_summary=progress,
        is_complete=is_complete(progress),
        form_state=form_state(progress),
    )
    logger.debug(f"Inspected form '{form.schema.id}': {len(result.issues)} issues, state {result.form_state}")
    return result
