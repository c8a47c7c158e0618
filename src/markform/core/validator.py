"""
Validator - semantic checks of a response store against its schema.

validate() never raises for data problems; every finding comes back as an
Issue in document order. The per-kind value checks are shared with the
patch applier, which uses them to refuse bad patch values up front.

Key Components:
- Finding: an unprioritised check result
- check_value: static constraint checks for one answered value
- check_completeness: required / checkbox completion checks
- validate: all issues for a form
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ..models.enums import (
    AnswerState,
    CHECKBOX_STATES_BY_MODE,
    CheckboxMode,
    FieldKind,
    IssueReason,
    IssueScope,
    IssueSeverity,
)
from ..models.fields import (
    BaseField,
    CheckboxesField,
    MultiSelectField,
    NumberField,
    StringField,
    StringListField,
    TableField,
    UrlListField,
    option_ids,
)
from ..models.form import ParsedForm
from ..models.issues import Issue, priority_tier
from ..models.responses import CellResponse, FieldResponse
from .table import is_absolute_url


logger = logging.getLogger(__name__)

_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

MIN_BOUND = "min"
MAX_BOUND = "max"


@dataclass(frozen=True)
class Finding:
    """
    A check result before it is turned into an Issue.

    ``bound`` marks count violations as lower (``"min"``) or upper
    (``"max"``) bound failures so the applier can apply each side at the
    right time.
    """
    ref: str
    scope: IssueScope
    reason: IssueReason
    message: str
    bound: Optional[str] = None


def _field_finding(form_field: BaseField, reason: IssueReason, message: str,
                   bound: Optional[str] = None) -> Finding:
    return Finding(form_field.id, IssueScope.FIELD, reason, message, bound)


def _count_findings(form_field: BaseField, count: int, low: Optional[int], high: Optional[int],
                    reason: IssueReason, noun: str) -> List[Finding]:
    findings = []
    if low is not None and count < low:
        findings.append(_field_finding(
            form_field, reason, f"'{form_field.label}' needs at least {low} {noun}, has {count}", MIN_BOUND
        ))
    if high is not None and count > high:
        findings.append(_field_finding(
            form_field, reason, f"'{form_field.label}' allows at most {high} {noun}, has {count}", MAX_BOUND
        ))
    return findings


def _duplicates(items: List[Any]) -> List[Any]:
    seen, repeated = set(), []
    for item in items:
        if item in seen and item not in repeated:
            repeated.append(item)
        seen.add(item)
    return repeated


def is_valid_date(text: Any) -> bool:
    if not isinstance(text, str) or not _DATE.match(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Per-kind value checks
# ---------------------------------------------------------------------------

def _check_string(form_field: StringField, value: Any) -> List[Finding]:
    if not isinstance(value, str):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be text")]
    findings = []
    length = len(value)
    if form_field.min_length is not None and length < form_field.min_length:
        findings.append(_field_finding(
            form_field, IssueReason.LENGTH_VIOLATION,
            f"'{form_field.label}' must be at least {form_field.min_length} characters, got {length}",
        ))
    if form_field.max_length is not None and length > form_field.max_length:
        findings.append(_field_finding(
            form_field, IssueReason.LENGTH_VIOLATION,
            f"'{form_field.label}' must be at most {form_field.max_length} characters, got {length}",
        ))
    if form_field.pattern and not re.search(form_field.pattern, value):
        findings.append(_field_finding(
            form_field, IssueReason.PATTERN_MISMATCH,
            f"'{form_field.label}' does not match the pattern {form_field.pattern}",
        ))
    if not form_field.multiline and "\n" in value:
        findings.append(_field_finding(
            form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a single line"
        ))
    return findings


def _check_number(form_field: NumberField, value: Any) -> List[Finding]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a number")]
    findings = []
    if form_field.integer and not float(value).is_integer():
        findings.append(_field_finding(
            form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a whole number, got {value}"
        ))
    if form_field.min is not None and value < form_field.min:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE,
            f"'{form_field.label}' must be at least {form_field.min}, got {value}",
        ))
    if form_field.max is not None and value > form_field.max:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE,
            f"'{form_field.label}' must be at most {form_field.max}, got {value}",
        ))
    return findings


def _check_string_list(form_field: StringListField, value: Any) -> List[Finding]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a list of text items")]
    findings = _count_findings(
        form_field, len(value), form_field.min_items, form_field.max_items,
        IssueReason.ITEM_COUNT_VIOLATION, "items",
    )
    for position, item in enumerate(value):
        if form_field.item_min_length is not None and len(item) < form_field.item_min_length:
            findings.append(_field_finding(
                form_field, IssueReason.LENGTH_VIOLATION,
                f"Item {position + 1} of '{form_field.label}' must be at least {form_field.item_min_length} characters",
            ))
        if form_field.item_max_length is not None and len(item) > form_field.item_max_length:
            findings.append(_field_finding(
                form_field, IssueReason.LENGTH_VIOLATION,
                f"Item {position + 1} of '{form_field.label}' must be at most {form_field.item_max_length} characters",
            ))
    if form_field.unique_items:
        repeated = _duplicates(value)
        if repeated:
            findings.append(_field_finding(
                form_field, IssueReason.DUPLICATE_ITEMS,
                f"'{form_field.label}' repeats: {', '.join(repeated)}",
            ))
    return findings


def _check_url_list(form_field: UrlListField, value: Any) -> List[Finding]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a list of URLs")]
    findings = _count_findings(
        form_field, len(value), form_field.min_items, form_field.max_items,
        IssueReason.ITEM_COUNT_VIOLATION, "URLs",
    )
    for item in value:
        if not is_absolute_url(item):
            findings.append(_field_finding(
                form_field, IssueReason.INVALID_VALUE, f"'{item}' in '{form_field.label}' is not an absolute URL"
            ))
    if form_field.unique_items:
        repeated = _duplicates(value)
        if repeated:
            findings.append(_field_finding(
                form_field, IssueReason.DUPLICATE_ITEMS,
                f"'{form_field.label}' repeats: {', '.join(repeated)}",
            ))
    return findings


def _check_checkboxes(form_field: CheckboxesField, value: Any) -> List[Finding]:
    if not isinstance(value, dict):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must map options to states")]
    allowed_states = CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode]
    known = option_ids(form_field)
    findings = []
    for option_id, state in value.items():
        ref = f"{form_field.id}.{option_id}"
        if option_id not in known:
            findings.append(Finding(
                ref, IssueScope.OPTION, IssueReason.INVALID_OPTION,
                f"'{option_id}' is not an option of '{form_field.label}'",
            ))
        elif state not in allowed_states:
            findings.append(Finding(
                ref, IssueScope.OPTION, IssueReason.INVALID_VALUE,
                f"'{state}' is not a {form_field.checkbox_mode} checkbox state; "
                f"expected one of: {', '.join(allowed_states)}",
            ))
    return findings


def _check_single_select(form_field: BaseField, value: Any) -> List[Finding]:
    if value not in option_ids(form_field):
        return [_field_finding(
            form_field, IssueReason.INVALID_OPTION, f"'{value}' is not an option of '{form_field.label}'"
        )]
    return []


def _check_multi_select(form_field: MultiSelectField, value: Any) -> List[Finding]:
    if not isinstance(value, list):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a list of options")]
    known = option_ids(form_field)
    findings = [
        _field_finding(form_field, IssueReason.INVALID_OPTION, f"'{item}' is not an option of '{form_field.label}'")
        for item in value
        if item not in known
    ]
    findings.extend(_count_findings(
        form_field, len(value), form_field.min_selections, form_field.max_selections,
        IssueReason.ITEM_COUNT_VIOLATION, "selections",
    ))
    return findings


def _check_url(form_field: BaseField, value: Any) -> List[Finding]:
    if not is_absolute_url(value):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{value}' is not an absolute URL")]
    return []


def _check_date(form_field: BaseField, value: Any) -> List[Finding]:
    if not is_valid_date(value):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{value}' is not a date in YYYY-MM-DD form")]
    findings = []
    if form_field.min is not None and value < form_field.min:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE, f"'{form_field.label}' must be on or after {form_field.min}"
        ))
    if form_field.max is not None and value > form_field.max:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE, f"'{form_field.label}' must be on or before {form_field.max}"
        ))
    return findings


def _check_year(form_field: BaseField, value: Any) -> List[Finding]:
    if isinstance(value, bool) or not isinstance(value, int):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a year")]
    findings = []
    if form_field.min is not None and value < form_field.min:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE, f"'{form_field.label}' must be {form_field.min} or later"
        ))
    if form_field.max is not None and value > form_field.max:
        findings.append(_field_finding(
            form_field, IssueReason.OUT_OF_RANGE, f"'{form_field.label}' must be {form_field.max} or earlier"
        ))
    return findings


_CELL_TYPE_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "string": lambda value: isinstance(value, str),
    "number": lambda value: isinstance(value, (int, float)) and not isinstance(value, bool),
    "url": is_absolute_url,
    "date": is_valid_date,
    "year": lambda value: isinstance(value, int) and not isinstance(value, bool),
}


def _check_table(form_field: TableField, value: Any) -> List[Finding]:
    if not isinstance(value, list):
        return [_field_finding(form_field, IssueReason.INVALID_VALUE, f"'{form_field.label}' must be a list of rows")]
    findings = _count_findings(
        form_field, len(value), form_field.min_rows, form_field.max_rows,
        IssueReason.ROW_COUNT_VIOLATION, "rows",
    )
    for row_index, row in enumerate(value):
        for column in form_field.columns:
            cell = row.get(column.id) if isinstance(row, dict) else None
            ref = f"{form_field.id}[{row_index}].{column.id}"
            if cell is None or (isinstance(cell, CellResponse) and cell.is_empty):
                if column.required:
                    findings.append(Finding(
                        ref, IssueScope.CELL, IssueReason.CELL_REQUIRED,
                        f"Row {row_index + 1} of '{form_field.label}' needs a value for '{column.label}'",
                    ))
                continue
            if cell.state is not AnswerState.ANSWERED:
                continue
            if not _CELL_TYPE_CHECKS[column.type.value](cell.value):
                findings.append(Finding(
                    ref, IssueScope.CELL, IssueReason.CELL_TYPE_MISMATCH,
                    f"Row {row_index + 1} of '{form_field.label}': '{cell.value}' is not a valid "
                    f"{column.type} for '{column.label}'",
                ))
    return findings


VALUE_CHECKS: Dict[FieldKind, Callable[[Any, Any], List[Finding]]] = {
    FieldKind.STRING: _check_string,
    FieldKind.NUMBER: _check_number,
    FieldKind.STRING_LIST: _check_string_list,
    FieldKind.CHECKBOXES: _check_checkboxes,
    FieldKind.SINGLE_SELECT: _check_single_select,
    FieldKind.MULTI_SELECT: _check_multi_select,
    FieldKind.URL: _check_url,
    FieldKind.URL_LIST: _check_url_list,
    FieldKind.DATE: _check_date,
    FieldKind.YEAR: _check_year,
    FieldKind.TABLE: _check_table,
}


def check_value(form_field: BaseField, value: Any) -> List[Finding]:
    """Static constraint checks for a non-null answered value."""
    if value is None:
        return []
    return VALUE_CHECKS[form_field.kind](form_field, value)


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------

def _checkbox_completeness(form_field: CheckboxesField, values: Dict[str, str]) -> List[Finding]:
    states = [values.get(option_id, CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode][0])
              for option_id in option_ids(form_field)]
    findings = []
    if form_field.checkbox_mode is CheckboxMode.EXPLICIT:
        open_count = sum(1 for state in states if state not in ("yes", "no"))
        if open_count:
            findings.append(_field_finding(
                form_field, IssueReason.CHECKBOX_INCOMPLETE,
                f"'{form_field.label}' needs a yes or no on {open_count} more option(s)",
            ))
        return findings

    if form_field.required:
        finished = ("done", "na") if form_field.checkbox_mode is CheckboxMode.MULTI else ("done",)
        open_count = sum(1 for state in states if state not in finished)
        if open_count:
            findings.append(_field_finding(
                form_field, IssueReason.CHECKBOX_INCOMPLETE,
                f"'{form_field.label}' has {open_count} unfinished option(s)",
            ))
    if form_field.min_done is not None:
        done = sum(1 for state in states if state == "done")
        if done < form_field.min_done:
            findings.append(_field_finding(
                form_field, IssueReason.CHECKBOX_INCOMPLETE,
                f"'{form_field.label}' needs at least {form_field.min_done} done, has {done}",
            ))
    return findings


def check_completeness(form_field: BaseField, response: FieldResponse) -> List[Finding]:
    """
    Findings about whether a field is filled enough.

    Skipped and aborted fields are always complete.
    """
    if response.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
        return []
    if not response.has_value:
        if form_field.is_required:
            return [_field_finding(
                form_field, IssueReason.MISSING_REQUIRED, f"'{form_field.label}' is required"
            )]
        return []
    if isinstance(form_field, CheckboxesField):
        return _checkbox_completeness(form_field, response.value)
    return []


def field_findings(form_field: BaseField, response: FieldResponse) -> List[Finding]:
    """Every finding for one field, value checks first."""
    if response.state in (AnswerState.SKIPPED, AnswerState.ABORTED):
        return []
    findings = []
    if response.state is AnswerState.ANSWERED:
        findings.extend(check_value(form_field, response.value))
    findings.extend(check_completeness(form_field, response))
    return findings


def to_issue(form_field: BaseField, finding: Finding,
             severity: IssueSeverity = IssueSeverity.REQUIRED) -> Issue:
    return Issue(
        ref=finding.ref,
        scope=finding.scope,
        reason=finding.reason,
        severity=severity,
        priority=priority_tier(form_field.priority, finding.reason, form_field.is_required),
        message=finding.message,
        field_id=form_field.id,
    )


def validate(form: ParsedForm) -> List[Issue]:
    """Return every issue in the form, in document order."""
    issues: List[Issue] = []
    for form_field in form.iter_fields():
        response = form.get_response(form_field.id)
        for finding in field_findings(form_field, response):
            issues.append(to_issue(form_field, finding))
    logger.debug(f"Validated form '{form.schema.id}': {len(issues)} issues")
    return issues
