"""
Patch Applier - validated, batch-ordered mutation of a form's responses.

Each patch is checked against a working copy that already holds the
effects of earlier accepted patches in the same batch. Rejected patches
leave the working copy untouched and are reported with a reason; accepted
patches are applied in order. The input form is never modified.

Usage:
    >>> new_form, result = apply_patches(form, [{"op": "set", "field_id": "age", "value": 42}])
    >>> result.apply_status
    <ApplyStatus.APPLIED: 'applied'>
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..exceptions import CellValueError, PatchDecodeError
from ..models.enums import (
    AnswerState,
    ApplyStatus,
    CHECKBOX_STATES_BY_MODE,
    CheckboxMode,
    DEFAULT_ROLE,
    FieldKind,
    IssueReason,
    LIST_KINDS,
    PatchOp,
)
from ..models.fields import BaseField, CheckboxesField, TableField, option_ids
from ..models.form import Note, ParsedForm
from ..models.patches import Patch, decode_patches
from ..models.responses import FieldResponse, TableRow
from ..models.results import ApplyResult, PatchRejection, PatchWarning
from .sentinels import detect_sentinel
from .summaries import form_state, is_complete, progress_summary, structure_summary
from .table import check_cell_text, coerce_cell, coerce_date, coerce_number, coerce_url, coerce_year
from .tags import has_tag_syntax
from .validator import MIN_BOUND, check_value, validate


logger = logging.getLogger(__name__)

# Op-specific kind restrictions for the typed setters.
SET_OPS: Dict[PatchOp, FieldKind] = {
    PatchOp.SET_STRING: FieldKind.STRING,
    PatchOp.SET_NUMBER: FieldKind.NUMBER,
    PatchOp.SET_STRING_LIST: FieldKind.STRING_LIST,
    PatchOp.SET_CHECKBOXES: FieldKind.CHECKBOXES,
    PatchOp.SET_SINGLE_SELECT: FieldKind.SINGLE_SELECT,
    PatchOp.SET_MULTI_SELECT: FieldKind.MULTI_SELECT,
    PatchOp.SET_URL: FieldKind.URL,
    PatchOp.SET_URL_LIST: FieldKind.URL_LIST,
    PatchOp.SET_DATE: FieldKind.DATE,
    PatchOp.SET_YEAR: FieldKind.YEAR,
    PatchOp.SET_TABLE: FieldKind.TABLE,
}

# Findings that describe an unfinished form rather than a bad value.
_COMPLETION_REASONS = frozenset({
    IssueReason.MISSING_REQUIRED,
    IssueReason.CHECKBOX_INCOMPLETE,
    IssueReason.CELL_REQUIRED,
})


class PatchRejected(Exception):
    """Raised inside the applier to refuse the current patch."""

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason


class PatchApplier:
    """
    Applies one batch of patches to a working copy of a form.

    A new applier is created for every batch.
    """

    def __init__(self, form: ParsedForm) -> None:
        self.form = form
        self.responses: Dict[str, FieldResponse] = dict(form.responses)
        self.notes: List[Note] = list(form.notes)
        self.warnings: List[PatchWarning] = []
        self._patch_index = 0
        self._field_id: Optional[str] = None
        self._handlers: Dict[PatchOp, Callable[[Patch], None]] = {
            PatchOp.APPEND_ROW: self._append_row,
            PatchOp.APPEND_ITEM: self._append_item,
            PatchOp.DELETE_ROW: self._delete_row,
            PatchOp.DELETE_ITEM: self._delete_item,
            PatchOp.CLEAR_FIELD: self._clear_field,
            PatchOp.SKIP_FIELD: self._skip_field,
            PatchOp.ABORT_FIELD: self._skip_field,
            PatchOp.ADD_NOTE: self._add_note,
            PatchOp.REMOVE_NOTE: self._remove_note,
        }
        self._coercers: Dict[FieldKind, Callable[[BaseField, Any], Any]] = {
            FieldKind.STRING: self._coerce_string,
            FieldKind.NUMBER: self._coerce_number,
            FieldKind.STRING_LIST: self._coerce_string_list,
            FieldKind.CHECKBOXES: self._coerce_checkboxes,
            FieldKind.SINGLE_SELECT: self._coerce_single_select,
            FieldKind.MULTI_SELECT: self._coerce_multi_select,
            FieldKind.URL: self._coerce_url,
            FieldKind.URL_LIST: self._coerce_url_list,
            FieldKind.DATE: self._coerce_date,
            FieldKind.YEAR: self._coerce_year,
            FieldKind.TABLE: self._coerce_table,
        }

    # -- entry ----------------------------------------------------------------

    def apply(self, index: int, patch: Patch) -> None:
        """
        Apply one patch to the working copy.

        Raises:
            PatchRejected: if the patch is refused; the working copy is unchanged.
        """
        self._patch_index = index
        self._field_id = patch.field_id
        if patch.op is PatchOp.SET or patch.op in SET_OPS:
            self._set(patch)
        else:
            self._handlers[patch.op](patch)

    def warn(self, coercion: str, message: str) -> None:
        warning = PatchWarning(self._patch_index, self._field_id, coercion, message)
        logger.warning(f"Patch {self._patch_index}: {message}")
        self.warnings.append(warning)

    def _field(self, patch: Patch) -> BaseField:
        form_field = self.form.get_field(patch.field_id)
        if form_field is None:
            raise PatchRejected(f"Field '{patch.field_id}' does not exist", "unknown-field")
        return form_field

    def _response(self, field_id: str) -> FieldResponse:
        return self.responses.get(field_id, FieldResponse.unanswered())

    def _check(self, form_field: BaseField, value: Any, bounds: Tuple[Optional[str], ...]) -> None:
        for finding in check_value(form_field, value):
            if finding.reason in _COMPLETION_REASONS or finding.bound not in bounds:
                continue
            raise PatchRejected(finding.message, str(finding.reason))

    # -- setters ----------------------------------------------------------------

    def _set(self, patch: Patch) -> None:
        form_field = self._field(patch)
        expected_kind = SET_OPS.get(patch.op)
        if expected_kind is not None and form_field.kind is not expected_kind:
            raise PatchRejected(
                f"Operation '{patch.op}' cannot target {form_field.kind} field '{form_field.id}'",
                "wrong-kind",
            )
        if patch.value is None:
            self.responses[form_field.id] = FieldResponse.unanswered()
            return
        value = self._coercers[form_field.kind](form_field, patch.value)
        self._commit(form_field, value, bounds=(None, "max"))

    def _commit(self, form_field: BaseField, value: Any, bounds: Tuple[Optional[str], ...]) -> None:
        if value is None:
            self.responses[form_field.id] = FieldResponse.answered(None)
            return
        self._check(form_field, value, bounds)
        self.responses[form_field.id] = self._normalize(form_field, value)

    def _normalize(self, form_field: BaseField, value: Any) -> FieldResponse:
        if form_field.kind is FieldKind.TABLE and not value:
            return FieldResponse.unanswered()
        if form_field.kind in LIST_KINDS and not value:
            return FieldResponse.answered(None)
        if isinstance(form_field, CheckboxesField):
            default = CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode][0]
            if all(state == default for state in value.values()):
                return FieldResponse.unanswered()
        if form_field.kind is FieldKind.MULTI_SELECT and not value:
            return FieldResponse.unanswered()
        return FieldResponse.answered(value)

    # -- coercion by kind ---------------------------------------------------------

    def _plain_text(self, form_field: BaseField, value: Any, what: str = "text") -> str:
        if not isinstance(value, str):
            raise PatchRejected(
                f"Field '{form_field.id}' expects {what}, got {type(value).__name__}", "type-mismatch"
            )
        if detect_sentinel(value) is not None:
            raise PatchRejected(
                f"Field '{form_field.id}': sentinel text is not a value; use skip_field or abort_field",
                "sentinel-value",
            )
        return value.strip()

    def _coerce_string(self, form_field: BaseField, value: Any) -> Any:
        text = self._plain_text(form_field, value)
        return text or None

    def _coerce_number(self, form_field: BaseField, value: Any) -> Any:
        if isinstance(value, str):
            self._plain_text(form_field, value, "a number")
            try:
                number = coerce_number(value, form_field.id)
            except CellValueError as e:
                raise PatchRejected(e.message, "type-mismatch") from None
            self.warn("string_to_number", f"Converted text '{value}' to number {number} for '{form_field.id}'")
            return number
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PatchRejected(
                f"Field '{form_field.id}' expects a number, got {type(value).__name__}", "type-mismatch"
            )
        try:
            return coerce_number(value, form_field.id)
        except CellValueError as e:
            raise PatchRejected(e.message, "type-mismatch") from None

    def _text_items(self, form_field: BaseField, value: Any, coercion: str) -> List[str]:
        if isinstance(value, str):
            self.warn(coercion, f"Wrapped a single value in a list for '{form_field.id}'")
            value = [value]
        if not isinstance(value, list):
            raise PatchRejected(
                f"Field '{form_field.id}' expects a list, got {type(value).__name__}", "type-mismatch"
            )
        items = []
        for item in value:
            text = self._plain_text(form_field, item, "text items")
            if "\n" in text:
                raise PatchRejected(f"Items of '{form_field.id}' must be single lines", "invalid-value")
            if text:
                items.append(text)
        return items

    def _coerce_string_list(self, form_field: BaseField, value: Any) -> Any:
        return self._text_items(form_field, value, "string_to_list")

    def _coerce_url(self, form_field: BaseField, value: Any) -> Any:
        text = self._plain_text(form_field, value, "a URL")
        if not text:
            return None
        try:
            return coerce_url(text, form_field.id)
        except CellValueError as e:
            raise PatchRejected(e.message, "invalid-value") from None

    def _coerce_url_list(self, form_field: BaseField, value: Any) -> Any:
        items = self._text_items(form_field, value, "url_to_list")
        try:
            return [coerce_url(item, form_field.id) for item in items]
        except CellValueError as e:
            raise PatchRejected(e.message, "invalid-value") from None

    def _coerce_date(self, form_field: BaseField, value: Any) -> Any:
        text = self._plain_text(form_field, value, "a date")
        if not text:
            return None
        try:
            return coerce_date(text, form_field.id)
        except CellValueError as e:
            raise PatchRejected(e.message, "invalid-value") from None

    def _coerce_year(self, form_field: BaseField, value: Any) -> Any:
        if isinstance(value, str):
            self._plain_text(form_field, value, "a year")
            self.warn("string_to_number", f"Converted text '{value}' to a year for '{form_field.id}'")
        try:
            return coerce_year(value, form_field.id)
        except CellValueError as e:
            raise PatchRejected(e.message, "invalid-value") from None

    def _coerce_checkboxes(self, form_field: CheckboxesField, value: Any) -> Any:
        states = CHECKBOX_STATES_BY_MODE[form_field.checkbox_mode]
        checked, unchecked = ("yes", "no") if form_field.checkbox_mode is CheckboxMode.EXPLICIT else ("done", states[0])
        if isinstance(value, list):
            self.warn("array_to_checkboxes", f"Marked listed options as {checked} for '{form_field.id}'")
            value = {option_id: checked for option_id in value}
        if not isinstance(value, dict):
            raise PatchRejected(
                f"Field '{form_field.id}' expects a mapping of option ids to states", "type-mismatch"
            )

        current = self._response(form_field.id)
        merged = {option_id: states[0] for option_id in option_ids(form_field)}
        if current.state is AnswerState.ANSWERED and current.value:
            merged.update(current.value)
        for option_id, state in value.items():
            if isinstance(state, bool):
                self.warn("boolean_to_checkbox", f"Converted {state} to a checkbox state for '{form_field.id}.{option_id}'")
                state = checked if state else unchecked
            if option_id not in merged:
                raise PatchRejected(
                    f"'{option_id}' is not an option of '{form_field.id}'", str(IssueReason.INVALID_OPTION)
                )
            merged[option_id] = state
        return merged

    def _coerce_single_select(self, form_field: BaseField, value: Any) -> Any:
        if isinstance(value, list) and len(value) == 1:
            value = value[0]
        if not isinstance(value, str):
            raise PatchRejected(f"Field '{form_field.id}' expects one option id", "type-mismatch")
        return value

    def _coerce_multi_select(self, form_field: BaseField, value: Any) -> Any:
        if isinstance(value, str):
            self.warn("option_to_array", f"Wrapped option '{value}' in a list for '{form_field.id}'")
            value = [value]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise PatchRejected(f"Field '{form_field.id}' expects a list of option ids", "type-mismatch")
        return list(dict.fromkeys(value))

    def _coerce_row(self, form_field: TableField, row: Any) -> TableRow:
        if not isinstance(row, dict):
            raise PatchRejected(f"Rows of '{form_field.id}' must be objects keyed by column id", "type-mismatch")
        unknown = [key for key in row if form_field.get_column(key) is None]
        if unknown:
            raise PatchRejected(
                f"Table '{form_field.id}' has no column '{unknown[0]}'", "unknown-column"
            )
        coerced: TableRow = {}
        for column in form_field.columns:
            raw = row.get(column.id)
            if isinstance(raw, str):
                # Covers sentinel reasons too, since they travel in the raw text.
                try:
                    check_cell_text(raw)
                except CellValueError as e:
                    raise PatchRejected(
                        f"Cell '{column.id}' of '{form_field.id}': {e.message}", "invalid-value"
                    ) from None
            try:
                coerced[column.id] = coerce_cell(raw, column.type, column.id)
            except CellValueError as e:
                raise PatchRejected(f"Table '{form_field.id}': {e.message}", "cell-type-mismatch") from None
        return coerced

    def _coerce_table(self, form_field: TableField, value: Any) -> Any:
        if not isinstance(value, list):
            raise PatchRejected(f"Field '{form_field.id}' expects a list of rows", "type-mismatch")
        return [self._coerce_row(form_field, row) for row in value]

    # -- collection ops -------------------------------------------------------

    def _require_kind(self, patch: Patch, form_field: BaseField, kinds) -> None:
        if form_field.kind not in kinds:
            raise PatchRejected(
                f"Operation '{patch.op}' cannot target {form_field.kind} field '{form_field.id}'",
                "wrong-kind",
            )

    def _current_items(self, form_field: BaseField) -> List[Any]:
        response = self._response(form_field.id)
        if response.state is AnswerState.ANSWERED and response.value:
            return list(response.value)
        return []

    def _append_row(self, patch: Patch) -> None:
        form_field = self._field(patch)
        self._require_kind(patch, form_field, (FieldKind.TABLE,))
        new_rows = patch.value if isinstance(patch.value, list) else [patch.value]
        rows = self._current_items(form_field) + [self._coerce_row(form_field, row) for row in new_rows]
        self._commit(form_field, rows, bounds=(None, "max"))

    def _append_item(self, patch: Patch) -> None:
        form_field = self._field(patch)
        self._require_kind(patch, form_field, LIST_KINDS)
        items = self._coercers[form_field.kind](form_field, patch.value if isinstance(patch.value, list) else [patch.value])
        self._commit(form_field, self._current_items(form_field) + items, bounds=(None, "max"))

    def _delete_at(self, patch: Patch, kinds) -> None:
        form_field = self._field(patch)
        self._require_kind(patch, form_field, kinds)
        items = self._current_items(form_field)
        index = patch.index
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
            raise PatchRejected(
                f"Index {index!r} is out of range for '{form_field.id}' ({len(items)} entries)",
                "index-out-of-range",
            )
        del items[index]
        self._check_lower_bounds(form_field, items)
        self.responses[form_field.id] = self._normalize(form_field, items)

    def _check_lower_bounds(self, form_field: BaseField, items: List[Any]) -> None:
        for finding in check_value(form_field, items):
            if finding.bound == MIN_BOUND:
                raise PatchRejected(finding.message, str(finding.reason))

    def _delete_row(self, patch: Patch) -> None:
        self._delete_at(patch, (FieldKind.TABLE,))

    def _delete_item(self, patch: Patch) -> None:
        self._delete_at(patch, LIST_KINDS)

    # -- state ops -----------------------------------------------------------------

    def _clear_field(self, patch: Patch) -> None:
        form_field = self._field(patch)
        self.responses[form_field.id] = FieldResponse.unanswered()

    def _skip_field(self, patch: Patch) -> None:
        form_field = self._field(patch)
        reason = patch.reason
        if reason is not None:
            if not isinstance(reason, str) or "\n" in reason:
                raise PatchRejected("A skip or abort reason must be a single line of text", "invalid-value")
            reason = reason.strip() or None
        if patch.role is not None and not isinstance(patch.role, str):
            raise PatchRejected("Patch 'role' must be a string", "invalid-value")
        if patch.op is PatchOp.SKIP_FIELD:
            self.responses[form_field.id] = FieldResponse.skipped(reason)
        else:
            self.responses[form_field.id] = FieldResponse.aborted(reason)

    # -- notes -----------------------------------------------------------------------

    def _valid_refs(self) -> Set[str]:
        refs = {self.form.schema.id}
        refs.update(group.id for group in self.form.schema.iter_groups() if not group.implicit)
        for form_field in self.form.iter_fields():
            refs.add(form_field.id)
            refs.update(f"{form_field.id}.{option_id}" for option_id in option_ids(form_field))
        return refs

    def _add_note(self, patch: Patch) -> None:
        ref = patch.ref or patch.field_id
        if ref not in self._valid_refs():
            raise PatchRejected(f"Note target '{ref}' does not exist", "unknown-ref")
        if not isinstance(patch.text, str) or not patch.text.strip():
            raise PatchRejected("A note needs non-empty 'text'", "invalid-value")
        if has_tag_syntax(patch.text):
            raise PatchRejected("Note text cannot contain tag markup or code fences", "invalid-value")
        existing = {note.id for note in self.notes}
        note_id = patch.note_id
        if note_id is None:
            counter = len(existing) + 1
            while f"n{counter}" in existing:
                counter += 1
            note_id = f"n{counter}"
        elif not isinstance(note_id, str) or not note_id:
            raise PatchRejected("Note id must be a non-empty string", "invalid-value")
        elif note_id in existing:
            raise PatchRejected(f"Note '{note_id}' already exists", "duplicate-note")
        role = patch.role if isinstance(patch.role, str) and patch.role else DEFAULT_ROLE
        self.notes.append(Note(id=note_id, ref=ref, role=role, text=patch.text.strip()))

    def _remove_note(self, patch: Patch) -> None:
        remaining = [note for note in self.notes if note.id != patch.note_id]
        if len(remaining) == len(self.notes):
            raise PatchRejected(f"Note '{patch.note_id}' does not exist", "unknown-note")
        self.notes = remaining


def _build_result(
    form: ParsedForm,
    status: ApplyStatus,
    applied: List[Dict[str, Any]],
    rejected: List[PatchRejection],
    warnings: List[PatchWarning],
) -> ApplyResult:
    issues = validate(form)
    progress = progress_summary(form, issues)
    return ApplyResult(
        apply_status=status,
        structure_summary=structure_summary(form),
        progress_summary=progress,
        issues=issues,
        is_complete=is_complete(progress),
        form_state=form_state(progress),
        applied_patches=applied,
        rejected_patches=rejected,
        warnings=warnings,
    )


def apply_patches(form: ParsedForm, patches: Any) -> Tuple[ParsedForm, ApplyResult]:
    """
    Apply a batch of patches and return the new form with a result report.

    The batch is decoded as a whole first; an undecodable batch is rejected
    without touching the form. Otherwise every patch is tried in order and
    refused patches are listed in ``rejected_patches``.
    """
    try:
        decoded = decode_patches(patches)
    except PatchDecodeError as e:
        logger.warning(f"Rejected patch batch: {e.message}")
        raw = patches[e.patch_index] if e.patch_index is not None else patches
        rejection = PatchRejection(
            patch_index=e.patch_index if e.patch_index is not None else 0,
            patch=raw if isinstance(raw, dict) else {"value": raw},
            message=e.message,
            reason="decode-error",
        )
        return form, _build_result(form, ApplyStatus.REJECTED, [], [rejection], [])

    applier = PatchApplier(form)
    applied: List[Dict[str, Any]] = []
    rejected: List[PatchRejection] = []
    for index, patch in enumerate(decoded):
        warning_mark = len(applier.warnings)
        try:
            applier.apply(index, patch)
        except PatchRejected as e:
            del applier.warnings[warning_mark:]
            form_field = form.get_field(patch.field_id) if patch.field_id else None
            logger.debug(f"Rejected patch {index} ({patch.op}): {e.message}")
            rejected.append(PatchRejection(
                patch_index=index,
                patch=patch.to_dict(),
                message=e.message,
                field_id=patch.field_id,
                field_kind=form_field.kind.value if form_field is not None else None,
                reason=e.reason,
            ))
            continue
        applied.append(patch.to_dict())

    if decoded and not applied:
        status = ApplyStatus.REJECTED
        new_form = form
    else:
        status = ApplyStatus.PARTIAL if rejected else ApplyStatus.APPLIED
        new_form = dataclasses.replace(form, responses=applier.responses, notes=applier.notes)

    logger.debug(
        f"Applied {len(applied)} of {len(decoded)} patches to '{form.schema.id}' ({status})"
    )
    return new_form, _build_result(new_form, status, applied, rejected, applier.warnings)
