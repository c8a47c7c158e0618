"""Tests for semantic validation of responses."""

import dataclasses

import pytest

from markform.core.validator import (
    MAX_BOUND,
    MIN_BOUND,
    check_completeness,
    check_value,
    is_valid_date,
    validate,
)
from markform.models.enums import CheckboxMode, ColumnType, FieldPriority, IssueReason, IssueScope, IssueSeverity
from markform.models.fields import (
    CheckboxesField,
    DateField,
    FieldOption,
    MultiSelectField,
    NumberField,
    StringField,
    StringListField,
    TableColumn,
    TableField,
    UrlListField,
)
from markform.models.issues import priority_tier
from markform.models.responses import CellResponse, FieldResponse


def reasons(findings):
    return [finding.reason for finding in findings]


def with_responses(form, **responses):
    store = dict(form.responses)
    store.update(responses)
    return dataclasses.replace(form, responses=store)


class TestValidate:
    """Tests for whole-form validation."""

    def test_company_form_has_one_issue(self, company_form):
        issues = validate(company_form)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.ref == "confirm"
        assert issue.reason is IssueReason.CHECKBOX_INCOMPLETE
        assert issue.severity is IssueSeverity.REQUIRED
        assert issue.priority == 1

    def test_unanswered_required_fields(self, profile_form):
        issues = validate(profile_form)
        assert [issue.ref for issue in issues] == ["name", "age"]
        assert all(issue.reason is IssueReason.MISSING_REQUIRED for issue in issues)

    def test_skipped_required_field_has_no_issue(self, profile_form):
        form = with_responses(profile_form, name=FieldResponse.skipped("unknown"))
        assert [issue.ref for issue in validate(form)] == ["age"]

    def test_answered_null_is_still_missing(self, profile_form):
        form = with_responses(profile_form, name=FieldResponse.answered(None))
        assert "name" in [issue.ref for issue in validate(form)]

    def test_out_of_range_value(self, profile_form):
        form = with_responses(
            profile_form,
            name=FieldResponse.answered("Ann"),
            age=FieldResponse.answered(150),
        )
        issues = validate(form)
        assert len(issues) == 1
        assert issues[0].reason is IssueReason.OUT_OF_RANGE
        assert issues[0].scope is IssueScope.FIELD

    def test_validate_does_not_modify_form(self, company_form):
        before = dict(company_form.responses)
        validate(company_form)
        assert company_form.responses == before


class TestValueChecks:
    """Tests for per-kind value checks."""

    def test_string_constraints(self):
        form_field = StringField(id="code", label="Code", pattern=r"^[A-Z]+$", min_length=2, max_length=4)
        assert check_value(form_field, "ABC") == []
        assert reasons(check_value(form_field, "A")) == [IssueReason.LENGTH_VIOLATION]
        assert reasons(check_value(form_field, "abcde")) == [
            IssueReason.LENGTH_VIOLATION, IssueReason.PATTERN_MISMATCH,
        ]
        assert reasons(check_value(form_field, "A\nB")) == [
            IssueReason.PATTERN_MISMATCH, IssueReason.INVALID_VALUE,
        ]

    def test_number_constraints(self):
        form_field = NumberField(id="n", label="N", min=0, max=10, integer=True)
        assert check_value(form_field, 5) == []
        assert reasons(check_value(form_field, 2.5)) == [IssueReason.INVALID_VALUE]
        assert reasons(check_value(form_field, -1)) == [IssueReason.OUT_OF_RANGE]
        assert reasons(check_value(form_field, True)) == [IssueReason.INVALID_VALUE]

    def test_null_is_never_checked(self):
        assert check_value(NumberField(id="n", label="N", min=1), None) == []

    def test_list_bounds(self):
        form_field = StringListField(id="l", label="L", min_items=2, max_items=3, unique_items=True)
        low = check_value(form_field, ["a"])
        assert reasons(low) == [IssueReason.ITEM_COUNT_VIOLATION]
        assert low[0].bound == MIN_BOUND
        high = check_value(form_field, ["a", "b", "c", "d"])
        assert high[0].bound == MAX_BOUND
        assert reasons(check_value(form_field, ["a", "a"])) == [IssueReason.DUPLICATE_ITEMS]

    def test_url_list(self):
        form_field = UrlListField(id="u", label="U")
        assert check_value(form_field, ["https://a.example"]) == []
        assert reasons(check_value(form_field, ["not a url"])) == [IssueReason.INVALID_VALUE]

    def test_multi_select(self):
        form_field = MultiSelectField(
            id="m", label="M", max_selections=1,
            options=[FieldOption("a", "A"), FieldOption("b", "B")],
        )
        assert reasons(check_value(form_field, ["a", "z"])) == [
            IssueReason.INVALID_OPTION, IssueReason.ITEM_COUNT_VIOLATION,
        ]

    def test_checkbox_states(self):
        form_field = CheckboxesField(
            id="c", label="C", checkbox_mode=CheckboxMode.SIMPLE,
            options=[FieldOption("a", "A")],
        )
        findings = check_value(form_field, {"a": "na", "z": "done"})
        assert [finding.ref for finding in findings] == ["c.a", "c.z"]
        assert all(finding.scope is IssueScope.OPTION for finding in findings)

    def test_dates(self):
        form_field = DateField(id="d", label="D", min="2000-01-01")
        assert check_value(form_field, "2024-02-29") == []
        assert reasons(check_value(form_field, "2023-02-29")) == [IssueReason.INVALID_VALUE]
        assert reasons(check_value(form_field, "1999-12-31")) == [IssueReason.OUT_OF_RANGE]
        assert is_valid_date("2024-01-01")
        assert not is_valid_date("2024-1-1")

    def test_table_cells(self):
        form_field = TableField(
            id="t", label="T", max_rows=1,
            columns=[
                TableColumn("name", "Name", required=True),
                TableColumn("score", "Score", ColumnType.NUMBER),
            ],
        )
        rows = [
            {"name": CellResponse.answered(None), "score": CellResponse.answered("x")},
            {"name": CellResponse.skipped(), "score": CellResponse.answered(1)},
        ]
        findings = check_value(form_field, rows)
        assert reasons(findings) == [
            IssueReason.ROW_COUNT_VIOLATION,
            IssueReason.CELL_REQUIRED,
            IssueReason.CELL_TYPE_MISMATCH,
        ]
        assert findings[1].ref == "t[0].name"
        assert findings[1].scope is IssueScope.CELL


class TestCompleteness:
    """Tests for required and checkbox completion checks."""

    def options(self):
        return [FieldOption("a", "A"), FieldOption("b", "B")]

    def test_required_multi_checkboxes(self):
        form_field = CheckboxesField(id="c", label="C", required=True, options=self.options())
        assert check_completeness(form_field, FieldResponse.answered({"a": "done", "b": "na"})) == []
        findings = check_completeness(form_field, FieldResponse.answered({"a": "done", "b": "active"}))
        assert reasons(findings) == [IssueReason.CHECKBOX_INCOMPLETE]

    def test_min_done(self):
        form_field = CheckboxesField(id="c", label="C", min_done=2, options=self.options())
        findings = check_completeness(form_field, FieldResponse.answered({"a": "done"}))
        assert reasons(findings) == [IssueReason.CHECKBOX_INCOMPLETE]

    def test_explicit_mode_is_always_required(self):
        form_field = CheckboxesField(
            id="c", label="C", checkbox_mode=CheckboxMode.EXPLICIT, options=self.options(),
        )
        assert reasons(check_completeness(form_field, FieldResponse.unanswered())) == [
            IssueReason.MISSING_REQUIRED,
        ]
        assert check_completeness(form_field, FieldResponse.answered({"a": "yes", "b": "no"})) == []

    def test_optional_unanswered_has_no_finding(self):
        assert check_completeness(StringField(id="s", label="S"), FieldResponse.unanswered()) == []

    def test_aborted_is_complete(self):
        form_field = StringField(id="s", label="S", required=True)
        assert check_completeness(form_field, FieldResponse.aborted()) == []


class TestPriorityTier:
    """Tests for the five priority tiers."""

    @pytest.mark.parametrize("priority,reason,required,tier", [
        (FieldPriority.HIGH, IssueReason.MISSING_REQUIRED, True, 1),
        (FieldPriority.MEDIUM, IssueReason.MISSING_REQUIRED, True, 1),
        (FieldPriority.MEDIUM, IssueReason.OUT_OF_RANGE, False, 2),
        (FieldPriority.LOW, IssueReason.CHECKBOX_INCOMPLETE, True, 2),
        (FieldPriority.LOW, IssueReason.INVALID_VALUE, False, 3),
        (FieldPriority.MEDIUM, IssueReason.OPTIONAL_UNANSWERED, False, 3),
        (FieldPriority.LOW, IssueReason.OPTIONAL_UNANSWERED, False, 4),
    ])
    def test_tiers(self, priority, reason, required, tier):
        assert priority_tier(priority, reason, required) == tier
