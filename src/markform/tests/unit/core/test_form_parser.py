"""
Tests for the structural parser: document text to ParsedForm.
"""

import pytest

from markform.core.parser import decode_scalar_text, parse_form, parse_value_fence
from markform.exceptions import FormatError, FormParseError
from markform.models.enums import AnswerState, CheckboxMode, ColumnType, FieldKind, SyntaxStyle
from markform.models.responses import CellResponse, FieldResponse


def wrap(body: str) -> str:
    """Place field markup inside a minimal form."""
    return f'{{% form id="f" %}}\n{body}\n{{% /form %}}\n'


class TestCompanyForm:
    """Tests against the full sample document."""

    def test_schema_shape(self, company_form):
        schema = company_form.schema
        assert schema.id == "company"
        assert schema.title == "Company Research"
        assert [group.id for group in schema.groups] == ["overview", "assessment"]
        assert schema.field_ids == [
            "name", "employees", "products", "website", "sources", "founded", "ipo_year",
            "size", "markets", "tasks", "confirm", "execs",
        ]

    def test_field_attributes(self, company_form):
        name = company_form.get_field("name")
        assert name.kind is FieldKind.STRING
        assert name.required
        employees = company_form.get_field("employees")
        assert employees.integer
        assert employees.min == 1
        assert company_form.get_field("products").max_items == 5
        confirm = company_form.get_field("confirm")
        assert confirm.checkbox_mode is CheckboxMode.EXPLICIT
        assert [option.id for option in confirm.options] == ["verified", "cited"]
        execs = company_form.get_field("execs")
        assert execs.column_ids == ["name", "title", "since"]
        assert execs.columns[2].type is ColumnType.YEAR

    def test_scalar_responses(self, company_form):
        assert company_form.get_response("name") == FieldResponse.answered("Acme Corp")
        assert company_form.get_response("employees").value == 250
        assert company_form.get_response("products").value == ["Rockets", "Anvils"]
        assert company_form.get_response("website").value == "https://acme.example.com"
        assert company_form.get_response("sources") == FieldResponse.unanswered()
        assert company_form.get_response("founded").value == "1949-03-01"
        assert company_form.get_response("ipo_year") == FieldResponse.skipped("Company is private")

    def test_chooser_responses(self, company_form):
        assert company_form.get_response("size").value == "medium"
        assert company_form.get_response("markets").value == ["na", "asia"]
        assert company_form.get_response("tasks").value == {
            "filings": "done",
            "interviews": "incomplete",
            "visit": "todo",
            "audit": "na",
        }
        assert company_form.get_response("confirm").value == {"verified": "yes", "cited": "unfilled"}

    def test_table_response(self, company_form):
        rows = company_form.get_response("execs").value
        assert len(rows) == 2
        assert rows[0]["since"] == CellResponse.answered(1950)
        assert rows[1]["title"].value == "CTO | CFO"
        assert rows[1]["since"].state is AnswerState.SKIPPED

    def test_docs_and_notes(self, company_form):
        assert company_form.description_for("company") == "Research a company."
        assert [doc.tag for doc in company_form.docs_for("name")] == ["instructions"]
        assert len(company_form.notes) == 1
        note = company_form.notes[0]
        assert (note.id, note.ref, note.role, note.text) == ("n1", "name", "agent", "Confirmed via registry.")

    def test_metadata(self, company_form):
        metadata = company_form.metadata
        assert metadata.spec_version == "MF/0.1"
        assert metadata.roles == ["user", "agent"]
        assert metadata.extra["title"] == "Company research"

    def test_source_index(self, company_form, company_text):
        index = company_form.source_index
        for key in ("form", "group:overview", "field:execs", "note:n1",
                    "doc:description:company", "doc:instructions:name"):
            assert key in index
        span = index.get("field:name")
        assert company_text[span.start:span.end].startswith('{% field kind="string" id="name"')
        assert company_text[span.start:span.end].endswith("{% /field %}")
        assert "Acme Corp" in company_text[span.inner_start:span.inner_end]
        assert index.frontmatter.start == 0

    def test_baselines(self, company_form):
        assert company_form.baseline_responses == company_form.responses
        assert company_form.baseline_responses is not company_form.responses
        assert company_form.baseline_note_ids == ["n1"]
        assert company_form.syntax is SyntaxStyle.MARKDOC


class TestStructure:
    """Tests for grouping, syntax and body decoding."""

    def test_implicit_groups(self):
        form = parse_form(wrap(
            '{% field kind="string" id="a" label="A" %}{% /field %}\n'
            '{% group id="g" %}\n{% field kind="string" id="b" label="B" %}{% /field %}\n{% /group %}\n'
            '{% field kind="string" id="c" label="C" %}{% /field %}'
        ))
        groups = form.schema.groups
        assert [group.id for group in groups] == ["_default", "g", "_default_2"]
        assert groups[0].implicit and not groups[1].implicit
        assert form.schema.field_ids == ["a", "b", "c"]

    def test_nested_groups(self):
        form = parse_form(wrap(
            '{% group id="outer" %}\n{% group id="inner" %}\n'
            '{% field kind="year" id="y" label="Y" %}{% /field %}\n'
            '{% /group %}\n{% /group %}'
        ))
        assert [group.id for group in form.schema.iter_groups()] == ["outer", "inner"]

    def test_comment_syntax(self, survey_form):
        assert survey_form.syntax is SyntaxStyle.COMMENT
        assert survey_form.get_response("q1").value == "Yes"
        assert survey_form.get_response("q2").value == "b"

    def test_kind_alias_tags(self):
        form = parse_form(wrap('{% number-field id="n" label="N" %}\n```value\n3.5\n```\n{% /number-field %}'))
        assert form.get_field("n").kind is FieldKind.NUMBER
        assert form.get_response("n").value == 3.5
        assert form.source_index.get("field:n").tag_type == "number-field"

    def test_empty_fence_is_answered_null(self):
        form = parse_form(wrap('{% field kind="string" id="a" label="A" %}\n```value\n```\n{% /field %}'))
        assert form.get_response("a") == FieldResponse.answered(None)

    def test_sentinel_without_state_attribute(self):
        form = parse_form(wrap('{% field kind="url" id="u" label="U" %}\n```value\n%ABORT% (offline)\n```\n{% /field %}'))
        assert form.get_response("u") == FieldResponse.aborted("offline")

    def test_state_attribute_without_body(self):
        form = parse_form(wrap('{% field kind="table" id="t" label="T" columnIds=["a"] state="skipped" %}{% /field %}'))
        assert form.get_response("t") == FieldResponse.skipped()

    def test_fence_may_hold_tag_text(self):
        form = parse_form(wrap(
            '{% field kind="string" id="a" label="A" multiline=true %}\n'
            '````value\n{% field %}\n```\n````\n{% /field %}'
        ))
        assert form.get_response("a").value == "{% field %}\n```"

    def test_option_docs(self):
        form = parse_form(wrap(
            '{% field kind="multi_select" id="m" label="M" %}\n- [ ] One {% #one %}\n{% /field %}\n'
            '{% instructions ref="m.one" %}Pick it.{% /instructions %}'
        ))
        assert form.docs_for("m.one")[0].body == "Pick it."
        assert form.get_response("m") == FieldResponse.unanswered()

    def test_untouched_checkboxes_are_unanswered(self):
        form = parse_form(wrap(
            '{% field kind="checkboxes" id="c" label="C" %}\n- [ ] One {% #one %}\n- [ ] Two {% #two %}\n{% /field %}'
        ))
        assert form.get_response("c") == FieldResponse.unanswered()


class TestParseErrors:
    """Structural problems refuse the whole document."""

    @pytest.mark.parametrize("body", [
        '{% field kind="string" id="a" label="A" %}{% /field %}\n{% field kind="string" id="a" label="B" %}{% /field %}',
        '{% field kind="string" id="a" %}{% /field %}',
        '{% field kind="color" id="a" label="A" %}{% /field %}',
        '{% field id="a" label="A" %}{% /field %}',
        '{% string-field kind="number" id="a" label="A" %}{% /string-field %}',
        '{% description ref="missing" %}text{% /description %}',
        '{% field kind="string" id="a" label="A" %}\nloose text\n{% /field %}',
        '{% field kind="number" id="a" label="A" %}\n```value\nmany\n```\n{% /field %}',
        '{% field kind="number" id="a" label="A" min=5 max=1 %}{% /field %}',
        '{% field kind="string" id="a" label="A" %}\n```value\nx\n```\n```value\ny\n```\n{% /field %}',
        '{% field kind="string" id="a" label="A" state="skipped" %}\n```value\nhello\n```\n{% /field %}',
        '{% field kind="string" id="a" label="A" state="later" %}{% /field %}',
        '{% field kind="checkboxes" id="c" label="C" checkboxMode="simple" %}\n- [/] One {% #one %}\n{% /field %}',
        '{% field kind="single_select" id="s" label="S" %}\n- [x] One {% #one %}\n- [x] Two {% #two %}\n{% /field %}',
        '{% field kind="single_select" id="s" label="S" state="skipped" %}\n- [x] One {% #one %}\n{% /field %}',
        '{% field kind="single_select" id="s" label="S" %}\nnot an option\n{% /field %}',
        '{% field kind="single_select" id="s" label="S" %}{% /field %}',
        '{% field kind="table" id="t" label="T" %}{% /field %}',
        '{% field kind="table" id="t" label="T" columnIds=["a"] %}\n| b |\n| x |\n{% /field %}',
        '{% note id="n" ref="f" %}text{% /note %}',
    ])
    def test_rejected_bodies(self, body):
        with pytest.raises(FormParseError):
            parse_form(wrap(body))

    def test_error_carries_line(self):
        with pytest.raises(FormParseError) as exc_info:
            parse_form(wrap('\n\n{% field kind="color" id="a" label="A" %}{% /field %}'))
        assert exc_info.value.line_number == 4
        assert "line 4" in str(exc_info.value)

    def test_no_form(self):
        with pytest.raises(FormParseError):
            parse_form("# Just prose\n")

    def test_two_forms(self):
        with pytest.raises(FormParseError):
            parse_form('{% form id="a" %}{% /form %}\n{% form id="b" %}{% /form %}')

    def test_field_outside_form(self):
        with pytest.raises(FormParseError):
            parse_form('{% form id="a" %}{% /form %}\n{% field kind="string" id="x" label="X" %}{% /field %}')

    def test_bad_frontmatter(self):
        with pytest.raises(FormatError):
            parse_form('---\ntitle: [oops\n---\n{% form id="a" %}{% /form %}')


class TestBodyHelpers:
    """Tests for value fence extraction and scalar decoding."""

    def test_parse_value_fence(self):
        content, rest = parse_value_fence("\n```value\nhello\n```\n")
        assert content == "hello"
        assert rest.strip() == ""

    def test_no_fence(self):
        assert parse_value_fence("plain") == (None, "plain")

    def test_decode_lists(self):
        response = decode_scalar_text(FieldKind.STRING_LIST, "a\n\n  b  \n")
        assert response.value == ["a", "b"]

    def test_decode_blank_list_is_null(self):
        assert decode_scalar_text(FieldKind.URL_LIST, "   ") == FieldResponse.answered(None)
