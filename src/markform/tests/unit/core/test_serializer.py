"""
Tests for document serialization in full and preserve modes, and the plain
Markdown report.
"""

import dataclasses

import pytest

from markform.core.apply import apply_patches
from markform.core.parser import parse_form
from markform.core.serializer import serialize, to_raw_markdown, value_fence
from markform.exceptions import SerializationError
from markform.models.enums import SyntaxStyle
from markform.utils.config import reset_settings


EXPECTED_PROFILE = """\
---
markform:
  spec: MF/0.1
---

{% form id="profile" title="Profile" %}

{% field kind="string" id="name" label="Name" required=true %}
```value
Ann
```
{% /field %}

{% field kind="number" id="age" label="Age" max=120 min=0 required=true %}
{% /field %}

{% /form %}
"""


def patched(form, *patches):
    new_form, _result = apply_patches(form, list(patches))
    return new_form


class TestFullMode:
    """Tests for canonical regeneration."""

    def test_canonical_layout(self, profile_form):
        form = patched(profile_form, {"op": "set_string", "field_id": "name", "value": "Ann"})
        assert serialize(form, "full") == EXPECTED_PROFILE

    def test_company_round_trip(self, company_form):
        text = serialize(company_form, "full")
        reparsed = parse_form(text)
        assert reparsed.model_equals(company_form)
        assert reparsed.docs == company_form.docs
        assert reparsed.notes == company_form.notes
        assert serialize(reparsed, "full") == text

    def test_comment_syntax_round_trip(self, survey_form):
        text = serialize(survey_form, "full")
        assert '<!-- f:form id="survey" title="Survey" -->' in text
        assert "- [x] Option B <!-- #b -->" in text
        reparsed = parse_form(text)
        assert reparsed.syntax is SyntaxStyle.COMMENT
        assert reparsed.model_equals(survey_form)
        assert serialize(reparsed, "full") == text

    def test_round_trip_after_patches(self, company_form):
        form = patched(
            company_form,
            {"op": "set_string", "field_id": "name", "value": "Acme ``` Corp"},
            {"op": "skip_field", "field_id": "founded"},
            {"op": "abort_field", "field_id": "website", "reason": "Site down"},
            {"op": "set_string_list", "field_id": "products", "value": []},
            {"op": "append_row", "field_id": "execs", "value": {"name": "Tweety", "since": "%ABORT%"}},
            {"op": "add_note", "ref": "execs", "text": "Rows checked", "role": "user"},
        )
        text = serialize(form, "full")
        assert 'state="skipped"' in text
        assert "%ABORT% (Site down)" in text
        reparsed = parse_form(text)
        assert reparsed.model_equals(form)
        assert [note.id for note in reparsed.notes] == ["n1", "n2"]

    @pytest.mark.parametrize("value", [
        "use {% raw syntax",
        "half a comment <!-- f:note",
        "both {% and <!-- f:x -->",
    ])
    def test_tag_like_value_text_round_trip(self, company_form, value):
        form = patched(company_form, {"op": "set_string", "field_id": "name", "value": value})
        reparsed = parse_form(serialize(form, "full"))
        assert reparsed.get_response("name").value == value
        assert reparsed.model_equals(form)

    def test_tag_like_value_text_in_comment_syntax(self, survey_form):
        form = patched(survey_form, {"op": "set_string", "field_id": "q1", "value": "see <!-- f:q2"})
        reparsed = parse_form(serialize(form, "full"))
        assert reparsed.get_response("q1").value == "see <!-- f:q2"
        assert reparsed.model_equals(form)

    def test_large_integer_round_trip(self, company_form):
        form = patched(company_form, {"op": "set_number", "field_id": "employees", "value": 10**30})
        text = serialize(form, "full")
        assert "1000000000000000000000000000000" in text
        assert parse_form(text).get_response("employees").value == 10**30

    def test_column_types_left_out_for_plain_string_tables(self, roster_form):
        text = serialize(roster_form, "full")
        assert 'columnIds=["name", "role"] columnLabels=["Name", "Role"]' in text
        assert "columnTypes" not in text

    def test_column_types_written_for_typed_tables(self, company_form):
        text = serialize(company_form, "full")
        assert 'columnTypes=["string", "string", "year"]' in text

    def test_spec_version_override(self, profile_form):
        text = serialize(profile_form, "full", spec_version="MF/0.2")
        assert "spec: MF/0.2" in text

    def test_frontmatter_keys_survive(self, company_form):
        text = serialize(company_form, "full")
        assert text.startswith("---\ntitle: Company research\nmarkform:\n")
        assert parse_form(text).metadata.roles == ["user", "agent"]

    def test_default_mode_comes_from_settings(self, profile_form, monkeypatch):
        monkeypatch.setenv("MARKFORM_SERIALIZER_MODE", "preserve")
        reset_settings()
        assert serialize(profile_form) == profile_form.source

    def test_unknown_mode(self, profile_form):
        with pytest.raises(SerializationError):
            serialize(profile_form, "pretty")


class TestPreserveMode:
    """Tests for minimal-edit output."""

    def test_unchanged_form_is_byte_identical(self, company_form, company_text):
        assert serialize(company_form, "preserve") == company_text

    def test_only_changed_field_is_rewritten(self, company_form, company_text):
        form = patched(company_form, {"op": "set_string", "field_id": "name", "value": "Beta Corp"})
        assert serialize(form, "preserve") == company_text.replace("Acme Corp", "Beta Corp")

    def test_prose_outside_fields_survives(self, company_form):
        form = patched(company_form, {"op": "set_number", "field_id": "employees", "value": 300})
        text = serialize(form, "preserve")
        assert "Intro prose that is not part of any field." in text
        assert "```value\n300\n```" in text
        assert parse_form(text).get_response("employees").value == 300

    def test_removed_note_is_cut(self, company_form, company_text):
        form = patched(company_form, {"op": "remove_note", "note_id": "n1"})
        note_block = '{% note id="n1" ref="name" role="agent" %}\nConfirmed via registry.\n{% /note %}\n\n'
        assert serialize(form, "preserve") == company_text.replace(note_block, "")

    def test_added_note_goes_before_form_close(self, profile_form, profile_text):
        form = patched(profile_form, {"op": "add_note", "ref": "age", "text": "Ask politely"})
        expected = profile_text.replace(
            "{% /form %}",
            '{% note id="n1" ref="age" role="agent" %}\nAsk politely\n{% /note %}\n\n{% /form %}',
        )
        assert serialize(form, "preserve") == expected

    def test_alias_tag_name_is_kept(self):
        source = '{% form id="f" %}\n{% number-field id="n" label="N" %}\n{% /number-field %}\n{% /form %}\n'
        form = patched(parse_form(source), {"op": "set_number", "field_id": "n", "value": 7})
        text = serialize(form, "preserve")
        assert '{% number-field id="n" label="N" %}\n```value\n7\n```\n{% /number-field %}' in text
        assert "kind=" not in text

    def test_comment_syntax_edit(self, survey_form, survey_text):
        form = patched(survey_form, {"op": "set_single_select", "field_id": "q2", "value": "a"})
        text = serialize(form, "preserve")
        assert "- [x] Option A <!-- #a -->" in text
        assert "- [ ] Option B <!-- #b -->" in text
        assert text.startswith('<!-- f:form id="survey" title="Survey" -->')

    def test_requires_source(self, profile_form):
        with pytest.raises(SerializationError):
            serialize(dataclasses.replace(profile_form, source=""), "preserve")


class TestValueFence:
    """Tests for fence sizing."""

    def test_plain_content(self):
        assert value_fence("hello") == "```value\nhello\n```"

    def test_empty_content(self):
        assert value_fence("") == "```value\n```"

    def test_fence_outgrows_content(self):
        assert value_fence("a\n````\nb").startswith("`````value\n")


class TestRawMarkdown:
    """Tests for the tag-free report."""

    def test_company_report(self, company_form):
        text = to_raw_markdown(company_form)
        assert text.startswith("# Company Research\n\nResearch a company.\n\n## Overview\n")
        assert "**Company name:** Acme Corp" in text
        assert "**IPO year:** _Skipped: Company is private_" in text
        assert "**Sources:** _(no answer)_" in text
        assert "**Size:** Medium" in text
        assert "- North America\n- Asia" in text
        assert "- [x] Read filings (done)" in text
        assert "| Road Runner | CTO \\| CFO | %SKIP% |" in text
        assert "{%" not in text
