"""Tests for the JSON Schema export."""

import pytest
from jsonschema import ValidationError
from jsonschema.validators import validator_for

from markform.core.json_schema import SCHEMA_URLS, form_to_json_schema, form_to_values
from markform.core.parser import parse_form


DATES_FORM = """\
{% form id="dates" %}
{% field kind="date" id="start" label="Start" min="2000-01-01" max="2030-12-31" %}{% /field %}
{% field kind="checkboxes" id="gate" label="Gate" approvalMode="blocking" priority="high" %}
- [ ] Signed off {% #signed %}
{% /field %}
{% /form %}
"""


def check(schema, values):
    validator_class = validator_for(schema)
    validator_class.check_schema(schema)
    validator_class(schema).validate(values)


class TestFormSchema:
    """Tests for the exported document."""

    def test_top_level(self, company_form):
        schema = form_to_json_schema(company_form)
        assert schema["$schema"] == SCHEMA_URLS["2020-12"]
        assert schema["$id"] == "company"
        assert schema["title"] == "Company Research"
        assert schema["description"] == "Research a company."
        assert schema["required"] == ["name", "size", "confirm"]
        assert list(schema["properties"])[:3] == ["name", "employees", "products"]
        assert len(schema["properties"]) == 12

    def test_form_extension(self, company_form):
        extension = form_to_json_schema(company_form)["x-markform"]
        assert extension["spec"] == "MF/0.1"
        assert extension["roles"] == ["user", "agent"]
        assert extension["groups"] == [
            {"id": "overview", "title": "Overview"},
            {"id": "assessment", "title": "Assessment"},
        ]

    def test_field_shapes(self, company_form):
        properties = form_to_json_schema(company_form)["properties"]
        assert properties["employees"]["type"] == "integer"
        assert properties["employees"]["minimum"] == 1
        assert properties["products"]["maxItems"] == 5
        assert properties["website"]["format"] == "uri"
        assert properties["size"]["enum"] == ["small", "medium", "large"]
        assert properties["markets"]["items"]["enum"] == ["na", "eu", "asia"]
        assert properties["confirm"]["properties"]["verified"]["enum"] == ["unfilled", "yes", "no"]
        assert properties["execs"]["items"]["properties"]["since"]["type"] == "integer"
        assert properties["execs"]["items"]["properties"]["since"]["minimum"] == 1000
        assert properties["execs"]["items"]["properties"]["since"]["maximum"] == 9999
        assert properties["name"]["x-markform"] == {"role": "agent", "group": "overview"}

    def test_values_match_schema(self, company_form):
        values = form_to_values(company_form)
        assert "sources" not in values
        assert "ipo_year" not in values
        assert values["size"] == "medium"
        assert values["execs"][1] == {"name": "Road Runner", "title": "CTO | CFO"}
        check(form_to_json_schema(company_form), values)

    def test_out_of_range_value_fails_schema(self, company_form):
        values = dict(form_to_values(company_form), employees=0)
        with pytest.raises(ValidationError):
            check(form_to_json_schema(company_form), values)

    @pytest.mark.parametrize("draft", sorted(SCHEMA_URLS))
    def test_every_draft_is_a_valid_schema(self, company_form, draft):
        schema = form_to_json_schema(company_form, draft=draft)
        assert schema["$schema"] == SCHEMA_URLS[draft]
        check(schema, form_to_values(company_form))

    def test_unknown_draft(self, company_form):
        with pytest.raises(ValueError):
            form_to_json_schema(company_form, draft="draft-04")

    def test_without_extensions(self, company_form):
        schema = form_to_json_schema(company_form, include_extensions=False)
        assert "x-markform" not in schema
        assert all("x-markform" not in prop for prop in schema["properties"].values())


class TestDateAndCheckpointFields:
    """Tests for draft-specific keywords and checkbox extensions."""

    def test_date_bounds(self):
        start = form_to_json_schema(parse_form(DATES_FORM))["properties"]["start"]
        assert start["format"] == "date"
        assert start["formatMinimum"] == "2000-01-01"
        assert start["formatMaximum"] == "2030-12-31"
        assert start["x-markform"]["minDate"] == "2000-01-01"

    def test_draft_07_has_no_format_bounds(self):
        start = form_to_json_schema(parse_form(DATES_FORM), draft="draft-07")["properties"]["start"]
        assert "formatMinimum" not in start
        assert start["x-markform"]["maxDate"] == "2030-12-31"

    def test_checkbox_extension(self):
        gate = form_to_json_schema(parse_form(DATES_FORM))["properties"]["gate"]
        assert gate["type"] == "object"
        assert gate["x-markform"] == {
            "role": "agent",
            "priority": "high",
            "checkboxMode": "multi",
            "approvalMode": "blocking",
        }

    def test_empty_form_values(self):
        assert form_to_values(parse_form(DATES_FORM)) == {}
