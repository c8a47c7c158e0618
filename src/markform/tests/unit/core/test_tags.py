"""Tests for the annotation tag scanner and attribute lists."""

import pytest

from markform.core.tags import (
    TAG_TABLE,
    TagType,
    detect_syntax,
    fenced_ranges,
    format_attributes,
    format_open_tag,
    parse_attributes,
    scan_tags,
)
from markform.exceptions import FormParseError
from markform.models.enums import FieldKind, SyntaxStyle


class TestAttributes:
    """Tests for attribute list parsing and rendering."""

    def test_value_types(self):
        attrs = parse_attributes(
            'id="a" count=3 ratio=0.5 on=true off=false nothing=null '
            'ids=["x", "y"] spec={type: "year", required: true}'
        )
        assert attrs == {
            "id": "a",
            "count": 3,
            "ratio": 0.5,
            "on": True,
            "off": False,
            "nothing": None,
            "ids": ["x", "y"],
            "spec": {"type": "year", "required": True},
        }

    def test_escaped_quotes(self):
        assert parse_attributes(r'label="Say \"hi\""') == {"label": 'Say "hi"'}

    def test_negative_number(self):
        assert parse_attributes("min=-5") == {"min": -5}

    @pytest.mark.parametrize("text", [
        'id=',
        'id="open',
        '="x"',
        'id=bare',
        'a=1 a=2',
        'ids=[1 2]',
    ])
    def test_malformed_lists(self, text):
        with pytest.raises(FormParseError):
            parse_attributes(text)

    def test_format_round_trip(self):
        attrs = {"label": 'A "quoted" \\ label', "kind": "string", "id": "x", "min": 2.0, "tags": ["a"]}
        rendered = format_attributes(attrs)
        assert rendered.startswith('kind="string" id="x"')
        assert "min=2" in rendered
        assert parse_attributes(rendered) == {
            "kind": "string",
            "id": "x",
            "label": 'A "quoted" \\ label',
            "min": 2,
            "tags": ["a"],
        }

    def test_format_open_tag_styles(self):
        assert format_open_tag("form", {"id": "f"}, SyntaxStyle.MARKDOC) == '{% form id="f" %}'
        assert format_open_tag("form", {"id": "f"}, SyntaxStyle.COMMENT) == '<!-- f:form id="f" -->'


class TestScanTags:
    """Tests for building the tag tree."""

    def test_nested_tree(self):
        text = '{% form id="f" %}\n{% group id="g" %}\n{% field kind="string" id="a" label="A" %}\n{% /field %}\n{% /group %}\n{% /form %}'
        roots = scan_tags(text)
        assert len(roots) == 1
        form = roots[0]
        assert form.node_type is TagType.FORM
        group = form.children[0]
        assert group.node_type is TagType.GROUP
        field = group.children[0]
        assert field.node_type is TagType.FIELD
        assert field.attributes["id"] == "a"
        assert field.line == 3
        assert [node.name for node in form.walk()] == ["form", "group", "field"]

    def test_comment_syntax(self):
        text = '<!-- f:form id="f" -->\n<!-- f:field kind="string" id="a" label="A" -->\n<!-- /f:field -->\n<!-- /f:form -->'
        roots = scan_tags(text)
        assert roots[0].syntax is SyntaxStyle.COMMENT
        assert roots[0].children[0].attributes["label"] == "A"

    def test_self_closing(self):
        roots = scan_tags('{% form id="f" %}{% field kind="string" id="a" label="A" /%}{% /form %}')
        field = roots[0].children[0]
        assert field.self_closing
        assert field.body('') == ''

    def test_tags_inside_fences_are_ignored(self):
        text = '{% form id="f" %}\n```\n{% bogus %}\n```\n{% /form %}'
        roots = scan_tags(text)
        assert roots[0].children == []

    def test_tag_like_text_in_fence_does_not_hide_later_tags(self):
        text = (
            '{% form id="f" %}\n```value\nuse {% raw\n```\n'
            '{% field kind="string" id="a" label="A" %}\n{% /field %}\n{% /form %}'
        )
        roots = scan_tags(text)
        assert [node.attributes.get("id") for node in roots[0].children] == ["a"]

    def test_comment_like_text_in_fence_does_not_hide_later_tags(self):
        text = (
            '<!-- f:form id="f" -->\n```value\nsee <!-- f:x\n```\n'
            '<!-- f:field kind="string" id="a" label="A" -->\n<!-- /f:field -->\n<!-- /f:form -->'
        )
        roots = scan_tags(text)
        assert [node.attributes.get("id") for node in roots[0].children] == ["a"]

    def test_body_offsets(self):
        text = '{% form id="f" %}inside{% /form %}'
        form = scan_tags(text)[0]
        assert form.body(text) == "inside"
        assert form.span.start == 0
        assert form.span.end == len(text)

    def test_unknown_tag(self):
        with pytest.raises(FormParseError) as exc_info:
            scan_tags('{% form id="f" %}{% widget %}{% /form %}')
        assert "widget" in str(exc_info.value)

    def test_mismatched_close(self):
        with pytest.raises(FormParseError):
            scan_tags('{% form id="f" %}{% group id="g" %}{% /form %}')

    def test_unclosed_tag(self):
        with pytest.raises(FormParseError):
            scan_tags('{% form id="f" %}')

    def test_stray_close(self):
        with pytest.raises(FormParseError):
            scan_tags('{% /form %}')


class TestTagTable:
    """Tests for tag name metadata."""

    def test_kind_aliases(self):
        assert TAG_TABLE["string-field"].kind is FieldKind.STRING
        assert TAG_TABLE["table-field"].tag_type is TagType.FIELD
        assert TAG_TABLE["field-group"].tag_type is TagType.GROUP
        assert TAG_TABLE["instructions"].tag_type is TagType.DOC

    def test_detect_syntax(self):
        assert detect_syntax('<!-- f:form id="f" -->') is SyntaxStyle.COMMENT
        assert detect_syntax('{% form id="f" %}') is SyntaxStyle.MARKDOC
        assert detect_syntax("no tags") is SyntaxStyle.MARKDOC

    def test_fenced_ranges(self):
        text = "a\n```value\nx\n```\nb"
        ranges = fenced_ranges(text)
        assert len(ranges) == 1
        assert text.index("x") in ranges[0]
        assert text.index("b") not in ranges[0]
