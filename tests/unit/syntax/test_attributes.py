from __future__ import annotations

import pytest

from mdforms.syntax.attributes import (
    AttributeSyntaxError,
    format_attributes,
    format_number,
    format_value,
    parse_attributes,
)


def test_parse_attributes_reads_every_value_type() -> None:
    attrs = parse_attributes(
        'id="company" required=true optional=false min=-1 ratio=0.5 big=1e3 hint=null '
        'tags=["a", "b",] limits={max: 3, "min len": 1}',
    )

    assert attrs == {
        "id": "company",
        "required": True,
        "optional": False,
        "min": -1,
        "ratio": 0.5,
        "big": 1000.0,
        "hint": None,
        "tags": ["a", "b"],
        "limits": {"max": 3, "min len": 1},
    }


def test_parse_attributes_keeps_authored_order() -> None:
    attrs = parse_attributes('label="L" kind="string" id="x"')

    assert list(attrs) == ["label", "kind", "id"]


def test_parse_attributes_reads_shorthand_id_and_classes() -> None:
    assert parse_attributes("#option_a .wide .muted") == {"id": "option_a", "class": ["wide", "muted"]}


def test_parse_attributes_unescapes_strings() -> None:
    attrs = parse_attributes(r'label="say \"hi\"" path="C:\\tmp" text="a\nb"')

    assert attrs["label"] == 'say "hi"'
    assert attrs["path"] == "C:\\tmp"
    assert attrs["text"] == "a\nb"


def test_parse_attributes_empty_text() -> None:
    assert parse_attributes("   ") == {}


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("required", "missing a value"),
        ('id="a" id="b"', "Duplicate attribute 'id'"),
        ('label="open', "Unterminated string"),
        ("flag=maybe", "Expected a string, number"),
        ("=1", "Expected attribute name"),
        ("items=[1 2]", "Expected ']'"),
    ],
)
def test_parse_attributes_rejects_malformed_text(text: str, message: str) -> None:
    with pytest.raises(AttributeSyntaxError, match=message):
        parse_attributes(text)


def test_attribute_syntax_error_keeps_offset() -> None:
    with pytest.raises(AttributeSyntaxError) as exc_info:
        parse_attributes('id="a" broken')

    assert exc_info.value.offset == len('id="a" broken')


def test_format_value_renders_canonical_literals() -> None:
    assert format_value(None) == "null"
    assert format_value(True) == "true"
    assert format_value(7) == "7"
    assert format_value(2.0) == "2"
    assert format_value(0.25) == "0.25"
    assert format_value('say "hi"') == r'"say \"hi\""'
    assert format_value(["a", 1]) == '["a", 1]'
    assert format_value({"id": "len", "max len": 3}) == '{id: "len", "max len": 3}'


def test_format_value_rejects_unknown_types() -> None:
    with pytest.raises(TypeError, match="Cannot render attribute value"):
        format_value(object())


def test_format_number_keeps_large_floats_as_repr() -> None:
    assert format_number(1e20) == "1e+20"
    assert format_number(3) == "3"


def test_format_attributes_sorts_keys_and_drops_none() -> None:
    assert format_attributes({"label": "L", "id": "x", "title": None, "required": True}) == (
        'id="x" label="L" required=true'
    )


def test_formatted_attributes_read_back_unchanged() -> None:
    attrs = {"id": "t", "columnIds": ["a", "b"], "columnTypes": ["string", {"type": "number", "required": True}]}

    assert parse_attributes(format_attributes(attrs)) == attrs
