from __future__ import annotations

import pytest

from mdforms.typing.enums import CheckboxMode, ExportFormat, FieldKind, Priority, SyntaxStyle


def test_field_kind_from_str() -> None:
    assert FieldKind.from_str("url_list") == FieldKind.URL_LIST


def test_field_kind_from_str_raises_on_invalid_value() -> None:
    with pytest.raises(ValueError, match="Unsupported FieldKind value 'text'. Expected one of: string, number"):
        FieldKind.from_str("text")


@pytest.mark.parametrize(
    ("kind", "chooser", "text_entry"),
    [
        (FieldKind.STRING, False, True),
        (FieldKind.URL_LIST, False, True),
        (FieldKind.CHECKBOXES, True, False),
        (FieldKind.SINGLE_SELECT, True, False),
        (FieldKind.TABLE, False, False),
    ],
)
def test_field_kind_categories(kind: FieldKind, chooser: bool, text_entry: bool) -> None:  # noqa: FBT001
    assert kind.is_chooser is chooser
    assert kind.is_text_entry is text_entry


def test_priority_weights_are_ordered() -> None:
    assert [Priority.from_str(value).weight for value in ("high", "medium", "low")] == [3, 2, 1]


def test_to_str_returns_plain_value() -> None:
    assert CheckboxMode.EXPLICIT.to_str() == "explicit"
    assert SyntaxStyle.COMMENTS.to_str() == "comments"
    assert ExportFormat.MARKDOWN == "markdown"
