"""Value and response models."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

from mdforms.typing.enums import AnswerState, CheckboxValue
from mdforms.typing.models.base import WireModel

CellScalar = str | int | float | None


class StringValue(WireModel):
    """Value of a string field."""

    kind: Literal["string"] = "string"
    value: str | None = None


class NumberValue(WireModel):
    """Value of a number field."""

    kind: Literal["number"] = "number"
    value: int | float | None = None


class DateValue(WireModel):
    """Value of a date field."""

    kind: Literal["date"] = "date"
    value: str | None = None


class YearValue(WireModel):
    """Value of a year field."""

    kind: Literal["year"] = "year"
    value: int | None = None


class UrlValue(WireModel):
    """Value of a URL field."""

    kind: Literal["url"] = "url"
    value: str | None = None


class StringListValue(WireModel):
    """Value of a string list field."""

    kind: Literal["string_list"] = "string_list"
    items: list[str] = Field(default_factory=list)


class UrlListValue(WireModel):
    """Value of a URL list field."""

    kind: Literal["url_list"] = "url_list"
    items: list[str] = Field(default_factory=list)


class SingleSelectValue(WireModel):
    """Value of a single-select field."""

    kind: Literal["single_select"] = "single_select"
    selected: str | None = None


class MultiSelectValue(WireModel):
    """Value of a multi-select field."""

    kind: Literal["multi_select"] = "multi_select"
    selected: list[str] = Field(default_factory=list)


class CheckboxesValue(WireModel):
    """Per-option state of a checkboxes field."""

    kind: Literal["checkboxes"] = "checkboxes"
    values: dict[str, CheckboxValue] = Field(default_factory=dict)


class CellResponse(WireModel):
    """State of one table cell."""

    state: AnswerState = AnswerState.ANSWERED
    value: CellScalar = None
    reason: str | None = None


class TableValue(WireModel):
    """Rows of a table field, each keyed by column ID."""

    kind: Literal["table"] = "table"
    rows: list[dict[str, CellResponse]] = Field(default_factory=list)


FieldValue = Annotated[
    StringValue
    | NumberValue
    | DateValue
    | YearValue
    | UrlValue
    | StringListValue
    | UrlListValue
    | SingleSelectValue
    | MultiSelectValue
    | CheckboxesValue
    | TableValue,
    Field(discriminator="kind"),
]


class FieldResponse(WireModel):
    """Runtime state of one field; `value` is set only when answered."""

    state: AnswerState = AnswerState.UNANSWERED
    value: FieldValue | None = None
    reason: str | None = None

    @property
    def is_answered(self) -> bool:
        """Return whether the field holds an answer."""
        return self.state == AnswerState.ANSWERED
