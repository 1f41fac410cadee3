"""Patch vocabulary."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from mdforms.typing.enums import CheckboxValue
from mdforms.typing.models.base import WireModel
from mdforms.typing.models.values import CellScalar


class SetStringPatch(WireModel):
    """Set a string field."""

    op: Literal["set_string"] = "set_string"
    field_id: str
    value: str | None = None


class SetNumberPatch(WireModel):
    """Set a number field."""

    op: Literal["set_number"] = "set_number"
    field_id: str
    value: int | float | None = None


class SetDatePatch(WireModel):
    """Set a date field."""

    op: Literal["set_date"] = "set_date"
    field_id: str
    value: str | None = None


class SetYearPatch(WireModel):
    """Set a year field."""

    op: Literal["set_year"] = "set_year"
    field_id: str
    value: int | None = None


class SetUrlPatch(WireModel):
    """Set a URL field."""

    op: Literal["set_url"] = "set_url"
    field_id: str
    value: str | None = None


class SetStringListPatch(WireModel):
    """Set a string list field."""

    op: Literal["set_string_list"] = "set_string_list"
    field_id: str
    value: list[str] | None = None


class SetUrlListPatch(WireModel):
    """Set a URL list field."""

    op: Literal["set_url_list"] = "set_url_list"
    field_id: str
    value: list[str] | None = None


class SetSingleSelectPatch(WireModel):
    """Select one option."""

    op: Literal["set_single_select"] = "set_single_select"
    field_id: str
    value: str | None = None


class SetMultiSelectPatch(WireModel):
    """Select a set of options."""

    op: Literal["set_multi_select"] = "set_multi_select"
    field_id: str
    value: list[str] | None = None


class SetCheckboxesPatch(WireModel):
    """Merge option states into a checkboxes field; an empty map clears it."""

    op: Literal["set_checkboxes"] = "set_checkboxes"
    field_id: str
    value: dict[str, CheckboxValue] | None = None


class SetTablePatch(WireModel):
    """Replace table rows; cells may hold sentinel strings."""

    op: Literal["set_table"] = "set_table"
    field_id: str
    value: list[dict[str, CellScalar]] | None = None


class ClearFieldPatch(WireModel):
    """Reset a field to unanswered."""

    op: Literal["clear_field"] = "clear_field"
    field_id: str


class SkipFieldPatch(WireModel):
    """Skip an optional field."""

    op: Literal["skip_field"] = "skip_field"
    field_id: str
    role: str
    reason: str | None = None


class AbortFieldPatch(WireModel):
    """Mark a field as impossible to complete."""

    op: Literal["abort_field"] = "abort_field"
    field_id: str
    role: str
    reason: str | None = None


class AddNotePatch(WireModel):
    """Attach a note to an element."""

    op: Literal["add_note"] = "add_note"
    ref: str
    role: str
    text: str
    state: Literal["skipped", "aborted"] | None = None


class RemoveNotePatch(WireModel):
    """Remove a note by ID."""

    op: Literal["remove_note"] = "remove_note"
    note_id: str


Patch = Annotated[
    SetStringPatch
    | SetNumberPatch
    | SetDatePatch
    | SetYearPatch
    | SetUrlPatch
    | SetStringListPatch
    | SetUrlListPatch
    | SetSingleSelectPatch
    | SetMultiSelectPatch
    | SetCheckboxesPatch
    | SetTablePatch
    | ClearFieldPatch
    | SkipFieldPatch
    | AbortFieldPatch
    | AddNotePatch
    | RemoveNotePatch,
    Field(discriminator="op"),
]

SetValuePatch = (
    SetStringPatch
    | SetNumberPatch
    | SetDatePatch
    | SetYearPatch
    | SetUrlPatch
    | SetStringListPatch
    | SetUrlListPatch
    | SetSingleSelectPatch
    | SetMultiSelectPatch
    | SetCheckboxesPatch
    | SetTablePatch
)

PATCH_ADAPTER: TypeAdapter[Any] = TypeAdapter(Patch)

SET_OP_BY_KIND: dict[str, str] = {
    "string": "set_string",
    "number": "set_number",
    "date": "set_date",
    "year": "set_year",
    "url": "set_url",
    "string_list": "set_string_list",
    "url_list": "set_url_list",
    "single_select": "set_single_select",
    "multi_select": "set_multi_select",
    "checkboxes": "set_checkboxes",
    "table": "set_table",
}


class PatchRejection(WireModel):
    """Structural failure of one patch."""

    patch_index: int
    message: str
    field_id: str | None = None
    op: str | None = None
    expected_type: str | None = None
    received_type: str | None = None
    field_kind: str | None = None
    column_ids: list[str] | None = None


class PatchWarning(WireModel):
    """Coercion applied to a patch before it was accepted."""

    patch_index: int
    field_id: str | None
    message: str
