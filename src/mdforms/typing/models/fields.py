"""Schema models: options, fields, groups and the form schema."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Any, Literal

from pydantic import Field

from mdforms.typing.enums import ApprovalMode, CheckboxMode, ColumnType, FieldKind, Priority
from mdforms.typing.models.base import WireModel

IMPLICIT_GROUP_ID = "default"
IMPLICIT_CHECKBOXES_ID = "_checkboxes"
DEFAULT_ROLE = "agent"
USER_ROLE = "user"


class ValidatorRef(WireModel):
    """Reference to an external validator with optional parameters."""

    id: str
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_attr(cls, raw: str | dict[str, Any]) -> ValidatorRef:
        """Build a reference from a `validate` attribute entry.

        Args:
            raw (str | dict[str, Any]): Validator ID or `{id, ...params}` object.

        Raises:
            ValueError: If the entry has no usable ID.

        Returns:
            ValidatorRef: Parsed reference.
        """
        if isinstance(raw, str):
            return cls(id=raw)
        if isinstance(raw, dict) and isinstance(raw.get("id"), str):
            params = {key: value for key, value in raw.items() if key != "id"}
            return cls(id=raw["id"], params=params)
        raise ValueError(f"Invalid validator reference: {raw!r}")  # noqa: TRY003

    def to_attr(self) -> str | dict[str, Any]:
        """Return the attribute form of the reference."""
        if not self.params:
            return self.id
        return {"id": self.id, **self.params}


class Option(WireModel):
    """One choice within a chooser field, ID-unique within that field only."""

    id: str
    label: str
    metadata: dict[str, Any] | None = None


class TableColumn(WireModel):
    """Declared table column."""

    id: str
    label: str
    type: ColumnType = ColumnType.STRING
    required: bool = False


class _BaseField(WireModel):
    id: str
    label: str
    required: bool = False
    priority: Priority = Priority.MEDIUM
    role: str = DEFAULT_ROLE
    validators: list[ValidatorRef] = Field(default_factory=list, alias="validate")
    report: bool = True


class _TextEntryField(_BaseField):
    placeholder: str | None = None
    examples: list[str] | None = None


class StringField(_TextEntryField):
    """Free-text field."""

    kind: Literal["string"] = "string"
    multiline: bool = False
    pattern: str | None = None
    min_length: int | None = None
    max_length: int | None = None


class NumberField(_TextEntryField):
    """Numeric field."""

    kind: Literal["number"] = "number"
    min_value: int | float | None = Field(default=None, alias="min")
    max_value: int | float | None = Field(default=None, alias="max")
    integer: bool = False


class DateField(_TextEntryField):
    """ISO date field."""

    kind: Literal["date"] = "date"
    min_value: str | None = Field(default=None, alias="min")
    max_value: str | None = Field(default=None, alias="max")


class YearField(_TextEntryField):
    """Four-digit year field."""

    kind: Literal["year"] = "year"
    min_value: int | None = Field(default=None, alias="min")
    max_value: int | None = Field(default=None, alias="max")


class UrlField(_TextEntryField):
    """Single URL field."""

    kind: Literal["url"] = "url"


class StringListField(_TextEntryField):
    """Ordered list of strings."""

    kind: Literal["string_list"] = "string_list"
    min_items: int | None = None
    max_items: int | None = None
    item_min_length: int | None = None
    item_max_length: int | None = None
    unique_items: bool = False


class UrlListField(_TextEntryField):
    """Ordered list of URLs."""

    kind: Literal["url_list"] = "url_list"
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool = False


class SingleSelectField(_BaseField):
    """Exactly one option out of a fixed list."""

    kind: Literal["single_select"] = "single_select"
    options: list[Option] = Field(default_factory=list)


class MultiSelectField(_BaseField):
    """Any number of options out of a fixed list."""

    kind: Literal["multi_select"] = "multi_select"
    options: list[Option] = Field(default_factory=list)
    min_selections: int | None = None
    max_selections: int | None = None


class CheckboxesField(_BaseField):
    """Per-option state checklist."""

    kind: Literal["checkboxes"] = "checkboxes"
    options: list[Option] = Field(default_factory=list)
    checkbox_mode: CheckboxMode = CheckboxMode.MULTI
    min_done: int = -1
    approval_mode: ApprovalMode = ApprovalMode.NONE


class TableField(_BaseField):
    """Rows of typed cells keyed by declared columns."""

    kind: Literal["table"] = "table"
    columns: list[TableColumn] = Field(default_factory=list)
    min_rows: int | None = None
    max_rows: int | None = None

    @property
    def column_ids(self) -> list[str]:
        """Return declared column IDs in order."""
        return [column.id for column in self.columns]


FormField = Annotated[
    StringField
    | NumberField
    | DateField
    | YearField
    | UrlField
    | StringListField
    | UrlListField
    | SingleSelectField
    | MultiSelectField
    | CheckboxesField
    | TableField,
    Field(discriminator="kind"),
]

ChooserField = SingleSelectField | MultiSelectField | CheckboxesField


def field_kind(field: FormField) -> FieldKind:
    """Return the field kind as an enum member."""
    return FieldKind(field.kind)


def option_ids(field: FormField) -> list[str]:
    """Return option IDs for chooser fields, an empty list otherwise."""
    options = getattr(field, "options", None)
    return [option.id for option in options] if options else []


class FieldGroup(WireModel):
    """Flat group of fields."""

    id: str
    title: str | None = None
    validators: list[ValidatorRef] = Field(default_factory=list, alias="validate")
    fields: list[FormField] = Field(default_factory=list)
    implicit: bool = False


class FormSchema(WireModel):
    """Root schema of a form."""

    id: str
    title: str | None = None
    description: str | None = None
    groups: list[FieldGroup] = Field(default_factory=list)

    def iter_fields(self) -> Iterator[FormField]:
        """Yield all fields in document order."""
        for group in self.groups:
            yield from group.fields

    def field_by_id(self, field_id: str) -> FormField | None:
        """Return the field with the given ID, if any."""
        return next((field for field in self.iter_fields() if field.id == field_id), None)

    def group_of(self, field_id: str) -> FieldGroup | None:
        """Return the group containing the given field, if any."""
        for group in self.groups:
            if any(field.id == field_id for field in group.fields):
                return group
        return None
