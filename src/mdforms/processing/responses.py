"""Helpers shared by everything that reads field responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mdforms.typing.enums import AnswerState, CheckboxMode, CheckboxValue
from mdforms.typing.models import (
    CheckboxesField,
    CheckboxesValue,
    MultiSelectValue,
    SingleSelectValue,
    StringListValue,
    TableValue,
    UrlListValue,
)

if TYPE_CHECKING:
    from mdforms.typing.models import FieldResponse, FieldValue

MODE_VALUES: dict[CheckboxMode, frozenset[CheckboxValue]] = {
    CheckboxMode.MULTI: frozenset(
        {CheckboxValue.TODO, CheckboxValue.DONE, CheckboxValue.INCOMPLETE, CheckboxValue.ACTIVE, CheckboxValue.NA},
    ),
    CheckboxMode.SIMPLE: frozenset({CheckboxValue.TODO, CheckboxValue.DONE}),
    CheckboxMode.EXPLICIT: frozenset({CheckboxValue.UNFILLED, CheckboxValue.YES, CheckboxValue.NO}),
}
TERMINAL_STATES = frozenset({AnswerState.SKIPPED, AnswerState.ABORTED})


def default_checkbox_value(mode: CheckboxMode) -> CheckboxValue:
    """Return the untouched state for a checkbox mode."""
    return CheckboxValue.UNFILLED if mode == CheckboxMode.EXPLICIT else CheckboxValue.TODO


def checkbox_states(field: CheckboxesField, response: FieldResponse) -> dict[str, CheckboxValue]:
    """Return the state of every option, filling untouched options with the mode default.

    Args:
        field (CheckboxesField): Checkbox field schema.
        response (FieldResponse): Current response.

    Returns:
        dict[str, CheckboxValue]: Option ID to state, in option order.
    """
    default = default_checkbox_value(field.checkbox_mode)
    stored = response.value.values if isinstance(response.value, CheckboxesValue) else {}
    return {option.id: stored.get(option.id, default) for option in field.options}


def is_empty_value(value: FieldValue | None) -> bool:
    """Return whether a value carries no answer at all.

    Args:
        value (FieldValue | None): Candidate value.

    Returns:
        bool: True for None, blank scalars, empty lists, untouched checkboxes and row-less tables.
    """
    if value is None:
        return True
    if isinstance(value, (StringListValue, UrlListValue)):
        return not value.items
    if isinstance(value, SingleSelectValue):
        return value.selected is None
    if isinstance(value, MultiSelectValue):
        return not value.selected
    if isinstance(value, CheckboxesValue):
        return all(state in {CheckboxValue.TODO, CheckboxValue.UNFILLED} for state in value.values.values())
    if isinstance(value, TableValue):
        return not value.rows
    scalar = value.value
    return scalar is None or (isinstance(scalar, str) and not scalar.strip())
