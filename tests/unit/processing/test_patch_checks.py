from __future__ import annotations

import pytest

from mdforms.parser import parse_form
from mdforms.processing.patch_checks import check_patch, next_note_id
from mdforms.typing.models import PATCH_ADAPTER, ParsedForm


def _check(form: ParsedForm, payload: dict, note_ids: set[str] | None = None):
    return check_patch(form, PATCH_ADAPTER.validate_python(payload), 0, set() if note_ids is None else note_ids)


def test_next_note_id_counts_past_the_highest_note() -> None:
    assert next_note_id(set()) == "n1"
    assert next_note_id({"n1", "n2", "n4"}) == "n5"
    assert next_note_id({"n3", "imported"}) == "n4"


def test_valid_patches_pass(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    for payload in vendor_patches:
        assert _check(vendor_form, payload) is None


def test_kind_mismatch_names_expected_op(vendor_form: ParsedForm) -> None:
    rejection = _check(vendor_form, {"op": "set_number", "fieldId": "name", "value": 3})

    assert rejection is not None
    assert rejection.message == "Cannot apply set_number to string field 'name'; use set_string"
    assert (rejection.expected_type, rejection.received_type, rejection.field_kind) == (
        "set_string",
        "set_number",
        "string",
    )


def test_table_kind_mismatch_lists_columns(vendor_form: ParsedForm) -> None:
    rejection = _check(vendor_form, {"op": "set_string", "fieldId": "offices", "value": "Paris"})

    assert rejection is not None
    assert rejection.column_ids == ["city", "staff"]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        (
            {"op": "set_string", "fieldId": "name", "value": "%skip%"},
            "Value for field 'name' contains the %SKIP% sentinel; use skip_field instead",
        ),
        (
            {"op": "set_string_list", "fieldId": "contacts", "value": ["%ABORT:gone%"]},
            "contains the %ABORT% sentinel; use abort_field instead",
        ),
        (
            {"op": "set_string_list", "fieldId": "contacts", "value": ["a\nb"]},
            "List items for field 'contacts' cannot contain line breaks",
        ),
        (
            {"op": "set_number", "fieldId": "employees", "value": float("inf")},
            "Number for field 'employees' must be finite",
        ),
        (
            {"op": "set_single_select", "fieldId": "size", "value": "medium"},
            "Invalid option 'medium' for field 'size'; valid options: small, large",
        ),
        (
            {"op": "set_multi_select", "fieldId": "markets", "value": ["eu", "apac"]},
            "Invalid option 'apac' for field 'markets'",
        ),
        (
            {"op": "set_checkboxes", "fieldId": "docs", "value": {"contract": "na"}},
            "Checkbox state 'na' for option 'contract' is not valid in simple mode of field 'docs'; "
            "use one of: done, todo",
        ),
        (
            {"op": "set_table", "fieldId": "offices", "value": [{"town": "Paris"}]},
            "Invalid column 'town' for table field 'offices'; columns: city, staff",
        ),
        (
            {"op": "set_table", "fieldId": "offices", "value": [{"city": "Pa\nris"}]},
            "Row 1, column 'city' of 'offices' contains a line break",
        ),
        (
            {"op": "set_table", "fieldId": "offices", "value": [{"city": "Paris"}, {"staff": "many"}]},
            "Cell 'many' at row 2, column 'staff' of 'offices' is not a valid number",
        ),
        ({"op": "set_string", "fieldId": "ghost", "value": "x"}, "Field 'ghost' not found"),
        ({"op": "skip_field", "fieldId": "name", "role": "agent"}, "Cannot skip required field 'name'"),
        ({"op": "add_note", "ref": "ghost", "role": "agent", "text": "x"}, "Reference 'ghost' not found in form"),
        ({"op": "remove_note", "noteId": "n9"}, "Note 'n9' not found"),
    ],
)
def test_invalid_patches_are_rejected(vendor_form: ParsedForm, payload: dict, message: str) -> None:
    rejection = _check(vendor_form, payload)

    assert rejection is not None
    assert rejection.message.startswith(message)


def test_table_cells_accept_sentinels_and_blanks(vendor_form: ParsedForm) -> None:
    payload = {"op": "set_table", "fieldId": "offices", "value": [{"city": " ", "staff": "%ABORT%"}]}

    assert _check(vendor_form, payload) is None


def test_add_note_reserves_an_id_for_later_removal(vendor_form: ParsedForm) -> None:
    note_ids: set[str] = set()

    assert _check(vendor_form, {"op": "add_note", "ref": "size.small", "role": "agent", "text": "x"}, note_ids) is None
    assert _check(vendor_form, {"op": "remove_note", "noteId": "n1"}, note_ids) is None
    assert note_ids == set()


def test_implicit_checklist_cannot_be_skipped() -> None:
    form = parse_form('{% form id="f" %}\n- [ ] One {% #one %}\n{% /form %}\n')

    rejection = _check(form, {"op": "skip_field", "fieldId": "_checkboxes", "role": "agent"})

    assert rejection is not None
    assert rejection.message == "Implicit checklist '_checkboxes' cannot be skipped or aborted"


def test_abort_and_clear_are_always_allowed(vendor_form: ParsedForm) -> None:
    assert _check(vendor_form, {"op": "abort_field", "fieldId": "name", "role": "agent"}) is None
    assert _check(vendor_form, {"op": "clear_field", "fieldId": "name"}) is None
