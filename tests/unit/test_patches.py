from __future__ import annotations

import pytest

from mdforms.exceptions import ValidationError
from mdforms.patches import apply_patches
from mdforms.typing.enums import AnswerState, ApplyStatus, CheckboxValue, ProgressState
from mdforms.typing.models import (
    CellResponse,
    CheckboxesValue,
    NumberValue,
    ParsedForm,
    SetStringPatch,
    StringValue,
    TableValue,
)


def test_apply_answers_every_field(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    result = apply_patches(vendor_form, vendor_patches)

    assert result.status == ApplyStatus.APPLIED
    assert len(result.applied_patches) == len(vendor_patches)
    assert result.rejected_patches == []
    assert all(response.is_answered for response in result.form.responses_by_field_id.values())
    assert result.is_complete is True
    assert result.form_state == ProgressState.COMPLETE
    offices = result.form.response_for("offices").value
    assert isinstance(offices, TableValue)
    assert offices.rows[1]["city"] == CellResponse(value="Lyon | Annex")
    assert offices.rows[1]["staff"] == CellResponse(state=AnswerState.SKIPPED, reason="closing")


def test_apply_never_mutates_input(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    before = vendor_form.model_dump()

    result = apply_patches(vendor_form, vendor_patches)

    assert result.form is not vendor_form
    assert vendor_form.model_dump() == before


def test_rejected_batch_applies_nothing(vendor_form: ParsedForm) -> None:
    patches = [
        {"op": "set_string", "fieldId": "name", "value": "ACME"},
        {"op": "set_single_select", "fieldId": "size", "value": "medium"},
    ]

    result = apply_patches(vendor_form, patches)

    assert result.status == ApplyStatus.REJECTED
    assert result.form is vendor_form
    assert result.applied_patches == []
    assert [item.patch_index for item in result.rejected_patches] == [1]
    assert vendor_form.response_for("name").state == AnswerState.UNANSWERED
    assert result.form_state == ProgressState.EMPTY


def test_rejected_batch_can_raise(vendor_form: ParsedForm) -> None:
    patches = [
        {"op": "set_number", "fieldId": "name", "value": 4},
        {"op": "set_string", "fieldId": "ghost", "value": "x"},
    ]

    with pytest.raises(ValidationError) as exc_info:
        apply_patches(vendor_form, patches, raise_on_reject=True)

    error = exc_info.value
    assert error.message == "2 of 2 patches rejected"
    assert [item.patch_index for item in error.errors] == [0, 1]
    assert error.errors[0].expected_type == "set_string"
    assert error.errors[0].received_type == "int"
    assert error.field_ids == ["name", "ghost"]


@pytest.mark.parametrize(
    ("patch", "message"),
    [
        (["op", "set_string"], "Patch must be an object with an 'op' key"),
        ({"op": "paint_field", "fieldId": "name"}, "Invalid patch"),
        ({"op": "set_string", "value": "x"}, "Invalid patch"),
        ({"op": "set_number", "fieldId": "employees", "value": "lots"}, "Cannot coerce non-numeric string"),
    ],
)
def test_malformed_patches_are_rejected(vendor_form: ParsedForm, patch: object, message: str) -> None:
    result = apply_patches(vendor_form, [patch])

    assert result.status == ApplyStatus.REJECTED
    assert result.rejected_patches[0].message.startswith(message)


def test_apply_accepts_patch_models(vendor_form: ParsedForm) -> None:
    result = apply_patches(vendor_form, [SetStringPatch(field_id="name", value="  ACME  ")])

    assert result.form.response_for("name").value == StringValue(value="ACME")


def test_later_patch_wins(vendor_form: ParsedForm) -> None:
    patches = [
        {"op": "set_number", "fieldId": "employees", "value": 10},
        {"op": "set_number", "fieldId": "employees", "value": 20},
    ]

    result = apply_patches(vendor_form, patches)

    assert result.form.response_for("employees").value == NumberValue(value=20)


def test_coercion_warnings_are_reported(vendor_form: ParsedForm) -> None:
    result = apply_patches(vendor_form, [{"op": "set_number", "fieldId": "employees", "value": "35"}])

    assert result.status == ApplyStatus.APPLIED
    assert result.form.response_for("employees").value == NumberValue(value=35)
    assert [(item.patch_index, item.field_id) for item in result.warnings] == [(0, "employees")]


def test_set_checkboxes_merges_states(vendor_form: ParsedForm) -> None:
    first = apply_patches(vendor_form, [{"op": "set_checkboxes", "fieldId": "docs", "value": {"contract": "done"}}])
    second = apply_patches(first.form, [{"op": "set_checkboxes", "fieldId": "docs", "value": {"invoice": "done"}}])

    value = second.form.response_for("docs").value
    assert isinstance(value, CheckboxesValue)
    assert value.values == {"contract": CheckboxValue.DONE, "invoice": CheckboxValue.DONE}



@pytest.mark.parametrize("value", [{}, None])
def test_empty_checkbox_map_clears_the_field(vendor_form: ParsedForm, value: dict | None) -> None:
    patch = {"op": "set_checkboxes", "fieldId": "docs", "value": {"contract": "done", "invoice": "todo"}}
    answered = apply_patches(vendor_form, [patch]).form

    result = apply_patches(answered, [{"op": "set_checkboxes", "fieldId": "docs", "value": value}])

    assert result.status == ApplyStatus.APPLIED
    assert result.form.response_for("docs").state == AnswerState.UNANSWERED
    assert result.form.response_for("docs").value is None


def test_empty_value_leaves_field_unanswered(vendor_form: ParsedForm) -> None:
    answered = apply_patches(vendor_form, [{"op": "set_string", "fieldId": "name", "value": "ACME"}]).form

    result = apply_patches(answered, [{"op": "set_string", "fieldId": "name", "value": "   "}])

    assert result.form.response_for("name").state == AnswerState.UNANSWERED


def test_skip_abort_and_clear(vendor_form: ParsedForm) -> None:
    result = apply_patches(
        vendor_form,
        [
            {"op": "skip_field", "fieldId": "website", "role": "agent", "reason": "no site"},
            {"op": "abort_field", "fieldId": "name", "role": "agent", "reason": "registry offline"},
        ],
    )

    website = result.form.response_for("website")
    assert (website.state, website.reason) == (AnswerState.SKIPPED, "no site")
    assert result.form.response_for("name").state == AnswerState.ABORTED
    assert result.form_state == ProgressState.INVALID

    cleared = apply_patches(result.form, [{"op": "clear_field", "fieldId": "name"}])

    assert cleared.form.response_for("name").state == AnswerState.UNANSWERED


def test_notes_are_numbered_and_removable(vendor_form: ParsedForm) -> None:
    result = apply_patches(
        vendor_form,
        [
            {"op": "add_note", "ref": "name", "role": "agent", "text": "Checked the registry"},
            {"op": "add_note", "ref": "docs.contract", "role": "user", "text": "Signed copy pending"},
            {"op": "remove_note", "noteId": "n1"},
        ],
    )

    assert result.status == ApplyStatus.APPLIED
    assert [(note.id, note.ref) for note in result.form.notes] == [("n2", "docs.contract")]



def test_note_ids_are_not_reused_after_removal(vendor_form: ParsedForm) -> None:
    result = apply_patches(
        vendor_form,
        [
            {"op": "add_note", "ref": "name", "role": "agent", "text": "First"},
            {"op": "add_note", "ref": "name", "role": "agent", "text": "Second"},
            {"op": "remove_note", "noteId": "n1"},
            {"op": "add_note", "ref": "name", "role": "agent", "text": "Third"},
        ],
    )
    later = apply_patches(result.form, [{"op": "add_note", "ref": "name", "role": "user", "text": "Fourth"}])

    assert result.status == ApplyStatus.APPLIED
    assert [note.id for note in result.form.notes] == ["n2", "n3"]
    assert [note.id for note in later.form.notes] == ["n2", "n3", "n4"]


def test_answering_a_skipped_field_drops_its_state_notes(vendor_form: ParsedForm) -> None:
    skipped = apply_patches(
        vendor_form,
        [
            {"op": "skip_field", "fieldId": "website", "role": "agent"},
            {"op": "add_note", "ref": "website", "role": "agent", "text": "No public site", "state": "skipped"},
            {"op": "add_note", "ref": "website", "role": "agent", "text": "Ask sales"},
        ],
    ).form

    result = apply_patches(skipped, [{"op": "set_url", "fieldId": "website", "value": "https://acme.example"}])

    assert result.form.response_for("website").state == AnswerState.ANSWERED
    assert [note.text for note in result.form.notes] == ["Ask sales"]


def test_apply_reports_remaining_issues(vendor_form: ParsedForm) -> None:
    result = apply_patches(vendor_form, [{"op": "set_string", "fieldId": "name", "value": "ACME"}])

    refs = [issue.ref for issue in result.issues]
    assert "name" not in refs
    assert "size" in refs
    assert result.form_state == ProgressState.INCOMPLETE
