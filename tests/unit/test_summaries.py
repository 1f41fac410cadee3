from __future__ import annotations

from mdforms.patches import apply_patches
from mdforms.summaries import (
    compute_form_state,
    compute_progress_summary,
    compute_structure_summary,
    field_ref,
    matches_roles,
)
from mdforms.typing.enums import AnswerState, ProgressState
from mdforms.typing.models import ParsedForm
from mdforms.validation import validate


def _progress(form: ParsedForm):
    return compute_progress_summary(form, validate(form))


def test_field_ref_strips_qualifier() -> None:
    assert field_ref("docs.contract") == "docs"
    assert field_ref("docs") == "docs"


def test_matches_roles(vendor_form: ParsedForm) -> None:
    field = vendor_form.get_field("name")
    assert field is not None

    assert matches_roles(field, None)
    assert matches_roles(field, ["*"])
    assert matches_roles(field, ["agent"])
    assert not matches_roles(field, ["user"])


def test_structure_summary(vendor_form: ParsedForm) -> None:
    summary = compute_structure_summary(vendor_form.form_schema)

    assert (summary.group_count, summary.field_count, summary.option_count, summary.column_count) == (2, 9, 7, 2)
    assert summary.field_count_by_kind["single_select"] == 1
    assert list(summary.field_count_by_kind) == sorted(summary.field_count_by_kind)
    assert summary.groups_by_id == {"company": "Company", "review": "Review"}
    assert summary.fields_by_id["offices"] == "table"
    assert summary.options_by_id["size.small"] == "Small"
    assert summary.options_by_id["docs.insurance"] == "Insurance"
    assert summary.columns_by_id == {"offices.city": "string", "offices.staff": "number"}


def test_progress_of_empty_form(vendor_form: ParsedForm) -> None:
    counts = _progress(vendor_form).counts

    assert counts.total_fields == 9
    assert counts.required_fields == 2
    assert counts.unanswered_fields == 9
    assert counts.empty_fields == 9
    assert counts.empty_required_fields == 2
    assert counts.valid_fields == 9
    assert counts.total_notes == 0


def test_progress_counts_partition_fields(vendor_form: ParsedForm) -> None:
    form = apply_patches(
        vendor_form,
        [
            {"op": "set_string", "fieldId": "name", "value": "ACME"},
            {"op": "set_number", "fieldId": "employees", "value": 0},
            {"op": "skip_field", "fieldId": "website", "role": "agent"},
            {"op": "abort_field", "fieldId": "founded", "role": "agent"},
            {"op": "add_note", "ref": "name", "role": "agent", "text": "From registry"},
        ],
    ).form

    progress = _progress(form)
    counts = progress.counts

    assert (counts.answered_fields, counts.skipped_fields, counts.aborted_fields, counts.unanswered_fields) == (
        2,
        1,
        1,
        5,
    )
    assert counts.invalid_fields == 1
    assert counts.valid_fields + counts.invalid_fields == counts.total_fields
    assert counts.filled_fields + counts.empty_fields == counts.total_fields
    assert counts.total_notes == 1
    assert progress.fields["name"].note_count == 1
    assert progress.fields["employees"].progress_state == ProgressState.INVALID
    assert progress.fields["website"].answer_state == AnswerState.SKIPPED


def test_checkbox_progress_counts(vendor_form: ParsedForm) -> None:
    form = apply_patches(
        vendor_form,
        [{"op": "set_checkboxes", "fieldId": "docs", "value": {"contract": "done", "invoice": "done"}}],
    ).form

    docs = _progress(form).fields["docs"]

    assert docs.checkbox_progress is not None
    assert (docs.checkbox_progress.done, docs.checkbox_progress.todo) == (2, 1)
    assert docs.progress_state == ProgressState.COMPLETE


def test_form_state_transitions(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    assert compute_form_state(_progress(vendor_form)) == ProgressState.EMPTY

    partial = apply_patches(vendor_form, vendor_patches[:1]).form
    assert compute_form_state(_progress(partial)) == ProgressState.INCOMPLETE

    done = apply_patches(vendor_form, vendor_patches).form
    assert compute_form_state(_progress(done)) == ProgressState.COMPLETE

    invalid = apply_patches(done, [{"op": "set_url", "fieldId": "website", "value": "acme"}]).form
    assert compute_form_state(_progress(invalid)) == ProgressState.INVALID
