"""Structural checks run on every patch before a batch is applied."""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

from mdforms.processing.normalization import cell_matches_type
from mdforms.processing.responses import MODE_VALUES
from mdforms.processing.semantic_checks import resolve_ref
from mdforms.syntax.sentinels import SENTINEL_ABORT, SENTINEL_SKIP, detect_sentinel
from mdforms.typing.enums import AnswerState
from mdforms.typing.models import (
    IMPLICIT_CHECKBOXES_ID,
    AbortFieldPatch,
    AddNotePatch,
    CheckboxesField,
    ClearFieldPatch,
    PatchRejection,
    RemoveNotePatch,
    SetCheckboxesPatch,
    SetDatePatch,
    SetMultiSelectPatch,
    SetNumberPatch,
    SetSingleSelectPatch,
    SetStringListPatch,
    SetStringPatch,
    SetTablePatch,
    SetUrlListPatch,
    SetUrlPatch,
    SkipFieldPatch,
    TableField,
)
from mdforms.typing.models.fields import option_ids
from mdforms.typing.models.patches import SET_OP_BY_KIND

_NOTE_ID_RE = re.compile(r"n(\d+)")

if TYPE_CHECKING:
    from mdforms.typing.models import FormField, ParsedForm, Patch


def next_note_id(existing: set[str]) -> str:
    """Return the `n<k>` note ID one above the highest numbered note."""
    numbers = [int(note_id[1:]) for note_id in existing if _NOTE_ID_RE.fullmatch(note_id)]
    return f"n{max(numbers, default=0) + 1}"


def _reject(index: int, message: str, field: FormField | None = None, op: str | None = None) -> PatchRejection:
    return PatchRejection(patch_index=index, message=message, field_id=field.id if field else None, op=op)


def _sentinel_rejection(index: int, field: FormField, op: str, values: list[str | None]) -> PatchRejection | None:
    for value in values:
        sentinel = detect_sentinel(value)
        if sentinel is None:
            continue
        skip = sentinel.state == AnswerState.SKIPPED
        token, replacement = (SENTINEL_SKIP, "skip_field") if skip else (SENTINEL_ABORT, "abort_field")
        message = f"Value for field '{field.id}' contains the {token} sentinel; use {replacement} instead"
        return _reject(index, message, field, op)
    return None


def _kind_mismatch(index: int, patch: Patch, field: FormField) -> PatchRejection:
    expected = SET_OP_BY_KIND[field.kind]
    return PatchRejection(
        patch_index=index,
        message=f"Cannot apply {patch.op} to {field.kind} field '{field.id}'; use {expected}",
        field_id=field.id,
        op=patch.op,
        expected_type=expected,
        received_type=patch.op,
        field_kind=field.kind,
        column_ids=field.column_ids if isinstance(field, TableField) else None,
    )


def _check_options(index: int, patch: Patch, field: FormField, chosen: list[str]) -> PatchRejection | None:
    valid = option_ids(field)
    for option_id in chosen:
        if option_id not in valid:
            message = f"Invalid option '{option_id}' for field '{field.id}'; valid options: {', '.join(valid)}"
            return _reject(index, message, field, patch.op)
    return None


def _check_checkboxes(index: int, patch: SetCheckboxesPatch, field: CheckboxesField) -> PatchRejection | None:
    values = patch.value or {}
    rejection = _check_options(index, patch, field, list(values))
    if rejection is not None:
        return rejection
    allowed = MODE_VALUES[field.checkbox_mode]
    for option_id, state in values.items():
        if state not in allowed:
            vocabulary = ", ".join(sorted(allowed))
            message = (
                f"Checkbox state '{state}' for option '{option_id}' is not valid in "
                f"{field.checkbox_mode} mode of field '{field.id}'; use one of: {vocabulary}"
            )
            return _reject(index, message, field, patch.op)
    return None


def _check_table(index: int, patch: SetTablePatch, field: TableField) -> PatchRejection | None:
    types = {column.id: column.type for column in field.columns}
    for row_number, row in enumerate(patch.value or [], start=1):
        for column_id, cell in row.items():
            if column_id not in types:
                message = (
                    f"Invalid column '{column_id}' for table field '{field.id}'; "
                    f"columns: {', '.join(field.column_ids)}"
                )
                return PatchRejection(
                    patch_index=index,
                    message=message,
                    field_id=field.id,
                    op=patch.op,
                    field_kind=field.kind,
                    column_ids=field.column_ids,
                )
            if cell is None or detect_sentinel(cell) is not None:
                continue
            if isinstance(cell, str) and ("\n" in cell or "\r" in cell):
                message = f"Row {row_number}, column '{column_id}' of '{field.id}' contains a line break"
                return _reject(index, message, field, patch.op)
            if isinstance(cell, str) and not cell.strip():
                continue
            if not cell_matches_type(cell.strip() if isinstance(cell, str) else cell, types[column_id]):
                message = (
                    f"Cell {cell!r} at row {row_number}, column '{column_id}' of '{field.id}' "
                    f"is not a valid {types[column_id]}"
                )
                return PatchRejection(
                    patch_index=index,
                    message=message,
                    field_id=field.id,
                    op=patch.op,
                    expected_type=str(types[column_id]),
                    received_type=type(cell).__name__,
                )
    return None


def _check_value(index: int, patch: Patch, field: FormField) -> PatchRejection | None:  # noqa: PLR0911
    if isinstance(patch, (SetStringPatch, SetUrlPatch, SetDatePatch)):
        return _sentinel_rejection(index, field, patch.op, [patch.value])
    if isinstance(patch, (SetStringListPatch, SetUrlListPatch)):
        items = patch.value or []
        if any("\n" in item or "\r" in item for item in items):
            return _reject(index, f"List items for field '{field.id}' cannot contain line breaks", field, patch.op)
        return _sentinel_rejection(index, field, patch.op, list(items))
    if isinstance(patch, SetNumberPatch):
        if isinstance(patch.value, float) and not math.isfinite(patch.value):
            return _reject(index, f"Number for field '{field.id}' must be finite", field, patch.op)
        return None
    if isinstance(patch, SetSingleSelectPatch):
        return _check_options(index, patch, field, [patch.value] if patch.value else [])
    if isinstance(patch, SetMultiSelectPatch):
        return _check_options(index, patch, field, list(patch.value or []))
    if isinstance(patch, SetCheckboxesPatch) and isinstance(field, CheckboxesField):
        return _check_checkboxes(index, patch, field)
    if isinstance(patch, SetTablePatch) and isinstance(field, TableField):
        return _check_table(index, patch, field)
    return None


def check_patch(form: ParsedForm, patch: Patch, index: int, note_ids: set[str]) -> PatchRejection | None:
    """Check one patch against the form schema.

    `note_ids` holds the note IDs that exist at this point of the batch; it is
    updated in place so later `remove_note` patches see notes added earlier.

    Args:
        form (ParsedForm): Form before the batch.
        patch (Patch): Typed patch.
        index (int): Position in the batch.
        note_ids (set[str]): Simulated note IDs, mutated.

    Returns:
        PatchRejection | None: Rejection, or None when the patch is acceptable.
    """
    if isinstance(patch, AddNotePatch):
        if resolve_ref(form, patch.ref) is None:
            return _reject(index, f"Reference '{patch.ref}' not found in form", op=patch.op)
        note_ids.add(next_note_id(note_ids))
        return None
    if isinstance(patch, RemoveNotePatch):
        if patch.note_id not in note_ids:
            return _reject(index, f"Note '{patch.note_id}' not found", op=patch.op)
        note_ids.discard(patch.note_id)
        return None

    field = form.get_field(patch.field_id)
    if field is None:
        return PatchRejection(
            patch_index=index,
            message=f"Field '{patch.field_id}' not found",
            field_id=patch.field_id,
            op=patch.op,
        )
    if isinstance(patch, (SkipFieldPatch, AbortFieldPatch)) and field.id == IMPLICIT_CHECKBOXES_ID:
        return _reject(index, f"Implicit checklist '{field.id}' cannot be skipped or aborted", field, patch.op)
    if isinstance(patch, SkipFieldPatch):
        if field.required:
            return _reject(index, f"Cannot skip required field '{field.id}'; use abort_field instead", field, patch.op)
        return None
    if isinstance(patch, (ClearFieldPatch, AbortFieldPatch)):
        return None
    if patch.op != SET_OP_BY_KIND[field.kind]:
        return _kind_mismatch(index, patch, field)
    return _check_value(index, patch, field)
