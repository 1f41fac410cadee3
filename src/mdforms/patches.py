"""Transactional application of patch batches."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mdforms.exceptions import PatchError, ValidationError
from mdforms.inspection import inspect
from mdforms.logging import get_logger
from mdforms.processing.coercion import normalize_patch
from mdforms.processing.patch_checks import check_patch, next_note_id
from mdforms.processing.responses import TERMINAL_STATES, is_empty_value
from mdforms.syntax.sentinels import detect_sentinel
from mdforms.typing.enums import AnswerState, ApplyStatus
from mdforms.typing.models import (
    PATCH_ADAPTER,
    AbortFieldPatch,
    AddNotePatch,
    ApplyResult,
    CellResponse,
    CheckboxesValue,
    ClearFieldPatch,
    DateValue,
    FieldResponse,
    MultiSelectValue,
    Note,
    NumberValue,
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
    SetYearPatch,
    SingleSelectValue,
    SkipFieldPatch,
    StringListValue,
    StringValue,
    TableField,
    TableValue,
    UrlListValue,
    UrlValue,
    YearValue,
)

if TYPE_CHECKING:
    from mdforms.typing.models import FieldValue, ParsedForm, Patch, PatchWarning
    from mdforms.validation import ValidatorRegistry

logger = get_logger(__name__)

PatchInput = BaseModel | Mapping[str, Any]


def _payload(patch: PatchInput) -> Any:
    if isinstance(patch, BaseModel):
        return patch.model_dump(by_alias=True)
    if isinstance(patch, Mapping):
        return dict(patch)
    return patch


def _describe_invalid(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"Invalid patch shape at '{location}': {first['msg']}" if location else f"Invalid patch: {first['msg']}"


def _check_batch(
    form: ParsedForm,
    patches: Sequence[PatchInput],
) -> tuple[list[Patch], list[PatchRejection], list[PatchWarning]]:
    accepted: list[Patch] = []
    rejected: list[PatchRejection] = []
    warnings: list[PatchWarning] = []
    note_ids = {note.id for note in form.notes}
    for index, raw in enumerate(patches):
        payload = _payload(raw)
        if not isinstance(payload, dict):
            rejected.append(PatchRejection(patch_index=index, message="Patch must be an object with an 'op' key"))
            continue
        field_id = payload.get("fieldId", payload.get("field_id"))
        try:
            payload, warning = normalize_patch(form, payload, index)
            patch = PATCH_ADAPTER.validate_python(payload)
        except (ValueError, PydanticValidationError) as exc:
            message = _describe_invalid(exc) if isinstance(exc, PydanticValidationError) else str(exc)
            rejected.append(
                PatchRejection(
                    patch_index=index,
                    message=message,
                    field_id=field_id if isinstance(field_id, str) else None,
                    op=payload.get("op") if isinstance(payload.get("op"), str) else None,
                ),
            )
            continue
        rejection = check_patch(form, patch, index, note_ids)
        if rejection is not None:
            rejected.append(rejection)
            continue
        accepted.append(patch)
        if warning is not None:
            warnings.append(warning)
    return accepted, rejected, warnings


def _table_value(field: TableField, rows: list[dict[str, Any]]) -> TableValue:
    value = TableValue()
    for row in rows:
        cells: dict[str, CellResponse] = {}
        for column in field.columns:
            raw = row.get(column.id)
            sentinel = detect_sentinel(raw)
            if sentinel is not None:
                cells[column.id] = CellResponse(state=sentinel.state, reason=sentinel.reason)
            elif isinstance(raw, str):
                cells[column.id] = CellResponse(value=raw.strip() or None)
            else:
                cells[column.id] = CellResponse(value=raw)
        value.rows.append(cells)
    return value


def _text(value: str | None) -> str | None:
    if value is None:
        return None
    return value.replace("\r\n", "\n").replace("\r", "\n").strip() or None


def _items(values: list[str] | None) -> list[str]:
    return [item.strip() for item in values or [] if item.strip()]


def _new_value(form: ParsedForm, patch: Patch) -> FieldValue | None:  # noqa: PLR0911
    match patch:
        case SetStringPatch():
            return StringValue(value=_text(patch.value))
        case SetNumberPatch():
            return NumberValue(value=patch.value)
        case SetDatePatch():
            return DateValue(value=_text(patch.value))
        case SetYearPatch():
            return YearValue(value=patch.value)
        case SetUrlPatch():
            return UrlValue(value=_text(patch.value))
        case SetStringListPatch():
            return StringListValue(items=_items(patch.value))
        case SetUrlListPatch():
            return UrlListValue(items=_items(patch.value))
        case SetSingleSelectPatch():
            return SingleSelectValue(selected=patch.value or None)
        case SetMultiSelectPatch():
            return MultiSelectValue(selected=list(dict.fromkeys(patch.value or [])))
        case SetCheckboxesPatch():
            if not patch.value:
                return None
            current = form.response_for(patch.field_id)
            merged = dict(current.value.values) if isinstance(current.value, CheckboxesValue) else {}
            merged.update(patch.value)
            return CheckboxesValue(values=merged)
        case SetTablePatch():
            field = form.get_field(patch.field_id)
            if isinstance(field, TableField):
                return _table_value(field, patch.value or [])
    return None


def _leave_terminal_state(form: ParsedForm, field_id: str) -> None:
    if form.response_for(field_id).state in TERMINAL_STATES:
        form.notes = [note for note in form.notes if not (note.ref == field_id and note.state)]


def _apply_one(form: ParsedForm, patch: Patch) -> None:
    match patch:
        case AddNotePatch():
            note_id = next_note_id({note.id for note in form.notes})
            form.notes.append(Note(id=note_id, ref=patch.ref, role=patch.role, text=patch.text, state=patch.state))
        case RemoveNotePatch():
            form.notes = [note for note in form.notes if note.id != patch.note_id]
        case SkipFieldPatch():
            form.responses_by_field_id[patch.field_id] = FieldResponse(state=AnswerState.SKIPPED, reason=patch.reason)
        case AbortFieldPatch():
            form.responses_by_field_id[patch.field_id] = FieldResponse(state=AnswerState.ABORTED, reason=patch.reason)
        case ClearFieldPatch():
            _leave_terminal_state(form, patch.field_id)
            form.responses_by_field_id[patch.field_id] = FieldResponse()
        case _:
            value = _new_value(form, patch)
            _leave_terminal_state(form, patch.field_id)
            if is_empty_value(value):
                form.responses_by_field_id[patch.field_id] = FieldResponse()
            else:
                form.responses_by_field_id[patch.field_id] = FieldResponse(state=AnswerState.ANSWERED, value=value)


def _to_patch_errors(rejected: list[PatchRejection], patches: Sequence[PatchInput]) -> tuple[PatchError, ...]:
    errors = []
    for rejection in rejected:
        payload = _payload(patches[rejection.patch_index])
        errors.append(
            PatchError(
                message=rejection.message,
                field_id=rejection.field_id,
                op=rejection.op,
                expected_type=rejection.expected_type,
                received_value=payload.get("value") if isinstance(payload, dict) else payload,
                patch_index=rejection.patch_index,
            ),
        )
    return tuple(errors)


def apply_patches(
    form: ParsedForm,
    patches: Sequence[PatchInput],
    *,
    registries: Sequence[ValidatorRegistry] | None = None,
    target_roles: Sequence[str] | None = None,
    raise_on_reject: bool = False,
) -> ApplyResult:
    """Apply a batch of patches as one transaction.

    Every patch is checked against the schema first. If any patch fails, none
    is applied and the input form is returned unchanged with status `rejected`.
    Otherwise the patches are applied in order to a copy of the form, later
    patches to the same field winning, and the copy is inspected.

    Args:
        form (ParsedForm): Form to update; never mutated.
        patches (Sequence[PatchInput]): Patch models or wire mappings.
        registries (Sequence[ValidatorRegistry] | None): External validators for the follow-up inspection.
        target_roles (Sequence[str] | None): Roles the follow-up inspection reports on.
        raise_on_reject (bool): Raise instead of returning a rejected result.

    Raises:
        ValidationError: If the batch is rejected and `raise_on_reject` is set.

    Returns:
        ApplyResult: Status, resulting form, issues and per-patch details.
    """
    with structlog.contextvars.bound_contextvars(form_id=form.form_schema.id):
        accepted, rejected, warnings = _check_batch(form, patches)
        if rejected:
            logger.warning(
                "Patch batch rejected",
                extra={"patches": len(patches), "rejected": [item.patch_index for item in rejected]},
            )
            if raise_on_reject:
                raise ValidationError(
                    message=f"{len(rejected)} of {len(patches)} patches rejected",
                    errors=_to_patch_errors(rejected, patches),
                )
            result = inspect(form, registries=registries, target_roles=target_roles)
            return ApplyResult(
                status=ApplyStatus.REJECTED,
                form=form,
                issues=result.issues,
                rejected_patches=rejected,
                structure_summary=result.structure_summary,
                progress_summary=result.progress_summary,
                is_complete=result.is_complete,
                form_state=result.form_state,
            )

        updated = form.model_copy(deep=True)
        for patch in accepted:
            _apply_one(updated, patch)
        result = inspect(updated, registries=registries, target_roles=target_roles)
        logger.info(
            "Patch batch applied",
            extra={"patches": len(accepted), "warnings": len(warnings), "is_complete": result.is_complete},
        )
        return ApplyResult(
            status=ApplyStatus.APPLIED,
            form=updated,
            issues=result.issues,
            applied_patches=accepted,
            warnings=warnings,
            structure_summary=result.structure_summary,
            progress_summary=result.progress_summary,
            is_complete=result.is_complete,
            form_state=result.form_state,
        )
