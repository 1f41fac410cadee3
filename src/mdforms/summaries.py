"""Structure and progress summaries derived from a parsed form."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from mdforms.processing.responses import checkbox_states, is_empty_value
from mdforms.typing.enums import AnswerState, ApprovalMode, ProgressState, Severity
from mdforms.typing.models import (
    CheckboxesField,
    CheckboxProgressCounts,
    FieldProgress,
    ProgressCounts,
    ProgressSummary,
    StructureSummary,
    TableField,
)
from mdforms.validation import COMPLETION_CODES

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mdforms.typing.models import FormField, FormSchema, ParsedForm, ValidationIssue


def field_ref(ref: str) -> str:
    """Return the field part of a possibly qualified `field.option` reference."""
    return ref.split(".", 1)[0]


def matches_roles(field: FormField, target_roles: Iterable[str] | None) -> bool:
    """Return whether a field belongs to one of the target roles (`*` matches all)."""
    roles = set(target_roles or ["*"])
    return "*" in roles or field.role in roles


def compute_structure_summary(schema: FormSchema) -> StructureSummary:
    """Count groups, fields, options and columns of a schema.

    Args:
        schema (FormSchema): Form schema.

    Returns:
        StructureSummary: Static counts and ID maps.
    """
    summary = StructureSummary(group_count=len(schema.groups))
    kinds: Counter[str] = Counter()
    for group in schema.groups:
        summary.groups_by_id[group.id] = group.title or group.id
        for field in group.fields:
            kinds[field.kind] += 1
            summary.fields_by_id[field.id] = field.kind
            for option in getattr(field, "options", []):
                summary.options_by_id[f"{field.id}.{option.id}"] = option.label
            if isinstance(field, TableField):
                for column in field.columns:
                    summary.columns_by_id[f"{field.id}.{column.id}"] = column.type.value
    summary.field_count = sum(kinds.values())
    summary.option_count = len(summary.options_by_id)
    summary.column_count = len(summary.columns_by_id)
    summary.field_count_by_kind = dict(sorted(kinds.items()))
    return summary


def _checkbox_progress(field: CheckboxesField, form: ParsedForm) -> CheckboxProgressCounts:
    counts = Counter(state.value for state in checkbox_states(field, form.response_for(field.id)).values())
    return CheckboxProgressCounts(**counts)


def _progress_state(field: FormField, answer_state: AnswerState, codes: list[tuple[str, bool]]) -> ProgressState:
    if answer_state != AnswerState.ANSWERED:
        return ProgressState.EMPTY
    if any(is_error and code not in COMPLETION_CODES for code, is_error in codes):
        return ProgressState.INVALID
    if field.required and any(code in COMPLETION_CODES for code, _ in codes):
        return ProgressState.INCOMPLETE
    return ProgressState.COMPLETE


def compute_field_progress(form: ParsedForm, field: FormField, issues: list[ValidationIssue]) -> FieldProgress:
    """Build the progress record of one field.

    Args:
        form (ParsedForm): Form holding the response and notes.
        field (FormField): Field schema.
        issues (list[ValidationIssue]): Validation issues referring to this field.

    Returns:
        FieldProgress: Progress record.
    """
    response = form.response_for(field.id)
    codes = [(issue.code, issue.severity == Severity.ERROR) for issue in issues]
    notes = [note for note in form.notes if field_ref(note.ref) == field.id]
    invalid = any(is_error and code not in COMPLETION_CODES for code, is_error in codes)
    return FieldProgress(
        kind=field.kind,
        required=field.required,
        answer_state=response.state,
        progress_state=_progress_state(field, response.state, codes),
        empty=not response.is_answered or is_empty_value(response.value),
        valid=not invalid,
        issue_count=len(issues),
        has_notes=bool(notes),
        note_count=len(notes),
        reason=response.reason,
        checkbox_progress=_checkbox_progress(field, form) if isinstance(field, CheckboxesField) else None,
    )


def compute_progress_summary(form: ParsedForm, issues: list[ValidationIssue]) -> ProgressSummary:
    """Compute per-field progress and form-wide counts.

    Args:
        form (ParsedForm): Form to summarize.
        issues (list[ValidationIssue]): Issues from `validate`.

    Returns:
        ProgressSummary: Field records and totals.
    """
    by_field: dict[str, list[ValidationIssue]] = {}
    for issue in issues:
        by_field.setdefault(field_ref(issue.ref), []).append(issue)

    summary = ProgressSummary(counts=ProgressCounts(total_notes=len(form.notes)))
    counts = summary.counts
    for field in form.fields_in_order():
        progress = compute_field_progress(form, field, by_field.get(field.id, []))
        summary.fields[field.id] = progress
        counts.total_fields += 1
        counts.required_fields += field.required
        match progress.answer_state:
            case AnswerState.ANSWERED:
                counts.answered_fields += 1
            case AnswerState.SKIPPED:
                counts.skipped_fields += 1
            case AnswerState.ABORTED:
                counts.aborted_fields += 1
            case _:
                counts.unanswered_fields += 1
        if progress.valid:
            counts.valid_fields += 1
        else:
            counts.invalid_fields += 1
        if progress.empty:
            counts.empty_fields += 1
            counts.empty_required_fields += field.required
        else:
            counts.filled_fields += 1
    return summary


def compute_form_state(progress: ProgressSummary) -> ProgressState:
    """Collapse field progress into one form-level state.

    Any aborted or invalid field makes the form `invalid`. Otherwise the form is
    `complete` once no required work is pending, `incomplete` when something is
    answered and `empty` when nothing is.

    Args:
        progress (ProgressSummary): Progress summary.

    Returns:
        ProgressState: Form state.
    """
    counts = progress.counts
    if counts.aborted_fields or counts.invalid_fields:
        return ProgressState.INVALID
    pending = any(
        item.required and item.progress_state != ProgressState.COMPLETE for item in progress.fields.values()
    )
    if not pending:
        return ProgressState.COMPLETE
    if counts.answered_fields or counts.skipped_fields:
        return ProgressState.INCOMPLETE
    return ProgressState.EMPTY


def blocking_checkpoints(form: ParsedForm, progress: ProgressSummary) -> dict[str, str]:
    """Map each field that sits after an open blocking checkpoint to that checkpoint's ID.

    Args:
        form (ParsedForm): Form to scan.
        progress (ProgressSummary): Progress summary of the form.

    Returns:
        dict[str, str]: Field ID to the ID of the first unfinished blocking checkpoint before it.
    """
    blocked: dict[str, str] = {}
    blocker: str | None = None
    for field in form.fields_in_order():
        if blocker is not None:
            blocked[field.id] = blocker
            continue
        if (
            isinstance(field, CheckboxesField)
            and field.approval_mode == ApprovalMode.BLOCKING
            and progress.fields[field.id].progress_state != ProgressState.COMPLETE
            and progress.fields[field.id].answer_state != AnswerState.SKIPPED
        ):
            blocker = field.id
    return blocked
