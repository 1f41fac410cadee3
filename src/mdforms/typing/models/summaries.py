"""Structure/progress summaries and tool results."""

from __future__ import annotations

from pydantic import Field

from mdforms.typing.enums import AnswerState, ApplyStatus, ProgressState
from mdforms.typing.models.base import WireModel
from mdforms.typing.models.form import ParsedForm
from mdforms.typing.models.issues import InspectIssue
from mdforms.typing.models.patches import Patch, PatchRejection, PatchWarning


class StructureSummary(WireModel):
    """Static counts and ID maps derived from the schema only."""

    group_count: int = 0
    field_count: int = 0
    option_count: int = 0
    column_count: int = 0
    field_count_by_kind: dict[str, int] = Field(default_factory=dict)
    groups_by_id: dict[str, str] = Field(default_factory=dict)
    fields_by_id: dict[str, str] = Field(default_factory=dict)
    options_by_id: dict[str, str] = Field(default_factory=dict)
    columns_by_id: dict[str, str] = Field(default_factory=dict)


class CheckboxProgressCounts(WireModel):
    """Option-state counts of a checkboxes field."""

    todo: int = 0
    done: int = 0
    incomplete: int = 0
    active: int = 0
    na: int = 0
    unfilled: int = 0
    yes: int = 0
    no: int = 0


class FieldProgress(WireModel):
    """Per-field progress record."""

    kind: str
    required: bool
    answer_state: AnswerState
    progress_state: ProgressState
    empty: bool
    valid: bool
    issue_count: int = 0
    has_notes: bool = False
    note_count: int = 0
    reason: str | None = None
    checkbox_progress: CheckboxProgressCounts | None = None


class ProgressCounts(WireModel):
    """Form-wide tallies; each dimension partitions the fields."""

    total_fields: int = 0
    required_fields: int = 0
    unanswered_fields: int = 0
    answered_fields: int = 0
    skipped_fields: int = 0
    aborted_fields: int = 0
    valid_fields: int = 0
    invalid_fields: int = 0
    empty_fields: int = 0
    filled_fields: int = 0
    empty_required_fields: int = 0
    total_notes: int = 0


class ProgressSummary(WireModel):
    """Progress of every field plus form totals."""

    counts: ProgressCounts = Field(default_factory=ProgressCounts)
    fields: dict[str, FieldProgress] = Field(default_factory=dict)


class InspectResult(WireModel):
    """Result of inspecting a form."""

    structure_summary: StructureSummary
    progress_summary: ProgressSummary
    issues: list[InspectIssue] = Field(default_factory=list)
    is_complete: bool = False
    form_state: ProgressState = ProgressState.EMPTY


class ApplyResult(WireModel):
    """Result of applying a patch batch."""

    status: ApplyStatus
    form: ParsedForm
    issues: list[InspectIssue] = Field(default_factory=list)
    applied_patches: list[Patch] = Field(default_factory=list)
    rejected_patches: list[PatchRejection] = Field(default_factory=list)
    warnings: list[PatchWarning] = Field(default_factory=list)
    structure_summary: StructureSummary | None = None
    progress_summary: ProgressSummary | None = None
    is_complete: bool = False
    form_state: ProgressState = ProgressState.EMPTY
