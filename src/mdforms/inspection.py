"""Prioritized issue reporting and the form completion predicate."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mdforms.exceptions import AbortError, ConfigError
from mdforms.logging import get_logger
from mdforms.processing.semantic_checks import resolve_ref
from mdforms.summaries import (
    blocking_checkpoints,
    compute_form_state,
    compute_progress_summary,
    compute_structure_summary,
    field_ref,
    matches_roles,
)
from mdforms.typing.enums import (
    AnswerState,
    IssueReason,
    IssueScope,
    IssueSeverity,
    Priority,
    ProgressState,
    Severity,
)
from mdforms.typing.models import InspectIssue, InspectResult
from mdforms.validation import (
    CHECKBOXES_INCOMPLETE,
    CHECKBOXES_UNFILLED,
    MIN_ITEMS,
    MIN_ROWS_NOT_MET,
    MIN_SELECTIONS,
    REQUIRED_EMPTY,
    validate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mdforms.typing.models import FormField, ParsedForm, ProgressSummary, ValidationIssue
    from mdforms.validation import ValidatorRegistry

logger = get_logger(__name__)

_REASON_BY_CODE = {
    REQUIRED_EMPTY: IssueReason.REQUIRED_MISSING,
    CHECKBOXES_INCOMPLETE: IssueReason.CHECKBOX_INCOMPLETE,
    CHECKBOXES_UNFILLED: IssueReason.CHECKBOX_INCOMPLETE,
    MIN_ITEMS: IssueReason.MIN_ITEMS_NOT_MET,
    MIN_SELECTIONS: IssueReason.MIN_ITEMS_NOT_MET,
    MIN_ROWS_NOT_MET: IssueReason.MIN_ITEMS_NOT_MET,
}
_TYPE_SCORES = {
    IssueReason.REQUIRED_MISSING: 3,
    IssueReason.VALIDATION_ERROR: 2,
    IssueReason.MIN_ITEMS_NOT_MET: 2,
    IssueReason.OPTIONAL_UNANSWERED: 1,
}
_SEVERITY_ORDER = {IssueSeverity.REQUIRED: 0, IssueSeverity.RECOMMENDED: 1}
# Lower bound of each tier, P1 first.
_TIER_FLOORS = (5, 4, 3, 2)


def priority_tier(score: int) -> int:
    """Bucket a score into tiers 1 (most urgent) to 5."""
    for tier, floor in enumerate(_TIER_FLOORS, start=1):
        if score >= floor:
            return tier
    return len(_TIER_FLOORS) + 1


def issue_type_score(reason: IssueReason, field: FormField | None) -> int:
    """Return the score contributed by the kind of issue.

    Args:
        reason (IssueReason): Issue classification.
        field (FormField | None): Field the issue refers to, if any.

    Returns:
        int: Type score.
    """
    if reason == IssueReason.CHECKBOX_INCOMPLETE:
        return 3 if field is not None and field.required else 2
    return _TYPE_SCORES[reason]


def _make_issue(
    form: ParsedForm,
    *,
    ref: str,
    reason: IssueReason,
    message: str,
    severity: IssueSeverity,
    code: str | None,
    blocked_by: str | None,
) -> InspectIssue:
    field = form.get_field(field_ref(ref))
    weight = field.priority.weight if field is not None else Priority.MEDIUM.weight
    score = weight + issue_type_score(reason, field)
    return InspectIssue(
        ref=ref,
        scope=resolve_ref(form, ref) or IssueScope.FIELD,
        reason=reason,
        message=message,
        severity=severity,
        priority=priority_tier(score),
        score=score,
        code=code,
        blocked_by=blocked_by,
    )


def _sort_key(issue: InspectIssue) -> tuple[int, int, int, str]:
    return issue.priority, _SEVERITY_ORDER[issue.severity], -issue.score, issue.ref


def build_inspect_issues(
    form: ParsedForm,
    validation_issues: list[ValidationIssue],
    progress: ProgressSummary,
    *,
    target_roles: Sequence[str] | None = None,
) -> list[InspectIssue]:
    """Turn validation issues into prioritized inspect issues.

    Issues on fields outside `target_roles` are dropped; unanswered optional
    fields with no other issue are reported as `optional_unanswered`.

    Args:
        form (ParsedForm): Inspected form.
        validation_issues (list[ValidationIssue]): Output of `validate`.
        progress (ProgressSummary): Progress summary of the form.
        target_roles (Sequence[str] | None): Roles to report on, `*` for all.

    Returns:
        list[InspectIssue]: Sorted issues.
    """
    blocked = blocking_checkpoints(form, progress)
    issues: list[InspectIssue] = []
    reported: set[str] = set()
    for issue in validation_issues:
        owner = field_ref(issue.ref)
        field = form.get_field(owner)
        if field is not None and not matches_roles(field, target_roles):
            continue
        if issue.severity == Severity.INFO:
            continue
        reported.add(owner)
        issues.append(
            _make_issue(
                form,
                ref=issue.ref,
                reason=_REASON_BY_CODE.get(issue.code, IssueReason.VALIDATION_ERROR),
                message=issue.message,
                severity=IssueSeverity.REQUIRED if issue.severity == Severity.ERROR else IssueSeverity.RECOMMENDED,
                code=issue.code,
                blocked_by=blocked.get(owner),
            ),
        )
    for field in form.fields_in_order():
        if field.required or field.id in reported or not matches_roles(field, target_roles):
            continue
        if form.response_for(field.id).state != AnswerState.UNANSWERED:
            continue
        issues.append(
            _make_issue(
                form,
                ref=field.id,
                reason=IssueReason.OPTIONAL_UNANSWERED,
                message=f"Optional field '{field.label}' has not been filled",
                severity=IssueSeverity.RECOMMENDED,
                code=None,
                blocked_by=blocked.get(field.id),
            ),
        )
    return sorted(issues, key=_sort_key)


def is_form_complete(
    form: ParsedForm,
    progress: ProgressSummary,
    issues: list[InspectIssue],
    *,
    target_roles: Sequence[str] | None = None,
) -> bool:
    """Apply the completion predicate.

    Every targeted field must be answered and complete, or skipped; no field may
    be aborted; and no required-severity issue may remain.

    Args:
        form (ParsedForm): Inspected form.
        progress (ProgressSummary): Progress summary.
        issues (list[InspectIssue]): Role-filtered issues before truncation.
        target_roles (Sequence[str] | None): Roles considered.

    Returns:
        bool: Whether the form is complete.
    """
    if progress.counts.aborted_fields:
        return False
    if any(issue.severity == IssueSeverity.REQUIRED for issue in issues):
        return False
    for field in form.fields_in_order():
        if not matches_roles(field, target_roles):
            continue
        item = progress.fields[field.id]
        if item.answer_state == AnswerState.SKIPPED:
            continue
        if item.answer_state != AnswerState.ANSWERED or item.progress_state != ProgressState.COMPLETE:
            return False
    return True


def inspect(
    form: ParsedForm,
    *,
    registries: Sequence[ValidatorRegistry] | None = None,
    target_roles: Sequence[str] | None = None,
    max_issues: int | None = None,
) -> InspectResult:
    """Summarize a form and list what still needs attention.

    Args:
        form (ParsedForm): Form to inspect.
        registries (Sequence[ValidatorRegistry] | None): External validators.
        target_roles (Sequence[str] | None): Roles to report on; None or `*` means all.
        max_issues (int | None): Maximum number of issues returned, applied after sorting.

    Raises:
        ConfigError: If `max_issues` is negative.

    Returns:
        InspectResult: Summaries, issues, completion flag and form state.
    """
    if max_issues is not None and max_issues < 0:
        raise ConfigError("must be >= 0", option="max_issues", expected_type="int", received_value=max_issues)
    validation_issues = validate(form, registries=registries)
    progress = compute_progress_summary(form, validation_issues)
    issues = build_inspect_issues(form, validation_issues, progress, target_roles=target_roles)
    complete = is_form_complete(form, progress, issues, target_roles=target_roles)
    result = InspectResult(
        structure_summary=compute_structure_summary(form.form_schema),
        progress_summary=progress,
        issues=issues if max_issues is None else issues[:max_issues],
        is_complete=complete,
        form_state=compute_form_state(progress),
    )
    logger.debug(
        "Form inspected",
        extra={"form_id": form.form_schema.id, "issues": len(issues), "is_complete": complete},
    )
    return result


def raise_for_aborted(form: ParsedForm) -> None:
    """Raise when any field of the form has been aborted.

    Args:
        form (ParsedForm): Form to check.

    Raises:
        AbortError: For the first aborted field in document order.
    """
    for field in form.fields_in_order():
        response = form.response_for(field.id)
        if response.state == AnswerState.ABORTED:
            raise AbortError("Form fill aborted", reason=response.reason, field_id=field.id)

