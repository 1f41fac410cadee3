"""Typing-centric domain modules."""

from mdforms.typing.enums import (
    AnswerState,
    ApplyStatus,
    CheckboxMode,
    CheckboxValue,
    FieldKind,
    IssueReason,
    Priority,
    ProgressState,
    Severity,
    SyntaxStyle,
)
from mdforms.typing.models import (
    ApplyResult,
    FieldResponse,
    FormSchema,
    InspectIssue,
    InspectResult,
    ParsedForm,
    Patch,
    ValidationIssue,
    ValidatorContext,
)
from mdforms.typing.protocol import ValidatorFn

__all__ = [
    "AnswerState",
    "ApplyResult",
    "ApplyStatus",
    "CheckboxMode",
    "CheckboxValue",
    "FieldKind",
    "FieldResponse",
    "FormSchema",
    "InspectIssue",
    "InspectResult",
    "IssueReason",
    "ParsedForm",
    "Patch",
    "Priority",
    "ProgressState",
    "Severity",
    "SyntaxStyle",
    "ValidationIssue",
    "ValidatorContext",
    "ValidatorFn",
]
