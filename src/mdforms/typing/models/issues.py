"""Validation and inspect issue models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mdforms.typing.enums import IssueReason, IssueScope, IssueSeverity, IssueSource, Severity
from mdforms.typing.models.base import WireModel
from mdforms.typing.models.fields import FormSchema
from mdforms.typing.models.values import FieldResponse


class ValidationIssue(WireModel):
    """Output of the rule validator."""

    severity: Severity
    code: str
    ref: str
    message: str
    source: IssueSource = IssueSource.BUILTIN


class InspectIssue(WireModel):
    """Prioritized issue reported to callers of inspect and apply."""

    ref: str
    scope: IssueScope
    reason: IssueReason
    message: str
    severity: IssueSeverity
    priority: int
    score: int
    code: str | None = None
    blocked_by: str | None = None


class ValidatorContext(BaseModel):
    """Arguments handed to an external validator."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    form_schema: FormSchema
    values: dict[str, FieldResponse]
    target_id: str
    target_schema: Any
    params: dict[str, Any] = Field(default_factory=dict)
