"""External validator interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from mdforms.typing.models import ValidationIssue, ValidatorContext


class ValidatorFn(Protocol):
    """Externally supplied rule function, registered under a validator ID."""

    def __call__(self, context: ValidatorContext) -> list[ValidationIssue | dict[str, Any]]:
        """Check the target element.

        Args:
            context: Schema, current values, target ID/schema and parameters.

        Returns:
            list[ValidationIssue | dict[str, Any]]: Issues found, as models or
                `{severity, code?, ref?, message}` mappings.
        """
