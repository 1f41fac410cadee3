"""Project enums."""

from __future__ import annotations

from enum import StrEnum


class _EnumMixin(StrEnum):
    """Shared conversion helpers for user-facing enums."""

    @classmethod
    def from_str(cls, value: str) -> _EnumMixin:
        """Parse enum from string.

        Args:
            value: Raw string value.

        Raises:
            ValueError: If the value is not supported.

        Returns:
            _EnumMixin: Parsed enum value.
        """
        try:
            return cls(value)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            message = f"Unsupported {cls.__name__} value '{value}'. Expected one of: {supported}"
            raise ValueError(message) from exc

    def to_str(self) -> str:
        """Return string representation.

        Returns:
            str: Enum string value.
        """
        return self.value


class FieldKind(_EnumMixin):
    """Supported field kinds."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    YEAR = "year"
    URL = "url"
    STRING_LIST = "string_list"
    URL_LIST = "url_list"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    CHECKBOXES = "checkboxes"
    TABLE = "table"

    @property
    def is_chooser(self) -> bool:
        """Return whether the kind selects among declared options."""
        return self in {FieldKind.SINGLE_SELECT, FieldKind.MULTI_SELECT, FieldKind.CHECKBOXES}

    @property
    def is_text_entry(self) -> bool:
        """Return whether the kind accepts free text entry."""
        return self in {
            FieldKind.STRING,
            FieldKind.NUMBER,
            FieldKind.DATE,
            FieldKind.YEAR,
            FieldKind.URL,
            FieldKind.STRING_LIST,
            FieldKind.URL_LIST,
        }


class AnswerState(_EnumMixin):
    """Runtime answer state of a field or table cell."""

    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    SKIPPED = "skipped"
    ABORTED = "aborted"


class FieldStateAttr(_EnumMixin):
    """Values accepted by the `state` attribute on field tags."""

    EMPTY = "empty"
    ANSWERED = "answered"
    SKIPPED = "skipped"
    ABORTED = "aborted"


class CheckboxMode(_EnumMixin):
    """Checkbox state vocabularies."""

    MULTI = "multi"
    SIMPLE = "simple"
    EXPLICIT = "explicit"


class CheckboxValue(_EnumMixin):
    """State of one checkbox option."""

    TODO = "todo"
    DONE = "done"
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    NA = "na"
    UNFILLED = "unfilled"
    YES = "yes"
    NO = "no"


class ApprovalMode(_EnumMixin):
    """Approval behavior for checkbox fields."""

    NONE = "none"
    BLOCKING = "blocking"


class Priority(_EnumMixin):
    """Field priority level."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Return the numeric weight used for issue scoring."""
        return {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}[self]


class Severity(_EnumMixin):
    """Severity of a validation issue."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueSeverity(_EnumMixin):
    """Inspect-level issue severity."""

    REQUIRED = "required"
    RECOMMENDED = "recommended"


class IssueSource(_EnumMixin):
    """Origin of a validation issue."""

    BUILTIN = "builtin"
    EXTERNAL_CODE = "external-code"
    EXTERNAL_MODEL = "external-model"


class IssueReason(_EnumMixin):
    """Classification of an inspect issue."""

    REQUIRED_MISSING = "required_missing"
    VALIDATION_ERROR = "validation_error"
    CHECKBOX_INCOMPLETE = "checkbox_incomplete"
    MIN_ITEMS_NOT_MET = "min_items_not_met"
    OPTIONAL_UNANSWERED = "optional_unanswered"


class IssueScope(_EnumMixin):
    """Structural level an issue refers to."""

    FORM = "form"
    GROUP = "group"
    FIELD = "field"
    OPTION = "option"


class ProgressState(_EnumMixin):
    """Progress of a field or of the whole form."""

    EMPTY = "empty"
    INCOMPLETE = "incomplete"
    INVALID = "invalid"
    COMPLETE = "complete"


class ColumnType(_EnumMixin):
    """Cell types allowed in table columns."""

    STRING = "string"
    NUMBER = "number"
    URL = "url"
    DATE = "date"
    YEAR = "year"


class NodeType(_EnumMixin):
    """Structural node types stored in the ID index."""

    FORM = "form"
    GROUP = "group"
    FIELD = "field"


class DocTag(_EnumMixin):
    """Documentation block tag names."""

    DESCRIPTION = "description"
    INSTRUCTIONS = "instructions"
    NOTES = "notes"
    EXAMPLES = "examples"
    DOCUMENTATION = "documentation"


class SyntaxStyle(_EnumMixin):
    """Surface syntax used for structural tags."""

    TAGS = "tags"
    COMMENTS = "comments"


class ApplyStatus(_EnumMixin):
    """Outcome of a patch batch."""

    APPLIED = "applied"
    REJECTED = "rejected"


class ExportFormat(_EnumMixin):
    """Output formats supported by exports."""

    JSON = "json"
    YAML = "yaml"
    FRIENDLY = "friendly"
    MARKDOWN = "markdown"


class RunMode(_EnumMixin):
    """Run mode declared in form metadata."""

    INTERACTIVE = "interactive"
    FILL = "fill"
    RESEARCH = "research"
