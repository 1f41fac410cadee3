"""Package exceptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class PackageError(Exception):
    """Root exception for the package."""


@dataclass(frozen=True)
class SettingsError(PackageError):
    """Raised when settings cannot be loaded or validated."""

    message: str = "Failed to load settings"
    exc: BaseException | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message}: {self.exc}" if self.exc else self.message


@dataclass(frozen=True)
class ParseError(PackageError):
    """Raised when form text cannot be turned into a parsed form."""

    message: str
    line: int | None = None
    column: int | None = None
    source: str | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        location = ""
        if self.line is not None:
            location = f"line {self.line}" if self.column is None else f"line {self.line}, column {self.column}"
        if self.source and location:
            location = f"{self.source}:{location}"
        elif self.source:
            location = self.source
        return f"{location}: {self.message}" if location else self.message


@dataclass(frozen=True)
class PatchError(PackageError):
    """Raised when a single patch fails structural validation."""

    message: str
    field_id: str | None = None
    op: str | None = None
    expected_type: str | None = None
    received_value: Any = None
    patch_index: int | None = None

    @property
    def received_type(self) -> str:
        """Return the Python type name of the received value."""
        return type(self.received_value).__name__

    def __str__(self) -> str:
        """Return error message payload."""
        prefix = f"patch {self.patch_index}: " if self.patch_index is not None else ""
        return f"{prefix}{self.message}"


@dataclass(frozen=True)
class ValidationError(PackageError):
    """Raised when a patch batch is rejected as a whole."""

    message: str
    errors: tuple[PatchError, ...] = field(default_factory=tuple)

    @property
    def field_ids(self) -> list[str]:
        """Return the distinct field IDs involved, in first-seen order."""
        return list(dict.fromkeys(err.field_id for err in self.errors if err.field_id))

    def __str__(self) -> str:
        """Return error message payload."""
        if not self.errors:
            return self.message
        details = "; ".join(str(err) for err in self.errors)
        return f"{self.message}: {details}"


@dataclass(frozen=True)
class ConfigError(PackageError):
    """Raised when caller-supplied options are invalid."""

    message: str
    option: str | None = None
    expected_type: str | None = None
    received_value: Any = None

    def __str__(self) -> str:
        """Return error message payload."""
        if self.option is None:
            return self.message
        return f"Invalid option '{self.option}': {self.message}"


@dataclass(frozen=True)
class AbortError(PackageError):
    """Raised when a form fill is explicitly aborted."""

    message: str
    reason: str | None = None
    field_id: str | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        payload = self.message
        if self.field_id:
            payload = f"{payload} (field '{self.field_id}')"
        if self.reason:
            payload = f"{payload}: {self.reason}"
        return payload
