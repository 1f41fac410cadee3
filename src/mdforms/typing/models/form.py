"""Parsed form aggregate and its satellite records."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from mdforms.settings import SPEC_VERSION
from mdforms.typing.enums import DocTag, NodeType, RunMode, SyntaxStyle
from mdforms.typing.models.base import WireModel
from mdforms.typing.models.fields import DEFAULT_ROLE, USER_ROLE, FormField, FormSchema
from mdforms.typing.models.values import FieldResponse


class DocumentationBlock(WireModel):
    """Documentation attached to a form, group, field or option."""

    ref: str
    tag: DocTag
    body: str


class Note(WireModel):
    """Free-form annotation attached to an element."""

    id: str
    ref: str
    role: str
    text: str
    state: Literal["skipped", "aborted"] | None = None


class IdIndexEntry(WireModel):
    """Location of one structural ID."""

    node_type: NodeType
    parent_id: str | None = None


class FormMetadata(WireModel):
    """Authored metadata from the document header."""

    spec_version: str = SPEC_VERSION
    title: str | None = None
    description: str | None = None
    roles: list[str] = Field(default_factory=lambda: [USER_ROLE, DEFAULT_ROLE])
    role_instructions: dict[str, str] = Field(default_factory=dict)
    run_mode: RunMode | None = None
    harness: dict[str, Any] = Field(default_factory=dict)
    syntax_style: SyntaxStyle = SyntaxStyle.TAGS


class ParsedForm(WireModel):
    """In-memory unit of work produced by the parser."""

    form_schema: FormSchema = Field(alias="schema")
    responses_by_field_id: dict[str, FieldResponse] = Field(default_factory=dict)
    notes: list[Note] = Field(default_factory=list)
    docs: list[DocumentationBlock] = Field(default_factory=list)
    order_index: list[str] = Field(default_factory=list)
    id_index: dict[str, IdIndexEntry] = Field(default_factory=dict)
    metadata: FormMetadata | None = None

    def get_field(self, field_id: str) -> FormField | None:
        """Return a field by ID.

        Args:
            field_id (str): Field identifier.

        Returns:
            FormField | None: Matching field, if any.
        """
        entry = self.id_index.get(field_id)
        if entry is None or entry.node_type != NodeType.FIELD:
            return None
        return self.form_schema.field_by_id(field_id)

    def response_for(self, field_id: str) -> FieldResponse:
        """Return the response for a field, unanswered when absent."""
        return self.responses_by_field_id.get(field_id) or FieldResponse()

    def fields_in_order(self) -> list[FormField]:
        """Return fields following the document-order index."""
        by_id = {field.id: field for field in self.form_schema.iter_fields()}
        return [by_id[item_id] for item_id in self.order_index if item_id in by_id]
