"""Parse-time structural checks; every failure aborts loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mdforms.exceptions import ParseError
from mdforms.typing.enums import IssueScope, NodeType
from mdforms.typing.models import TableField
from mdforms.typing.models.fields import option_ids

if TYPE_CHECKING:
    from mdforms.typing.models import ParsedForm


@dataclass(frozen=True)
class Located:
    """Declared item with its source position."""

    key: tuple[str, ...]
    line: int
    column: int


@dataclass
class SourceMap:
    """Source positions of declarations collected while building."""

    structural: list[tuple[NodeType, Located]] = field(default_factory=list)
    options: list[Located] = field(default_factory=list)
    docs: list[Located] = field(default_factory=list)
    notes: list[Located] = field(default_factory=list)


def resolve_ref(form: ParsedForm, ref: str) -> IssueScope | None:
    """Resolve a documentation or note target.

    Plain refs name a form, group or field. Qualified refs `field.option` and
    `field.column` name an option or a table column of that field.

    Args:
        form (ParsedForm): Form holding the targets.
        ref (str): Reference to resolve.

    Returns:
        IssueScope | None: Scope of the target, None when it does not resolve.
    """
    entry = form.id_index.get(ref)
    if entry is not None:
        return IssueScope(entry.node_type.value)
    field_id, _, child_id = ref.partition(".")
    if not child_id:
        return None
    target = form.get_field(field_id)
    if target is None:
        return None
    if child_id in option_ids(target):
        return IssueScope.OPTION
    if isinstance(target, TableField) and child_id in target.column_ids:
        return IssueScope.FIELD
    return None


def _fail(message: str, located: Located) -> ParseError:
    return ParseError(message, line=located.line, column=located.column)


def check_unique_ids(source: SourceMap) -> None:
    """Reject form, group and field IDs that are declared twice.

    Raises:
        ParseError: On the second declaration of an ID.
    """
    seen: dict[str, tuple[NodeType, Located]] = {}
    for node_type, located in source.structural:
        (item_id,) = located.key
        previous = seen.get(item_id)
        if previous is not None:
            first_type, first = previous
            message = (
                f"Duplicate ID '{item_id}': {node_type.value} reuses the ID of the "
                f"{first_type.value} declared at line {first.line}"
            )
            raise _fail(message, located)
        seen[item_id] = (node_type, located)


def check_unique_options(source: SourceMap) -> None:
    """Reject option IDs repeated within one field.

    Raises:
        ParseError: On the second occurrence within the same field.
    """
    seen: set[tuple[str, ...]] = set()
    for located in source.options:
        if located.key in seen:
            field_id, item_id = located.key
            raise _fail(f"Duplicate option ID '{item_id}' in field '{field_id}'", located)
        seen.add(located.key)


def check_docs(form: ParsedForm, source: SourceMap) -> None:
    """Reject unresolved refs and repeated `(ref, tag)` documentation pairs.

    Raises:
        ParseError: On the first offending block.
    """
    seen: set[tuple[str, ...]] = set()
    for located in source.docs:
        ref, tag = located.key
        if resolve_ref(form, ref) is None:
            raise _fail(f"Documentation block '{tag}' references unknown element '{ref}'", located)
        if located.key in seen:
            raise _fail(f"Duplicate '{tag}' documentation for '{ref}'", located)
        seen.add(located.key)


def check_notes(form: ParsedForm, source: SourceMap) -> None:
    """Reject repeated note IDs and notes whose ref does not resolve.

    Raises:
        ParseError: On the first offending note.
    """
    seen: set[str] = set()
    for located in source.notes:
        note_id, ref = located.key
        if note_id in seen:
            raise _fail(f"Duplicate note ID '{note_id}'", located)
        if resolve_ref(form, ref) is None:
            raise _fail(f"Note '{note_id}' references unknown element '{ref}'", located)
        seen.add(note_id)


def check_semantics(form: ParsedForm, source: SourceMap) -> None:
    """Run every parse-time check in declaration order.

    Args:
        form (ParsedForm): Freshly built form.
        source (SourceMap): Declaration positions.

    Raises:
        ParseError: On the first violation found.
    """
    check_unique_ids(source)
    check_unique_options(source)
    check_docs(form, source)
    check_notes(form, source)
