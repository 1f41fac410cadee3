"""Canonical text rendering of a parsed form."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import yaml

from mdforms.inspection import inspect
from mdforms.logging import get_logger
from mdforms.parser import METADATA_KEY
from mdforms.processing.normalization import format_scalar
from mdforms.processing.responses import TERMINAL_STATES, default_checkbox_value
from mdforms.processing.tables import format_table
from mdforms.settings import SPEC_VERSION
from mdforms.syntax.attributes import format_attributes
from mdforms.syntax.extractor import VALUE_LANGUAGE
from mdforms.syntax.sentinels import format_sentinel
from mdforms.typing.enums import CheckboxValue, ColumnType, SyntaxStyle
from mdforms.typing.models import (
    IMPLICIT_CHECKBOXES_ID,
    CheckboxesField,
    CheckboxesValue,
    FormMetadata,
    MultiSelectValue,
    NumberValue,
    SingleSelectValue,
    StringListValue,
    TableField,
    TableValue,
    UrlListValue,
    YearValue,
)

if TYPE_CHECKING:
    from mdforms.typing.models import DocumentationBlock, FieldGroup, FormField, Note, ParsedForm

logger = get_logger(__name__)

_MARKERS = {
    CheckboxValue.TODO: " ",
    CheckboxValue.DONE: "x",
    CheckboxValue.INCOMPLETE: "/",
    CheckboxValue.ACTIVE: "*",
    CheckboxValue.NA: "-",
    CheckboxValue.UNFILLED: " ",
    CheckboxValue.YES: "y",
    CheckboxValue.NO: "n",
}
_SCHEMA_ONLY_KEYS = frozenset({"kind", "id", "label", "options", "columns", "validate"})
_TAG_LIKE_RE = re.compile(r"\{%|<!--\s*/?f:|<!--\s*#")
_FENCE_RUN_RE = re.compile(r" {0,3}(`+|~+)")
_NOTE_ID_RE = re.compile(r"n(\d+)")


def max_run_at_line_start(content: str, char: str) -> int:
    """Return the longest run of `char` opening a line, skipping indented code lines.

    Args:
        content (str): Value text.
        char (str): Backtick or tilde.

    Returns:
        int: Longest run length, 0 when none.
    """
    longest = 0
    for line in content.split("\n"):
        match = _FENCE_RUN_RE.match(line)
        if match and match.group(1)[0] == char:
            longest = max(longest, len(match.group(1)))
    return longest


def pick_fence(content: str) -> str:
    """Choose a fence that cannot be closed by any line of the content.

    The character with the shorter maximal line-start run wins, backticks on a
    tie; the fence is one longer than that run and at least three long.

    Args:
        content (str): Value text.

    Returns:
        str: Fence string.
    """
    backticks = max_run_at_line_start(content, "`")
    tildes = max_run_at_line_start(content, "~")
    char, run = ("`", backticks) if backticks <= tildes else ("~", tildes)
    return char * max(3, run + 1)


def _value_block(content: str) -> str:
    fence = pick_fence(content)
    info = VALUE_LANGUAGE
    if _TAG_LIKE_RE.search(content):
        info = f"{info} {{% process=false %}}"
    return f"{fence}{info}\n{content}\n{fence}"


class _Writer:
    """Tag writer for one syntax style."""

    def __init__(self, style: SyntaxStyle) -> None:
        self.style = style

    def attrs(self, attrs: dict[str, Any]) -> str:
        text = format_attributes(attrs)
        if self.style == SyntaxStyle.COMMENTS:
            text = text.replace("-->", "--\\>")
        return text

    def open(self, name: str, attrs: dict[str, Any]) -> str:
        text = self.attrs(attrs)
        body = f"{name} {text}" if text else name
        if self.style == SyntaxStyle.COMMENTS:
            return f"<!-- f:{body} -->"
        return f"{{% {body} %}}"

    def close(self, name: str) -> str:
        if self.style == SyntaxStyle.COMMENTS:
            return f"<!-- /f:{name} -->"
        return f"{{% /{name} %}}"

    def annotation(self, option_id: str) -> str:
        if self.style == SyntaxStyle.COMMENTS:
            return f"<!-- #{option_id} -->"
        return f"{{% #{option_id} %}}"

    def block(self, name: str, attrs: dict[str, Any], body: str) -> str:
        inner = f"\n{body}\n" if body else "\n"
        return f"{self.open(name, attrs)}{inner}{self.close(name)}"


def field_attributes(field: FormField, form: ParsedForm) -> dict[str, Any]:
    """Return the tag attributes of a field, defaults omitted.

    Args:
        field (FormField): Field schema.
        form (ParsedForm): Form holding the response.

    Returns:
        dict[str, Any]: Attribute mapping in wire names.
    """
    dumped = field.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True, mode="json")
    attrs = {key: value for key, value in dumped.items() if key not in _SCHEMA_ONLY_KEYS}
    attrs.update(kind=field.kind, id=field.id, label=field.label)
    if field.validators:
        attrs["validate"] = [ref.to_attr() for ref in field.validators]
    if isinstance(field, TableField):
        attrs["columnIds"] = field.column_ids
        attrs["columnLabels"] = [column.label for column in field.columns]
        if any(column.type != ColumnType.STRING or column.required for column in field.columns):
            attrs["columnTypes"] = [
                {"type": column.type.value, "required": True} if column.required else column.type.value
                for column in field.columns
            ]
    response = form.response_for(field.id)
    if response.state in TERMINAL_STATES:
        attrs["state"] = response.state.value
    return attrs


def field_value_text(field: FormField, form: ParsedForm) -> str | None:  # noqa: PLR0911
    """Return the text of a field's value block, None when no block is written.

    Args:
        field (FormField): Field schema.
        form (ParsedForm): Form holding the response.

    Returns:
        str | None: Block content.
    """
    response = form.response_for(field.id)
    if response.state in TERMINAL_STATES:
        return format_sentinel(response.state, response.reason) if response.reason else None
    value = response.value
    if not response.is_answered or value is None:
        return None
    if isinstance(value, (CheckboxesValue, SingleSelectValue, MultiSelectValue)):
        return None
    if isinstance(value, (StringListValue, UrlListValue)):
        return "\n".join(value.items)
    if isinstance(value, TableValue) and isinstance(field, TableField):
        return format_table(field.columns, value.rows)
    if isinstance(value, (NumberValue, YearValue)):
        return format_scalar(value.value)
    return value.value


def _option_markers(field: FormField, form: ParsedForm) -> dict[str, str]:
    response = form.response_for(field.id)
    value = response.value if response.is_answered else None
    if isinstance(field, CheckboxesField):
        stored = value.values if isinstance(value, CheckboxesValue) else {}
        default = default_checkbox_value(field.checkbox_mode)
        return {option.id: _MARKERS[stored.get(option.id, default)] for option in field.options}
    chosen: set[str] = set()
    if isinstance(value, SingleSelectValue) and value.selected:
        chosen = {value.selected}
    elif isinstance(value, MultiSelectValue):
        chosen = set(value.selected)
    return {option.id: "x" if option.id in chosen else " " for option in getattr(field, "options", [])}


def _note_sort_key(note: Note) -> tuple[int, int, str]:
    match = _NOTE_ID_RE.fullmatch(note.id)
    if match:
        return 0, int(match.group(1)), note.id
    return 1, 0, note.id


class _FormSerializer:
    def __init__(self, form: ParsedForm, style: SyntaxStyle) -> None:
        self.form = form
        self.writer = _Writer(style)
        self.docs_by_ref: dict[str, list[DocumentationBlock]] = {}
        for doc in form.docs:
            self.docs_by_ref.setdefault(doc.ref, []).append(doc)

    def docs_for(self, *refs: str) -> list[str]:
        return [
            self.writer.block(doc.tag.value, {"ref": doc.ref}, doc.body)
            for ref in refs
            for doc in self.docs_by_ref.get(ref, [])
        ]

    def options(self, field: FormField) -> list[str]:
        markers = _option_markers(field, self.form)
        return [
            f"- [{markers[option.id]}] {option.label} {self.writer.annotation(option.id)}"
            for option in getattr(field, "options", [])
        ]

    def field(self, field: FormField) -> list[str]:
        if field.id == IMPLICIT_CHECKBOXES_ID:
            return ["\n".join(self.options(field)), *self.docs_for(field.id)]
        lines = [self.writer.open("field", field_attributes(field, self.form))]
        lines.extend(self.options(field))
        content = field_value_text(field, self.form)
        if content is not None:
            lines.append(_value_block(content))
        closing = self.writer.close("field")
        if len(lines) == 1:
            rendered = lines[0] + closing
        else:
            rendered = "\n".join([*lines, closing])
        refs = [field.id]
        refs.extend(f"{field.id}.{option.id}" for option in getattr(field, "options", []))
        if isinstance(field, TableField):
            refs.extend(f"{field.id}.{column_id}" for column_id in field.column_ids)
        return [rendered, *self.docs_for(*refs)]

    def group(self, group: FieldGroup) -> list[str]:
        blocks: list[str] = []
        if group.implicit:
            blocks.extend(self.docs_for(group.id))
            for item in group.fields:
                blocks.extend(self.field(item))
            return blocks
        attrs: dict[str, Any] = {"id": group.id, "title": group.title}
        if group.validators:
            attrs["validate"] = [ref.to_attr() for ref in group.validators]
        blocks.append(self.writer.open("group", attrs))
        blocks.extend(self.docs_for(group.id))
        for item in group.fields:
            blocks.extend(self.field(item))
        blocks.append(self.writer.close("group"))
        return blocks

    def note(self, note: Note) -> str:
        attrs = {"id": note.id, "ref": note.ref, "role": note.role, "state": note.state}
        return self.writer.block("note", attrs, note.text)

    def body(self) -> str:
        schema = self.form.form_schema
        blocks = [self.writer.open("form", {"id": schema.id, "title": schema.title, "description": schema.description})]
        blocks.extend(self.docs_for(schema.id))
        for group in schema.groups:
            blocks.extend(self.group(group))
        blocks.extend(self.note(note) for note in sorted(self.form.notes, key=_note_sort_key))
        blocks.append(self.writer.close("form"))
        return "\n\n".join(blocks)


def metadata_block(form: ParsedForm, *, spec_version: str | None = None) -> str:
    """Render the YAML metadata block with freshly computed summaries.

    Args:
        form (ParsedForm): Form to describe.
        spec_version (str | None): Version marker, defaults to the form's or the current one.

    Returns:
        str: `---` delimited YAML block.
    """
    metadata = form.metadata or FormMetadata()
    section: dict[str, Any] = {"spec": spec_version or metadata.spec_version or SPEC_VERSION}
    if metadata.title:
        section["title"] = metadata.title
    if metadata.description:
        section["description"] = metadata.description
    section["roles"] = list(metadata.roles)
    if metadata.role_instructions:
        section["role_instructions"] = dict(metadata.role_instructions)
    if metadata.run_mode:
        section["run_mode"] = metadata.run_mode.value
    if metadata.harness:
        section["harness"] = dict(metadata.harness)

    result = inspect(form)
    structure = result.structure_summary
    section["form_summary"] = {
        "group_count": structure.group_count,
        "field_count": structure.field_count,
        "option_count": structure.option_count,
        "field_count_by_kind": dict(structure.field_count_by_kind),
    }
    section["form_progress"] = result.progress_summary.counts.model_dump()
    section["form_state"] = result.form_state.value
    dumped = yaml.safe_dump({METADATA_KEY: section}, sort_keys=False, allow_unicode=True)
    return f"---\n{dumped}---"


def serialize(form: ParsedForm, *, style: SyntaxStyle | None = None, spec_version: str | None = None) -> str:
    """Render a form as canonical `.form.md` text.

    Output is deterministic: attributes are sorted, blocks are separated by one
    blank line and derived summaries are recomputed.

    Args:
        form (ParsedForm): Form to render.
        style (SyntaxStyle | None): Tag syntax, defaults to the style the form was parsed from.
        spec_version (str | None): Version marker written to the metadata block.

    Returns:
        str: Canonical document text ending with a newline.
    """
    chosen = style or (form.metadata.syntax_style if form.metadata else SyntaxStyle.TAGS)
    text = f"{metadata_block(form, spec_version=spec_version)}\n\n{_FormSerializer(form, chosen).body()}\n"
    logger.debug("Form serialized", extra={"form_id": form.form_schema.id, "syntax": chosen.value, "chars": len(text)})
    return text
