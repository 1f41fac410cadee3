"""Build the typed schema, responses and lookup indexes from the raw tree."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mdforms.exceptions import ParseError
from mdforms.processing.normalization import normalize_list_items, parse_number, parse_year
from mdforms.processing.responses import TERMINAL_STATES, is_empty_value
from mdforms.processing.semantic_checks import Located, SourceMap, check_semantics
from mdforms.processing.tables import parse_table
from mdforms.syntax.extractor import RawDoc, RawField, RawForm, RawGroup, RawNote, RawOption
from mdforms.syntax.sentinels import parse_sentinel
from mdforms.typing.enums import (
    AnswerState,
    CheckboxMode,
    CheckboxValue,
    DocTag,
    FieldKind,
    FieldStateAttr,
    NodeType,
)
from mdforms.typing.models import (
    IMPLICIT_CHECKBOXES_ID,
    IMPLICIT_GROUP_ID,
    CheckboxesField,
    CheckboxesValue,
    DateField,
    DateValue,
    DocumentationBlock,
    FieldGroup,
    FieldResponse,
    FormField,
    FormSchema,
    IdIndexEntry,
    MultiSelectField,
    MultiSelectValue,
    Note,
    NumberField,
    NumberValue,
    Option,
    ParsedForm,
    SingleSelectField,
    SingleSelectValue,
    StringField,
    StringListField,
    StringListValue,
    StringValue,
    TableField,
    TableValue,
    UrlField,
    UrlListField,
    UrlListValue,
    UrlValue,
    ValidatorRef,
    YearField,
    YearValue,
)

if TYPE_CHECKING:
    from mdforms.syntax.lexer import FenceToken
    from mdforms.typing.models import FieldValue, FormMetadata

_ID_RE = re.compile(r"[A-Za-z_][\w-]*")
_FORM_ATTRS = frozenset({"id", "title", "description", "class"})
_GROUP_ATTRS = frozenset({"id", "title", "validate", "class"})
_DOC_ATTRS = frozenset({"ref", "class"})
_NOTE_ATTRS = frozenset({"id", "ref", "role", "state", "class"})
_TEXT_ENTRY_ONLY = ("placeholder", "examples")
_NOTE_STATES = frozenset({AnswerState.SKIPPED.value, AnswerState.ABORTED.value})
_FIELD_ADAPTER: TypeAdapter[Any] = TypeAdapter(FormField)

_SELECT_MARKERS = {" ": False, "x": True, "X": True}
_MODE_MARKERS: dict[CheckboxMode, dict[str, CheckboxValue]] = {
    CheckboxMode.MULTI: {
        " ": CheckboxValue.TODO,
        "x": CheckboxValue.DONE,
        "X": CheckboxValue.DONE,
        "/": CheckboxValue.INCOMPLETE,
        "*": CheckboxValue.ACTIVE,
        "-": CheckboxValue.NA,
    },
    CheckboxMode.SIMPLE: {" ": CheckboxValue.TODO, "x": CheckboxValue.DONE, "X": CheckboxValue.DONE},
    CheckboxMode.EXPLICIT: {
        " ": CheckboxValue.UNFILLED,
        "y": CheckboxValue.YES,
        "Y": CheckboxValue.YES,
        "n": CheckboxValue.NO,
        "N": CheckboxValue.NO,
    },
}


def _fail(message: str, line: int, column: int) -> ParseError:
    return ParseError(message, line=line, column=column)


def _describe(exc: PydanticValidationError, kind: str) -> str:
    details = []
    for error in exc.errors():
        parts = [str(part) for part in error["loc"]]
        if parts and parts[0] == kind:
            parts = parts[1:]
        name = ".".join(parts) or "attributes"
        if error["type"] == "extra_forbidden":
            details.append(f"unknown attribute '{name}'")
        else:
            details.append(f"'{name}': {error['msg']}")
    return "; ".join(details)


class _Builder:
    """Single-use builder over one raw form."""

    def __init__(self, raw: RawForm, metadata: FormMetadata | None) -> None:
        self.raw = raw
        self.metadata = metadata
        self.source = SourceMap()
        self.responses: dict[str, FieldResponse] = {}
        self.order_index: list[str] = []
        self.id_index: dict[str, IdIndexEntry] = {}

    def build(self) -> ParsedForm:
        raw = self.raw
        self.check_attrs(raw.attrs, _FORM_ATTRS, "form", raw.line, raw.column)
        form_id = self.require_id(raw.attrs, "Form", raw.line, raw.column)
        self.declare(form_id, NodeType.FORM, None, raw.line, raw.column)

        groups: list[FieldGroup] = []
        implicit: FieldGroup | None = None
        for child in raw.children:
            if isinstance(child, RawGroup):
                groups.append(self.build_group(child, form_id))
                continue
            if groups and groups[-1] is not implicit:
                raise _fail("Fields outside a group must come before the first group", child.line, child.column)
            if implicit is None:
                implicit = self.implicit_group(form_id, child.line, child.column)
                groups.append(implicit)
            implicit.fields.append(self.build_field(child, IMPLICIT_GROUP_ID))

        if raw.bare_options:
            first = raw.bare_options[0]
            if raw.iter_fields():
                message = "Bare checkbox items cannot be mixed with explicit field tags"
                raise _fail(message, first.line, first.column)
            if implicit is None:
                implicit = self.implicit_group(form_id, first.line, first.column)
                groups.append(implicit)
            implicit.fields.append(self.implicit_checkboxes(raw.bare_options))

        title = raw.attrs.get("title")
        description = raw.attrs.get("description")
        form = ParsedForm(
            form_schema=FormSchema(id=form_id, title=title, description=description, groups=groups),
            responses_by_field_id=self.responses,
            notes=[self.build_note(note) for note in raw.notes],
            docs=[self.build_doc(doc) for doc in raw.docs],
            order_index=self.order_index,
            id_index=self.id_index,
            metadata=self.metadata,
        )
        check_semantics(form, self.source)
        return form

    def check_attrs(self, attrs: dict[str, Any], allowed: frozenset[str], tag: str, line: int, column: int) -> None:
        unknown = sorted(set(attrs) - allowed)
        if unknown:
            raise _fail(f"Unknown attribute '{unknown[0]}' on '{tag}' tag", line, column)

    def require_id(self, attrs: dict[str, Any], what: str, line: int, column: int) -> str:
        value = attrs.get("id")
        if not isinstance(value, str) or not value:
            raise _fail(f"{what} tag is missing an 'id'", line, column)
        if not _ID_RE.fullmatch(value):
            raise _fail(f"Invalid ID '{value}': use letters, digits, '_' or '-'", line, column)
        return value

    def declare(self, item_id: str, node_type: NodeType, parent_id: str | None, line: int, column: int) -> None:
        self.source.structural.append((node_type, Located((item_id,), line, column)))
        self.id_index.setdefault(item_id, IdIndexEntry(node_type=node_type, parent_id=parent_id))

    def implicit_group(self, form_id: str, line: int, column: int) -> FieldGroup:
        self.declare(IMPLICIT_GROUP_ID, NodeType.GROUP, form_id, line, column)
        return FieldGroup(id=IMPLICIT_GROUP_ID, implicit=True)

    def validator_refs(self, raw: Any, line: int, column: int) -> list[ValidatorRef]:
        entries = raw if isinstance(raw, list) else [raw]
        try:
            return [ValidatorRef.from_attr(entry) for entry in entries]
        except ValueError as exc:
            raise _fail(str(exc), line, column) from exc

    def build_group(self, raw: RawGroup, form_id: str) -> FieldGroup:
        self.check_attrs(raw.attrs, _GROUP_ATTRS, "group", raw.line, raw.column)
        group_id = self.require_id(raw.attrs, "Group", raw.line, raw.column)
        self.declare(group_id, NodeType.GROUP, form_id, raw.line, raw.column)
        validators = self.validator_refs(raw.attrs.get("validate", []), raw.line, raw.column)
        group = FieldGroup(id=group_id, title=raw.attrs.get("title"), validators=validators)
        group.fields.extend(self.build_field(item, group_id) for item in raw.fields)
        return group

    def build_field(self, raw: RawField, group_id: str) -> FormField:
        attrs = dict(raw.attrs)
        attrs.pop("class", None)
        state_attr = attrs.pop("state", None)
        field_id = self.require_id(attrs, "Field", raw.line, raw.column)
        if field_id == IMPLICIT_CHECKBOXES_ID:
            raise _fail(f"Field ID '{IMPLICIT_CHECKBOXES_ID}' is reserved", raw.line, raw.column)
        kind = self.field_kind(attrs, field_id, raw)
        label = attrs.get("label")
        if not isinstance(label, str) or not label.strip():
            raise _fail(f"Field '{field_id}' is missing a label", raw.line, raw.column)
        if "validate" in attrs:
            attrs["validate"] = self.validator_refs(attrs["validate"], raw.line, raw.column)

        if kind.is_chooser:
            used = [key for key in _TEXT_ENTRY_ONLY if key in attrs]
            if used:
                message = f"Attribute '{used[0]}' is not allowed on {kind} field '{field_id}' (text-entry only)"
                raise _fail(message, raw.line, raw.column)
            attrs["options"] = self.build_options(raw, field_id)
        elif raw.options:
            option = raw.options[0]
            raise _fail(f"Field '{field_id}' of kind '{kind}' cannot hold options", option.line, option.column)

        if kind == FieldKind.CHECKBOXES and attrs.get("checkboxMode") == CheckboxMode.EXPLICIT.value:
            if attrs.get("required") is False:
                message = f"Field '{field_id}' uses checkboxMode=\"explicit\", which is always required"
                raise _fail(message, raw.line, raw.column)
            attrs["required"] = True
        explicit_labels = True
        if kind == FieldKind.TABLE:
            explicit_labels = self.apply_columns(attrs, field_id, raw)

        try:
            field = _FIELD_ADAPTER.validate_python(attrs)
        except PydanticValidationError as exc:
            message = f"Invalid attributes on field '{field_id}': {_describe(exc, kind.value)}"
            raise _fail(message, raw.line, raw.column) from exc

        self.declare(field_id, NodeType.FIELD, group_id, raw.line, raw.column)
        self.order_index.append(field_id)
        self.responses[field_id] = self.build_response(field, raw, state_attr, explicit_labels=explicit_labels)
        return field

    def field_kind(self, attrs: dict[str, Any], field_id: str, raw: RawField) -> FieldKind:
        kind = attrs.get("kind")
        if kind is None:
            raise _fail(f"Field '{field_id}' is missing a 'kind'", raw.line, raw.column)
        try:
            return FieldKind.from_str(str(kind))
        except ValueError as exc:
            raise _fail(f"Field '{field_id}': {exc}", raw.line, raw.column) from exc

    def build_options(self, raw: RawField, field_id: str) -> list[Option]:
        options = []
        for item in raw.options:
            option_id = item.id or ""
            if option_id == IMPLICIT_CHECKBOXES_ID:
                raise _fail(f"Option ID '{IMPLICIT_CHECKBOXES_ID}' is reserved", item.line, item.column)
            if not item.label:
                raise _fail(f"Option '{option_id}' in field '{field_id}' is missing a label", item.line, item.column)
            self.source.options.append(Located((field_id, option_id), item.line, item.column))
            options.append(Option(id=option_id, label=item.label))
        return options

    def apply_columns(self, attrs: dict[str, Any], field_id: str, raw: RawField) -> bool:
        column_ids = attrs.pop("columnIds", None)
        labels = attrs.pop("columnLabels", None)
        types = attrs.pop("columnTypes", None)
        if not isinstance(column_ids, list) or not column_ids or not all(isinstance(item, str) for item in column_ids):
            raise _fail(f"Table field '{field_id}' needs a non-empty 'columnIds' list", raw.line, raw.column)
        for name, values in (("columnLabels", labels), ("columnTypes", types)):
            if values is not None and (not isinstance(values, list) or len(values) != len(column_ids)):
                message = f"Table field '{field_id}': '{name}' must list one entry per column"
                raise _fail(message, raw.line, raw.column)
        columns: list[dict[str, Any]] = []
        for index, column_id in enumerate(column_ids):
            column: dict[str, Any] = {"id": column_id, "label": labels[index] if labels else column_id}
            spec = types[index] if types else "string"
            if isinstance(spec, dict):
                column.update(spec)
            else:
                column["type"] = spec
            columns.append(column)
        attrs["columns"] = columns
        return labels is not None

    def build_response(
        self,
        field: FormField,
        raw: RawField,
        state_attr: Any,
        *,
        explicit_labels: bool,
    ) -> FieldResponse:
        declared = self.state_attr(state_attr, field.id, raw)
        kind = FieldKind(field.kind)
        sentinel = None
        value: FieldValue | None = None
        fence = raw.value
        if fence is not None:
            sentinel = parse_sentinel(fence.content)
            if sentinel is None:
                if kind.is_chooser:
                    message = f"Field '{field.id}' of kind '{kind}' takes its value from option markers"
                    raise _fail(message, fence.line, fence.column)
                value = self.fence_value(field, fence, explicit_labels=explicit_labels)
        if kind.is_chooser:
            value = self.chooser_value(field, raw.options)
        if is_empty_value(value):
            value = None

        reason = None
        if sentinel is not None:
            if declared is not None and declared.value != sentinel.state.value:
                message = f"Field '{field.id}' has state=\"{declared}\" but its value is a {sentinel.state} sentinel"
                raise _fail(message, raw.line, raw.column)
            state, reason = sentinel.state, sentinel.reason
        elif declared in {FieldStateAttr.SKIPPED, FieldStateAttr.ABORTED}:
            state = AnswerState(declared.value)
        elif declared == FieldStateAttr.ANSWERED and value is None:
            raise _fail(f"Field '{field.id}' has state=\"answered\" but no value", raw.line, raw.column)
        elif declared == FieldStateAttr.EMPTY and value is not None:
            raise _fail(f"Field '{field.id}' has state=\"empty\" but holds a value", raw.line, raw.column)
        else:
            state = AnswerState.UNANSWERED if value is None else AnswerState.ANSWERED

        if state in TERMINAL_STATES and value is not None:
            raise _fail(f"Field '{field.id}' is {state} but holds a value", raw.line, raw.column)
        if state == AnswerState.SKIPPED and field.required:
            raise _fail(f"Required field '{field.id}' cannot be skipped", raw.line, raw.column)
        return FieldResponse(state=state, value=value, reason=reason)

    def state_attr(self, raw_state: Any, field_id: str, raw: RawField) -> FieldStateAttr | None:
        if raw_state is None:
            return None
        try:
            return FieldStateAttr.from_str(str(raw_state))
        except ValueError as exc:
            raise _fail(f"Field '{field_id}': {exc}", raw.line, raw.column) from exc

    def fence_value(  # noqa: PLR0911
        self,
        field: FormField,
        fence: FenceToken,
        *,
        explicit_labels: bool,
    ) -> FieldValue | None:
        text = fence.content.strip()
        if isinstance(field, StringField):
            return StringValue(value=text or None)
        if isinstance(field, DateField):
            return DateValue(value=text or None)
        if isinstance(field, UrlField):
            return UrlValue(value=text or None)
        if isinstance(field, StringListField):
            return StringListValue(items=normalize_list_items(fence.content))
        if isinstance(field, UrlListField):
            return UrlListValue(items=normalize_list_items(fence.content))
        if isinstance(field, NumberField):
            number = parse_number(text) if text else None
            if text and number is None:
                raise _fail(f"Field '{field.id}': invalid number '{text}'", fence.line, fence.column)
            return NumberValue(value=number)
        if isinstance(field, YearField):
            year = parse_year(text) if text else None
            if text and year is None:
                raise _fail(f"Field '{field.id}': invalid year '{text}'", fence.line, fence.column)
            return YearValue(value=year)
        if isinstance(field, TableField):
            try:
                table = parse_table(fence.content, field.columns)
            except ValueError as exc:
                raise _fail(f"Field '{field.id}': {exc}", fence.line, fence.column) from exc
            if not explicit_labels and table.headers:
                for column, header in zip(field.columns, table.headers, strict=True):
                    column.label = header or column.id
            return TableValue(rows=table.rows)
        return None

    def chooser_value(self, field: FormField, options: list[RawOption]) -> FieldValue | None:
        if isinstance(field, CheckboxesField):
            markers = _MODE_MARKERS[field.checkbox_mode]
            values = {}
            for item in options:
                if item.marker not in markers:
                    raise self.bad_marker(item, field.id, f"checkboxMode=\"{field.checkbox_mode}\"")
                values[item.id or ""] = markers[item.marker]
            return CheckboxesValue(values=values)
        selected = []
        for item in options:
            if item.marker not in _SELECT_MARKERS:
                raise self.bad_marker(item, field.id, f"kind '{field.kind}'")
            if _SELECT_MARKERS[item.marker]:
                selected.append(item.id or "")
        if isinstance(field, SingleSelectField):
            if len(selected) > 1:
                message = f"Single-select field '{field.id}' has {len(selected)} options selected"
                raise _fail(message, options[0].line, options[0].column)
            return SingleSelectValue(selected=selected[0] if selected else None)
        if isinstance(field, MultiSelectField):
            return MultiSelectValue(selected=selected)
        return None

    @staticmethod
    def bad_marker(item: RawOption, field_id: str, context: str) -> ParseError:
        message = f"Marker '[{item.marker}]' on option '{item.id}' of field '{field_id}' is not valid for {context}"
        return _fail(message, item.line, item.column)

    def implicit_checkboxes(self, items: list[RawOption]) -> CheckboxesField:
        raw = RawField(
            attrs={"kind": FieldKind.CHECKBOXES.value, "id": IMPLICIT_CHECKBOXES_ID, "label": "Checkboxes"},
            line=items[0].line,
            column=items[0].column,
            options=items,
        )
        options = self.build_options(raw, IMPLICIT_CHECKBOXES_ID)
        field = CheckboxesField(id=IMPLICIT_CHECKBOXES_ID, label="Checkboxes", options=options)
        self.declare(field.id, NodeType.FIELD, IMPLICIT_GROUP_ID, raw.line, raw.column)
        self.order_index.append(field.id)
        self.responses[field.id] = self.build_response(field, raw, None, explicit_labels=True)
        return field

    def build_doc(self, raw: RawDoc) -> DocumentationBlock:
        self.check_attrs(raw.attrs, _DOC_ATTRS, raw.tag, raw.line, raw.column)
        ref = raw.attrs.get("ref") or raw.owner
        if not isinstance(ref, str):
            raise _fail(f"Documentation block '{raw.tag}' needs a 'ref'", raw.line, raw.column)
        self.source.docs.append(Located((ref, raw.tag), raw.line, raw.column))
        return DocumentationBlock(ref=ref, tag=DocTag(raw.tag), body=raw.body)

    def build_note(self, raw: RawNote) -> Note:
        self.check_attrs(raw.attrs, _NOTE_ATTRS, "note", raw.line, raw.column)
        values = {key: raw.attrs.get(key) for key in ("id", "ref", "role")}
        missing = [key for key, value in values.items() if not isinstance(value, str) or not value]
        if missing:
            raise _fail(f"Note is missing '{missing[0]}'", raw.line, raw.column)
        state = raw.attrs.get("state")
        if state is not None and state not in _NOTE_STATES:
            raise _fail(f"Note '{values['id']}' has invalid state '{state}'", raw.line, raw.column)
        self.source.notes.append(Located((values["id"], values["ref"]), raw.line, raw.column))
        return Note(id=values["id"], ref=values["ref"], role=values["role"], text=raw.text, state=state)


def build_form(raw: RawForm, metadata: FormMetadata | None = None) -> ParsedForm:
    """Convert the raw tree into a validated `ParsedForm`.

    Args:
        raw (RawForm): Extracted raw tree.
        metadata (FormMetadata | None): Authored metadata from the document header.

    Raises:
        ParseError: On missing labels, illegal attribute combinations, bad values
            or any parse-time semantic violation.

    Returns:
        ParsedForm: Fully built form.
    """
    return _Builder(raw, metadata).build()
