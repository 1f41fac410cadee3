"""Value exports, the plain Markdown report and value import."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import yaml

from mdforms.exceptions import ConfigError
from mdforms.processing.coercion import CoercionResult, coerce_input_context
from mdforms.processing.normalization import format_scalar
from mdforms.processing.responses import TERMINAL_STATES, checkbox_states, default_checkbox_value
from mdforms.processing.tables import escape_cell
from mdforms.syntax.sentinels import detect_sentinel, format_sentinel
from mdforms.typing.enums import AnswerState, CheckboxValue, ExportFormat
from mdforms.typing.models import (
    AbortFieldPatch,
    CellResponse,
    CheckboxesField,
    CheckboxesValue,
    MultiSelectValue,
    SingleSelectValue,
    SkipFieldPatch,
    StringListValue,
    TableField,
    TableValue,
    UrlListValue,
)

if TYPE_CHECKING:
    from mdforms.typing.models import FieldResponse, FieldValue, FormField, ParsedForm

STRUCTURED = "structured"
FRIENDLY = "friendly"
_FLAVOURS = (STRUCTURED, FRIENDLY)
_STRUCTURED_KEYS = frozenset({"state", "value", "reason"})
_GFM_MARKERS = {CheckboxValue.DONE: "x", CheckboxValue.YES: "x"}


def _cell_plain(cell: CellResponse) -> Any:
    if cell.state in TERMINAL_STATES:
        return format_sentinel(cell.state, cell.reason)
    return cell.value


def plain_value(field: FormField, value: FieldValue) -> Any:
    """Return the JSON-friendly payload of a typed value.

    Args:
        field (FormField): Field the value belongs to.
        value (FieldValue): Typed value.

    Returns:
        Any: Scalar, list or mapping.
    """
    if isinstance(value, (StringListValue, UrlListValue)):
        return list(value.items)
    if isinstance(value, SingleSelectValue):
        return value.selected
    if isinstance(value, MultiSelectValue):
        return list(value.selected)
    if isinstance(value, CheckboxesValue) and isinstance(field, CheckboxesField):
        default = default_checkbox_value(field.checkbox_mode)
        return {option.id: value.values.get(option.id, default).value for option in field.options}
    if isinstance(value, TableValue):
        return [{column_id: _cell_plain(cell) for column_id, cell in row.items()} for row in value.rows]
    return value.value


def _structured(field: FormField, response: FieldResponse) -> dict[str, Any]:
    entry: dict[str, Any] = {"state": response.state.value}
    if response.is_answered and response.value is not None:
        entry["value"] = plain_value(field, response.value)
    if response.reason:
        entry["reason"] = response.reason
    return entry


def _friendly(field: FormField, response: FieldResponse) -> Any:
    if response.state in TERMINAL_STATES:
        return format_sentinel(response.state, response.reason)
    if response.is_answered and response.value is not None:
        return plain_value(field, response.value)
    return None


def export_values(form: ParsedForm, flavour: str = STRUCTURED) -> dict[str, Any]:
    """Export every field's response keyed by field ID.

    The `structured` flavour gives `{state, value?, reason?}` per field. The
    `friendly` flavour gives the bare value, `None` when unanswered, or a
    sentinel string for skipped and aborted fields.

    Args:
        form (ParsedForm): Form to export.
        flavour (str): `structured` or `friendly`.

    Raises:
        ConfigError: If the flavour is unknown.

    Returns:
        dict[str, Any]: Field ID to exported response.
    """
    if flavour not in _FLAVOURS:
        raise ConfigError(
            f"expected one of {', '.join(_FLAVOURS)}",
            option="flavour",
            expected_type="str",
            received_value=flavour,
        )
    render = _structured if flavour == STRUCTURED else _friendly
    return {field.id: render(field, form.response_for(field.id)) for field in form.fields_in_order()}


def export_json(form: ParsedForm) -> dict[str, Any]:
    """Return the schema and structured values of a form.

    Args:
        form (ParsedForm): Form to export.

    Returns:
        dict[str, Any]: `{"schema": ..., "values": ...}` with wire key names.
    """
    return {"schema": form.form_schema.to_wire(), "values": export_values(form, STRUCTURED)}


def export_yaml(form: ParsedForm) -> str:
    """Return friendly values as a YAML document."""
    return yaml.safe_dump(export_values(form, FRIENDLY), sort_keys=False, allow_unicode=True)


def _report_value(field: FormField, response: FieldResponse) -> list[str]:  # noqa: PLR0911
    if response.state in TERMINAL_STATES:
        suffix = f": {response.reason}" if response.reason else ""
        return [f"_({response.state.value}{suffix})_"]
    value = response.value if response.is_answered else None
    if isinstance(field, CheckboxesField):
        states = checkbox_states(field, response)
        return [f"- [{_GFM_MARKERS.get(states[option.id], ' ')}] {option.label}" for option in field.options]
    labels = {option.id: option.label for option in getattr(field, "options", [])}
    if isinstance(value, SingleSelectValue) and value.selected:
        return [labels.get(value.selected, value.selected)]
    if isinstance(value, MultiSelectValue) and value.selected:
        return [f"- {labels.get(option_id, option_id)}" for option_id in value.selected]
    if field.kind in {"single_select", "multi_select"}:
        return ["_(none selected)_"]
    if value is None:
        return ["_(empty)_"]
    if isinstance(value, (StringListValue, UrlListValue)):
        return [f"- {item}" for item in value.items]
    if isinstance(value, TableValue) and isinstance(field, TableField):
        header = "| " + " | ".join(escape_cell(column.label) for column in field.columns) + " |"
        rows = [header, "| " + " | ".join("---" for _ in field.columns) + " |"]
        for row in value.rows:
            cells = [row.get(column.id) for column in field.columns]
            rendered = [escape_cell(format_scalar(_cell_plain(cell))) if cell else "" for cell in cells]
            rows.append("| " + " | ".join(rendered) + " |")
        return rows
    return [format_scalar(value.value)]


def serialize_raw_markdown(form: ParsedForm) -> str:
    """Render a read-only Markdown report of the form.

    The report carries no form syntax and cannot be parsed back. Fields with
    `report=false` are left out.

    Args:
        form (ParsedForm): Form to render.

    Returns:
        str: Markdown text ending with a newline.
    """
    schema = form.form_schema
    docs_by_ref: dict[str, list[str]] = {}
    for doc in form.docs:
        docs_by_ref.setdefault(doc.ref, []).append(doc.body.strip())

    title = schema.title or (form.metadata.title if form.metadata else None) or schema.id
    blocks = [f"# {title}", *docs_by_ref.get(schema.id, [])]
    for group in schema.groups:
        fields = [field for field in group.fields if field.report]
        if not fields:
            continue
        if group.title:
            blocks.append(f"## {group.title}")
        blocks.extend(docs_by_ref.get(group.id, []))
        for field in fields:
            lines = [f"**{field.label}:**", *_report_value(field, form.response_for(field.id))]
            blocks.append("\n".join(lines))
            blocks.extend(docs_by_ref.get(field.id, []))
    return "\n\n".join(block for block in blocks if block) + "\n"


def export_form(form: ParsedForm, export_format: ExportFormat | str) -> str:
    """Render a form in one of the export formats.

    Args:
        form (ParsedForm): Form to export.
        export_format (ExportFormat | str): `json`, `yaml`, `friendly` or `markdown`.

    Raises:
        ConfigError: If the format is unknown.

    Returns:
        str: Exported text.
    """
    try:
        chosen = ExportFormat.from_str(str(export_format))
    except ValueError as exc:
        raise ConfigError(str(exc), option="format", expected_type="str", received_value=export_format) from exc
    if chosen == ExportFormat.JSON:
        return json.dumps(export_json(form), indent=2, ensure_ascii=False) + "\n"
    if chosen == ExportFormat.YAML:
        return export_yaml(form)
    if chosen == ExportFormat.FRIENDLY:
        return json.dumps(export_values(form, FRIENDLY), indent=2, ensure_ascii=False) + "\n"
    return serialize_raw_markdown(form)


def _is_structured_entry(raw: Any) -> bool:
    if not isinstance(raw, dict) or "state" not in raw or not set(raw) <= _STRUCTURED_KEYS:
        return False
    return raw["state"] in {state.value for state in AnswerState}


def import_values(form: ParsedForm, values: dict[str, Any], *, role: str = "user") -> CoercionResult:
    """Turn exported values of either flavour back into patches.

    Answered values go through the input-context coercion; skipped and aborted
    entries, structured or sentinel strings, become `skip_field` and
    `abort_field` patches. Unanswered entries are ignored.

    Args:
        form (ParsedForm): Form the values target.
        values (dict[str, Any]): Field ID to exported response.
        role (str): Role recorded on skip and abort patches.

    Returns:
        CoercionResult: Patches, warnings and errors.
    """
    context: dict[str, Any] = {}
    terminal: list[tuple[str, AnswerState, str | None]] = []
    for field_id, raw in values.items():
        if _is_structured_entry(raw):
            state = AnswerState(raw["state"])
            if state in TERMINAL_STATES:
                terminal.append((field_id, state, raw.get("reason")))
            elif state == AnswerState.ANSWERED:
                context[field_id] = raw.get("value")
            continue
        sentinel = detect_sentinel(raw) if isinstance(raw, str) else None
        if sentinel is not None and form.get_field(field_id) is not None:
            terminal.append((field_id, sentinel.state, sentinel.reason))
            continue
        context[field_id] = raw

    result = coerce_input_context(form, context)
    for field_id, state, reason in terminal:
        if form.get_field(field_id) is None:
            result.errors.append(f"Field '{field_id}' not found")
            continue
        patch_type = SkipFieldPatch if state == AnswerState.SKIPPED else AbortFieldPatch
        result.patches.append(patch_type(field_id=field_id, role=role, reason=reason))
    return result
