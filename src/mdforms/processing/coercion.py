"""Loose value coercion for input contexts and patch payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from mdforms.processing.normalization import parse_number, parse_year
from mdforms.processing.patch_checks import check_patch
from mdforms.typing.enums import CheckboxMode, CheckboxValue, ColumnType, FieldKind
from mdforms.typing.models import PATCH_ADAPTER, CheckboxesField, PatchWarning, TableField
from mdforms.typing.models.patches import SET_OP_BY_KIND

if TYPE_CHECKING:
    from collections.abc import Callable

    from mdforms.typing.models import FormField, ParsedForm, Patch


@dataclass
class CoercionResult:
    """Patches built from an input context plus coercion notes."""

    patches: list[Patch] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


Coerced = tuple[Any, str | None]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_string(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, str):
        return raw, None
    if isinstance(raw, bool):
        text = "true" if raw else "false"
        return text, f"Coerced boolean {text} to string for field '{field.id}'"
    if _is_number(raw):
        return str(raw), f"Coerced number {raw} to string for field '{field.id}'"
    raise ValueError(f"Cannot coerce {type(raw).__name__} to {field.kind} for field '{field.id}'")  # noqa: TRY003


def _to_text_only(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, str):
        return raw, None
    raise ValueError(f"Cannot coerce {type(raw).__name__} to {field.kind} for field '{field.id}'")  # noqa: TRY003


def _to_number(field: FormField, raw: Any) -> Coerced:
    if _is_number(raw):
        return raw, None
    if isinstance(raw, str):
        number = parse_number(raw)
        if number is not None:
            return number, f"Coerced string '{raw}' to number for field '{field.id}'"
        raise ValueError(f"Cannot coerce non-numeric string '{raw}' to number for field '{field.id}'")  # noqa: TRY003
    raise ValueError(f"Cannot coerce {type(raw).__name__} to number for field '{field.id}'")  # noqa: TRY003


def _to_year(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw, None
    if isinstance(raw, float) and raw.is_integer():
        return int(raw), f"Coerced number {raw} to year for field '{field.id}'"
    if isinstance(raw, str):
        year = parse_year(raw)
        if year is not None:
            return year, f"Coerced string '{raw}' to year for field '{field.id}'"
    raise ValueError(f"Year must be an integer for field '{field.id}', got {raw!r}")  # noqa: TRY003


def _to_list(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, str):
        return [raw], f"Coerced single string to {field.kind} for field '{field.id}'"
    if not isinstance(raw, list):
        raise ValueError(f"Cannot coerce {type(raw).__name__} to {field.kind} for field '{field.id}'")  # noqa: TRY003
    if all(isinstance(item, str) for item in raw):
        return raw, None
    if field.kind == FieldKind.STRING_LIST and all(isinstance(item, (str, int, float)) for item in raw):
        items = [_to_string(field, item)[0] for item in raw]
        return items, f"Coerced array items to strings for field '{field.id}'"
    message = f"Cannot coerce array with non-string items to {field.kind} for field '{field.id}'"
    raise ValueError(message)


def _to_single_select(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, str):
        return raw, None
    if isinstance(raw, list) and len(raw) == 1 and isinstance(raw[0], str):
        return raw[0], f"Coerced single-item array to option ID for field '{field.id}'"
    raise ValueError(f"single_select field '{field.id}' requires a string option ID")  # noqa: TRY003


def _to_multi_select(field: FormField, raw: Any) -> Coerced:
    if isinstance(raw, str):
        return [raw], f"Coerced single option ID to multi_select array for field '{field.id}'"
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        return raw, None
    raise ValueError(f"multi_select field '{field.id}' requires a string or a list of strings")  # noqa: TRY003


def _to_checkboxes(field: FormField, raw: Any) -> Coerced:
    if not isinstance(field, CheckboxesField):
        raise TypeError(field.kind)
    explicit = field.checkbox_mode == CheckboxMode.EXPLICIT
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        state = CheckboxValue.YES if explicit else CheckboxValue.DONE
        if not raw:
            return {}, None
        message = f"Coerced array to checkboxes object with '{state}' state for field '{field.id}'"
        return dict.fromkeys(raw, state.value), message
    if not isinstance(raw, dict):
        message = f"checkboxes field '{field.id}' requires a mapping of option IDs to checkbox states"
        raise ValueError(message)  # noqa: TRY004
    if not any(isinstance(value, bool) for value in raw.values()):
        return raw, None
    values = {}
    for option_id, value in raw.items():
        if isinstance(value, bool):
            on, off = (CheckboxValue.YES, CheckboxValue.NO) if explicit else (CheckboxValue.DONE, CheckboxValue.TODO)
            values[option_id] = (on if value else off).value
        else:
            values[option_id] = value
    return values, f"Coerced boolean values to checkbox states for field '{field.id}'"


def _to_table(field: FormField, raw: Any) -> Coerced:
    if not isinstance(field, TableField):
        raise TypeError(field.kind)
    if not isinstance(raw, list) or not all(isinstance(row, dict) for row in raw):
        columns = ", ".join(field.column_ids)
        message = f"Table value for field '{field.id}' must be a list of row objects keyed by column ID ({columns})"
        raise ValueError(message)  # noqa: TRY004
    types = {column.id: column.type for column in field.columns}
    coerced_any = False
    rows = []
    for row in raw:
        converted = {}
        for column_id, cell in row.items():
            column_type = types.get(column_id)
            if column_type in {ColumnType.NUMBER, ColumnType.YEAR} and isinstance(cell, str):
                number = parse_number(cell)
                if number is not None:
                    converted[column_id] = number
                    coerced_any = True
                    continue
            converted[column_id] = cell
        rows.append(converted)
    warning = f"Coerced numeric strings to numbers in table field '{field.id}'" if coerced_any else None
    return rows, warning


_COERCERS: dict[FieldKind, Callable[[FormField, Any], Coerced]] = {
    FieldKind.STRING: _to_string,
    FieldKind.NUMBER: _to_number,
    FieldKind.DATE: _to_text_only,
    FieldKind.YEAR: _to_year,
    FieldKind.URL: _to_text_only,
    FieldKind.STRING_LIST: _to_list,
    FieldKind.URL_LIST: _to_list,
    FieldKind.SINGLE_SELECT: _to_single_select,
    FieldKind.MULTI_SELECT: _to_multi_select,
    FieldKind.CHECKBOXES: _to_checkboxes,
    FieldKind.TABLE: _to_table,
}


def coerce_field_value(field: FormField, raw: Any) -> Coerced:
    """Coerce a loosely typed value into the shape a field kind expects.

    Args:
        field (FormField): Target field.
        raw (Any): Caller-supplied value; None passes through as a clear.

    Raises:
        ValueError: If the value cannot be converted.

    Returns:
        tuple[Any, str | None]: Converted value and a warning when a conversion happened.
    """
    if raw is None:
        return None, None
    return _COERCERS[FieldKind(field.kind)](field, raw)


def normalize_patch(
    form: ParsedForm,
    payload: dict[str, Any],
    index: int,
) -> tuple[dict[str, Any], PatchWarning | None]:
    """Coerce the value of a `set_*` payload when its op matches the field kind.

    Payloads for unknown fields or mismatched ops are returned untouched so the
    structural checks can report them.

    Args:
        form (ParsedForm): Form the patch targets.
        payload (dict[str, Any]): Raw patch mapping.
        index (int): Position of the patch in its batch.

    Raises:
        ValueError: If the value cannot be converted.

    Returns:
        tuple[dict[str, Any], PatchWarning | None]: Normalized payload and optional warning.
    """
    field_id = payload.get("fieldId", payload.get("field_id"))
    target = form.get_field(field_id) if isinstance(field_id, str) else None
    if target is None or payload.get("op") != SET_OP_BY_KIND[target.kind] or "value" not in payload:
        return payload, None
    value, message = coerce_field_value(target, payload["value"])
    if message is None:
        return payload, None
    return {**payload, "value": value}, PatchWarning(patch_index=index, field_id=target.id, message=message)


def coerce_input_context(form: ParsedForm, context: dict[str, Any]) -> CoercionResult:
    """Turn a `{fieldId: value}` mapping into typed `set_*` patches.

    `None` entries are ignored. Unknown fields, unconvertible values and values
    that would be rejected by the patch engine are reported as errors.

    Args:
        form (ParsedForm): Form the values target.
        context (dict[str, Any]): Field ID to raw value.

    Returns:
        CoercionResult: Patches, warnings and errors.
    """
    result = CoercionResult()
    for field_id, raw in context.items():
        if raw is None:
            continue
        target = form.get_field(field_id)
        if target is None:
            result.errors.append(f"Field '{field_id}' not found")
            continue
        try:
            value, message = coerce_field_value(target, raw)
            patch = PATCH_ADAPTER.validate_python(
                {"op": SET_OP_BY_KIND[target.kind], "fieldId": target.id, "value": value},
            )
        except (ValueError, PydanticValidationError) as exc:
            result.errors.append(str(exc))
            continue
        rejection = check_patch(form, patch, len(result.patches), {note.id for note in form.notes})
        if rejection is not None:
            result.errors.append(rejection.message)
            continue
        result.patches.append(patch)
        if message:
            result.warnings.append(message)
    return result
