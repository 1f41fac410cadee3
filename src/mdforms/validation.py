"""Built-in rule validation plus the external validator extension point."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from mdforms.logging import get_logger
from mdforms.processing.normalization import cell_matches_type, is_valid_date, is_valid_url, is_valid_year
from mdforms.processing.responses import MODE_VALUES, checkbox_states
from mdforms.typing.enums import AnswerState, CheckboxMode, CheckboxValue, IssueSource, Severity
from mdforms.typing.models import (
    CheckboxesField,
    CheckboxesValue,
    DateField,
    DateValue,
    MultiSelectField,
    MultiSelectValue,
    NumberField,
    NumberValue,
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
    ValidationIssue,
    ValidatorContext,
    YearField,
    YearValue,
)

if TYPE_CHECKING:
    from mdforms.typing.models import FieldResponse, FormField, ParsedForm, ValidatorRef
    from mdforms.typing.protocol import ValidatorFn

logger = get_logger(__name__)

REQUIRED_EMPTY = "REQUIRED_EMPTY"
CHECKBOXES_INCOMPLETE = "CHECKBOXES_INCOMPLETE"
CHECKBOXES_UNFILLED = "CHECKBOXES_UNFILLED"
MIN_ITEMS = "MIN_ITEMS"
MIN_SELECTIONS = "MIN_SELECTIONS"
MIN_ROWS_NOT_MET = "MIN_ROWS_NOT_MET"
VALIDATOR_NOT_FOUND = "VALIDATOR_NOT_FOUND"
VALIDATOR_ERROR = "VALIDATOR_ERROR"

# Codes describing missing work rather than wrong values.
COMPLETION_CODES = frozenset(
    {REQUIRED_EMPTY, CHECKBOXES_INCOMPLETE, CHECKBOXES_UNFILLED, MIN_ITEMS, MIN_SELECTIONS, MIN_ROWS_NOT_MET},
)

_SOURCE_ORDER = {IssueSource.BUILTIN: 0, IssueSource.EXTERNAL_CODE: 1, IssueSource.EXTERNAL_MODEL: 2}


class ValidatorRegistry:
    """Validator functions keyed by the IDs used in `validate` attributes."""

    def __init__(
        self,
        validators: Mapping[str, ValidatorFn] | None = None,
        *,
        source: IssueSource = IssueSource.EXTERNAL_CODE,
    ) -> None:
        """Create a registry.

        Args:
            validators (Mapping[str, ValidatorFn] | None): Initial validators.
            source (IssueSource): Source stamped on every issue this registry yields.

        Raises:
            ValueError: If `source` is `builtin`.
        """
        if source == IssueSource.BUILTIN:
            raise ValueError("External validator registries cannot use the builtin source")  # noqa: TRY003
        self.source = source
        self._validators: dict[str, ValidatorFn] = dict(validators or {})

    def register(self, validator_id: str, fn: ValidatorFn) -> None:
        """Register or replace a validator."""
        self._validators[validator_id] = fn

    def get(self, validator_id: str) -> ValidatorFn | None:
        """Return the validator registered under an ID, if any."""
        return self._validators.get(validator_id)

    def __contains__(self, validator_id: object) -> bool:
        return validator_id in self._validators

    def __len__(self) -> int:
        return len(self._validators)


def _issue(code: str, ref: str, message: str, severity: Severity = Severity.ERROR) -> ValidationIssue:
    return ValidationIssue(severity=severity, code=code, ref=ref, message=message)


def _check_length(
    field_id: str,
    label: str,
    text: str,
    minimum: int | None,
    maximum: int | None,
) -> list[ValidationIssue]:
    issues = []
    if minimum is not None and len(text) < minimum:
        issues.append(_issue("MIN_LENGTH", field_id, f"'{label}' must be at least {minimum} characters"))
    if maximum is not None and len(text) > maximum:
        issues.append(_issue("MAX_LENGTH", field_id, f"'{label}' must be at most {maximum} characters"))
    return issues


def _validate_string(field: StringField, value: StringValue) -> list[ValidationIssue]:
    text = value.value or ""
    issues = _check_length(field.id, field.label, text, field.min_length, field.max_length)
    if field.pattern:
        try:
            matched = re.search(field.pattern, text) is not None
        except re.error as exc:
            issues.append(_issue("INVALID_PATTERN", field.id, f"Pattern for '{field.label}' is invalid: {exc}"))
        else:
            if not matched:
                message = f"'{field.label}' does not match the pattern {field.pattern}"
                issues.append(_issue("PATTERN_MISMATCH", field.id, message))
    return issues


def _validate_number(field: NumberField, value: NumberValue) -> list[ValidationIssue]:
    number = value.value
    if number is None:
        return []
    issues = []
    if field.integer and not float(number).is_integer():
        issues.append(_issue("NOT_INTEGER", field.id, f"'{field.label}' must be a whole number"))
    if field.min_value is not None and number < field.min_value:
        issues.append(_issue("MIN_VALUE", field.id, f"'{field.label}' must be at least {field.min_value}"))
    if field.max_value is not None and number > field.max_value:
        issues.append(_issue("MAX_VALUE", field.id, f"'{field.label}' must be at most {field.max_value}"))
    return issues


def _validate_date(field: DateField, value: DateValue) -> list[ValidationIssue]:
    text = value.value or ""
    if not is_valid_date(text):
        return [_issue("INVALID_DATE", field.id, f"'{field.label}' must be a date in YYYY-MM-DD form")]
    issues = []
    if field.min_value and is_valid_date(field.min_value) and text < field.min_value:
        issues.append(_issue("DATE_TOO_EARLY", field.id, f"'{field.label}' must be on or after {field.min_value}"))
    if field.max_value and is_valid_date(field.max_value) and text > field.max_value:
        issues.append(_issue("DATE_TOO_LATE", field.id, f"'{field.label}' must be on or before {field.max_value}"))
    return issues


def _validate_year(field: YearField, value: YearValue) -> list[ValidationIssue]:
    year = value.value
    if year is None:
        return []
    if not is_valid_year(year):
        return [_issue("INVALID_YEAR", field.id, f"'{field.label}' must be a 4-digit year")]
    if field.min_value is not None and year < field.min_value:
        return [_issue("YEAR_OUT_OF_RANGE", field.id, f"'{field.label}' must be {field.min_value} or later")]
    if field.max_value is not None and year > field.max_value:
        return [_issue("YEAR_OUT_OF_RANGE", field.id, f"'{field.label}' must be {field.max_value} or earlier")]
    return []


def _validate_url(field: UrlField, value: UrlValue) -> list[ValidationIssue]:
    if is_valid_url(value.value or ""):
        return []
    return [_issue("INVALID_URL", field.id, f"'{field.label}' must be an absolute http(s) URL")]


def _check_items(field: StringListField | UrlListField, items: list[str]) -> list[ValidationIssue]:
    issues = []
    if field.min_items is not None and len(items) < field.min_items:
        message = f"'{field.label}' needs at least {field.min_items} items (got {len(items)})"
        issues.append(_issue(MIN_ITEMS, field.id, message))
    if field.max_items is not None and len(items) > field.max_items:
        message = f"'{field.label}' allows at most {field.max_items} items (got {len(items)})"
        issues.append(_issue("MAX_ITEMS", field.id, message))
    if field.unique_items and len(set(items)) != len(items):
        issues.append(_issue("DUPLICATE_ITEMS", field.id, f"'{field.label}' contains duplicate items"))
    return issues


def _validate_string_list(field: StringListField, value: StringListValue) -> list[ValidationIssue]:
    issues = _check_items(field, value.items)
    for position, item in enumerate(value.items, start=1):
        if field.item_min_length is not None and len(item) < field.item_min_length:
            message = f"Item {position} of '{field.label}' must be at least {field.item_min_length} characters"
            issues.append(_issue("ITEM_MIN_LENGTH", field.id, message))
        if field.item_max_length is not None and len(item) > field.item_max_length:
            message = f"Item {position} of '{field.label}' must be at most {field.item_max_length} characters"
            issues.append(_issue("ITEM_MAX_LENGTH", field.id, message))
    return issues


def _validate_url_list(field: UrlListField, value: UrlListValue) -> list[ValidationIssue]:
    issues = _check_items(field, value.items)
    for position, item in enumerate(value.items, start=1):
        if not is_valid_url(item):
            issues.append(_issue("INVALID_URL", field.id, f"Item {position} of '{field.label}' is not a valid URL"))
    return issues


def _unknown_options(field: FormField, chosen: Iterable[str]) -> list[ValidationIssue]:
    valid = {option.id for option in getattr(field, "options", [])}
    return [
        _issue("UNKNOWN_OPTION", field.id, f"'{field.label}' has no option '{option_id}'")
        for option_id in chosen
        if option_id not in valid
    ]


def _validate_single_select(field: SingleSelectField, value: SingleSelectValue) -> list[ValidationIssue]:
    return _unknown_options(field, [value.selected] if value.selected else [])


def _validate_multi_select(field: MultiSelectField, value: MultiSelectValue) -> list[ValidationIssue]:
    issues = _unknown_options(field, value.selected)
    count = len(value.selected)
    if field.min_selections is not None and count < field.min_selections:
        message = f"'{field.label}' needs at least {field.min_selections} selections (got {count})"
        issues.append(_issue(MIN_SELECTIONS, field.id, message))
    if field.max_selections is not None and count > field.max_selections:
        message = f"'{field.label}' allows at most {field.max_selections} selections (got {count})"
        issues.append(_issue("MAX_SELECTIONS", field.id, message))
    return issues


def checkbox_threshold(field: CheckboxesField) -> int:
    """Return how many options must be done in `simple` mode; negative `minDone` means all."""
    count = len(field.options)
    return count if field.min_done < 0 else min(field.min_done, count)


def checkboxes_complete(field: CheckboxesField, states: Mapping[str, CheckboxValue]) -> bool:
    """Apply the mode-specific completion rule.

    Args:
        field (CheckboxesField): Checkbox field.
        states (Mapping[str, CheckboxValue]): State of every option.

    Returns:
        bool: Whether the checklist counts as complete.
    """
    values = list(states.values())
    if field.checkbox_mode == CheckboxMode.SIMPLE:
        return values.count(CheckboxValue.DONE) >= checkbox_threshold(field)
    if field.checkbox_mode == CheckboxMode.EXPLICIT:
        return CheckboxValue.UNFILLED not in values
    return all(state in {CheckboxValue.DONE, CheckboxValue.NA} for state in values)


def _validate_checkboxes(field: CheckboxesField, response: FieldResponse) -> list[ValidationIssue]:
    stored = response.value.values if isinstance(response.value, CheckboxesValue) else {}
    issues = _unknown_options(field, stored)
    allowed = MODE_VALUES[field.checkbox_mode]
    for option_id, state in stored.items():
        if state not in allowed:
            message = (
                f"Option '{option_id}' of '{field.label}' has state '{state}', "
                f"invalid in {field.checkbox_mode} mode"
            )
            issues.append(_issue("INVALID_CHECKBOX_STATE", field.id, message))
    states = checkbox_states(field, response)
    if checkboxes_complete(field, states):
        return issues
    severity = Severity.ERROR if field.required else Severity.WARNING
    values = list(states.values())
    if field.checkbox_mode == CheckboxMode.EXPLICIT:
        pending = values.count(CheckboxValue.UNFILLED)
        message = f"All items in '{field.label}' must be answered ({pending} unfilled)"
        issues.append(_issue(CHECKBOXES_UNFILLED, field.id, message, severity))
    elif field.checkbox_mode == CheckboxMode.SIMPLE:
        done = values.count(CheckboxValue.DONE)
        message = f"'{field.label}' needs {checkbox_threshold(field)} items checked (got {done})"
        issues.append(_issue(CHECKBOXES_INCOMPLETE, field.id, message, severity))
    else:
        pending = sum(state not in {CheckboxValue.DONE, CheckboxValue.NA} for state in values)
        message = f"All items in '{field.label}' must be done or marked n/a ({pending} open)"
        issues.append(_issue(CHECKBOXES_INCOMPLETE, field.id, message, severity))
    return issues


def _validate_table(field: TableField, value: TableValue) -> list[ValidationIssue]:
    issues = []
    count = len(value.rows)
    if field.min_rows is not None and count < field.min_rows:
        message = f"Table '{field.label}' has {count} rows but requires at least {field.min_rows}"
        issues.append(_issue(MIN_ROWS_NOT_MET, field.id, message))
    if field.max_rows is not None and count > field.max_rows:
        message = f"Table '{field.label}' has {count} rows but allows at most {field.max_rows}"
        issues.append(_issue("MAX_ROWS_EXCEEDED", field.id, message))
    for row_number, row in enumerate(value.rows, start=1):
        for column in field.columns:
            cell = row.get(column.id)
            where = f"row {row_number}, column '{column.id}' of '{field.label}'"
            if cell is None:
                issues.append(_issue("CELL_MISSING", field.id, f"Cell at {where} is missing"))
                continue
            if cell.state != AnswerState.ANSWERED:
                continue
            if cell.value is None or (isinstance(cell.value, str) and not cell.value.strip()):
                if column.required:
                    message = f"Cell at {where} is empty; provide a value or use %SKIP%"
                    issues.append(_issue("CELL_EMPTY", field.id, message))
                continue
            if not cell_matches_type(cell.value, column.type):
                message = f"Cell {cell.value!r} at {where} is not a valid {column.type}"
                issues.append(_issue("CELL_TYPE_MISMATCH", field.id, message))
    return issues


_VALUE_RULES: dict[type, Callable[[Any, Any], list[ValidationIssue]]] = {
    StringField: _validate_string,
    NumberField: _validate_number,
    DateField: _validate_date,
    YearField: _validate_year,
    UrlField: _validate_url,
    StringListField: _validate_string_list,
    UrlListField: _validate_url_list,
    SingleSelectField: _validate_single_select,
    MultiSelectField: _validate_multi_select,
    TableField: _validate_table,
}


def validate_field(field: FormField, response: FieldResponse) -> list[ValidationIssue]:
    """Run the built-in rules for one field.

    Args:
        field (FormField): Field schema.
        response (FieldResponse): Current response.

    Returns:
        list[ValidationIssue]: Issues found.
    """
    if response.state in {AnswerState.SKIPPED, AnswerState.ABORTED}:
        return []
    if response.state == AnswerState.UNANSWERED or response.value is None:
        if field.required:
            return [_issue(REQUIRED_EMPTY, field.id, f"Required field '{field.label}' is empty")]
        return []
    if isinstance(field, CheckboxesField):
        return _validate_checkboxes(field, response)
    rule = _VALUE_RULES[type(field)]
    return rule(field, response.value)


def _coerce_external(
    raw: ValidationIssue | dict[str, Any],
    validator_id: str,
    target_id: str,
    source: IssueSource,
) -> ValidationIssue:
    if isinstance(raw, ValidationIssue):
        return raw.model_copy(update={"source": source})
    return ValidationIssue(
        severity=Severity.from_str(str(raw.get("severity", Severity.ERROR.value))),
        code=str(raw.get("code") or validator_id),
        ref=str(raw.get("ref") or target_id),
        message=str(raw["message"]),
        source=source,
    )


def _run_external(
    form: ParsedForm,
    registry: ValidatorRegistry,
    fn: ValidatorFn,
    ref: ValidatorRef,
    target_id: str,
    target_schema: Any,
) -> list[ValidationIssue]:
    context = ValidatorContext(
        form_schema=form.form_schema,
        values=form.responses_by_field_id,
        target_id=target_id,
        target_schema=target_schema,
        params=ref.params,
    )
    try:
        return [_coerce_external(raw, ref.id, target_id, registry.source) for raw in fn(context)]
    except Exception as exc:  # noqa: BLE001
        logger.warning("External validator failed", extra={"validator": ref.id, "target": target_id, "error": str(exc)})
        return [
            ValidationIssue(
                severity=Severity.ERROR,
                code=VALIDATOR_ERROR,
                ref=target_id,
                message=f"Validator '{ref.id}' failed: {exc}",
                source=registry.source,
            ),
        ]


def _validator_targets(form: ParsedForm) -> list[tuple[str, Any, list[ValidatorRef]]]:
    targets: list[tuple[str, Any, list[ValidatorRef]]] = []
    for group in form.form_schema.groups:
        if group.validators:
            targets.append((group.id, group, group.validators))
        for field in group.fields:
            if field.validators and form.response_for(field.id).is_answered:
                targets.append((field.id, field, field.validators))
    return targets


def validate(form: ParsedForm, *, registries: Sequence[ValidatorRegistry] | None = None) -> list[ValidationIssue]:
    """Validate a form with the built-in rules and, when given, external validators.

    Issues are merged in source order: built-in, then external-code, then
    external-model. Validator references that no registry resolves yield a
    `VALIDATOR_NOT_FOUND` warning.

    Args:
        form (ParsedForm): Form to validate.
        registries (Sequence[ValidatorRegistry] | None): External validators; None skips them.

    Returns:
        list[ValidationIssue]: Issues in deterministic order.
    """
    issues: list[ValidationIssue] = []
    for field in form.fields_in_order():
        issues.extend(validate_field(field, form.response_for(field.id)))
    if registries is None:
        return issues

    targets = _validator_targets(form)
    resolved: set[tuple[str, str]] = set()
    external: list[ValidationIssue] = []
    for registry in sorted(registries, key=lambda item: _SOURCE_ORDER[item.source]):
        for target_id, schema, refs in targets:
            for ref in refs:
                fn = registry.get(ref.id)
                if fn is None:
                    continue
                resolved.add((target_id, ref.id))
                external.extend(_run_external(form, registry, fn, ref, target_id, schema))
    for target_id, _, refs in targets:
        for ref in refs:
            if (target_id, ref.id) not in resolved:
                message = f"Validator '{ref.id}' referenced by '{target_id}' is not registered"
                issues.append(_issue(VALIDATOR_NOT_FOUND, target_id, message, Severity.WARNING))
    logger.debug("External validators run", extra={"targets": len(targets), "issues": len(external)})
    return issues + external
