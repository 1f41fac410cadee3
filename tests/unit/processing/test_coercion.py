from __future__ import annotations

import pytest

from mdforms.processing.coercion import coerce_field_value, coerce_input_context, normalize_patch
from mdforms.typing.models import ParsedForm, SetMultiSelectPatch, SetNumberPatch


def _field(form: ParsedForm, field_id: str):
    field = form.get_field(field_id)
    assert field is not None
    return field


@pytest.mark.parametrize(
    ("field_id", "raw", "expected", "warning"),
    [
        ("name", "ACME", "ACME", None),
        ("name", 42, "42", "Coerced number 42 to string for field 'name'"),
        ("employees", "42", 42, "Coerced string '42' to number for field 'employees'"),
        ("employees", 7.5, 7.5, None),
        ("founded", 1999.0, 1999, "Coerced number 1999.0 to year for field 'founded'"),
        ("founded", "1999", 1999, "Coerced string '1999' to year for field 'founded'"),
        ("contacts", "ops@acme.example", ["ops@acme.example"], "Coerced single string to string_list"),
        ("contacts", ["a", 1], ["a", "1"], "Coerced array items to strings"),
        ("size", ["large"], "large", "Coerced single-item array to option ID"),
        ("markets", "eu", ["eu"], "Coerced single option ID to multi_select array"),
        ("docs", ["contract"], {"contract": "done"}, "Coerced array to checkboxes object with 'done' state"),
        ("docs", {"contract": True, "invoice": False}, {"contract": "done", "invoice": "todo"}, "Coerced boolean"),
        ("docs", {"contract": "done"}, {"contract": "done"}, None),
        ("offices", [{"city": "Paris", "staff": "12"}], [{"city": "Paris", "staff": 12}], "Coerced numeric strings"),
        ("website", None, None, None),
    ],
)
def test_coerce_field_value(
    vendor_form: ParsedForm,
    field_id: str,
    raw: object,
    expected: object,
    warning: str | None,
) -> None:
    value, message = coerce_field_value(_field(vendor_form, field_id), raw)

    assert value == expected
    if warning is None:
        assert message is None
    else:
        assert message is not None
        assert message.startswith(warning)


@pytest.mark.parametrize(
    ("field_id", "raw", "message"),
    [
        ("employees", "many", "Cannot coerce non-numeric string 'many' to number for field 'employees'"),
        ("founded", 1999.5, "Year must be an integer for field 'founded'"),
        ("website", 3, "Cannot coerce int to url for field 'website'"),
        ("size", ["small", "large"], "single_select field 'size' requires a string option ID"),
        ("docs", "contract", "requires a mapping of option IDs to checkbox states"),
        ("offices", {"city": "Paris"}, "must be a list of row objects keyed by column ID \\(city, staff\\)"),
    ],
)
def test_coerce_field_value_rejects_unconvertible_input(
    vendor_form: ParsedForm,
    field_id: str,
    raw: object,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        coerce_field_value(_field(vendor_form, field_id), raw)


def test_normalize_patch_records_warning(vendor_form: ParsedForm) -> None:
    payload, warning = normalize_patch(vendor_form, {"op": "set_number", "fieldId": "employees", "value": "12"}, 3)

    assert payload["value"] == 12
    assert warning is not None
    assert (warning.patch_index, warning.field_id) == (3, "employees")


def test_normalize_patch_leaves_mismatched_ops_alone(vendor_form: ParsedForm) -> None:
    payload = {"op": "set_number", "fieldId": "name", "value": "12"}

    assert normalize_patch(vendor_form, payload, 0) == (payload, None)
    assert normalize_patch(vendor_form, {"op": "set_string", "fieldId": "ghost", "value": 1}, 0)[1] is None


def test_coerce_input_context_builds_typed_patches(vendor_form: ParsedForm) -> None:
    result = coerce_input_context(vendor_form, {"employees": "250", "markets": "us", "website": None})

    assert result.errors == []
    assert len(result.patches) == 2
    employees, markets = result.patches
    assert isinstance(employees, SetNumberPatch)
    assert employees.value == 250
    assert isinstance(markets, SetMultiSelectPatch)
    assert markets.value == ["us"]
    assert len(result.warnings) == 2


def test_coerce_input_context_reports_errors(vendor_form: ParsedForm) -> None:
    result = coerce_input_context(
        vendor_form,
        {"ghost": "x", "employees": "many", "size": "medium", "name": "%SKIP%"},
    )

    assert result.patches == []
    assert result.errors[0] == "Field 'ghost' not found"
    assert result.errors[1].startswith("Cannot coerce non-numeric string")
    assert result.errors[2] == "Invalid option 'medium' for field 'size'; valid options: small, large"
    assert result.errors[3] == "Value for field 'name' contains the %SKIP% sentinel; use skip_field instead"
