"""Pytest marker auto-assignment by folder and shared form fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdforms import logger
from mdforms.parser import parse_form
from mdforms.typing.models import ParsedForm

MINIMAL_FORM = """---
mdforms:
  spec: MDF/0.1
---

{% form id="simple" title="Simple" %}

{% field kind="string" id="company" label="Company" required=true %}{% /field %}

{% /form %}
"""

VENDOR_FORM = """---
mdforms:
  spec: MDF/0.1
  title: Vendor Intake
  roles:
    - user
    - agent
---

{% form id="vendor_intake" title="Vendor Intake" %}

{% description ref="vendor_intake" %}
Collect basic facts about a vendor.
{% /description %}

{% group id="company" title="Company" %}

{% field kind="string" id="name" label="Company name" required=true priority="high" %}{% /field %}

{% field kind="number" id="employees" label="Employees" min=1 integer=true %}{% /field %}

{% field kind="year" id="founded" label="Founded" min=1800 max=2030 %}{% /field %}

{% field kind="url" id="website" label="Website" %}{% /field %}

{% field kind="single_select" id="size" label="Size" required=true %}
- [ ] Small {% #small %}
- [ ] Large {% #large %}
{% /field %}

{% field kind="multi_select" id="markets" label="Markets" minSelections=1 %}
- [ ] Europe {% #eu %}
- [ ] Americas {% #us %}
{% /field %}

{% /group %}

{% group id="review" title="Review" %}

{% field kind="checkboxes" id="docs" label="Documents" checkboxMode="simple" minDone=2 %}
- [ ] Contract {% #contract %}
- [ ] Invoice {% #invoice %}
- [ ] Insurance {% #insurance %}
{% /field %}

{% field kind="string_list" id="contacts" label="Contacts" minItems=1 %}{% /field %}

{% field kind="table" id="offices" label="Offices" columnIds=["city", "staff"] columnTypes=["string", "number"] %}
{% /field %}

{% /group %}

{% /form %}
"""

VENDOR_PATCHES = [
    {"op": "set_string", "fieldId": "name", "value": "ACME"},
    {"op": "set_number", "fieldId": "employees", "value": 120},
    {"op": "set_year", "fieldId": "founded", "value": 1999},
    {"op": "set_url", "fieldId": "website", "value": "https://acme.example"},
    {"op": "set_single_select", "fieldId": "size", "value": "large"},
    {"op": "set_multi_select", "fieldId": "markets", "value": ["eu", "us"]},
    {"op": "set_checkboxes", "fieldId": "docs", "value": {"contract": "done", "invoice": "done"}},
    {"op": "set_string_list", "fieldId": "contacts", "value": ["ops@acme.example", "cfo@acme.example"]},
    {
        "op": "set_table",
        "fieldId": "offices",
        "value": [{"city": "Paris", "staff": 40}, {"city": "Lyon | Annex", "staff": "%SKIP% (closing)"}],
    },
]


@pytest.fixture
def minimal_form_text() -> str:
    """Return the text of a one-field form."""
    return MINIMAL_FORM


@pytest.fixture
def vendor_form_text() -> str:
    """Return the text of the vendor intake form."""
    return VENDOR_FORM


@pytest.fixture
def minimal_form() -> ParsedForm:
    """Return a form holding one required, empty string field."""
    return parse_form(MINIMAL_FORM)


@pytest.fixture
def vendor_form() -> ParsedForm:
    """Return an empty form covering every field kind but dates."""
    return parse_form(VENDOR_FORM)


@pytest.fixture
def vendor_patches() -> list[dict]:
    """Return a patch batch that answers every vendor field."""
    return [dict(patch) for patch in VENDOR_PATCHES]


def _mark_tests_by_directory(
    config: pytest.Config,
    items: list[pytest.Item],
    marker: str,
) -> None:
    """Mark collected tests located under tests/<marker>/."""
    target_dir = Path(config.rootpath) / "tests" / marker
    target_dir = target_dir.resolve()

    for item in items:
        try:
            path = Path(str(item.fspath)).resolve()
        except Exception:
            logger.warning(
                f"Could not resolve path for test item {item.name!s}; skipping {marker!s} marker assignment",
            )
            continue

        if path == target_dir or target_dir in path.parents:
            item.add_marker(getattr(pytest.mark, marker))


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Apply directory-based markers to test items."""
    _mark_tests_by_directory(config, items, "unit")
    _mark_tests_by_directory(config, items, "integration")
    _mark_tests_by_directory(config, items, "end2end")
