from __future__ import annotations

from typing import Any

from mdforms.export import export_values, import_values, serialize_raw_markdown
from mdforms.inspection import inspect
from mdforms.parser import parse_form
from mdforms.patches import apply_patches
from mdforms.serializer import serialize
from mdforms.typing.enums import AnswerState, ApplyStatus, ProgressState, SyntaxStyle
from mdforms.typing.models import ValidationIssue, ValidatorContext
from mdforms.validation import ValidatorRegistry

TRIP_FORM = """---
mdforms:
  spec: MDF/0.1
  title: Trip Report
  roles:
    - user
    - agent
---

{% form id="trip" title="Trip Report" %}

{% instructions ref="trip" %}
Agents research the trip; the traveller signs it off.
{% /instructions %}

{% group id="trip_info" title="Trip" %}

{% field kind="string" id="traveller" label="Traveller" role="user" required=true %}{% /field %}

{% field kind="string" id="summary" label="Summary" required=true validate=[{id: "min_words", min: 3}] %}{% /field %}

{% field kind="date" id="departed" label="Departed" required=true %}{% /field %}

{% field kind="url_list" id="sources" label="Sources" minItems=1 %}{% /field %}

{% field kind="checkboxes" id="approvals" label="Approvals" checkboxMode="explicit" %}
- [ ] Budget {% #budget %}
- [ ] Manager {% #manager %}
{% /field %}

{% /group %}

{% /form %}
"""


def _min_words(context: ValidatorContext) -> list[ValidationIssue | dict[str, Any]]:
    response = context.values[context.target_id]
    words = len((response.value.value or "").split()) if response.value else 0
    minimum = context.params.get("min", 1)
    if words >= minimum:
        return []
    return [{"message": f"'{context.target_schema.label}' needs at least {minimum} words"}]


def test_agent_and_user_fill_a_form_over_several_turns() -> None:
    registries = [ValidatorRegistry({"min_words": _min_words})]
    form = parse_form(TRIP_FORM, source="trip.form.md")

    first = inspect(form, registries=registries, target_roles=["agent"])
    assert {issue.ref for issue in first.issues} == {"summary", "departed", "sources", "approvals"}
    assert first.form_state == ProgressState.EMPTY

    draft = apply_patches(
        form,
        [
            {"op": "set_string", "fieldId": "summary", "value": "Supplier visit"},
            {"op": "set_date", "fieldId": "departed", "value": "2026-03-14"},
            {"op": "set_checkboxes", "fieldId": "approvals", "value": {"budget": "yes"}},
        ],
        registries=registries,
        target_roles=["agent"],
    )
    assert draft.status == ApplyStatus.APPLIED
    assert not draft.is_complete
    assert ("summary", "min_words") in {(issue.ref, issue.code) for issue in draft.issues}
    assert "approvals" in {issue.ref for issue in draft.issues}

    agent_done = apply_patches(
        draft.form,
        [
            {"op": "set_string", "fieldId": "summary", "value": "Met the supplier in Lyon"},
            {"op": "set_checkboxes", "fieldId": "approvals", "value": {"manager": "no"}},
            {"op": "skip_field", "fieldId": "sources", "role": "agent", "reason": "internal visit"},
            {"op": "add_note", "ref": "sources", "role": "agent", "text": "No public sources."},
        ],
        registries=registries,
        target_roles=["agent"],
    )
    assert agent_done.is_complete
    assert agent_done.issues == []

    everyone = inspect(agent_done.form, registries=registries)
    assert not everyone.is_complete
    assert [issue.ref for issue in everyone.issues] == ["traveller"]

    signed = apply_patches(
        agent_done.form,
        [{"op": "set_string", "fieldId": "traveller", "value": "Dana Smith"}],
        registries=registries,
        target_roles=["user"],
    )
    assert signed.is_complete
    assert signed.form_state == ProgressState.COMPLETE

    text = serialize(signed.form)
    reopened = parse_form(text)
    final = inspect(reopened, registries=registries)
    assert final.is_complete
    assert final.form_state == ProgressState.COMPLETE
    assert reopened.response_for("sources").state == AnswerState.SKIPPED
    assert [note.text for note in reopened.notes] == ["No public sources."]
    assert export_values(reopened) == export_values(signed.form)


def test_filled_form_survives_style_switch_and_value_transfer(
    vendor_form_text: str,
    vendor_patches: list[dict],
) -> None:
    filled = apply_patches(parse_form(vendor_form_text), vendor_patches).form

    as_comments = serialize(filled, style=SyntaxStyle.COMMENTS)
    back_to_tags = serialize(parse_form(as_comments), style=SyntaxStyle.TAGS)
    assert back_to_tags == serialize(filled)

    blank = parse_form(vendor_form_text)
    imported = import_values(blank, export_values(filled, "friendly"))
    assert imported.errors == []
    transferred = apply_patches(blank, imported.patches)
    assert transferred.is_complete
    assert serialize(transferred.form) == serialize(filled)


def test_report_reflects_final_answers(vendor_form_text: str, vendor_patches: list[dict]) -> None:
    filled = apply_patches(parse_form(vendor_form_text), vendor_patches).form

    report = serialize_raw_markdown(parse_form(serialize(filled)))

    assert "**Website:**\nhttps://acme.example" in report
    assert "**Contacts:**\n- ops@acme.example\n- cfo@acme.example" in report
