from __future__ import annotations

import pytest
import yaml

from mdforms.export import export_values
from mdforms.parser import parse_form
from mdforms.patches import apply_patches
from mdforms.serializer import max_run_at_line_start, metadata_block, pick_fence, serialize
from mdforms.typing.enums import AnswerState, SyntaxStyle
from mdforms.typing.models import IMPLICIT_GROUP_ID, ParsedForm, StringValue


@pytest.mark.parametrize(
    ("content", "fence"),
    [
        ("plain text", "```"),
        ("```\ncode\n```", "~~~"),
        ("````\n~~~", "~~~~"),
        ("```\n~~~~", "````"),
        ("    ```\nindented code", "```"),
    ],
)
def test_pick_fence(content: str, fence: str) -> None:
    assert pick_fence(content) == fence


def test_max_run_at_line_start_ignores_inline_runs() -> None:
    assert max_run_at_line_start("text ``` inline\n  ``", "`") == 2
    assert max_run_at_line_start("nothing", "~") == 0


def test_empty_fields_render_on_one_line(vendor_form: ParsedForm) -> None:
    text = serialize(vendor_form)

    assert (
        '{% field id="employees" integer=true kind="number" label="Employees" min=1 %}{% /field %}' in text.splitlines()
    )
    assert (
        '{% field id="name" kind="string" label="Company name" priority="high" required=true %}{% /field %}'
        in text.splitlines()
    )
    assert "- [ ] Small {% #small %}" in text
    assert text.endswith("{% /form %}\n")


def test_metadata_block_carries_summaries(vendor_form: ParsedForm) -> None:
    block = metadata_block(vendor_form)

    assert block.startswith("---\n")
    assert block.endswith("\n---")
    section = yaml.safe_load(block.strip("-\n"))["mdforms"]
    assert section["spec"] == "MDF/0.1"
    assert section["title"] == "Vendor Intake"
    assert section["roles"] == ["user", "agent"]
    assert section["form_state"] == "empty"
    assert section["form_summary"]["field_count"] == 9
    assert section["form_progress"]["required_fields"] == 2


def test_serialize_round_trip_is_stable(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    filled = apply_patches(vendor_form, vendor_patches).form

    text = serialize(filled)
    reparsed = parse_form(text)

    assert serialize(reparsed) == text
    assert export_values(reparsed) == export_values(filled)
    assert "form_state: complete" in text
    assert "| Lyon \\| Annex | %SKIP% (closing) |" in text
    assert "- [x] Contract {% #contract %}" in text
    assert "- [ ] Insurance {% #insurance %}" in text


def test_values_with_fences_get_a_longer_fence(minimal_form: ParsedForm) -> None:
    value = "Example:\n```python\nprint('hi')\n```"
    filled = apply_patches(minimal_form, [{"op": "set_string", "fieldId": "company", "value": value}]).form

    text = serialize(filled)

    assert "~~~value\n" + value + "\n~~~" in text
    assert parse_form(text).response_for("company").value == StringValue(value=value)


def test_carriage_returns_in_strings_survive_round_trip(minimal_form: ParsedForm) -> None:
    filled = apply_patches(minimal_form, [{"op": "set_string", "fieldId": "company", "value": "a\rb\r\nc"}]).form

    text = serialize(filled)

    assert filled.response_for("company").value == StringValue(value="a\nb\nc")
    assert parse_form(text).response_for("company").value == StringValue(value="a\nb\nc")


def test_tag_like_values_are_marked_unprocessed(minimal_form: ParsedForm) -> None:
    value = 'Write {% field id="x" %} here'
    filled = apply_patches(minimal_form, [{"op": "set_string", "fieldId": "company", "value": value}]).form

    text = serialize(filled)

    assert "```value {% process=false %}\n" in text
    assert parse_form(text).response_for("company").value == StringValue(value=value)


def test_terminal_states_render_as_state_attribute(vendor_form: ParsedForm) -> None:
    form = apply_patches(
        vendor_form,
        [
            {"op": "skip_field", "fieldId": "website", "role": "agent"},
            {"op": "abort_field", "fieldId": "founded", "role": "agent", "reason": "registry offline"},
        ],
    ).form

    text = serialize(form)

    assert '{% field id="website" kind="url" label="Website" state="skipped" %}{% /field %}' in text
    assert 'state="aborted"' in text
    assert "```value\n%ABORT% (registry offline)\n```" in text
    reparsed = parse_form(text)
    assert reparsed.response_for("website").state == AnswerState.SKIPPED
    assert reparsed.response_for("founded").reason == "registry offline"


def test_notes_are_written_in_numeric_order(minimal_form: ParsedForm) -> None:
    patches = [{"op": "add_note", "ref": "company", "role": "agent", "text": f"note {index}"} for index in range(10)]
    form = apply_patches(minimal_form, patches).form

    text = serialize(form)

    assert text.index('id="n2"') < text.index('id="n10"')
    assert '{% note id="n1" ref="company" role="agent" %}\nnote 0\n{% /note %}' in text


def test_comment_style_output_parses_back(vendor_form: ParsedForm, vendor_patches: list[dict]) -> None:
    filled = apply_patches(vendor_form, vendor_patches).form

    text = serialize(filled, style=SyntaxStyle.COMMENTS)

    assert '<!-- f:form id="vendor_intake" title="Vendor Intake" -->' in text
    assert "- [x] Large <!-- #large -->" in text
    assert text.endswith("<!-- /f:form -->\n")
    assert "{% field" not in text
    reparsed = parse_form(text)
    assert reparsed.metadata is not None
    assert reparsed.metadata.syntax_style == SyntaxStyle.COMMENTS
    assert serialize(reparsed) == text
    assert export_values(reparsed) == export_values(filled)


def test_serialize_keeps_documentation_next_to_targets(vendor_form: ParsedForm) -> None:
    text = serialize(vendor_form)

    assert '{% description ref="vendor_intake" %}\nCollect basic facts about a vendor.\n{% /description %}' in text
    assert text.index("{% description") < text.index('{% group id="company"')


def test_implicit_checklist_is_written_as_bare_items() -> None:
    form = parse_form('{% form id="todo" %}\n- [ ] Call {% #call %}\n- [x] Mail {% #mail %}\n{% /form %}\n')

    text = serialize(form)

    assert "{% field" not in text
    assert "{% group" not in text
    assert "- [ ] Call {% #call %}\n- [x] Mail {% #mail %}" in text
    assert serialize(parse_form(text)) == text


def test_loose_fields_keep_their_place_before_groups() -> None:
    form = parse_form(
        '{% form id="f" %}\n'
        '{% field kind="string" id="a" label="A" %}{% /field %}\n'
        '{% group id="g" %}\n'
        '{% field kind="string" id="b" label="B" %}{% /field %}\n'
        "{% /group %}\n"
        "{% /form %}\n",
    )

    reparsed = parse_form(serialize(form))

    assert form.order_index == ["a", "b"]
    assert reparsed.order_index == ["a", "b"]
    assert [group.id for group in reparsed.form_schema.groups] == [IMPLICIT_GROUP_ID, "g"]


def test_derived_metadata_is_recomputed(vendor_form: ParsedForm) -> None:
    text = serialize(vendor_form).replace("form_state: empty", "form_state: complete")

    assert "form_state: empty" in serialize(parse_form(text))


def test_spec_version_override(minimal_form: ParsedForm) -> None:
    assert "spec: MDF/0.2" in serialize(minimal_form, spec_version="MDF/0.2")
