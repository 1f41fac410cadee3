from __future__ import annotations

import pytest

from mdforms.processing.tables import (
    escape_cell,
    format_table,
    format_table_cell,
    parse_table,
    parse_table_cell,
    split_row,
)
from mdforms.typing.enums import AnswerState, ColumnType
from mdforms.typing.models import CellResponse, TableColumn

COLUMNS = [
    TableColumn(id="city", label="City"),
    TableColumn(id="staff", label="Staff", type=ColumnType.NUMBER),
]


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("| a | b |", ["a", "b"]),
        ("a | b", ["a", "b"]),
        ("| a |  |", ["a", ""]),
        (r"| x \| y | C:\\tmp |", ["x | y", "C:\\tmp"]),
    ],
)
def test_split_row(line: str, expected: list[str]) -> None:
    assert split_row(line) == expected


def test_escape_cell_protects_pipes_and_backslashes() -> None:
    assert escape_cell("a|b\\c") == "a\\|b\\\\c"
    assert split_row("| " + escape_cell("a|b\\c") + " |") == ["a|b\\c"]


def test_parse_table_reads_typed_rows() -> None:
    text = "| City | Staff |\n|:---|---:|\n| Paris | 1_200 |\n| Lyon |  |\n| Nice | %ABORT% (unknown) |\n"

    table = parse_table(text, COLUMNS)

    assert table.headers == ["City", "Staff"]
    assert table.rows[0] == {"city": CellResponse(value="Paris"), "staff": CellResponse(value=1200)}
    assert table.rows[1]["staff"] == CellResponse(value=None)
    assert table.rows[2]["staff"] == CellResponse(state=AnswerState.ABORTED, reason="unknown")


def test_parse_table_header_only_has_no_rows() -> None:
    table = parse_table("| City | Staff |\n| --- | --- |\n", COLUMNS)

    assert table.rows == []


def test_parse_table_empty_text() -> None:
    assert parse_table("\n  \n", COLUMNS).headers == []


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("| City |\n| --- |\n", "Table header has 1 columns but 2 are declared"),
        ("| City | Staff |\n| Paris | 4 |\n", "must be followed by a '---' separator row"),
        ("| City | Staff |\n| --- | --- |\n| Paris |\n", "Table row 1 has 1 cells but 2 columns are declared"),
        ("| City | Staff |\n| --- | --- |\n| Paris | many |\n", "Table row 1, column 'staff': Invalid number: 'many'"),
    ],
)
def test_parse_table_rejects_bad_shapes(text: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        parse_table(text, COLUMNS)


def test_parse_table_cell_validates_column_type() -> None:
    assert parse_table_cell("1999", TableColumn(id="y", label="Y", type=ColumnType.YEAR)).value == 1999
    with pytest.raises(ValueError, match="expected YYYY-MM-DD"):
        parse_table_cell("2024-13-01", TableColumn(id="d", label="D", type=ColumnType.DATE))


def test_format_table_cell() -> None:
    assert format_table_cell(None) == ""
    assert format_table_cell(CellResponse(value=2.0)) == "2"
    assert format_table_cell(CellResponse(state=AnswerState.SKIPPED, reason="a|b")) == "%SKIP% (a\\|b)"


def test_format_table_writes_canonical_rows() -> None:
    rows = [
        {"city": CellResponse(value="Lyon | Annex"), "staff": CellResponse(value=40)},
        {"city": CellResponse(value="Nice")},
    ]

    assert format_table(COLUMNS, rows).split("\n") == [
        "| City | Staff |",
        "| --- | --- |",
        "| Lyon \\| Annex | 40 |",
        "| Nice |  |",
    ]


def test_formatted_table_reads_back() -> None:
    rows = [{"city": CellResponse(value="A | B"), "staff": CellResponse(state=AnswerState.SKIPPED, reason="n/a")}]

    assert parse_table(format_table(COLUMNS, rows), COLUMNS).rows == rows
