"""Pipe-table reading and writing for table field values."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mdforms.processing.normalization import format_scalar, parse_cell
from mdforms.syntax.sentinels import format_sentinel, parse_sentinel
from mdforms.typing.enums import AnswerState
from mdforms.typing.models import CellResponse

if TYPE_CHECKING:
    from mdforms.typing.models import TableColumn

_SEPARATOR_CELL_RE = re.compile(r":?-{3,}:?")


@dataclass
class ParsedTable:
    """Header labels and typed rows read from a pipe table."""

    headers: list[str]
    rows: list[dict[str, CellResponse]] = field(default_factory=list)


def escape_cell(text: str) -> str:
    """Escape backslashes and pipes so a cell survives row splitting."""
    return text.replace("\\", "\\\\").replace("|", "\\|")


def split_row(line: str) -> list[str]:
    """Split one table row into unescaped, trimmed cells.

    Args:
        line (str): Row text, with or without outer pipes.

    Returns:
        list[str]: Cell texts.
    """
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    cells: list[str] = []
    current: list[str] = []
    index = 0
    closed = False
    while index < len(body):
        char = body[index]
        if char == "\\" and index + 1 < len(body) and body[index + 1] in "\\|":
            current.append(body[index + 1])
            index += 2
            continue
        if char == "|":
            cells.append("".join(current).strip())
            current = []
            closed = True
            index += 1
            continue
        current.append(char)
        closed = False
        index += 1
    tail = "".join(current).strip()
    if tail or not closed:
        cells.append(tail)
    return cells


def _is_separator(line: str) -> bool:
    cells = split_row(line)
    return bool(cells) and all(_SEPARATOR_CELL_RE.fullmatch(cell) for cell in cells)


def parse_table(text: str, columns: list[TableColumn]) -> ParsedTable:
    """Read a pipe table against declared columns.

    Args:
        text (str): Value block content.
        columns (list[TableColumn]): Declared columns, in order.

    Raises:
        ValueError: If the table shape or a cell does not match the columns.

    Returns:
        ParsedTable: Header labels and typed rows; no rows when only a header is present.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return ParsedTable(headers=[])
    headers = split_row(lines[0])
    if len(headers) != len(columns):
        raise ValueError(f"Table header has {len(headers)} columns but {len(columns)} are declared")  # noqa: TRY003
    if len(lines) < 2 or not _is_separator(lines[1]):  # noqa: PLR2004
        raise ValueError("Table header must be followed by a '---' separator row")  # noqa: TRY003
    table = ParsedTable(headers=headers)
    for row_number, line in enumerate(lines[2:], start=1):
        cells = split_row(line)
        if len(cells) != len(columns):
            message = f"Table row {row_number} has {len(cells)} cells but {len(columns)} columns are declared"
            raise ValueError(message)
        row: dict[str, CellResponse] = {}
        for column, cell in zip(columns, cells, strict=True):
            try:
                row[column.id] = parse_table_cell(cell, column)
            except ValueError as exc:
                raise ValueError(f"Table row {row_number}, column '{column.id}': {exc}") from exc
        table.rows.append(row)
    return table


def parse_table_cell(text: str, column: TableColumn) -> CellResponse:
    """Read one cell: a sentinel, an empty answer, or a typed value.

    Args:
        text (str): Unescaped cell text.
        column (TableColumn): Column the cell belongs to.

    Raises:
        ValueError: If the text does not fit the column type.

    Returns:
        CellResponse: Cell state and value.
    """
    sentinel = parse_sentinel(text)
    if sentinel is not None:
        return CellResponse(state=sentinel.state, reason=sentinel.reason)
    stripped = text.strip()
    if not stripped:
        return CellResponse(value=None)
    return CellResponse(value=parse_cell(stripped, column.type))


def format_table_cell(cell: CellResponse | None) -> str:
    """Render one cell for a table row."""
    if cell is None:
        return ""
    if cell.state in {AnswerState.SKIPPED, AnswerState.ABORTED}:
        return escape_cell(format_sentinel(cell.state, cell.reason))
    return escape_cell(format_scalar(cell.value))


def _format_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def format_table(columns: list[TableColumn], rows: list[dict[str, CellResponse]]) -> str:
    """Render rows as a canonical pipe table.

    Args:
        columns (list[TableColumn]): Declared columns, in order.
        rows (list[dict[str, CellResponse]]): Rows keyed by column ID.

    Returns:
        str: Header, separator and one line per row.
    """
    lines = [
        _format_row([escape_cell(column.label) for column in columns]),
        _format_row(["---"] * len(columns)),
    ]
    lines.extend(_format_row([format_table_cell(row.get(column.id)) for column in columns]) for row in rows)
    return "\n".join(lines)
