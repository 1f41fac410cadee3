"""Typed scalar parsing and normalization helpers."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse

from mdforms.syntax.attributes import format_number
from mdforms.typing.enums import ColumnType

MIN_YEAR = 1000
MAX_YEAR = 9999

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_YEAR_RE = re.compile(r"-?\d+")
_URL_SCHEMES = frozenset({"http", "https"})


def parse_number(value: str) -> int | float | None:
    """Parse a decimal literal, keeping integers as `int`.

    Args:
        value (str): Raw text.

    Returns:
        int | float | None: Parsed number, None when the text is not numeric.
    """
    compact = value.strip().replace("_", "")
    if not compact:
        return None
    try:
        number = Decimal(compact)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    if number == number.to_integral_value() and not any(marker in compact for marker in ".eE"):
        return int(number)
    return float(number)


def parse_year(value: str) -> int | None:
    """Parse an integer year literal."""
    stripped = value.strip()
    if not _YEAR_RE.fullmatch(stripped):
        return None
    return int(stripped)


def is_valid_year(value: int) -> bool:
    """Return whether a year has four digits."""
    return MIN_YEAR <= value <= MAX_YEAR


def is_valid_date(value: str) -> bool:
    """Return whether the text is a real calendar date in `YYYY-MM-DD` form."""
    if not _DATE_RE.fullmatch(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_url(value: str) -> bool:
    """Return whether the text is an absolute http(s) URL with a host."""
    if any(char.isspace() for char in value):
        return False
    parsed = urlparse(value)
    return parsed.scheme.lower() in _URL_SCHEMES and bool(parsed.netloc)


def normalize_list_items(value: str) -> list[str]:
    """Split text into trimmed, non-empty lines.

    Args:
        value (str): Raw multi-line text.

    Returns:
        list[str]: One item per non-empty line.
    """
    return [line.strip() for line in value.split("\n") if line.strip()]


def parse_cell(value: str, column_type: ColumnType) -> str | int | float:
    """Parse one non-empty table cell according to its column type.

    Args:
        value (str): Trimmed, unescaped cell text.
        column_type (ColumnType): Declared column type.

    Raises:
        ValueError: If the text does not fit the column type.

    Returns:
        str | int | float: Typed cell value.
    """
    if column_type == ColumnType.NUMBER:
        number = parse_number(value)
        if number is None:
            raise ValueError(f"Invalid number: '{value}'")  # noqa: TRY003
        return number
    if column_type == ColumnType.YEAR:
        year = parse_year(value)
        if year is None or not is_valid_year(year):
            raise ValueError(f"Invalid year: '{value}', expected a 4-digit year")  # noqa: TRY003
        return year
    if column_type == ColumnType.DATE and not is_valid_date(value):
        raise ValueError(f"Invalid date: '{value}', expected YYYY-MM-DD")  # noqa: TRY003
    if column_type == ColumnType.URL and not is_valid_url(value):
        raise ValueError(f"Invalid URL: '{value}'")  # noqa: TRY003
    return value


def cell_matches_type(value: str | int | float, column_type: ColumnType) -> bool:
    """Return whether an already-typed cell value fits its column type."""
    if column_type == ColumnType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if column_type == ColumnType.YEAR:
        return isinstance(value, int) and not isinstance(value, bool) and is_valid_year(value)
    if not isinstance(value, str):
        return False
    if column_type == ColumnType.DATE:
        return is_valid_date(value)
    if column_type == ColumnType.URL:
        return is_valid_url(value)
    return True


def format_scalar(value: str | int | float | None) -> str:
    """Render a scalar the way it is written inside value blocks and cells."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return value
