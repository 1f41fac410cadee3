"""Tag attribute reading and canonical attribute rendering."""

from __future__ import annotations

import re
from typing import Any

_IDENT_RE = re.compile(r"[A-Za-z_][\w-]*")
_NUMBER_RE = re.compile(r"-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")
_BARE_KEY_RE = re.compile(r"^[A-Za-z_][\w]*$")
_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t"}


class AttributeSyntaxError(ValueError):
    """Raised when a tag attribute list cannot be read."""

    def __init__(self, message: str, offset: int) -> None:
        """Store the failure offset relative to the attribute text.

        Args:
            message (str): Human readable failure.
            offset (int): Character offset of the failure.
        """
        super().__init__(message)
        self.offset = offset


class _AttrReader:
    """Recursive-descent reader over one attribute list."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, message: str) -> AttributeSyntaxError:
        return AttributeSyntaxError(message, self.pos)

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise self.fail(f"Expected '{char}'")
        self.pos += 1

    def read_attrs(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {}
        self.skip_ws()
        while self.pos < len(self.text):
            char = self.peek()
            if char in "#.":
                self.pos += 1
                name = self.read_ident()
                if char == "#":
                    attrs["id"] = name
                else:
                    attrs.setdefault("class", []).append(name)
            else:
                key = self.read_ident()
                self.skip_ws()
                if self.peek() != "=":
                    raise self.fail(f"Attribute '{key}' is missing a value")
                self.pos += 1
                self.skip_ws()
                if key in attrs:
                    raise self.fail(f"Duplicate attribute '{key}'")
                attrs[key] = self.read_value()
            self.skip_ws()
        return attrs

    def read_ident(self) -> str:
        match = _IDENT_RE.match(self.text, self.pos)
        if not match:
            raise self.fail("Expected attribute name")
        self.pos = match.end()
        return match.group(0)

    def read_value(self) -> Any:  # noqa: PLR0911
        char = self.peek()
        if char == '"':
            return self.read_string()
        if char == "[":
            return self.read_array()
        if char == "{":
            return self.read_object()
        match = _NUMBER_RE.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            literal = match.group(0)
            if any(marker in literal for marker in ".eE"):
                return float(literal)
            return int(literal)
        for literal, value in (("true", True), ("false", False), ("null", None)):
            if self.text.startswith(literal, self.pos):
                end = self.pos + len(literal)
                if end == len(self.text) or not (self.text[end].isalnum() or self.text[end] == "_"):
                    self.pos = end
                    return value
        raise self.fail("Expected a string, number, boolean, array or object value")

    def read_string(self) -> str:
        self.expect('"')
        chunks: list[str] = []
        while True:
            if self.pos >= len(self.text):
                raise self.fail("Unterminated string")
            char = self.text[self.pos]
            if char == '"':
                self.pos += 1
                return "".join(chunks)
            if char == "\\" and self.pos + 1 < len(self.text):
                escaped = self.text[self.pos + 1]
                chunks.append(_ESCAPES.get(escaped, escaped))
                self.pos += 2
                continue
            chunks.append(char)
            self.pos += 1

    def read_array(self) -> list[Any]:
        self.expect("[")
        items: list[Any] = []
        self.skip_ws()
        if self.peek() == "]":
            self.pos += 1
            return items
        while True:
            self.skip_ws()
            items.append(self.read_value())
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                self.skip_ws()
                if self.peek() == "]":
                    self.pos += 1
                    return items
                continue
            self.expect("]")
            return items

    def read_object(self) -> dict[str, Any]:
        self.expect("{")
        payload: dict[str, Any] = {}
        self.skip_ws()
        if self.peek() == "}":
            self.pos += 1
            return payload
        while True:
            self.skip_ws()
            key = self.read_string() if self.peek() == '"' else self.read_ident()
            self.skip_ws()
            self.expect(":")
            self.skip_ws()
            payload[key] = self.read_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                self.skip_ws()
                if self.peek() == "}":
                    self.pos += 1
                    return payload
                continue
            self.expect("}")
            return payload


def parse_attributes(text: str) -> dict[str, Any]:
    """Read an attribute list such as `id="name" required=true`.

    Args:
        text (str): Attribute text following the tag name.

    Raises:
        AttributeSyntaxError: If the text is malformed.

    Returns:
        dict[str, Any]: Attributes in authored order.
    """
    return _AttrReader(text).read_attrs()


def format_value(value: Any) -> str:
    """Render one attribute value.

    Args:
        value (Any): String, number, boolean, None, list or dict.

    Raises:
        TypeError: If the value type cannot be rendered.

    Returns:
        str: Canonical attribute value text.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        parts = []
        for key, item in value.items():
            rendered_key = key if _BARE_KEY_RE.match(key) else format_value(key)
            parts.append(f"{rendered_key}: {format_value(item)}")
        return "{" + ", ".join(parts) + "}"
    raise TypeError(f"Cannot render attribute value of type {type(value).__name__}")  # noqa: TRY003


def format_number(value: float) -> str:
    """Render a number without a trailing `.0` for integral floats."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:  # noqa: PLR2004
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def format_attributes(attrs: dict[str, Any]) -> str:
    """Render attributes alphabetically, dropping `None` values.

    Args:
        attrs (dict[str, Any]): Attribute mapping.

    Returns:
        str: Space separated `key=value` pairs.
    """
    return " ".join(f"{key}={format_value(attrs[key])}" for key in sorted(attrs) if attrs[key] is not None)
