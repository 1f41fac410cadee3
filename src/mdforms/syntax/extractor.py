"""Walk the token stream and pull out the raw structural tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from mdforms.exceptions import ParseError
from mdforms.syntax.lexer import FenceToken, LexedDocument, TagToken, TextToken, Token
from mdforms.typing.enums import DocTag

VALUE_LANGUAGE = "value"

_OPTION_RE = re.compile(
    r"\s*[-*+]\s+\[(?P<marker>[^\]])\]\s*(?P<label>.*?)\s*(?:\{%\s*#(?P<id>[A-Za-z_][\w-]*)\s*%\})?\s*$",
)
_DOC_TAGS = frozenset(tag.value for tag in DocTag)


@dataclass
class RawOption:
    """Checkbox-style list item with its marker character."""

    id: str | None
    label: str
    marker: str
    line: int
    column: int


@dataclass
class RawDoc:
    """Documentation block with its verbatim body."""

    tag: str
    attrs: dict[str, Any]
    body: str
    owner: str | None
    line: int
    column: int


@dataclass
class RawNote:
    """Note block with its verbatim text."""

    attrs: dict[str, Any]
    text: str
    line: int
    column: int


@dataclass
class RawField:
    """Field tag plus its options and value fence."""

    attrs: dict[str, Any]
    line: int
    column: int
    options: list[RawOption] = field(default_factory=list)
    value: FenceToken | None = None

    @property
    def id(self) -> str | None:
        """Return the authored field ID, if any."""
        value = self.attrs.get("id")
        return value if isinstance(value, str) else None


@dataclass
class RawGroup:
    """Group tag plus its fields."""

    attrs: dict[str, Any]
    line: int
    column: int
    fields: list[RawField] = field(default_factory=list)


@dataclass
class RawForm:
    """Root of the raw tree.

    `children` keeps groups and ungrouped fields in document order. Bare
    ID-annotated checkbox items found outside any field land in `bare_options`.
    """

    attrs: dict[str, Any]
    line: int
    column: int
    children: list[RawGroup | RawField] = field(default_factory=list)
    docs: list[RawDoc] = field(default_factory=list)
    notes: list[RawNote] = field(default_factory=list)
    bare_options: list[RawOption] = field(default_factory=list)

    def iter_fields(self) -> list[RawField]:
        """Return every raw field in document order."""
        collected: list[RawField] = []
        for child in self.children:
            collected.extend(child.fields if isinstance(child, RawGroup) else [child])
        return collected


def match_option_line(text: str) -> re.Match[str] | None:
    """Return the checkbox list-item match for one line of text."""
    return _OPTION_RE.match(text)


class _Extractor:
    def __init__(self, lexed: LexedDocument) -> None:
        self.text = lexed.text
        self.tokens = lexed.tokens
        self.index = 0
        self.form: RawForm | None = None
        self.stack: list[RawForm | RawGroup | RawField] = []

    @staticmethod
    def error(message: str, token: Token) -> ParseError:
        return ParseError(message, line=token.line, column=token.column)

    def run(self) -> RawForm:
        first = self.tokens[0]
        if not isinstance(first, TagToken) or first.name != "form" or first.closing:
            raise self.error("Expected the form to open with a 'form' tag", first)
        closed = False
        while self.index < len(self.tokens):
            token = self.tokens[self.index]
            self.index += 1
            if closed:
                raise self.error("Content found after the closing form tag", token)
            if isinstance(token, TagToken):
                closed = self.on_tag(token)
            elif isinstance(token, FenceToken):
                self.on_fence(token)
            else:
                self.on_text(token)
        if not closed or self.form is None:
            raise self.error("Missing closing '/form' tag", first)
        return self.form

    def on_tag(self, token: TagToken) -> bool:
        if token.closing:
            return self.on_close(token)
        name = token.name
        if name == "form":
            if self.form is not None:
                raise self.error("Multiple form tags found; a document holds exactly one form", token)
            self.form = RawForm(attrs=dict(token.attrs), line=token.line, column=token.column)
            self.stack.append(self.form)
            return token.self_closing
        if self.form is None:
            raise self.error(f"Tag '{name}' appears outside the form", token)
        if name == "group":
            self.open_group(token)
        elif name == "field":
            self.open_field(token)
        elif name in _DOC_TAGS:
            body = self.read_body(token)
            owner = self.owner_id()
            self.form.docs.append(
                RawDoc(tag=name, attrs=dict(token.attrs), body=body, owner=owner, line=token.line, column=token.column),
            )
        elif name == "note":
            body = self.read_body(token)
            self.form.notes.append(RawNote(attrs=dict(token.attrs), text=body, line=token.line, column=token.column))
        else:
            raise self.error(f"Unknown tag '{name}'", token)
        return False

    def open_group(self, token: TagToken) -> None:
        parent = self.stack[-1]
        if not isinstance(parent, RawForm):
            kind = "group" if isinstance(parent, RawGroup) else "field"
            parent_id = parent.attrs.get("id")
            raise self.error(
                f"Group '{token.attrs.get('id')}' must sit directly inside the form, not inside {kind} '{parent_id}'",
                token,
            )
        group = RawGroup(attrs=dict(token.attrs), line=token.line, column=token.column)
        parent.children.append(group)
        if not token.self_closing:
            self.stack.append(group)

    def open_field(self, token: TagToken) -> None:
        parent = self.stack[-1]
        raw = RawField(attrs=dict(token.attrs), line=token.line, column=token.column)
        if isinstance(parent, RawField):
            raise self.error(f"Field '{raw.id}' is nested inside field '{parent.id}'; fields cannot nest", token)
        if isinstance(parent, RawGroup):
            parent.fields.append(raw)
        else:
            parent.children.append(raw)
        if not token.self_closing:
            self.stack.append(raw)

    def on_close(self, token: TagToken) -> bool:
        expected = {RawForm: "form", RawGroup: "group", RawField: "field"}[type(self.stack[-1])]
        if token.name != expected:
            raise self.error(f"Unexpected closing tag '/{token.name}', expected '/{expected}'", token)
        self.stack.pop()
        return token.name == "form"

    def owner_id(self) -> str | None:
        value = self.stack[-1].attrs.get("id")
        return value if isinstance(value, str) else None

    def read_body(self, token: TagToken) -> str:
        if token.self_closing:
            return ""
        start = self.index
        for position in range(start, len(self.tokens)):
            candidate = self.tokens[position]
            if isinstance(candidate, TagToken) and candidate.name == token.name:
                if not candidate.closing:
                    raise self.error(f"Tag '{token.name}' cannot nest inside another '{token.name}'", candidate)
                self.index = position + 1
                return self.text[token.end : candidate.start].strip()
        raise self.error(f"Unclosed '{token.name}' tag", token)

    def on_fence(self, token: FenceToken) -> None:
        parent = self.stack[-1]
        if token.language != VALUE_LANGUAGE:
            if isinstance(parent, RawField):
                raise self.error(f"Unexpected code block inside field '{parent.id}'", token)
            return
        if not isinstance(parent, RawField):
            raise self.error("Value block found outside of a field", token)
        if parent.value is not None:
            raise self.error(f"Field '{parent.id}' has more than one value block", token)
        parent.value = token

    def on_text(self, token: TextToken) -> None:
        parent = self.stack[-1]
        match = match_option_line(token.text)
        if match is None:
            return
        option = RawOption(
            id=match.group("id"),
            label=match.group("label"),
            marker=match.group("marker"),
            line=token.line,
            column=token.column,
        )
        if isinstance(parent, RawField):
            if option.id is None:
                raise self.error(f"Option '{option.label}' in field '{parent.id}' is missing an ID annotation", token)
            parent.options.append(option)
        elif option.id is not None and self.form is not None:
            self.form.bare_options.append(option)


def extract(lexed: LexedDocument) -> RawForm | None:
    """Build the raw structural tree from lexed tokens.

    Args:
        lexed (LexedDocument): Output of the lexer.

    Raises:
        ParseError: On unknown tags, illegal nesting, unclosed tags or stray value blocks.

    Returns:
        RawForm | None: Raw form tree, None when the document holds no form.
    """
    if not lexed.tokens:
        return None
    return _Extractor(lexed).run()
