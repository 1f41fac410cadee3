"""Front-end lexers turning form text into a flat token stream.

Two surface syntaxes are accepted. The comment syntax (`<!-- f:field ... -->`)
is rewritten into the tag syntax (`{% field ... %}`) inside the form region
only, so both feed the same tokenizer. Fenced code blocks and inline code spans
are never rewritten or tokenized.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any

from mdforms.exceptions import ParseError
from mdforms.syntax.attributes import AttributeSyntaxError, parse_attributes
from mdforms.typing.enums import SyntaxStyle

_FENCE_OPEN_RE = re.compile(r"( {0,3})(`{3,}|~{3,})(.*)$")
_TAG_NAME_RE = re.compile(r"\s*(/?)([A-Za-z][\w-]*)(?=\s|/|$)")
_FORM_OPENER_RE = re.compile(
    r"(?P<code>(?P<ticks>`+).+?(?P=ticks))"
    r"|(?P<comment><!--\s*f:form\b)"
    r"|(?P<tag>\{%\s*form\b)",
)
_COMMENT_FORM_CLOSE_RE = re.compile(
    r"(?P<code>(?P<ticks>`+).+?(?P=ticks))|(?P<close><!--\s*/f:form\s*-->)",
)
_COMMENT_SYNTAX_RE = re.compile(
    r"(?P<code>(?P<ticks>`+).+?(?P=ticks))"
    r"|<!--\s*/f:(?P<close>[A-Za-z][\w-]*)\s*-->"
    r"|<!--\s*f:(?P<open>(?s:.*?))\s*(?P<selfclose>/)?-->"
    r"|<!--\s*(?P<annotation>[#.][\w-]+)\s*-->",
)


@dataclass(frozen=True)
class TagToken:
    """Structural tag such as `{% field ... %}` or `{% /field %}`."""

    name: str
    attrs: dict[str, Any]
    closing: bool
    self_closing: bool
    line: int
    column: int
    start: int
    end: int


@dataclass(frozen=True)
class FenceToken:
    """Fenced code block with its verbatim content."""

    char: str
    length: int
    info: str
    content: str
    line: int
    column: int
    start: int
    end: int

    @property
    def language(self) -> str:
        """Return the first word of the info string."""
        parts = self.info.split()
        return parts[0] if parts else ""


@dataclass(frozen=True)
class TextToken:
    """Run of ordinary text within one line."""

    text: str
    line: int
    column: int
    start: int
    end: int


Token = TagToken | FenceToken | TextToken


@dataclass
class LexedDocument:
    """Normalized text plus the tokens of its form region."""

    text: str
    style: SyntaxStyle
    tokens: list[Token] = field(default_factory=list)
    region: tuple[int, int] | None = None


class _Positions:
    """Offset to 1-based line/column conversion."""

    def __init__(self, text: str) -> None:
        self._starts = [0] + [match.end() for match in re.finditer("\n", text)]

    def at(self, offset: int) -> tuple[int, int]:
        index = bisect_right(self._starts, offset) - 1
        return index + 1, offset - self._starts[index] + 1


def split_prose_and_fences(text: str, start: int = 0, end: int | None = None) -> list[tuple[bool, int, int]]:
    """Split a text range into fenced-code chunks and prose chunks.

    An unclosed fence runs to the end of the range.

    Args:
        text (str): Full document text.
        start (int): Range start offset.
        end (int | None): Range end offset, defaults to end of text.

    Returns:
        list[tuple[bool, int, int]]: `(is_fence, chunk_start, chunk_end)` items.
    """
    limit = len(text) if end is None else end
    chunks: list[tuple[bool, int, int]] = []
    pos = start
    prose_start = start
    while pos < limit:
        line_end = min(_line_end(text, pos), limit)
        match = _FENCE_OPEN_RE.match(text, pos, line_end)
        if match and _is_fence_opener(match):
            close = _find_fence_close(text, line_end, match.group(2), limit)
            fence_end = limit if close is None else close[1]
            if prose_start < pos:
                chunks.append((False, prose_start, pos))
            chunks.append((True, pos, fence_end))
            pos = prose_start = fence_end
            continue
        pos = line_end + 1
    if prose_start < limit:
        chunks.append((False, prose_start, limit))
    return chunks


def _line_end(text: str, pos: int) -> int:
    end = text.find("\n", pos)
    return len(text) if end == -1 else end


def _is_fence_opener(match: re.Match[str]) -> bool:
    fence, info = match.group(2), match.group(3)
    return not (fence[0] == "`" and "`" in info)


def _find_fence_close(text: str, opener_line_end: int, fence: str, limit: int) -> tuple[int, int] | None:
    """Locate the closing fence line.

    Args:
        text (str): Document text.
        opener_line_end (int): Offset of the newline ending the opener line.
        fence (str): Opening fence run.
        limit (int): Range end offset.

    Returns:
        tuple[int, int] | None: Closing line start and the offset after it, None when unclosed.
    """
    close_re = re.compile(rf" {{0,3}}{re.escape(fence[0])}{{{len(fence)},}}[ \t]*$")
    cursor = opener_line_end + 1
    while cursor < limit:
        line_end = min(_line_end(text, cursor), limit)
        if close_re.match(text, cursor, line_end):
            return cursor, min(line_end + 1, len(text))
        cursor = line_end + 1
    return None


def detect_syntax(text: str, start: int = 0) -> tuple[SyntaxStyle, int | None]:
    """Find the first form opener outside code and report its syntax.

    Args:
        text (str): Document text.
        start (int): Offset where the body begins.

    Returns:
        tuple[SyntaxStyle, int | None]: Detected style and opener offset, if any.
    """
    for is_fence, chunk_start, chunk_end in split_prose_and_fences(text, start):
        if is_fence:
            continue
        for match in _FORM_OPENER_RE.finditer(text, chunk_start, chunk_end):
            if match.group("comment"):
                return SyntaxStyle.COMMENTS, match.start()
            if match.group("tag"):
                return SyntaxStyle.TAGS, match.start()
    return SyntaxStyle.TAGS, None


def _find_comment_region_end(text: str, start: int) -> int:
    for is_fence, chunk_start, chunk_end in split_prose_and_fences(text, start):
        if is_fence:
            continue
        for match in _COMMENT_FORM_CLOSE_RE.finditer(text, chunk_start, chunk_end):
            if match.group("close"):
                return match.end()
    return len(text)


def _rewrite_comment(match: re.Match[str]) -> str:
    if match.group("code"):
        return match.group(0)
    if match.group("close"):
        return "{% /" + match.group("close") + " %}"
    if match.group("annotation"):
        return "{% " + match.group("annotation") + " %}"
    closer = " /%}" if match.group("selfclose") else " %}"
    return "{% " + match.group("open").strip() + closer


def normalize_comment_syntax(text: str, start: int) -> str:
    """Rewrite comment syntax into tag syntax inside the form region.

    Args:
        text (str): Document text.
        start (int): Offset of the `<!-- f:form` opener.

    Returns:
        str: Text with the form region rewritten; line count is preserved.
    """
    end = _find_comment_region_end(text, start)
    pieces = [text[:start]]
    for is_fence, chunk_start, chunk_end in split_prose_and_fences(text, start, end):
        chunk = text[chunk_start:chunk_end]
        pieces.append(chunk if is_fence else _COMMENT_SYNTAX_RE.sub(_rewrite_comment, chunk))
    pieces.append(text[end:])
    return "".join(pieces)


class _Tokenizer:
    """Scanner producing tag, fence and text tokens over one range."""

    def __init__(self, text: str, positions: _Positions) -> None:
        self.text = text
        self.positions = positions
        self.tokens: list[Token] = []

    def error(self, message: str, offset: int) -> ParseError:
        line, column = self.positions.at(offset)
        return ParseError(message, line=line, column=column)

    def run(self, start: int, end: int) -> list[Token]:
        pos = start
        while pos < end:
            line_end = min(_line_end(self.text, pos), end)
            match = _FENCE_OPEN_RE.match(self.text, pos, line_end)
            if match and _is_fence_opener(match):
                pos = self.read_fence(pos, line_end, match, end)
                continue
            pos = self.read_inline(pos, line_end, end)
        return self.tokens

    def read_fence(self, pos: int, line_end: int, match: re.Match[str], end: int) -> int:
        indent, fence, info = match.group(1), match.group(2), match.group(3)
        close = _find_fence_close(self.text, line_end, fence, end)
        if close is None:
            raise self.error(f"Unclosed code fence '{fence}'", pos)
        close_line_start, after_close = close
        content_start = min(line_end + 1, close_line_start)
        lines = self.text[content_start:close_line_start].split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        content = "\n".join(_strip_indent(content_line, len(indent)) for content_line in lines)
        line, column = self.positions.at(pos)
        self.tokens.append(
            FenceToken(
                char=fence[0],
                length=len(fence),
                info=info.strip(),
                content=content,
                line=line,
                column=column,
                start=pos,
                end=after_close,
            ),
        )
        return after_close

    def read_inline(self, pos: int, line_end: int, end: int) -> int:
        text = self.text
        cursor = pos
        text_start = pos
        while cursor < line_end:
            char = text[cursor]
            if char == "`":
                cursor = self._skip_code_span(cursor, line_end)
                continue
            if text.startswith("{%", cursor):
                tag_end = self._find_tag_end(cursor, end)
                inner = text[cursor + 2 : tag_end]
                if _TAG_NAME_RE.match(inner):
                    self._emit_text(text_start, cursor)
                    self._emit_tag(inner, cursor, tag_end + 2)
                    cursor = text_start = tag_end + 2
                    if cursor > line_end:
                        line_end = min(_line_end(text, cursor), end)
                    continue
                cursor = tag_end + 2
                if cursor > line_end:
                    line_end = min(_line_end(text, cursor), end)
                continue
            cursor += 1
        self._emit_text(text_start, line_end)
        return line_end + 1

    def _skip_code_span(self, cursor: int, line_end: int) -> int:
        run_end = cursor
        while run_end < line_end and self.text[run_end] == "`":
            run_end += 1
        ticks = self.text[cursor:run_end]
        close = self.text.find(ticks, run_end, line_end)
        while close != -1 and close + len(ticks) < line_end and self.text[close + len(ticks)] == "`":
            close = self.text.find(ticks, close + len(ticks) + 1, line_end)
        return run_end if close == -1 else close + len(ticks)

    def _find_tag_end(self, start: int, end: int) -> int:
        cursor = start + 2
        in_string = False
        while cursor < end - 1:
            char = self.text[cursor]
            if in_string:
                if char == "\\":
                    cursor += 2
                    continue
                if char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif self.text.startswith("%}", cursor):
                return cursor
            cursor += 1
        raise self.error("Unterminated tag, expected '%}'", start)

    def _emit_text(self, start: int, end: int) -> None:
        if start >= end or not self.text[start:end].strip():
            return
        line, column = self.positions.at(start)
        self.tokens.append(TextToken(text=self.text[start:end], line=line, column=column, start=start, end=end))

    def _emit_tag(self, inner: str, start: int, end: int) -> None:
        body = inner.strip()
        self_closing = body.endswith("/")
        if self_closing:
            body = body[:-1].rstrip()
        match = _TAG_NAME_RE.match(body)
        if match is None:
            raise self.error("Malformed tag", start)
        closing = bool(match.group(1))
        name = match.group(2)
        attr_text = body[match.end() :]
        try:
            attrs = parse_attributes(attr_text)
        except AttributeSyntaxError as exc:
            raise self.error(f"Invalid attributes on '{name}' tag: {exc}", start) from exc
        if closing and attrs:
            raise self.error(f"Closing tag '/{name}' cannot carry attributes", start)
        line, column = self.positions.at(start)
        self.tokens.append(
            TagToken(
                name=name,
                attrs=attrs,
                closing=closing,
                self_closing=self_closing,
                line=line,
                column=column,
                start=start,
                end=end,
            ),
        )


def _strip_indent(line: str, width: int) -> str:
    removable = len(line) - len(line.lstrip(" "))
    return line[min(removable, width) :]


def find_tag_region(text: str, opener: int) -> int:
    """Return the offset just after the closing form tag, or end of text.

    Args:
        text (str): Tag-syntax text.
        opener (int): Offset of the form opener.

    Returns:
        int: Region end offset.
    """
    close_re = re.compile(r"(?P<code>(?P<ticks>`+).+?(?P=ticks))|(?P<close>\{%\s*/form\s*%\})")
    for is_fence, chunk_start, chunk_end in split_prose_and_fences(text, opener):
        if is_fence:
            continue
        for match in close_re.finditer(text, chunk_start, chunk_end):
            if match.group("close"):
                return match.end()
    return len(text)


def lex(text: str, body_start: int = 0) -> LexedDocument:
    """Detect syntax, normalize and tokenize the form region of a document.

    Args:
        text (str): Document text with Unix line endings.
        body_start (int): Offset where the body begins (after metadata).

    Raises:
        ParseError: If the region contains malformed tags or unclosed fences.

    Returns:
        LexedDocument: Normalized text, detected style and tokens.
    """
    style, opener = detect_syntax(text, body_start)
    if opener is None:
        return LexedDocument(text=text, style=style)
    if style == SyntaxStyle.COMMENTS:
        text = normalize_comment_syntax(text, opener)
    region_end = find_tag_region(text, opener)
    positions = _Positions(text)
    tokens = _Tokenizer(text, positions).run(opener, region_end)
    _, trailing = detect_syntax(text, region_end)
    if trailing is not None:
        line, column = positions.at(trailing)
        raise ParseError("Multiple form tags found; a document holds exactly one form", line=line, column=column)
    return LexedDocument(text=text, style=style, tokens=tokens, region=(opener, region_end))
