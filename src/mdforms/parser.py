"""Parse `.form.md` text into a `ParsedForm`."""

from __future__ import annotations

import dataclasses
import re
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from mdforms.exceptions import ParseError
from mdforms.logging import get_logger
from mdforms.processing.builder import build_form
from mdforms.settings import SPEC_VERSION
from mdforms.syntax.extractor import extract
from mdforms.syntax.lexer import lex
from mdforms.typing.models import FormMetadata, ParsedForm

logger = get_logger(__name__)

METADATA_KEY = "mdforms"
DERIVED_METADATA_KEYS = frozenset({"form_summary", "form_progress", "form_state"})
_AUTHORED_METADATA_KEYS = frozenset({"title", "description", "roles", "role_instructions", "run_mode", "harness"})
_FRONTMATTER_CLOSE_RE = re.compile(r"^(?:---|\.\.\.)[ \t]*$", re.MULTILINE)


def normalize_newlines(text: str) -> str:
    """Return text with a leading BOM removed and Unix line endings."""
    return text.removeprefix("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, int]:
    """Split the leading YAML metadata block from the body.

    Args:
        text (str): Document text with Unix line endings.

    Raises:
        ParseError: If the block is unterminated or not valid YAML.

    Returns:
        tuple[dict[str, Any] | None, int]: Parsed mapping (None when absent) and body offset.
    """
    first_line = text.split("\n", 1)[0]
    if first_line.rstrip() != "---":
        return None, 0
    start = len(first_line) + 1
    close = _FRONTMATTER_CLOSE_RE.search(text, start)
    if close is None:
        raise ParseError("Unterminated metadata block: expected a closing '---' line", line=1, column=1)
    try:
        data = yaml.safe_load(text[start : close.start()])
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else 1
        raise ParseError(f"Invalid metadata block: {exc}", line=line, column=1) from exc
    if data is not None and not isinstance(data, dict):
        raise ParseError("Metadata block must be a YAML mapping", line=1, column=1)
    body_start = min(close.end() + 1, len(text))
    return data or {}, body_start


def read_metadata(data: dict[str, Any] | None) -> FormMetadata:
    """Build `FormMetadata` from the parsed YAML block.

    Derived keys are dropped; unknown keys are logged and ignored.

    Args:
        data (dict[str, Any] | None): Parsed metadata block.

    Raises:
        ParseError: If the `mdforms` section is malformed.

    Returns:
        FormMetadata: Authored metadata with defaults applied.
    """
    section = (data or {}).get(METADATA_KEY)
    if section is None:
        return FormMetadata()
    if not isinstance(section, dict):
        raise ParseError(f"Metadata '{METADATA_KEY}' section must be a mapping", line=1, column=1)
    spec_version = str(section.get("spec", SPEC_VERSION))
    if spec_version != SPEC_VERSION:
        logger.warning("Unknown spec version", extra={"spec_version": spec_version, "supported": SPEC_VERSION})
    unknown = sorted(set(section) - _AUTHORED_METADATA_KEYS - DERIVED_METADATA_KEYS - {"spec"})
    if unknown:
        logger.warning("Ignoring unknown metadata keys", extra={"keys": unknown})
    payload = {key: section[key] for key in _AUTHORED_METADATA_KEYS if section.get(key) is not None}
    try:
        return FormMetadata.model_validate({"spec_version": spec_version, **payload})
    except PydanticValidationError as exc:
        raise ParseError(f"Invalid metadata: {exc.errors()[0]['msg']}", line=1, column=1) from exc


def parse_form(text: str, *, source: str | None = None) -> ParsedForm:
    """Parse form text into a fully built and checked `ParsedForm`.

    Args:
        text (str): Raw `.form.md` content.
        source (str | None): Optional file name attached to parse errors.

    Raises:
        ParseError: If the text is not a valid form.

    Returns:
        ParsedForm: Parsed form.
    """
    try:
        normalized = normalize_newlines(text)
        data, body_start = split_frontmatter(normalized)
        metadata = read_metadata(data)
        lexed = lex(normalized, body_start)
        raw = extract(lexed)
        if raw is None:
            raise ParseError("No form found: expected a 'form' tag", line=1, column=1)
        metadata.syntax_style = lexed.style
        form = build_form(raw, metadata)
    except ParseError as exc:
        if source is None or exc.source is not None:
            raise
        raise dataclasses.replace(exc, source=source) from exc
    logger.debug(
        "Form parsed",
        extra={"form_id": form.form_schema.id, "fields": len(form.order_index), "syntax": lexed.style.value},
    )
    return form
