"""Surface syntax: lexing, attribute reading, extraction and sentinels."""

from mdforms.syntax.attributes import format_attributes, format_value, parse_attributes
from mdforms.syntax.extractor import RawField, RawForm, RawGroup, extract
from mdforms.syntax.lexer import LexedDocument, lex
from mdforms.syntax.sentinels import Sentinel, detect_sentinel, format_sentinel, parse_sentinel

__all__ = [
    "LexedDocument",
    "RawField",
    "RawForm",
    "RawGroup",
    "Sentinel",
    "detect_sentinel",
    "extract",
    "format_attributes",
    "format_sentinel",
    "format_value",
    "lex",
    "parse_attributes",
    "parse_sentinel",
]
