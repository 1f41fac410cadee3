"""Processing helpers: building, checking, coercing and normalizing form data."""

from mdforms.processing.builder import build_form
from mdforms.processing.coercion import CoercionResult, coerce_field_value, coerce_input_context, normalize_patch
from mdforms.processing.patch_checks import check_patch
from mdforms.processing.semantic_checks import check_semantics, resolve_ref

__all__ = [
    "CoercionResult",
    "build_form",
    "check_patch",
    "check_semantics",
    "coerce_field_value",
    "coerce_input_context",
    "normalize_patch",
    "resolve_ref",
]
