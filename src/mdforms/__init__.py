"""mdforms package."""

from mdforms.exceptions import (
    AbortError,
    ConfigError,
    PackageError,
    ParseError,
    PatchError,
    SettingsError,
    ValidationError,
)
from mdforms.export import export_form, export_json, export_values, export_yaml, import_values, serialize_raw_markdown
from mdforms.inspection import inspect
from mdforms.logging import configure_logging, get_logger
from mdforms.parser import parse_form
from mdforms.patches import apply_patches
from mdforms.serializer import serialize
from mdforms.settings import Settings, get_settings
from mdforms.validation import ValidatorRegistry, validate

__version__ = "0.1.0"

# Initialize package logger at import time via `get_logger`.
logger = get_logger("mdforms")

__all__ = [
    "AbortError",
    "ConfigError",
    "PackageError",
    "ParseError",
    "PatchError",
    "Settings",
    "SettingsError",
    "ValidationError",
    "ValidatorRegistry",
    "__version__",
    "apply_patches",
    "configure_logging",
    "export_form",
    "export_json",
    "export_values",
    "export_yaml",
    "get_logger",
    "get_settings",
    "import_values",
    "inspect",
    "logger",
    "parse_form",
    "serialize",
    "serialize_raw_markdown",
    "validate",
]
