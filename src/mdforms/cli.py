"""CLI entry point for mdforms."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mdforms import __version__, logger
from mdforms.exceptions import ConfigError, PackageError
from mdforms.export import export_form
from mdforms.inspection import inspect, raise_for_aborted
from mdforms.logging import configure_logging
from mdforms.parser import parse_form
from mdforms.patches import apply_patches
from mdforms.serializer import serialize
from mdforms.settings import Settings, get_settings
from mdforms.typing.enums import ApplyStatus, ExportFormat, SyntaxStyle
from mdforms.validation import validate

if TYPE_CHECKING:
    from mdforms.typing.models import ParsedForm

COMMANDS = ("inspect", "validate", "apply", "export", "serialize")


def _roles_from_cli(value: str) -> list[str]:
    """Convert `--roles` CLI value into a role list.

    Args:
        value (str): Comma-separated roles.

    Raises:
        argparse.ArgumentTypeError: If no role is given.

    Returns:
        list[str]: Roles.
    """
    roles = [role.strip() for role in value.split(",") if role.strip()]
    if not roles:
        raise argparse.ArgumentTypeError("--roles must name at least one role or '*'")  # noqa: TRY003
    return roles


def _non_negative_int(value: str) -> int:
    """Parse a non-negative integer CLI value.

    Args:
        value (str): Raw CLI value.

    Raises:
        argparse.ArgumentTypeError: If the value is not an integer >= 0.

    Returns:
        int: Parsed value.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc  # noqa: TRY003
    if parsed < 0:
        raise argparse.ArgumentTypeError("--max-issues must be >= 0")  # noqa: TRY003
    return parsed


def _add_role_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--roles", type=_roles_from_cli, default=None, dest="roles")
    parser.add_argument("--max-issues", type=_non_negative_int, default=None, dest="max_issues")


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser.

    Returns:
        argparse.ArgumentParser: The configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="mdforms")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Summarize a form and list open issues")
    inspect_parser.add_argument("form_path", type=Path)
    _add_role_options(inspect_parser)
    inspect_parser.add_argument("--fail-on-abort", action="store_true", dest="fail_on_abort")

    validate_parser = subparsers.add_parser("validate", help="Run the built-in rule validator")
    validate_parser.add_argument("form_path", type=Path)

    apply_parser = subparsers.add_parser("apply", help="Apply a JSON batch of patches to a form")
    apply_parser.add_argument("form_path", type=Path)
    apply_parser.add_argument("--patches", required=True, type=Path, dest="patches_path")
    _add_role_options(apply_parser)
    target = apply_parser.add_mutually_exclusive_group()
    target.add_argument("--in-place", action="store_true", dest="in_place")
    target.add_argument("--output", type=Path, default=None, dest="output_path")

    export_parser = subparsers.add_parser("export", help="Export form values or a plain report")
    export_parser.add_argument("form_path", type=Path)
    export_parser.add_argument(
        "--format",
        default=ExportFormat.JSON.value,
        choices=[item.value for item in ExportFormat],
        dest="export_format",
    )
    export_parser.add_argument("--output", type=Path, default=None, dest="output_path")

    serialize_parser = subparsers.add_parser("serialize", help="Rewrite a form in canonical form")
    serialize_parser.add_argument("form_path", type=Path)
    serialize_parser.add_argument(
        "--style",
        default=None,
        choices=[item.value for item in SyntaxStyle],
        dest="style",
    )
    serialize_parser.add_argument("--output", type=Path, default=None, dest="output_path")

    return parser


def _read_form(path: Path) -> ParsedForm:
    return parse_form(path.read_text(encoding="utf-8"), source=str(path))


def _read_patches(path: Path) -> list[Any]:
    """Load a patch batch from a JSON file.

    Args:
        path (Path): File holding a list of patches or `{"patches": [...]}`.

    Raises:
        ConfigError: If the file does not hold a patch list.

    Returns:
        list[Any]: Raw patch payloads.
    """
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("patches")
    if not isinstance(payload, list):
        raise ConfigError(
            "expected a JSON list of patches",
            option="patches",
            expected_type="list",
            received_value=str(path),
        )
    return payload


def _emit(text: str, output_path: Path | None) -> None:
    if output_path is None:
        print(text, end="" if text.endswith("\n") else "\n")  # noqa: T201
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    logger.info("Output written", extra={"output_path": str(output_path)})


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _run_inspect(args: argparse.Namespace, settings: Settings) -> int:
    form = _read_form(args.form_path)
    if args.fail_on_abort:
        raise_for_aborted(form)
    result = inspect(
        form,
        target_roles=args.roles or settings.target_role_list,
        max_issues=args.max_issues if args.max_issues is not None else settings.max_issues,
    )
    _emit(_dump(result.to_wire()), None)
    return 0


def _run_validate(args: argparse.Namespace, _settings: Settings) -> int:
    issues = validate(_read_form(args.form_path))
    _emit(_dump([issue.to_wire() for issue in issues]), None)
    return 0


def _run_apply(args: argparse.Namespace, settings: Settings) -> int:
    form = _read_form(args.form_path)
    result = apply_patches(
        form,
        _read_patches(args.patches_path),
        target_roles=args.roles or settings.target_role_list,
    )
    report = result.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"form"})
    limit = args.max_issues if args.max_issues is not None else settings.max_issues
    if limit is not None:
        report["issues"] = report["issues"][:limit]
    _emit(_dump(report), None)
    if result.status == ApplyStatus.REJECTED:
        return 1
    output_path = args.form_path if args.in_place else args.output_path
    if output_path is not None:
        _emit(serialize(result.form, spec_version=settings.spec_version), output_path)
    return 0


def _run_export(args: argparse.Namespace, _settings: Settings) -> int:
    _emit(export_form(_read_form(args.form_path), args.export_format), args.output_path)
    return 0


def _run_serialize(args: argparse.Namespace, settings: Settings) -> int:
    form = _read_form(args.form_path)
    style = SyntaxStyle.from_str(args.style) if args.style else None
    _emit(serialize(form, style=style, spec_version=settings.spec_version), args.output_path)
    return 0


_RUNNERS = {
    "inspect": _run_inspect,
    "validate": _run_validate,
    "apply": _run_apply,
    "export": _run_export,
    "serialize": _run_serialize,
}


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        argv (list[str] | None): Arguments, defaulting to `sys.argv[1:]`.

    Returns:
        int: Exit code (0 for success, 1 for error, 130 when interrupted).
    """
    settings = get_settings()
    configure_logging(settings=settings)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 0

    try:
        return _RUNNERS[args.command](args, settings)
    except PackageError:
        logger.exception("Command failed", extra={"command": args.command})
        return 1
    except KeyboardInterrupt:
        logger.info("Command aborted by user", extra={"command": args.command})
        return 130
    except Exception:
        logger.exception("Unexpected error", extra={"command": args.command})
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
