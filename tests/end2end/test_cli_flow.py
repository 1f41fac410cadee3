from __future__ import annotations

import json
import sys
from subprocess import run as subprocess_run  # noqa: S404
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from pathlib import Path


def _run_cli(*args: str, cwd: Path) -> tuple[int, str]:
    result = subprocess_run(  # noqa: S603
        [sys.executable, "-m", "mdforms.cli", *args],
        capture_output=True,
        text=True,
        check=False,
        cwd=cwd,
    )
    return result.returncode, result.stdout


def test_cli_fills_and_exports_a_form(tmp_path: Path, vendor_form_text: str, vendor_patches: list[dict]) -> None:
    form_path = tmp_path / "vendor.form.md"
    form_path.write_text(vendor_form_text, encoding="utf-8")
    patches_path = tmp_path / "patches.json"
    patches_path.write_text(json.dumps(vendor_patches), encoding="utf-8")

    code, out = _run_cli("inspect", str(form_path), cwd=tmp_path)
    assert code == 0
    assert json.loads(out)["formState"] == "empty"

    code, out = _run_cli("apply", str(form_path), "--patches", str(patches_path), "--in-place", cwd=tmp_path)
    assert code == 0
    assert json.loads(out)["isComplete"] is True
    assert "form_state: complete" in form_path.read_text(encoding="utf-8")

    code, out = _run_cli("inspect", str(form_path), cwd=tmp_path)
    assert code == 0
    assert json.loads(out)["issues"] == []

    code, out = _run_cli("export", str(form_path), "--format", "yaml", cwd=tmp_path)
    assert code == 0
    values = yaml.safe_load(out)
    assert values["name"] == "ACME"
    assert values["offices"][1] == {"city": "Lyon | Annex", "staff": "%SKIP% (closing)"}


def test_cli_exits_non_zero_on_broken_form(tmp_path: Path) -> None:
    form_path = tmp_path / "broken.form.md"
    form_path.write_text(
        '{% form id="f" %}\n{% field kind="string" id="a" %}{% /field %}\n{% /form %}\n',
        encoding="utf-8",
    )

    code, out = _run_cli("validate", str(form_path), cwd=tmp_path)

    assert code == 1
    assert out == ""
