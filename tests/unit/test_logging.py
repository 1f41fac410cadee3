from __future__ import annotations

import json

from mdforms import logger as package_logger
from mdforms.logging import configure_logging, get_logger
from mdforms.settings import Settings


def test_stdlib_logger_is_configured(capsys) -> None:
    configure_logging(settings=Settings(log_json=False, log_level="INFO"), force=True)
    logger = get_logger("tests")
    logger.info("hello")

    captured = capsys.readouterr()
    assert "hello" in captured.err.lower()


def test_json_logs_flatten_extra_payload(capsys) -> None:
    configure_logging(settings=Settings(log_json=True, log_level="INFO"), force=True)
    logger = get_logger("tests.json")
    logger.info("Form parsed", extra={"form_id": "vendor_intake", "fields": 9})

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "Form parsed"
    assert payload["form_id"] == "vendor_intake"
    assert payload["fields"] == 9
    assert payload["level"] == "info"
    assert "extra" not in payload


def test_package_logger_created_on_import() -> None:
    assert callable(getattr(package_logger, "info", None))
