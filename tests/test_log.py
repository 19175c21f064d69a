"""Tests for logging setup."""

from __future__ import annotations

import io
import json

import pytest
import structlog

from checkpoint.log import configure_logging


def test_json_output_redacts_passwords() -> None:
    stream = io.StringIO()
    configure_logging("INFO", "json", stream)

    structlog.get_logger("checkpoint.test").info("Connected", host="db", password="hunter2")

    record = json.loads(stream.getvalue())
    assert record["event"] == "Connected"
    assert record["host"] == "db"
    assert record["password"] == "***"
    assert record["level"] == "info"


def test_level_filters() -> None:
    stream = io.StringIO()
    configure_logging("warning", "console", stream)

    log = structlog.get_logger("checkpoint.test")
    log.info("hidden")
    log.warning("shown")

    output = stream.getvalue()
    assert "shown" in output
    assert "hidden" not in output


@pytest.mark.parametrize(("level", "fmt"), [("LOUD", "json"), ("INFO", "xml")])
def test_invalid_arguments(level: str, fmt: str) -> None:
    with pytest.raises(ValueError):
        configure_logging(level, fmt)
