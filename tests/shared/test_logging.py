"""Tests for shared logging formatters and context propagation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest

from packages.trail_shared.config import LoggingSettings
from packages.trail_shared.logging import (
    bind_context,
    clear_context,
    configure_logging,
    configure_logging_from_settings,
    get_context,
    get_logger,
    log_context,
    operation_context,
)
from packages.trail_shared.logging.config import ContextFilter, JsonFormatter, PlainFormatter


@pytest.fixture(autouse=True)
def _isolated_logging() -> Iterator[None]:
    """Restore root handlers and context after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    clear_context()
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_context()


def _record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    record = logging.LogRecord("trail.test", level, __file__, 1, message, None, None)
    ContextFilter().filter(record)
    return record


def test_bind_context_stringifies_and_skips_none() -> None:
    bind_context(item_type="Widget", item_id=7, scope=None)

    assert get_context() == {"item_type": "Widget", "item_id": "7"}

    clear_context("item_id")
    assert get_context() == {"item_type": "Widget"}


def test_log_context_is_restored_after_block() -> None:
    bind_context(service="trail")

    with log_context({"operation": "write_version", "event": "created"}):
        assert get_context() == {
            "service": "trail",
            "operation": "write_version",
            "event": "created",
        }

    assert get_context() == {"service": "trail"}


def test_log_context_is_restored_when_block_raises() -> None:
    with pytest.raises(RuntimeError):
        with log_context({"operation": "list_versions"}):
            raise RuntimeError("boom")

    assert get_context() == {}


def test_operation_context_binds_version_identifiers() -> None:
    with operation_context(
        "write_version", item_type="Widget", item_id=7, scope=None, event="created"
    ):
        assert get_context() == {
            "operation": "write_version",
            "item_type": "Widget",
            "item_id": "7",
            "event": "created",
        }
        snapshot = get_context()
        bind_context(version_id=1)
        assert "version_id" not in snapshot

    assert get_context() == {}


def test_json_formatter_includes_core_fields_and_context() -> None:
    with log_context({"item_type": "Widget", "version_id": 3}):
        record = _record("Version written")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "trail.test"
    assert payload["message"] == "Version written"
    assert payload["item_type"] == "Widget"
    assert payload["version_id"] == "3"
    assert payload["timestamp"].endswith("+00:00")


def test_plain_formatter_appends_sorted_context() -> None:
    with log_context({"item_type": "Widget", "event": "created"}):
        record = _record("Version written")

    line = PlainFormatter().format(record)

    assert line.endswith("Version written event=created item_type=Widget")


def test_configure_logging_installs_single_stdout_handler(
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging(level="INFO", json_output=True, service="trail", environment="test")
    configure_logging(level="INFO", json_output=True, service="trail", environment="test")

    get_logger("trail.test").info("ready")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["message"] == "ready"
    assert payload["service"] == "trail"
    assert payload["environment"] == "test"


def test_configure_logging_from_settings_uses_plain_output(
    capsys: pytest.CaptureFixture[str],
) -> None:
    configure_logging_from_settings(
        LoggingSettings(level="WARNING", json_output=False, environment="ci")
    )

    get_logger("trail.test").info("hidden")
    get_logger("trail.test").warning("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "WARNING trail.test shown" in out
    assert "environment=ci" in out
