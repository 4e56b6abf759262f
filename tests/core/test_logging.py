import json
import logging

import pytest

from fleetpin_core.logging import BaseFieldFilter, JsonFormatter, configure_logging


@pytest.mark.core
def test_json_formatter_includes_agent_fields() -> None:
    record = logging.LogRecord(
        name="fleetpin_core.commands.poller",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Command executed",
        args=(),
        exc_info=None,
    )
    record.command_id = "cmd-1"
    record.command_kind = "reboot"
    record.duration_ms = 12
    BaseFieldFilter(service="fleetpin-agent", env="test", version=None, device_id="d1").filter(
        record
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Command executed"
    assert payload["service"] == "fleetpin-agent"
    assert payload["device_id"] == "d1"
    assert payload["command_kind"] == "reboot"
    assert payload["duration_ms"] == 12
    assert "version" not in payload


@pytest.mark.core
def test_configure_logging_replaces_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(service="fleetpin-agent", env="test")
        configure_logging(service="fleetpin-agent", env="test", device_id="d1")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


@pytest.mark.core
def test_explicit_log_level_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(service="fleetpin-agent", env="test", log_level="warning")

        assert root.level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
