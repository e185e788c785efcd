from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from superplan.engine import logging as runtime_logging
from superplan.engine.logging import configure_cli_logging, record_metrics, setup_logger


@pytest.fixture(autouse=True)
def isolate_logging(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Reset logging handlers and run in a temporary working directory."""

    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    root.handlers = []
    root.setLevel(logging.NOTSET)
    yield
    for logger in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger, logging.Logger):
            logger.handlers = []
            logger.setLevel(logging.NOTSET)
    root.handlers = []
    root.setLevel(logging.NOTSET)


def test_setup_logger_resolves_level_from_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The helper must honour SUPERPLAN_LOG_LEVEL when configuring loggers."""

    monkeypatch.setenv(runtime_logging.LEVEL_ENV_FLAG, "DEBUG")
    logger = setup_logger("superplan.tests.level")

    assert logger.isEnabledFor(logging.DEBUG)
    console_handlers = [h for h in logger.handlers if getattr(h, "_superplan_console", False)]
    assert console_handlers, "expected console handler to be attached"
    assert console_handlers[0].formatter._fmt == runtime_logging.CONSOLE_FORMAT


def test_setup_logger_emits_json_payload() -> None:
    """When json_format=True the audit file must contain structured entries."""

    logger = setup_logger("superplan.tests.json", json_format=True)
    logger.info(
        "monte carlo complete",
        extra={
            "process_time_ms": 12.5,
            "trials": 1000,
            "scenario": "early-retirement",
            "seed": 42,
            "success_rate": 0.875,
        },
    )
    for handler in logger.handlers:
        handler.flush()

    audit_path = runtime_logging.LOG_PATH
    payloads = [
        json.loads(line) for line in audit_path.read_text(encoding="utf-8").splitlines() if line
    ]
    assert payloads, "expected at least one JSON log line"
    record = payloads[0]
    assert record["message"] == "monte carlo complete"
    assert record["source"] == "superplan.tests.json"
    assert record["level"] == "INFO"
    assert record["process_time_ms"] == pytest.approx(12.5)
    assert record["trials"] == pytest.approx(1000.0)
    assert record["scenario"] == "early-retirement"
    assert record["seed"] == pytest.approx(42.0)
    assert record["success_rate"] == pytest.approx(0.875)
    assert record["strategy"] is None


def test_json_payload_defaults_missing_fields_to_null() -> None:
    logger = setup_logger("superplan.tests.null", json_format=True)
    logger.warning("plain message")
    for handler in logger.handlers:
        handler.flush()

    line = runtime_logging.LOG_PATH.read_text(encoding="utf-8").splitlines()[0]
    record = json.loads(line)
    assert record["trials"] is None
    assert record["scenario"] is None
    assert record["seed"] is None
    assert record["strategy"] is None


def test_record_metrics_appends_jsonl() -> None:
    """Metrics helper must append JSON lines with tags."""

    record_metrics("simulate.success_rate", 0.87, {"scenario": "base"})
    record_metrics("simulate.success_rate", 0.91, {"scenario": "base"})
    contents = runtime_logging.METRICS_PATH.read_text(encoding="utf-8")
    lines = [json.loads(line) for line in contents.splitlines() if line]
    assert len(lines) == 2
    assert lines[0]["metric"] == "simulate.success_rate"
    assert lines[0]["value"] == pytest.approx(0.87)
    assert lines[0]["tags"] == {"scenario": "base"}


def test_configure_cli_logging_updates_existing_loggers() -> None:
    """Existing superplan loggers should gain JSON handlers when requested."""

    first = setup_logger("superplan.engine.sample")
    assert not any(getattr(h, "_superplan_json", False) for h in first.handlers)

    configure_cli_logging(json_logs=True)
    assert any(getattr(h, "_superplan_json", False) for h in first.handlers)
    configure_cli_logging(json_logs=False)


def test_json_payload_keeps_strategy_as_text() -> None:
    logger = setup_logger("superplan.tests.strategy", json_format=True)
    logger.info("bridge sized", extra={"strategy": "staggered", "trials": "n/a"})
    for handler in logger.handlers:
        handler.flush()

    line = runtime_logging.LOG_PATH.read_text(encoding="utf-8").splitlines()[0]
    record = json.loads(line)
    assert record["strategy"] == "staggered"
    assert record["trials"] is None
