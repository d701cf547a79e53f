"""Unit tests for structured logging."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from motif_flow import FlowSettings, Workflow, step
from motif_flow.logging import JsonFormatter, TextFormatter, configure_logging


def _record(msg: str, level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="motif_flow.workflow.engine",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


def test_json_formatter_lifts_engine_fields_to_top_level() -> None:
    record = _record("a:a is ready")
    record.node_id = "a:a"
    record.status = "ready"
    record.can_go_back = False

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "motif_flow.workflow.engine"
    assert payload["message"] == "a:a is ready"
    assert payload["node_id"] == "a:a"
    assert payload["status"] == "ready"
    assert "phase" not in payload
    assert payload["extra"] == {"can_go_back": False}
    assert "exception" not in payload


def test_json_formatter_serialises_exceptions_and_odd_values() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record("hook failed", level=logging.ERROR, exc_info=sys.exc_info())
    record.phase = "effect"
    record.payload = object()

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
    assert payload["phase"] == "effect"
    assert payload["extra"]["payload"].startswith("<object object")


def test_text_formatter_shows_the_node() -> None:
    record = _record("entered")
    record.node_id = "a:a"
    assert "motif_flow.workflow.engine [a:a] - INFO - entered" in TextFormatter().format(record)

    plain = TextFormatter().format(_record("idle"))
    assert "motif_flow.workflow.engine - INFO - idle" in plain


def test_configure_logging_uses_settings(restore_root_logger) -> None:
    root = restore_root_logger

    configure_logging(FlowSettings(log_level="debug", json_logs=True, _env_file=None))
    configure_logging(FlowSettings(log_level="warning", json_logs=False, _env_file=None))

    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, TextFormatter)
    assert root.level == logging.WARNING


def test_engine_run_logs_carry_run_and_node_ids(restore_root_logger, capsys) -> None:
    configure_logging(FlowSettings(log_level="INFO", json_logs=True, _env_file=None))

    done = step("done", lambda args: {"go": lambda: args.next("out")})
    wf = Workflow([done])
    node = done()
    wf.register(node)
    wf.start(node)
    wf.get_current_step().state.go()

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    started = next(line for line in lines if "started" in line["message"])
    finished = next(line for line in lines if "finished" in line["message"])
    assert started["run_id"] == 1
    assert started["node_id"] == "done:done"
    assert finished["run_id"] == 1
