"""Unit tests for configuration."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from motif_flow.config import FlowSettings


def test_flow_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test default values when nothing is set in the environment."""
    for name in ("LOG_LEVEL", "JSON_LOGS", "HOOK_ERROR_LEVEL", "TRACE_TRANSITIONS"):
        monkeypatch.delenv(f"MOTIF_FLOW_{name}", raising=False)

    settings = FlowSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.json_logs is True
    assert settings.hook_error_level == "ERROR"
    assert settings.hook_error_levelno == logging.ERROR
    assert settings.trace_transitions is False


def test_flow_settings_reads_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOTIF_FLOW_LOG_LEVEL", "debug")
    monkeypatch.setenv("MOTIF_FLOW_HOOK_ERROR_LEVEL", "warning")
    monkeypatch.setenv("MOTIF_FLOW_TRACE_TRANSITIONS", "true")

    settings = FlowSettings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.hook_error_levelno == logging.WARNING
    assert settings.trace_transitions is True


def test_flow_settings_env_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MOTIF_FLOW_JSON_LOGS", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("MOTIF_FLOW_JSON_LOGS=false\n", encoding="utf-8")

    settings = FlowSettings(_env_file=env_file)

    assert settings.json_logs is False


def test_flow_settings_rejects_unknown_level() -> None:
    with pytest.raises(ValidationError):
        FlowSettings(log_level="LOUD", _env_file=None)
