"""Runtime settings.

Configuration is loaded from:
- environment variables prefixed with `MOTIF_FLOW_`
- and a local `.env` file (if present)

Pydantic-settings supports overriding the env file in tests via
`FlowSettings(_env_file=path_to_env)`.
"""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LEVEL_NAMES = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class FlowSettings(BaseSettings):
    """Settings shared by every workflow in the process.

    Environment variables:
    - MOTIF_FLOW_LOG_LEVEL          (optional)
    - MOTIF_FLOW_JSON_LOGS          (optional)
    - MOTIF_FLOW_HOOK_ERROR_LEVEL   (optional)
    - MOTIF_FLOW_TRACE_TRANSITIONS  (optional)
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit JSON log lines instead of plain text",
    )
    hook_error_level: str = Field(
        default="ERROR",
        description="Level used to log failures swallowed from hooks, effects and cleanups",
    )
    trace_transitions: bool = Field(
        default=False,
        description="Log every status change of a running workflow at DEBUG",
    )

    model_config = SettingsConfigDict(
        env_prefix="MOTIF_FLOW_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level", "hook_error_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LEVEL_NAMES:
            raise ValueError(f"Unknown logging level: {value!r}")
        return level

    @property
    def hook_error_levelno(self) -> int:
        return logging.getLevelName(self.hook_error_level)
