"""Structured logging configuration.

Uses standard library logging with a JSON formatter. Engine records carry
`run_id`, `node_id`, `status` and `phase` as `extra`; the formatter lifts them
to top-level keys so a log stream can be filtered per run or per node.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from motif_flow.config import FlowSettings

ENGINE_FIELDS: tuple[str, ...] = ("run_id", "node_id", "status", "phase")

# Every attribute a bare LogRecord has; anything else on a record came from `extra`.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, engine fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in ENGINE_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
            and key not in ENGINE_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=repr)


class TextFormatter(logging.Formatter):
    """Human-readable lines; the node id, when present, follows the logger name."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s - %(name)s%(node)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        node_id = getattr(record, "node_id", None)
        record.node = f" [{node_id}]" if node_id else ""
        return super().format(record)


def configure_logging(settings: FlowSettings | None = None) -> None:
    """Configure root logging from `FlowSettings` (level and JSON vs. text)."""

    settings = settings or FlowSettings()
    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter() if settings.json_logs else TextFormatter())

    root.addHandler(handler)
    root.setLevel(settings.log_level)
