"""Logging configuration.

- Development: human-readable single-line format
- ``LOG_JSON=true``: JSON lines for log aggregation
- Level: ``LOG_LEVEL`` (default INFO)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from app.core.config import Settings

_HANDLER_NAME = "proserv"
_EXTRA_FIELDS = ("organization_id", "project_id", "rate_card_id", "role_id", "caller_id")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = str(value)
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")


def configure_logging(settings: Settings) -> None:
    """Install a single stderr handler on the root logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if settings.log_json else ReadableFormatter())
    handler.setLevel(level)
    handler.set_name(_HANDLER_NAME)

    root = logging.getLogger()
    # create_app() may run more than once per process (tests).
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
