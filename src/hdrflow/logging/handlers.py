"""Custom logging formatters for hdrflow.

Provides JSONFormatter for structured log output.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else came from extra={...}
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
    | {"message", "asctime", "taskName"}
)

# Added by RunContextFilter and emitted under their own keys
_RUN_ATTRS = ("worker_id", "run_id", "source_path")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Each entry has timestamp (ISO-8601 UTC), level, message, the logger
    name, the run context when set, a context object built from
    extra={...} fields, and the formatted exception when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        record_time = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": record_time.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        if record.name and record.name != "root":
            entry["logger"] = record.name

        for attr in _RUN_ATTRS:
            value = getattr(record, attr, None)
            if value:
                entry[attr] = value

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
            and key not in _RUN_ATTRS
            and key != "run_tag"
            and not key.startswith("_")
        }
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
