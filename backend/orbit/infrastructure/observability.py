"""Structured Logging — one JSON object per log line, or plain text in development.

Invariants:
    - Every line carries timestamp (record creation time, UTC), level, logger, message
    - Only allow-listed extra fields are emitted: user text never leaks via extras
    - setup_logging replaces the handlers it installed before (safe to call twice)

Design Decisions:
    - stdlib logging + a small Formatter subclass, no logging library
    - Text format appends the same allow-listed extras as key=value pairs
"""

import json
import logging
from datetime import datetime, timezone

LOGGED_EXTRAS = (
    "owner_id", "action_type", "action_index", "error_code", "attempt",
    "input_tokens", "output_tokens", "pattern_count", "log_count",
)
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in LOGGED_EXTRAS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.set_name("orbit")

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == "orbit"]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
