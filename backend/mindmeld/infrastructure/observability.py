"""Structured Logging: JSON and text formatters that carry game context.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Game context passed via `extra` (room_id, round_id, player_id, round_number,
      phase, error_code) appears in both formats when present
    - UUIDs and enums are rendered as strings; numbers stay numbers

Design Decisions:
    - setup_logging called once on startup via lifespan
    - Text format appends context as key=value pairs for local runs
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_KEYS = (
    "room_id", "round_id", "player_id", "round_number", "phase",
    "error_code", "attempt", "path",
)


def context_fields(record: logging.LogRecord) -> dict:
    fields = {}
    for key in CONTEXT_KEYS:
        val = record.__dict__.get(key)
        if val is None:
            continue
        fields[key] = val if isinstance(val, (int, float)) else str(val)
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **context_fields(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


class ContextTextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = context_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in fields.items())
        head, sep, rest = line.partition("\n")
        return f"{head} [{pairs}]{sep}{rest}"


def setup_logging(level: str = "INFO", fmt: str = "json"):
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else ContextTextFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
