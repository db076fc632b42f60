"""Structured Logging — JSON formatter and setup for the CLI host.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (action, generation, error_code, ...) surfaced when present
    - JSON format for machine consumption, human-readable text by default

Design Decisions:
    - JSONFormatter over third-party libs: stdlib logging is enough for one process
    - setup_logging called once by the CLI before the Program starts
"""

import logging
import json
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "action", "generation", "attempt", "path", "breed",
    "error_code", "severity", "status_code",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging for the application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
