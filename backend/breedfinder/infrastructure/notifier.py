"""Notifiers — implementations of the fire-and-forget notification capability.

Invariants:
    - notify() never raises and never blocks
    - Unknown severities are shown as "info"

Design Decisions:
    - LoggingNotifier for headless and --json runs (severity mapped to log level)
    - ConsoleNotifier for the CLI: one prefixed line per notification on stderr
    - RecordingNotifier keeps notifications in memory (tests)
"""

import logging
import sys
from typing import TextIO

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LoggingNotifier:
    def notify(self, severity: str, message: str) -> None:
        logger.log(_LEVELS.get(severity, logging.INFO), message,
            extra={"severity": severity})


class ConsoleNotifier:
    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stderr

    def notify(self, severity: str, message: str) -> None:
        label = severity if severity in _LEVELS else "info"
        print(f"[{label}] {message}", file=self.stream)


class RecordingNotifier:
    def __init__(self):
        self.notifications: list[tuple[str, str]] = []

    def notify(self, severity: str, message: str) -> None:
        self.notifications.append((severity, message))
