"""Error Hierarchy — typed, categorized exceptions for every breedfinder failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Errors are raised inside effect bodies only; the effect boundary converts
      them into a failure action (update functions never raise)
    - to_notification() produces the (severity, message) pair shown to the user

Design Decisions:
    - Single hierarchy with BreedFinderError base: effects catch one type
      and still keep the precise code for logs
    - ErrorContext as dataclass: rich observability without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from breedfinder.core.domain_types import Severity


class ErrorSeverity(str, Enum):
    """Error severity for observability and notification styling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE = "resource"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    url: str | None = None
    generation: int | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BreedFinderError(Exception):
    """Base exception for all breedfinder errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_dict(self) -> dict:
        """Convert to a structured dict (logs, CLI --json output)."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "url": self.context.url,
                    "generation": self.context.generation,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_notification(self) -> tuple[Severity, str]:
        """(severity, message) pair for the notification capability."""
        if self.severity is ErrorSeverity.CRITICAL:
            return Severity.ERROR, self.message
        return Severity(self.severity.value), self.message

    def stringify(self) -> str:
        """Text for terminal output (multi-line where the error has detail)."""
        return self.message


# ─── Decoding Errors ────────────────────────────────────────────

class DecodeError(BreedFinderError):
    """Envelope or payload did not match the expected schema."""
    def __init__(self, path: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Problem with the value at {path}: {reason}",
            "DECODE_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )
        self.path = path
        self.reason = reason

    def stringify(self) -> str:
        """Human-readable path + reason, one per line."""
        return f"Problem with the value at {self.path}:\n\n    {self.reason}"


class RemoteServiceError(BreedFinderError):
    """Remote service answered with an explicit error envelope."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "REMOTE_SERVICE_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context,
        )


# ─── Infrastructure Errors ──────────────────────────────────────

class TransportError(BreedFinderError):
    """Network call failed before a usable response arrived."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Network request failed: {message}",
            "TRANSPORT_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context,
        )


class ReadError(BreedFinderError):
    """User-supplied file could not be read (reason: 'failed' or 'aborted')."""

    FAILED = "failed"
    ABORTED = "aborted"

    def __init__(
        self, reason: str, detail: str | None = None,
        context: ErrorContext | None = None,
    ):
        message = (
            "Picture reading was aborted" if reason == self.ABORTED
            else "Picture could not be read"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message, "READ_ERROR", ErrorCategory.RESOURCE,
            ErrorSeverity.ERROR, context,
        )
        self.reason = reason


class VisionAPIError(BreedFinderError):
    """Vision classifier call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Vision classifier error ({api_error_type}): {message}",
            "VISION_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx,
        )
        self.api_error_type = api_error_type


# ─── Matching Errors ────────────────────────────────────────────

class EmptyResultError(BreedFinderError):
    """Classifier returned zero labels."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "The classifier found nothing on the picture",
            "EMPTY_RESULT", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context,
        )


class NoMatchError(BreedFinderError):
    """No classifier label resolved to a known breed."""
    def __init__(self, labels: list[str] | None = None, context: ErrorContext | None = None):
        super().__init__(
            "No known breed matches the picture",
            "NO_MATCH", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context,
        )
        self.labels = labels or []
