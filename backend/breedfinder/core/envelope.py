"""Envelope Decoder — unwraps the two-shape {status, message} response of the dog API.

Invariants:
    - status == "error"   → RemoteServiceError carrying the message string
    - status == "success" → message validated strictly against the payload type
    - anything else (bad JSON, missing/unknown status, payload mismatch) → DecodeError
    - Never returns a partially valid payload

Design Decisions:
    - Two-stage decode (header, then payload): the status decides which schema
      applies to `message`, mirroring how the service documents its responses
    - pydantic TypeAdapter in strict mode: "1" is not a list, 1 is not a str
    - Paths rendered JSONPath-style ($.message.pug[0]) for readable notifications
"""

import json
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from breedfinder.core.errors import DecodeError, RemoteServiceError

T = TypeVar("T")

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def decode_envelope(text: str | bytes, payload_type: type[T]) -> T:
    """Decode raw response text into the payload, or raise a typed error."""
    document = _parse_json(text)
    status = document.get("status")
    if not isinstance(status, str):
        raise DecodeError("$.status", f"Expecting a STRING, got {_describe(status)}")

    if "message" not in document:
        raise DecodeError("$", "Expecting an OBJECT with a field named `message`")
    message = document["message"]

    if status == STATUS_ERROR:
        if not isinstance(message, str):
            raise DecodeError("$.message", f"Expecting a STRING, got {_describe(message)}")
        raise RemoteServiceError(message)

    if status == STATUS_SUCCESS:
        return _validate_payload(message, payload_type)

    raise DecodeError("$.status", f'Unknown status "{status}"')


def _parse_json(text: str | bytes) -> dict:
    try:
        document = json.loads(text)
    except (ValueError, TypeError) as e:
        raise DecodeError("$", f"This is not valid JSON! {e}")
    if not isinstance(document, dict):
        raise DecodeError("$", f"Expecting an OBJECT, got {_describe(document)}")
    return document


def _validate_payload(message: Any, payload_type: type[T]) -> T:
    try:
        return _adapter(payload_type).validate_python(message, strict=True)
    except ValidationError as e:
        first = e.errors()[0]
        raise DecodeError(format_path(("message", *first["loc"])), first["msg"])


@lru_cache(maxsize=None)
def _adapter(payload_type: Any) -> TypeAdapter:
    return TypeAdapter(payload_type)


def format_path(loc: tuple) -> str:
    """('message', 'pug', 0) -> '$.message.pug[0]'."""
    path = "$"
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    return json.dumps(value)[:80]
