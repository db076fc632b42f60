"""Vision Classifier — Anthropic Messages API as an image → ranked labels capability.

Invariants:
    - classify() returns an UNORDERED list of Classification; ranking is the matcher's job
    - Probabilities clamped to [0, 1]; labels stripped, empty labels dropped
    - Rate limits (429) and transient errors (5xx, connection, 529): exponential
      backoff with jitter, max `max_retries` retries
    - Client errors (4xx except 429), timeouts and malformed tool output → VisionAPIError

Design Decisions:
    - Forced tool call (tool_choice) over free text: the model must answer with a
      JSON object we can validate with pydantic
    - Labels requested in ImageNet style ("Chihuahua, Mexican dog"): comma-separated
      synonyms are what the breed matcher expects
    - Only the Messages API is used; the model behind it is an external collaborator
"""

import asyncio
import logging
import random
import re

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    InternalServerError,
)
from pydantic import BaseModel, Field, ValidationError

from breedfinder.core.domain_types import Classification
from breedfinder.core.errors import ErrorContext, VisionAPIError

logger = logging.getLogger(__name__)

_OVERLOADED_STATUS = 529
_DATA_URL = re.compile(r"^data:(?P<media_type>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)
SUPPORTED_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

TOOL_NAME = "report_classifications"

CLASSIFY_TOOL = {
    "name": TOOL_NAME,
    "description": "Report what the picture shows as ranked labels with probabilities.",
    "input_schema": {
        "type": "object",
        "properties": {
            "classifications": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "label": {
                            "type": "string",
                            "description": (
                                "ImageNet-style label, synonyms separated by commas, "
                                "e.g. 'Chihuahua, Mexican dog' or 'golden retriever'"
                            ),
                        },
                        "probability": {"type": "number", "minimum": 0, "maximum": 1},
                    },
                    "required": ["label", "probability"],
                },
            },
        },
        "required": ["classifications"],
    },
}

PROMPT = (
    "Classify this picture. If it shows a dog, name the breed as precisely as you "
    "can, including the sub-breed or variety when visible. Give at most {limit} "
    "labels with probabilities that sum to at most 1."
)


class _LabelOut(BaseModel):
    label: str
    probability: float


class _ToolOutput(BaseModel):
    classifications: list[_LabelOut] = Field(default_factory=list)


def _is_overloaded(e: APIError) -> bool:
    """Check if error is Anthropic 529 Overloaded."""
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


def split_data_url(data_url: str) -> tuple[str, str]:
    """'data:image/png;base64,AAA' -> ('image/png', 'AAA')."""
    match = _DATA_URL.match(data_url)
    if not match:
        raise VisionAPIError("Picture is not a base64 image data URL", "invalid_input")
    media_type = match.group("media_type")
    if media_type not in SUPPORTED_MEDIA_TYPES:
        raise VisionAPIError(f"Unsupported image type {media_type}", "invalid_input")
    return media_type, match.group("data")


class VisionClassifier:
    """Wraps AsyncAnthropic with retry logic and label validation."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_labels: int = 5,
        max_tokens: int = 1024,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        timeout_seconds: int = 60,
        client=None,
    ):
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_seconds,
        )
        self.model = model
        self.max_labels = max_labels
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def classify(self, data_url: str) -> list[Classification]:
        """Labels for the picture, in the order the model produced them."""
        media_type, data = split_data_url(data_url)
        response = await self._create_message(media_type, data)
        return self._parse(response)

    async def aclose(self) -> None:
        await self.client.close()

    async def _create_message(self, media_type: str, data: str):
        context = ErrorContext(debug_info={"model": self.model})
        for attempt in range(self.max_retries + 1):
            try:
                return await self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    tools=[CLASSIFY_TOOL],
                    tool_choice={"type": "tool", "name": TOOL_NAME},
                    messages=[self._message(media_type, data)],
                )

            except RateLimitError as e:
                await self._handle_rate_limit(e, attempt, context)

            except APITimeoutError:
                raise VisionAPIError("API timeout", "timeout", context=context)

            except (APIConnectionError, InternalServerError) as e:
                await self._handle_transient_error(e, attempt, context)

            except APIError as e:
                if _is_overloaded(e):
                    await self._handle_transient_error(e, attempt, context)
                    continue
                raise VisionAPIError(str(e), "client_error", context=context)

    def _message(self, media_type: str, data: str) -> dict:
        return {
            "role": "user",
            "content": [
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": media_type, "data": data},
                },
                {"type": "text", "text": PROMPT.format(limit=self.max_labels)},
            ],
        }

    def _parse(self, response) -> list[Classification]:
        block = next(
            (b for b in response.content
             if getattr(b, "type", None) == "tool_use" and b.name == TOOL_NAME),
            None,
        )
        if block is None:
            raise VisionAPIError("Model did not report classifications", "bad_output")
        try:
            output = _ToolOutput.model_validate(block.input)
        except ValidationError as e:
            raise VisionAPIError(f"Malformed classifications: {e.errors()[0]['msg']}", "bad_output")
        labels = [
            Classification(item.label.strip(), min(1.0, max(0.0, item.probability)))
            for item in output.classifications
            if item.label.strip()
        ]
        logger.info(f"Vision classifier returned {len(labels)} label(s)")
        return labels[: self.max_labels]

    async def _handle_rate_limit(
        self, e: RateLimitError, attempt: int, context: ErrorContext,
    ) -> None:
        """Handle rate limit error with retry or raise."""
        retry_after_ms = self._extract_retry_after(e)
        if attempt >= self.max_retries:
            raise VisionAPIError(
                "Rate limit exceeded after retries",
                "rate_limit",
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise VisionAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(f"Transient error, retry after {delay}ms: {e}")
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        response = getattr(error, "response", None)
        if response is None:
            return None
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
