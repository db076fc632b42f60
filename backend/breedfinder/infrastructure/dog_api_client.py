"""Resilient Dog API Client — wraps httpx.AsyncClient with retry, backoff, and error mapping.

Invariants:
    - Transient failures (connect/read errors, timeouts, 5xx, 429): retried with
      exponential backoff and ±25% jitter, max `max_retries` retries
    - Other 4xx: returned as-is; the service still answers with an error envelope
      that the decoder turns into RemoteServiceError
    - Exhausted retries and non-retryable transport failures → TransportError
    - get_text() returns the raw body; decoding is the caller's job

Design Decisions:
    - Wrapper over raw client: isolates retry logic from effects
    - httpx over requests: async, and MockTransport makes tests network-free
    - Client injected (optional): tests pass an AsyncClient with MockTransport
"""

import asyncio
import logging
import random

import httpx

from breedfinder.core.errors import ErrorContext, TransportError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class DogApiClient:
    """GET-only client for the dog catalog / image service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 10_000,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get_text(self, path: str) -> str:
        """GET {base}/{path} with automatic retry on transient failures."""
        url = self.url_for(path)
        context = ErrorContext(url=url)
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.get(url)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                await self._handle_transient_error(
                    f"{type(e).__name__}: {e}", attempt, context,
                )
                continue
            except httpx.HTTPError as e:
                raise TransportError(str(e) or type(e).__name__, context=context)

            if response.status_code in _RETRYABLE_STATUS:
                await self._handle_transient_error(
                    f"HTTP {response.status_code}", attempt, context,
                    retry_after_ms=self._extract_retry_after(response),
                )
                continue

            logger.debug("Dog API response",
                extra={"path": path, "status_code": response.status_code,
                       "attempt": attempt + 1})
            return response.text

        raise TransportError(f"Gave up on {url}", context=context)  # pragma: no cover

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "DogApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _handle_transient_error(
        self,
        reason: str,
        attempt: int,
        context: ErrorContext,
        retry_after_ms: int | None = None,
    ) -> None:
        """Sleep before the next attempt, or raise when retries are exhausted."""
        if attempt >= self.max_retries:
            context.retry_after_ms = retry_after_ms
            raise TransportError(
                f"{reason} after {self.max_retries} retries ({context.url})",
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(f"Transient error, retry after {delay}ms: {reason}",
            extra={"attempt": attempt + 1})
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Retry-After header in milliseconds (seconds form only)."""
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return min(int(val) * 1000, self.max_delay_ms)
        return None
