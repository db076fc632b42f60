"""Dog API Client — tests for retry, backoff and transport error mapping.

Tests cover:
    - Successful GET returns the raw body, URL joined onto the base
    - 5xx / 429 retried, then success
    - Other 4xx returned as-is (the body carries the error envelope)
    - Network errors retried until exhausted → TransportError
    - Retry-After honored (seconds form, capped at max_delay_ms)
    - Non-retryable httpx errors → TransportError without retry
"""

import httpx
import pytest

from breedfinder.core.errors import TransportError
from breedfinder.infrastructure.dog_api_client import DogApiClient

from tests.fakes import BASE_URL, fake_dog_api, failure, success


def test_url_for_joins_without_double_slash():
    client = DogApiClient(BASE_URL + "/", client=httpx.AsyncClient())
    assert client.url_for("/breeds/list/all") == "https://dog.test/api/breeds/list/all"


async def test_get_text_returns_body():
    client, transport = fake_dog_api({"breeds/list/all": success({"pug": []})})

    body = await client.get_text("breeds/list/all")

    assert '"pug"' in body
    assert transport.requested == ["breeds/list/all"]


async def test_server_errors_are_retried():
    client, transport = fake_dog_api({"breed/pug/images": [
        failure("busy", 503), failure("busy", 502), success(["a.jpg"]),
    ]})

    body = await client.get_text("breed/pug/images")

    assert "a.jpg" in body
    assert len(transport.requested) == 3


async def test_rate_limit_is_retried():
    client, transport = fake_dog_api({"breed/pug/images": [
        failure("slow down", 429), success(["a.jpg"]),
    ]})

    await client.get_text("breed/pug/images")

    assert len(transport.requested) == 2


async def test_not_found_is_returned_without_retry():
    client, transport = fake_dog_api({"breed/cat/images": failure("Breed not found", 404)})

    body = await client.get_text("breed/cat/images")

    assert "Breed not found" in body
    assert transport.requested == ["breed/cat/images"]


async def test_network_errors_exhausted():
    client, transport = fake_dog_api(
        {"breeds/list/all": httpx.ConnectError("refused")}, max_retries=2,
    )

    with pytest.raises(TransportError) as exc:
        await client.get_text("breeds/list/all")
    assert "after 2 retries" in exc.value.message
    assert exc.value.context.url == f"{BASE_URL}/breeds/list/all"
    assert len(transport.requested) == 3


async def test_timeout_then_success():
    client, transport = fake_dog_api({"breeds/list/all": [
        httpx.ReadTimeout("slow"), success({}),
    ]})

    await client.get_text("breeds/list/all")

    assert len(transport.requested) == 2


async def test_non_retryable_transport_error():
    client, transport = fake_dog_api({"breeds/list/all": httpx.UnsupportedProtocol("ftp?")})

    with pytest.raises(TransportError):
        await client.get_text("breeds/list/all")
    assert len(transport.requested) == 1


async def test_retry_after_is_honored(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("breedfinder.infrastructure.dog_api_client.asyncio.sleep", fake_sleep)
    client = DogApiClient(BASE_URL, max_delay_ms=5_000, client=_scripted_client([
        httpx.Response(503, headers={"Retry-After": "3"}, text="{}"),
        httpx.Response(429, headers={"Retry-After": "60"}, text="{}"),
        httpx.Response(200, text="ok"),
    ]))

    assert await client.get_text("breeds/list/all") == "ok"
    assert delays == [3.0, 5.0]


def _scripted_client(responses) -> httpx.AsyncClient:
    queue = list(responses)

    def handler(request):
        return queue.pop(0)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_backoff_grows_and_is_capped():
    client = DogApiClient(BASE_URL, base_delay_ms=100, max_delay_ms=1_000, client=httpx.AsyncClient())

    assert 75 <= client._backoff(0) <= 125
    assert 300 <= client._backoff(2) <= 500
    assert 750 <= client._backoff(10) <= 1_250
