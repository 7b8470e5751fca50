"""Tests for the Rentman API client (driven by httpx.MockTransport)."""

import base64
from collections.abc import Callable

import httpx
import pytest

from rentgate.config.settings import RentmanSettings
from rentgate.domain.exceptions import (
    UpstreamClientError,
    UpstreamDataMissing,
    UpstreamFetchFailure,
    UpstreamImageNotFound,
    ValidationError,
)
from rentgate.infrastructure.integrations.rentman_client import RentmanClient

IMAGE_BYTES = b"\xff\xd8\xff\xe0jpeg-bytes"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()


@pytest.fixture
def rentman_settings() -> RentmanSettings:
    return RentmanSettings(
        base_url="https://rentman.test",
        token="secret-token",
        retries=2,
        retry_delay=0,
    )


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, responses: list[httpx.Response | Exception]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        # fresh copy so the last response can be replayed for every retry
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


@pytest.fixture
def make_client(
    rentman_settings: RentmanSettings,
) -> Callable[[Recorder], RentmanClient]:
    def _make(recorder: Recorder) -> RentmanClient:
        return RentmanClient(rentman_settings, transport=httpx.MockTransport(recorder))

    return _make


class TestRentmanClientRequests:
    async def test_sends_token_header_and_query(self, make_client) -> None:
        recorder = Recorder([httpx.Response(200, json=[])])
        client = make_client(recorder)

        await client.fetch_media(propref="P1")

        request = recorder.requests[0]
        assert request.headers["token"] == "secret-token"
        assert request.headers["accept"] == "application/json"
        assert request.url.path == "/propertymedia.php"
        assert request.url.params["propref"] == "P1"
        await client.close()

    async def test_fetch_media_requires_a_selector(self, make_client) -> None:
        client = make_client(Recorder([httpx.Response(200, json=[])]))
        with pytest.raises(ValidationError):
            await client.fetch_media()

    @pytest.mark.parametrize("body", [b"null", b"{}", b"[]"])
    async def test_empty_payload_shapes_mean_no_rows(self, make_client, body) -> None:
        client = make_client(Recorder([httpx.Response(200, content=body)]))
        assert await client.fetch_media(propref="P1") == []

    async def test_single_object_is_one_row(self, make_client) -> None:
        row = {"propref": "P1", "filename": "a.jpg", "imgorder": "2"}
        client = make_client(Recorder([httpx.Response(200, json=row)]))

        records = await client.fetch_media(filename="a.jpg")

        assert len(records) == 1
        assert records[0].order == 2

    async def test_invalid_json_is_fetch_failure(self, make_client) -> None:
        client = make_client(Recorder([httpx.Response(200, text="<html>oops")]))

        with pytest.raises(UpstreamFetchFailure) as exc_info:
            await client.fetch_media(propref="P1")
        assert exc_info.value.error_code == "UPSTREAM_INVALID_RESPONSE"


class TestRentmanClientRetry:
    async def test_retries_5xx_then_succeeds(self, make_client) -> None:
        recorder = Recorder(
            [
                httpx.Response(502),
                httpx.Response(503),
                httpx.Response(200, json=[{"propref": "P1", "filename": "a.jpg"}]),
            ]
        )
        client = make_client(recorder)

        records = await client.fetch_media(propref="P1")

        assert len(records) == 1
        assert len(recorder.requests) == 3

    async def test_retries_network_errors(self, make_client) -> None:
        recorder = Recorder(
            [
                httpx.ConnectError("refused"),
                httpx.Response(200, json=[]),
            ]
        )
        client = make_client(recorder)

        assert await client.fetch_media(propref="P1") == []
        assert len(recorder.requests) == 2

    async def test_gives_up_after_retries(self, make_client) -> None:
        recorder = Recorder([httpx.Response(500, json={"message": "boom"})])
        client = make_client(recorder)

        with pytest.raises(UpstreamFetchFailure) as exc_info:
            await client.fetch_media(propref="P1")

        # retries=2 -> 3 attempts
        assert len(recorder.requests) == 3
        assert exc_info.value.upstream_status == 500
        assert exc_info.value.error_code == "UPSTREAM_SERVER_ERROR"
        assert exc_info.value.details == "boom"

    async def test_timeout_is_fetch_failure(self, make_client) -> None:
        client = make_client(Recorder([httpx.ReadTimeout("slow")]))

        with pytest.raises(UpstreamFetchFailure) as exc_info:
            await client.fetch_media(propref="P1")
        assert exc_info.value.error_code == "UPSTREAM_TIMEOUT"

    async def test_4xx_is_not_retried(self, make_client) -> None:
        recorder = Recorder([httpx.Response(401, json={"message": "bad token"})])
        client = make_client(recorder)

        with pytest.raises(UpstreamClientError) as exc_info:
            await client.fetch_media(propref="P1")

        assert len(recorder.requests) == 1
        assert exc_info.value.upstream_status == 401


class TestRentmanClientFetchImage:
    async def test_decodes_payload(self, make_client) -> None:
        row = {"propref": "P1", "filename": "prop1.jpg", "base64data": IMAGE_B64}
        client = make_client(Recorder([httpx.Response(200, json=[row])]))

        record = await client.fetch_image("prop1.jpg")

        assert record.payload == IMAGE_BYTES
        assert record.base_name == "prop1"
        assert record.property_ref == "P1"

    async def test_strips_data_uri_prefix(self, make_client) -> None:
        row = {"filename": "prop1.jpg", "base64data": f"data:image/jpeg;base64,{IMAGE_B64}"}
        client = make_client(Recorder([httpx.Response(200, json=[row])]))

        record = await client.fetch_image("prop1.jpg")

        assert record.payload == IMAGE_BYTES

    async def test_prefers_exact_filename_match(self, make_client) -> None:
        other = base64.b64encode(b"other").decode()
        rows = [
            {"filename": "prop1-old.jpg", "base64data": other},
            {"filename": "prop1.jpg", "base64data": IMAGE_B64},
        ]
        client = make_client(Recorder([httpx.Response(200, json=rows)]))

        record = await client.fetch_image("prop1.jpg")

        assert record.payload == IMAGE_BYTES

    async def test_no_rows_is_not_found(self, make_client) -> None:
        client = make_client(Recorder([httpx.Response(200, json=[])]))
        with pytest.raises(UpstreamImageNotFound):
            await client.fetch_image("ghost.jpg")

    async def test_upstream_404_is_not_found(self, make_client) -> None:
        client = make_client(Recorder([httpx.Response(404)]))
        with pytest.raises(UpstreamImageNotFound):
            await client.fetch_image("ghost.jpg")

    async def test_missing_payload_is_data_missing(self, make_client) -> None:
        row = {"filename": "prop1.jpg", "base64data": ""}
        client = make_client(Recorder([httpx.Response(200, json=[row])]))
        with pytest.raises(UpstreamDataMissing):
            await client.fetch_image("prop1.jpg")


class TestRentmanClientHealth:
    async def test_healthy_on_200(self, make_client) -> None:
        recorder = Recorder([httpx.Response(200, json=[])])
        client = make_client(recorder)

        assert await client.health_check() is True
        assert recorder.requests[0].url.path == "/propertyadvertising.php"

    async def test_unhealthy_on_network_error_without_retry(self, make_client) -> None:
        recorder = Recorder([httpx.ConnectError("refused")])
        client = make_client(recorder)

        assert await client.health_check() is False
        assert len(recorder.requests) == 1
