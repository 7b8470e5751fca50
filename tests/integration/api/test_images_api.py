"""Integration tests for the image endpoints (redirect, upload, delete, cache invalidation)."""

import base64

from fastapi import FastAPI
from fastapi.testclient import TestClient

from rentgate.domain.exceptions import UploadFailure, UpstreamFetchFailure

PNG_BYTES = b"\x89PNG\r\n\x1a\nrest-of-png"


def _assert_error_envelope(payload: dict, message: str | None = None) -> None:
    assert payload["success"] is False
    assert "timestamp" in payload
    if message is not None:
        assert payload["message"] == message


class TestGetImage:
    def test_redirects_to_versioned_cdn_url(self, client: TestClient, image_store) -> None:
        response = client.get("/api/images/prop1.jpg")

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://res.cloudinary.com/demo/image/upload/")
        # default size is medium
        assert "w_800" in location
        assert "/v1712345678/" in location
        assert image_store.upload_calls == ["prop1"]

    def test_size_suffix_selects_rendition(self, client: TestClient) -> None:
        response = client.get("/api/images/prop1_thumb.jpg")

        assert response.status_code == 302
        assert "w_300" in response.headers["location"]

    def test_suffix_beats_query(self, client: TestClient) -> None:
        response = client.get("/api/images/prop1_large.jpg?size=thumb")
        assert "w_1200" in response.headers["location"]

    def test_size_query_param(self, client: TestClient) -> None:
        response = client.get("/api/images/prop1.jpg?size=original")
        assert "q_auto" in response.headers["location"]

    def test_unknown_size_falls_back_to_medium(self, client: TestClient) -> None:
        response = client.get("/api/images/prop1.jpg?size=huge")
        assert "w_800" in response.headers["location"]

    def test_second_request_served_without_upload(
        self, client: TestClient, image_store, upstream
    ) -> None:
        first = client.get("/api/images/prop1_thumb.jpg")
        second = client.get("/api/images/prop1_large.jpg")

        assert first.status_code == second.status_code == 302
        assert image_store.upload_calls == ["prop1"]
        assert upstream.fetch_calls == ["prop1.jpg"]

    def test_existing_asset_skips_upstream(
        self, client: TestClient, image_store, upstream
    ) -> None:
        image_store.add_asset("villa", version="1699999999")

        response = client.get("/api/images/villa.jpg")

        assert response.status_code == 302
        assert "/v1699999999/props/villa" in response.headers["location"]
        assert upstream.fetch_calls == []

    def test_unknown_image_is_404(self, client: TestClient) -> None:
        response = client.get("/api/images/ghost.jpg")

        assert response.status_code == 404
        _assert_error_envelope(response.json(), "Image ghost.jpg not found in Rentman API")

    def test_missing_payload_is_404(self, client: TestClient, upstream) -> None:
        upstream.images["empty.jpg"] = b""

        response = client.get("/api/images/empty.jpg")

        assert response.status_code == 404
        _assert_error_envelope(response.json(), "No base64 data for image empty.jpg")

    def test_upstream_failure_is_502(self, client: TestClient, upstream) -> None:
        upstream.fetch_error = UpstreamFetchFailure(
            "Rentman API unreachable",
            error_code="UPSTREAM_SERVER_ERROR",
            upstream_status=503,
        )
        upstream.fail_times = 1

        response = client.get("/api/images/prop1.jpg")

        assert response.status_code == 502
        payload = response.json()
        _assert_error_envelope(payload, "Rentman API unreachable")
        assert payload["details"]["error_code"] == "UPSTREAM_SERVER_ERROR"
        assert payload["details"]["upstream_status"] == 503

        # failure isn't remembered: next request retries and succeeds
        assert client.get("/api/images/prop1.jpg").status_code == 302

    def test_upload_failure_is_500(self, client: TestClient, image_store) -> None:
        image_store.upload_error = UploadFailure(
            "Cloudinary upload failed", details="Invalid image file"
        )

        response = client.get("/api/images/prop1.jpg")

        assert response.status_code == 500
        payload = response.json()
        _assert_error_envelope(payload, "Cloudinary upload failed")
        assert payload["details"] == "Invalid image file"

    def test_unexpected_error_hides_internals(self, app: FastAPI, image_store) -> None:
        image_store.existing_error = RuntimeError("secret stack detail")
        client = TestClient(app, follow_redirects=False, raise_server_exceptions=False)

        response = client.get("/api/images/prop1.jpg")

        assert response.status_code == 500
        _assert_error_envelope(response.json(), "Internal server error")
        assert "secret" not in response.text

    def test_service_missing_is_503(self, app: FastAPI, client: TestClient) -> None:
        app.state.image_service = None

        response = client.get("/api/images/prop1.jpg")

        assert response.status_code == 503
        _assert_error_envelope(response.json(), "Image service not initialized")


class TestUploadImage:
    def test_upload_returns_all_sizes(self, client: TestClient, image_store) -> None:
        body = {
            "base64Data": base64.b64encode(PNG_BYTES).decode(),
            "filename": "garden.png",
        }

        response = client.post("/api/images/upload", json=body)

        assert response.status_code == 200
        payload = response.json()
        assert payload["success"] is True
        assert payload["message"] == "Image uploaded successfully"
        assert set(payload["data"]) == {"thumb", "medium", "large", "original"}
        assert all("/v1712345678/props/garden" in url for url in payload["data"].values())
        assert image_store.upload_calls == ["garden"]

    def test_upload_accepts_data_uri(self, client: TestClient) -> None:
        data_uri = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

        response = client.post(
            "/api/images/upload", json={"base64Data": data_uri, "filename": "garden.png"}
        )

        assert response.status_code == 200

    def test_upload_then_get_uses_new_version(self, client: TestClient, image_store) -> None:
        client.get("/api/images/prop1.jpg")
        body = {"base64Data": base64.b64encode(PNG_BYTES).decode(), "filename": "prop1.jpg"}

        client.post("/api/images/upload", json=body)
        response = client.get("/api/images/prop1.jpg")

        assert "/v1712345679/" in response.headers["location"]

    def test_missing_fields_is_400(self, client: TestClient) -> None:
        response = client.post("/api/images/upload", json={"filename": "garden.png"})

        assert response.status_code == 400
        _assert_error_envelope(
            response.json(), "Missing required fields: base64Data and filename"
        )

    def test_invalid_base64_is_400(self, client: TestClient, image_store) -> None:
        response = client.post(
            "/api/images/upload",
            json={"base64Data": "not base64!!", "filename": "garden.png"},
        )

        assert response.status_code == 400
        _assert_error_envelope(response.json(), "Invalid base64 image data")
        assert image_store.upload_calls == []


class TestClearImageCache:
    def test_clears_every_cached_size(
        self, client: TestClient, image_store, upstream
    ) -> None:
        client.get("/api/images/prop1.jpg")

        response = client.delete("/api/images/prop1_thumb.jpg/cache")

        assert response.status_code == 200
        payload = response.json()
        assert payload["data"] == {"base_name": "prop1", "cleared": 4}

        # next request re-resolves through the CDN existence check, no second upload
        existing_before = len(image_store.existing_calls)
        assert client.get("/api/images/prop1.jpg").status_code == 302
        assert len(image_store.existing_calls) == existing_before + 1
        assert image_store.upload_calls == ["prop1"]

    def test_nothing_cached(self, client: TestClient) -> None:
        response = client.delete("/api/images/never.jpg/cache")

        assert response.status_code == 200
        assert response.json()["data"]["cleared"] == 0


class TestDeleteImage:
    def test_deletes_asset_and_cached_urls(
        self, client: TestClient, image_store, upstream
    ) -> None:
        client.get("/api/images/prop1.jpg")

        response = client.delete("/api/images/prop1_large.jpg")

        assert response.status_code == 200
        payload = response.json()
        assert payload["success"] is True
        assert payload["data"] == {"base_name": "prop1", "deleted": True, "cleared": 4}
        assert image_store.delete_calls == ["prop1"]

        # gone from cache and CDN, so the next request uploads again
        assert client.get("/api/images/prop1.jpg").status_code == 302
        assert image_store.upload_calls == ["prop1", "prop1"]
        assert upstream.fetch_calls == ["prop1.jpg", "prop1.jpg"]

    def test_unknown_asset_is_404(self, client: TestClient) -> None:
        response = client.delete("/api/images/never.jpg")

        assert response.status_code == 404
        _assert_error_envelope(response.json(), "CDN asset with id never not found")
