"""Rentman advertising API HTTP client with retry/backoff."""

import base64
import binascii
import logging
from typing import Any

import httpx

from rentgate.config.settings import RentmanSettings
from rentgate.domain.dtos import MediaRecord, RawImageRecord
from rentgate.domain.exceptions import (
    UpstreamClientError,
    UpstreamDataMissing,
    UpstreamFetchFailure,
    UpstreamImageNotFound,
    ValidationError,
)
from rentgate.domain.ports import IUpstreamClient
from rentgate.domain.value_objects import ImageIdentifier
from rentgate.infrastructure.retry import execute_with_retry

logger = logging.getLogger(__name__)


def _is_retryable(exc: Exception) -> bool:
    # network errors and 5xx are wrapped as UpstreamFetchFailure inside _send,
    # 4xx become UpstreamClientError and must never be retried
    return isinstance(exc, UpstreamFetchFailure)


class RentmanClient(IUpstreamClient):
    """HTTP client for the Rentman property/media API."""

    MEDIA_PATH = "/propertymedia.php"
    ADVERTISING_PATH = "/propertyadvertising.php"

    # Hey future me, Rentman auths with a static "token" HEADER (not Bearer, not a query
    # param). The transport arg exists so tests can plug in httpx.MockTransport - production
    # code never passes it.
    def __init__(
        self,
        settings: RentmanSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Rentman client.

        Args:
            settings: Rentman configuration settings
            transport: Optional custom httpx transport (tests)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={
                    "token": self.settings.token,
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Yo, this is ONE attempt. Everything that goes wrong leaves here as a domain error with
    # error_code + upstream_status so the rest of the app sees a single failure shape:
    #   transport error / timeout  -> UpstreamFetchFailure (retryable)
    #   5xx                        -> UpstreamFetchFailure (retryable)
    #   4xx                        -> UpstreamClientError  (fail fast)
    async def _send(
        self, method: str, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        client = await self._get_client()
        logger.info(
            "[Rentman] %s %s",
            method,
            path,
            extra={"method": method, "path": path, "params": params or {}},
        )

        try:
            response = await client.request(method, path, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamFetchFailure(
                f"Rentman API timed out on {method} {path}",
                error_code="UPSTREAM_TIMEOUT",
                details=str(e),
            ) from e
        except httpx.TransportError as e:
            raise UpstreamFetchFailure(
                f"Rentman API unreachable on {method} {path}: {e}",
                error_code="UPSTREAM_NETWORK_ERROR",
                details=str(e),
            ) from e

        status_code = response.status_code
        if status_code >= 500:
            raise UpstreamFetchFailure(
                f"Rentman API error {status_code} on {method} {path}",
                error_code="UPSTREAM_SERVER_ERROR",
                upstream_status=status_code,
                details=self._error_message(response),
            )
        if status_code >= 400:
            raise UpstreamClientError(
                f"Rentman API rejected {method} {path} with {status_code}",
                error_code="UPSTREAM_CLIENT_ERROR",
                upstream_status=status_code,
                details=self._error_message(response),
            )
        return response

    async def _request(
        self, method: str, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Send a request, retrying network failures and 5xx with exponential backoff.

        Raises:
            UpstreamFetchFailure: retries exhausted
            UpstreamClientError: 4xx response
        """
        return await execute_with_retry(
            lambda: self._send(method, path, params),
            max_attempts=self.settings.retries + 1,
            initial_delay=self.settings.retry_delay,
            should_retry=_is_retryable,
            description=f"Rentman {method} {path}",
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text[:200]

    @staticmethod
    def _parse_records(response: httpx.Response, path: str) -> list[dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFetchFailure(
                f"Rentman API returned invalid JSON on {path}",
                error_code="UPSTREAM_INVALID_RESPONSE",
                upstream_status=response.status_code,
            ) from e

        # the API answers "no rows" with null, {} or [] depending on its mood
        if not data:
            return []
        if isinstance(data, dict):
            return [data] if "filename" in data else []
        if isinstance(data, list):
            return [row for row in data if isinstance(row, dict)]

        raise UpstreamFetchFailure(
            f"Unexpected Rentman payload type on {path}: {type(data).__name__}",
            error_code="UPSTREAM_INVALID_RESPONSE",
            upstream_status=response.status_code,
        )

    async def fetch_media(
        self, *, filename: str | None = None, propref: str | None = None
    ) -> list[MediaRecord]:
        """
        Fetch media records by filename and/or property reference.

        Args:
            filename: Exact media filename (e.g. "prop1.jpg")
            propref: Property reference

        Returns:
            Media records (possibly empty)

        Raises:
            ValidationError: If neither selector is given
        """
        if not filename and not propref:
            raise ValidationError("Either propref or filename must be provided")

        params: dict[str, Any] = {}
        if propref:
            params["propref"] = propref
        if filename:
            params["filename"] = filename

        response = await self._request("GET", self.MEDIA_PATH, params=params)
        return [MediaRecord.from_api(row) for row in self._parse_records(response, self.MEDIA_PATH)]

    # Listen up, the image bytes come base64-encoded INSIDE the JSON, sometimes with a
    # "data:image/jpeg;base64," prefix. Garbage base64 is treated the same as no data:
    # there is nothing we could upload.
    async def fetch_image(self, filename: str) -> RawImageRecord:
        """
        Fetch and decode one image.

        Args:
            filename: Upstream filename, size suffix already stripped

        Returns:
            Decoded image record

        Raises:
            UpstreamImageNotFound: No record for filename
            UpstreamDataMissing: Record has no decodable payload
        """
        try:
            records = await self.fetch_media(filename=filename)
        except UpstreamClientError as e:
            if e.upstream_status == 404:
                raise UpstreamImageNotFound(filename) from e
            raise

        if not records:
            raise UpstreamImageNotFound(filename)

        record = next((r for r in records if r.filename == filename), records[0])
        payload = self._decode(record.base64data)
        if not payload:
            raise UpstreamDataMissing(filename)

        return RawImageRecord(
            base_name=ImageIdentifier.parse(record.filename or filename).base_name,
            filename=record.filename or filename,
            payload=payload,
            property_ref=record.propref,
            caption=record.caption,
            order=record.order,
        )

    @staticmethod
    def _decode(data: str) -> bytes:
        if not data:
            return b""
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            return base64.b64decode(data, validate=False)
        except (binascii.Error, ValueError):
            logger.warning("Undecodable base64 payload from Rentman (%d chars)", len(data))
            return b""

    async def health_check(self) -> bool:
        """Single un-retried call to the advertising endpoint."""
        try:
            client = await self._get_client()
            response = await client.get(self.ADVERTISING_PATH, params={"limit": 1})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Rentman health check failed: %s", e)
            return False
