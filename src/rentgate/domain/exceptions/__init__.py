"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message lives on the instance so handlers never parse str(exc).
    # details is free-form context that ends up in the JSON error envelope.
    # Don't raise this directly - always a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any, details: Any = None) -> None:
        super().__init__(message, *args)
        self.message = message
        self.details = details


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    HTTP Status: 400

    Example:
        raise ValidationError("Either propref or filename must be provided")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503 (Service Unavailable)
    """

    pass


class ExternalServiceError(DomainException):
    """External service (Rentman, Cloudinary) returned an error.

    Carries a machine-readable error_code and the upstream HTTP status when one
    exists, so every failure leaves the client in the same shape.

    HTTP Status: 502 (Bad Gateway) unless a subclass says otherwise
    """

    def __init__(
        self,
        message: str,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
        upstream_status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.error_code = error_code
        self.upstream_status = upstream_status


# =============================================================================
# Upstream (Rentman) failures
# =============================================================================


class UpstreamFetchFailure(ExternalServiceError):
    """Network error, timeout or 5xx from upstream after retries were exhausted.

    HTTP Status: 502
    """

    pass


class UpstreamClientError(ExternalServiceError):
    """Upstream rejected the request with a 4xx. Never retried.

    HTTP Status: 502 (the client of the gateway did nothing wrong)
    """

    pass


class UpstreamImageNotFound(EntityNotFoundException):
    """Upstream has no media record for the requested image.

    Terminal. HTTP Status: 404
    """

    def __init__(self, filename: str) -> None:
        super().__init__("Image", filename)
        self.message = f"Image {filename} not found in Rentman API"
        self.filename = filename


class UpstreamDataMissing(EntityNotFoundException):
    """Upstream record exists but carries no (usable) image payload.

    HTTP Status: 404
    """

    def __init__(self, filename: str) -> None:
        super().__init__("Image data", filename)
        self.message = f"No base64 data for image {filename}"
        self.filename = filename


class MediaNotFound(EntityNotFoundException):
    """No media rows for a property or filename.

    HTTP Status: 404
    """

    def __init__(self, message: str, selector: str) -> None:
        super().__init__("Media", selector)
        self.message = message


# =============================================================================
# CDN (Cloudinary) outcomes
# =============================================================================


class NotFoundOnCdn(DomainException):
    """The CDN cleanly reported that no asset exists for the identifier.

    Recoverable - the resolver falls back to the upstream fetch. Never
    surfaced to HTTP callers.
    """

    def __init__(self, public_id: str) -> None:
        super().__init__(f"Asset {public_id} not found on CDN")
        self.public_id = public_id


class TransientCdnError(DomainException):
    """CDN existence check failed for a reason other than "not found".

    Treated as a cache miss (fail open toward the upstream fallback).
    """

    pass


class UploadFailure(DomainException):
    """CDN rejected or failed the upload.

    HTTP Status: 500
    """

    pass


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
    "UpstreamFetchFailure",
    "UpstreamClientError",
    "UpstreamImageNotFound",
    "UpstreamDataMissing",
    "MediaNotFound",
    "NotFoundOnCdn",
    "TransientCdnError",
    "UploadFailure",
]
