"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into HTTP responses. Every error leaves the gateway in
the same envelope:

    {"success": false, "message": str, "details": any, "timestamp": ISO-8601}

Hey future me - order matters less than you'd think: Starlette picks the handler
for the most specific class in the exception's MRO, so UpstreamImageNotFound
hits the EntityNotFoundException handler, UpstreamClientError hits the
ExternalServiceError one, and only truly unexpected errors fall to Exception.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rentgate.api.schemas import error_envelope
from rentgate.domain.exceptions import (
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    ExternalServiceError,
    UploadFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Pydantic's exc.errors() can carry the raw request body as bytes in "input", which JSONResponse
# can't serialize. Walk the structure and decode.
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors by converting bytes to strings."""

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        elif isinstance(value, Exception):
            return str(value)
        return value

    return [_sanitize_value(error) for error in errors]


def _error_response(status_code: int, message: str, details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_envelope(message, details))


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for domain and validation exceptions.

    Mapping:
    - EntityNotFoundException (UpstreamImageNotFound, UpstreamDataMissing, MediaNotFound) -> 404
    - ExternalServiceError (UpstreamFetchFailure, UpstreamClientError) -> 502
    - UploadFailure -> 500
    - ValidationError -> 400
    - ConfigurationError -> 503
    - RequestValidationError -> 422
    - any other DomainException / unexpected Exception -> 500

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        """Handle entity not found exceptions with 404 Not Found."""
        logger.info(
            "Entity not found at %s: %s %s",
            request.url.path,
            exc.entity_type,
            exc.entity_id,
            extra={
                "path": request.url.path,
                "entity_type": exc.entity_type,
                "entity_id": str(exc.entity_id),
            },
        )
        return _error_response(status.HTTP_404_NOT_FOUND, exc.message, exc.details)

    @app.exception_handler(ExternalServiceError)
    async def external_service_error_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        """Handle upstream failures with 502 Bad Gateway."""
        logger.error(
            "External service error at %s: %s",
            request.url.path,
            exc.message,
            extra={
                "path": request.url.path,
                "error_code": exc.error_code,
                "upstream_status": exc.upstream_status,
            },
        )
        return _error_response(
            status.HTTP_502_BAD_GATEWAY,
            exc.message,
            {
                "error_code": exc.error_code,
                "upstream_status": exc.upstream_status,
                "reason": exc.details,
            },
        )

    @app.exception_handler(UploadFailure)
    async def upload_failure_handler(
        request: Request, exc: UploadFailure
    ) -> JSONResponse:
        """Handle CDN upload failures with 500."""
        logger.error(
            "Upload failed at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message, exc.details
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle domain validation errors with 400 Bad Request."""
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.message, exc.details)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 503 Service Unavailable."""
        logger.error(
            "Configuration error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, exc.message, exc.details
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI parameter validation errors with 422."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path},
        )
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            sanitized_errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Wrap HTTPException (unknown routes, 503 from dependencies) in the envelope."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        """Any domain error without a dedicated mapping is a server error."""
        logger.error(
            "Unhandled domain error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message, exc.details
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Last resort: never leak a stack trace to the client."""
        logger.exception(
            "Unexpected error at %s: %s",
            request.url.path,
            exc,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
        )
