"""Request bodies and the response envelope shared by every endpoint.

Every JSON response, success or error, has the same outer shape:

    {"success": bool, "data": ..., "message": str, "timestamp": ISO-8601}

Errors swap "data" for "details" (see exception_handlers.py).
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


def success_envelope(data: Any, message: str = "") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "timestamp": utc_timestamp(),
    }


def error_envelope(message: str, details: Any = None) -> dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "details": details,
        "timestamp": utc_timestamp(),
    }


class ImageUploadRequest(BaseModel):
    """Body of POST /api/images/upload.

    Both fields are optional at the schema level so a missing one produces our
    400 envelope rather than FastAPI's 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    base64_data: str | None = Field(default=None, alias="base64Data")
    filename: str | None = None
