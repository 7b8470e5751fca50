"""Data transfer objects passed between layers.

Hey future me - these are plain dataclasses, no behaviour beyond small helpers.
MediaRecord mirrors one row of Rentman's propertymedia.php response (all strings,
that API has never heard of integers). RawImageRecord is the DECODED form the
upload pipeline consumes and then throws away.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MediaRecord:
    """One media row as returned by the upstream API."""

    propref: str
    filename: str
    caption: str = ""
    imgorder: str = "0"
    base64data: str = ""

    @property
    def order(self) -> int:
        try:
            return int(self.imgorder)
        except (TypeError, ValueError):
            return 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "MediaRecord":
        """Build from a raw JSON object, tolerating missing/null fields."""
        return cls(
            propref=str(data.get("propref") or ""),
            filename=str(data.get("filename") or ""),
            caption=str(data.get("caption") or ""),
            imgorder=str(data.get("imgorder") or "0"),
            base64data=str(data.get("base64data") or ""),
        )


@dataclass(frozen=True)
class RawImageRecord:
    """Decoded image bytes fetched from upstream, consumed by one upload."""

    base_name: str
    filename: str
    payload: bytes
    property_ref: str = ""
    caption: str = ""
    order: int = 0

    def __repr__(self) -> str:
        # payload can be megabytes - keep it out of logs and tracebacks
        return (
            f"RawImageRecord(base_name={self.base_name!r}, filename={self.filename!r}, "
            f"bytes={len(self.payload)}, property_ref={self.property_ref!r})"
        )


@dataclass(frozen=True)
class UploadedAssetDescriptor:
    """What the CDN knows about one uploaded original.

    version is mandatory - every URL we generate carries it.
    """

    public_id: str
    version: str
    width: int = 0
    height: int = 0
    format: str = ""
    bytes: int = 0

    def __post_init__(self) -> None:
        if not self.public_id:
            raise ValueError("public_id must not be empty")
        if not str(self.version).strip():
            raise ValueError(f"Asset {self.public_id} has no version")


__all__ = ["MediaRecord", "RawImageRecord", "UploadedAssetDescriptor"]
