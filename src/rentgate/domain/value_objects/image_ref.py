"""Image identity value objects.

Hey future me - a requested image filename like "prop1_thumb.jpg" carries TWO
things: the logical image ("prop1", one uploaded CDN asset) and the rendition
the caller wants ("thumb"). Everything keyed on the CDN or the in-flight
registry uses base_name ONLY, so all four sizes share one upload. The upstream
API on the other hand wants the real filename back ("prop1.jpg"), hence
base_filename.

Only the four known suffixes are stripped. "property42_livingroom.jpg" is a
plain name with no size suffix - it's the base itself, served as medium.
"""

import re
from dataclasses import dataclass
from enum import Enum


class SizeVariant(str, Enum):
    """Renditions the CDN can produce from one uploaded original."""

    THUMB = "thumb"
    MEDIUM = "medium"
    LARGE = "large"
    ORIGINAL = "original"

    @classmethod
    def coerce(
        cls, value: "str | SizeVariant | None", default: "SizeVariant | None" = None
    ) -> "SizeVariant":
        """Map any token to a variant, unknown or empty tokens become the default.

        Unrecognized sizes fall back to medium instead of failing the request.
        """
        fallback = default or cls.MEDIUM
        if value is None:
            return fallback
        if isinstance(value, SizeVariant):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return fallback


_SIZE_SUFFIX = re.compile(
    r"^(?P<base>.+?)_(?P<size>thumb|medium|large|original)(?P<ext>\.[^.]+)?$",
    re.IGNORECASE,
)
_EXTENSION = re.compile(r"^(?P<base>.+?)(?P<ext>\.[^.]+)?$")


@dataclass(frozen=True)
class ImageIdentifier:
    """A requested image decomposed into its stable key and size variant.

    Attributes:
        base_name: suffix- and extension-free key used for CDN lookup/upload
        size_variant: requested rendition
        extension: original extension including the dot ("" if none)
    """

    base_name: str
    size_variant: SizeVariant = SizeVariant.MEDIUM
    extension: str = ""

    @property
    def base_filename(self) -> str:
        """Filename as the upstream API knows it (suffix stripped, extension kept)."""
        return f"{self.base_name}{self.extension}"

    def filename_for(self, size: SizeVariant) -> str:
        """Gateway filename that requests a given size of this image."""
        return f"{self.base_name}_{size.value}{self.extension}"

    @classmethod
    def parse(
        cls,
        filename: str,
        size: "str | SizeVariant | None" = None,
        default: SizeVariant = SizeVariant.MEDIUM,
    ) -> "ImageIdentifier":
        """Parse a requested filename.

        Precedence for the size: suffix in the filename, then the explicit
        ``size`` argument (e.g. ?size= query), then ``default``.

        Raises:
            ValueError: if the filename is empty
        """
        name = filename.strip()
        if not name:
            raise ValueError("Image filename must not be empty")

        match = _SIZE_SUFFIX.match(name)
        if match:
            return cls(
                base_name=match.group("base"),
                size_variant=SizeVariant(match.group("size").lower()),
                extension=match.group("ext") or "",
            )

        plain = _EXTENSION.match(name)
        if plain is None:
            raise ValueError(f"Unparseable image filename: {filename!r}")
        return cls(
            base_name=plain.group("base"),
            size_variant=SizeVariant.coerce(size, default),
            extension=plain.group("ext") or "",
        )


class VersionedUrl(str):
    """A CDN URL that is guaranteed to embed the asset version.

    Hey future me - this exists so we can NEVER cache a version-less URL by
    accident. After a re-upload the CDN keeps serving stale renders for
    unversioned URLs; the "/v<version>/" path segment busts that. The only way
    to build one is with a non-empty version that actually appears in the URL.
    """

    version: str

    def __new__(cls, url: str, version: str | int) -> "VersionedUrl":
        version_str = str(version).strip()
        if not version_str:
            raise ValueError("CDN URL requires a non-empty version")
        if f"/v{version_str}/" not in url:
            raise ValueError(f"URL does not embed version v{version_str}: {url}")
        instance = super().__new__(cls, url)
        instance.version = version_str
        return instance
