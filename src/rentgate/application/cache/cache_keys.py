"""Cache key conventions.

image:{base_name}:{size}       resolved, versioned CDN URL
media:{"propref": ...}         presented media list for a property
mediafile:{"filename": ...}    presented single media item

Everything except image URLs goes through generic(): {domain}:{serialized-params}.
"""

import json
import re
from typing import Any

from rentgate.domain.value_objects import SizeVariant


class CacheKeys:
    """Key builders - never hand-format cache keys at call sites."""

    @staticmethod
    def image(base_name: str, size: SizeVariant | str) -> str:
        size_value = size.value if isinstance(size, SizeVariant) else size
        return f"image:{base_name}:{size_value}"

    @staticmethod
    def image_pattern(base_name: str) -> str:
        """Regex matching every cached size of one image."""
        return f"^image:{re.escape(base_name)}:"

    @staticmethod
    def media(propref: str) -> str:
        return CacheKeys.generic("media", {"propref": propref})

    @staticmethod
    def media_file(filename: str) -> str:
        return CacheKeys.generic("mediafile", {"filename": filename})

    @staticmethod
    def health() -> str:
        return "health"

    @staticmethod
    def generic(domain: str, params: dict[str, Any]) -> str:
        # sort_keys so {"a":1,"b":2} and {"b":2,"a":1} share one entry
        return f"{domain}:{json.dumps(params, sort_keys=True, default=str)}"
