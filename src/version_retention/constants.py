"""Stable constants shared by the retention pipeline and its storage layout."""

from __future__ import annotations

from typing import Final

# Storage layout.
KEY_DELIMITER: Final[str] = "/"
POINTER_FILENAME: Final[str] = "index.html"
POINTER_METADATA_FIELD: Final[str] = "pointer"

# Marker written onto outdated objects.
OLD_TAG_KEY: Final[str] = "old"
OLD_TAG_VALUE: Final[str] = "true"
OLD_TAGGING: Final[str] = f"{OLD_TAG_KEY}={OLD_TAG_VALUE}"
OLD_AT_METADATA_FIELD: Final[str] = "old-at"
DEFAULT_CACHE_CONTROL: Final[str] = "max-age=0, stale-while-revalidate=86400"

# Runtime defaults.
DEFAULT_CONCURRENCY: Final[int] = 5
CONFIG_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CACHE_CONTROL",
    "DEFAULT_CONCURRENCY",
    "KEY_DELIMITER",
    "OLD_AT_METADATA_FIELD",
    "OLD_TAGGING",
    "OLD_TAG_KEY",
    "OLD_TAG_VALUE",
    "POINTER_FILENAME",
    "POINTER_METADATA_FIELD",
]
