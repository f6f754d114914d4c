"""Domain value types shared by the pipeline. Free of I/O."""

from version_retention.domain.version import (
    VERSION_PATTERN_DESCRIPTION,
    Version,
    compare_versions,
    parse_version,
    version_sort_key,
)

__all__ = [
    "VERSION_PATTERN_DESCRIPTION",
    "Version",
    "compare_versions",
    "parse_version",
    "version_sort_key",
]
