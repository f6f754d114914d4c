"""Retention pipeline public API."""

from version_retention.retention.pipeline import (
    RetentionContext,
    RetentionReport,
    format_timestamp,
    is_object_marked,
    is_prefix_marked,
    list_versions,
    mark_object_as_old,
    mark_prefix_as_old,
    pointer_key,
    resolve_current_version,
    run_retention,
    version_prefix,
)

__all__ = [
    "RetentionContext",
    "RetentionReport",
    "format_timestamp",
    "is_object_marked",
    "is_prefix_marked",
    "list_versions",
    "mark_object_as_old",
    "mark_prefix_as_old",
    "pointer_key",
    "resolve_current_version",
    "run_retention",
    "version_prefix",
]
