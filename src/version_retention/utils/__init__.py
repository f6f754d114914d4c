"""Utility exports for concurrency helpers."""

from version_retention.utils.concurrency import (
    TaskOutcome,
    bounded_as_completed,
    bounded_gather,
)

__all__ = [
    "TaskOutcome",
    "bounded_as_completed",
    "bounded_gather",
]
