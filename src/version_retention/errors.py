"""Run-level failure types raised by the retention pipeline."""

from __future__ import annotations

from collections.abc import Sequence


class RetentionError(RuntimeError):
    """Base class for failures that abort a retention run."""


class PointerNotFoundError(RetentionError):
    """Raised when the current-version pointer is missing or unparseable."""

    def __init__(self, folder: str, detail: str | None = None) -> None:
        self.folder = folder
        message = f"No current version pointer found for {folder}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PrefixMarkingError(RetentionError):
    """Raised after a listing page drained with one or more failed objects."""

    def __init__(self, prefix: str, failed_keys: Sequence[str]) -> None:
        self.prefix = prefix
        self.failed_keys = tuple(failed_keys)
        shown = ", ".join(self.failed_keys[:5])
        if len(self.failed_keys) > 5:
            shown = f"{shown}, ... ({len(self.failed_keys) - 5} more)"
        super().__init__(
            f"failed to mark {len(self.failed_keys)} object(s) under {prefix} as old: {shown}"
        )


__all__ = ["PointerNotFoundError", "PrefixMarkingError", "RetentionError"]
