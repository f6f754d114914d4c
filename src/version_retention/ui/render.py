"""Plain-text output rendering for the version-retention CLI.

File: src/version_retention/ui/render.py

Purpose
- Keep human-readable CLI output in one place so handlers only decide *what*
  to print. JSON output bypasses the renderer entirely.
- Output is deterministic and uncolored; CI logs are the main consumer.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

    from version_retention.retention.pipeline import RetentionReport


class CLIRenderer:
    """Thin CLI output renderer writing to ``stream`` (stdout by default)."""

    def __init__(self, *, verbose: bool = False, stream: TextIO | None = None) -> None:
        self.verbose = verbose
        self._stream = stream

    def _write(self, line: str) -> None:
        print(line, file=self._stream if self._stream is not None else sys.stdout)

    def heading(self, text: str) -> None:
        self._write(text)

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        self._write(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._write(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._write(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        """Print a bulleted list."""

        for entry in entries:
            self._write(f"  {prefix}{entry}")

    def report(self, report: RetentionReport) -> None:
        """Print a retention run summary; prefix lists only in verbose mode or when short."""

        self.heading(f"Retention for {report.folder}")
        self.kv("Current version", report.current_version)
        self.kv("Versions found", report.versions_found)
        self.kv("Outdated", len(report.outdated))
        self.kv("Prefixes marked", len(report.marked_prefixes))
        self.kv("Prefixes skipped", len(report.skipped_prefixes))
        self.kv("Objects marked", report.objects_marked)
        if report.marked_prefixes and (self.verbose or len(report.marked_prefixes) <= 10):
            self.section("Marked:")
            self.items(list(report.marked_prefixes))
        if report.skipped_prefixes and self.verbose:
            self.section("Already marked:")
            self.items(list(report.skipped_prefixes))


def create_renderer(*, verbose: bool = False, stream: TextIO | None = None) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(verbose=verbose, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
