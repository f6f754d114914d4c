"""Published version identifiers of the form ``run-<run>-<attempt>``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final

VERSION_PATTERN_DESCRIPTION: Final[str] = "run-<run>-<attempt>"

# ASCII digits only; ``\d`` would also accept other Unicode decimal digits.
_VERSION_RE: Final[re.Pattern[str]] = re.compile(r"run-([0-9]+)-([0-9]+)")


@dataclass(frozen=True, order=True, slots=True)
class Version:
    """Immutable ``(run, attempt)`` ordinal pair.

    Equality, hashing and ordering use ``(run, attempt)`` only; ``identifier``
    is the display string the version was parsed from.
    """

    identifier: str = field(compare=False)
    run: int
    attempt: int

    def __str__(self) -> str:
        return self.identifier


def parse_version(value: object) -> Version | None:
    """Parse ``value`` into a :class:`Version`, returning ``None`` when it is not one."""
    if not isinstance(value, str):
        return None
    match = _VERSION_RE.fullmatch(value)
    if match is None:
        return None
    return Version(identifier=value, run=int(match.group(1)), attempt=int(match.group(2)))


def compare_versions(a: Version, b: Version) -> int:
    """Three-way comparator: negative, zero or positive, usable with ``cmp_to_key``."""
    delta = a.run - b.run
    if delta == 0:
        return a.attempt - b.attempt
    return delta


def version_sort_key(version: Version) -> tuple[int, int]:
    return (version.run, version.attempt)


__all__ = [
    "VERSION_PATTERN_DESCRIPTION",
    "Version",
    "compare_versions",
    "parse_version",
    "version_sort_key",
]
