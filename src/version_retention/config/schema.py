"""
version-retention — configuration schema and validation.

File: src/version_retention/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What is validated
- ``target``: bucket naming rules for general purpose buckets, single-segment
  folder names, positive concurrency.
- ``s3``: optional endpoint URL and region, path-style addressing flag.
- ``observability``: log level/format and optional log directory.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Fail before any network I/O is attempted.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from version_retention.constants import CONFIG_SCHEMA_VERSION, DEFAULT_CONCURRENCY

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

BUCKET_NAME_MIN_LENGTH: Final[int] = 3
BUCKET_NAME_MAX_LENGTH: Final[int] = 63

_BUCKET_CHARSET = re.compile(r"[a-z0-9.-]+")
_BUCKET_EDGE = re.compile(r"[a-z0-9]")
_IPV4_SHAPED = re.compile(r"[0-9]+(?:\.[0-9]+){3}")
_FOLDER_PATTERN = re.compile(r"[a-z0-9.-]+")
_ENDPOINT_SCHEME = re.compile(r"https?://[^\s]+")

# Reserved by S3 for other bucket and access point types.
_RESERVED_BUCKET_PREFIXES: Final[tuple[str, ...]] = ("xn--", "sthree-", "amzn-s3-demo-")
_RESERVED_BUCKET_SUFFIXES: Final[tuple[str, ...]] = (
    "-s3alias",
    "--ol-s3",
    ".mrap",
    "--x-s3",
    "--table-s3",
)


class MetaConfig(TypedDict):
    schema_version: int


class TargetConfig(TypedDict):
    bucket: str
    folder: str
    concurrency: int


class S3Config(TypedDict):
    endpoint_url: str
    region: str
    force_path_style: bool


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str


class RetentionConfig(TypedDict):
    meta: MetaConfig
    target: TargetConfig
    s3: S3Config
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[RetentionConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "target": {
        "bucket": "",
        "folder": "",
        "concurrency": DEFAULT_CONCURRENCY,
    },
    "s3": {
        "endpoint_url": "",
        "region": "",
        "force_path_style": True,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "text",
        "log_dir": "",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def is_valid_bucket_name(name: object) -> bool:
    """Check S3 naming rules for general purpose buckets."""
    if not isinstance(name, str):
        return False
    if not BUCKET_NAME_MIN_LENGTH <= len(name) <= BUCKET_NAME_MAX_LENGTH:
        return False
    if not _BUCKET_CHARSET.fullmatch(name):
        return False
    if not (_BUCKET_EDGE.fullmatch(name[0]) and _BUCKET_EDGE.fullmatch(name[-1])):
        return False
    if ".." in name or _IPV4_SHAPED.fullmatch(name):
        return False
    if name.startswith(_RESERVED_BUCKET_PREFIXES):
        return False
    return not name.endswith(_RESERVED_BUCKET_SUFFIXES)


def is_valid_folder(name: object) -> bool:
    """A folder is one non-empty path segment of lowercase letters, digits, ``.`` and ``-``."""
    return isinstance(name, str) and _FOLDER_PATTERN.fullmatch(name) is not None


def default_config() -> RetentionConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_config(
    config: Mapping[str, object] | object, *, require_target: bool = True
) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths.

    With ``require_target=False`` an empty bucket or folder is accepted, which
    lets the effective configuration be inspected before a target is chosen.
    """

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, {"meta", "target", "s3", "observability"}, "", issues)
    normalized: dict[str, Any] = {}

    meta = _section(root, "meta", issues)
    if meta is not None:
        normalized["meta"] = _validate_meta(meta, "meta", issues)
    target = _section(root, "target", issues)
    if target is not None:
        normalized["target"] = _validate_target(
            target, "target", issues, require_target=require_target
        )
    s3 = _section(root, "s3", issues)
    if s3 is not None:
        normalized["s3"] = _validate_s3(s3, "s3", issues)
    observability = _section(root, "observability", issues)
    if observability is not None:
        normalized["observability"] = _validate_observability(
            observability, "observability", issues
        )

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object, *, require_target: bool = True
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, require_target=require_target)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _section(
    root: Mapping[str, object], key: str, issues: _IssueCollector
) -> dict[str, object] | None:
    if key not in root:
        issues.add(key, "section is required")
        return None
    return _as_object(root[key], key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    version = _as_int(payload.get("schema_version"), _join(path, "schema_version"), issues)
    if version is not None and version != ConfigSchemaVersion:
        issues.add(
            _join(path, "schema_version"),
            f"schema version {version} is not supported; expected {ConfigSchemaVersion}",
        )
    return {"schema_version": version}


def _validate_target(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    require_target: bool,
) -> dict[str, Any]:
    allowed = {"bucket", "folder", "concurrency"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    if "bucket" in payload:
        bucket = _as_str(
            payload["bucket"], _join(path, "bucket"), issues, allow_empty=not require_target
        )
        if bucket is not None:
            if not bucket or is_valid_bucket_name(bucket):
                out["bucket"] = bucket
            else:
                issues.add(_join(path, "bucket"), f"invalid bucket name, got {bucket!r}")

    if "folder" in payload:
        folder = _as_str(
            payload["folder"], _join(path, "folder"), issues, allow_empty=not require_target
        )
        if folder is not None:
            if not folder or is_valid_folder(folder):
                out["folder"] = folder
            else:
                issues.add(
                    _join(path, "folder"),
                    f"invalid folder name, got {folder!r}; "
                    "use lowercase letters, digits, '.' and '-' only",
                )

    if "concurrency" in payload:
        concurrency = _as_int(payload["concurrency"], _join(path, "concurrency"), issues, minimum=1)
        if concurrency is not None:
            out["concurrency"] = concurrency

    return out


def _validate_s3(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"endpoint_url", "region", "force_path_style"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    if "endpoint_url" in payload:
        endpoint = _as_str(
            payload["endpoint_url"], _join(path, "endpoint_url"), issues, allow_empty=True
        )
        if endpoint is not None:
            if endpoint and not _ENDPOINT_SCHEME.fullmatch(endpoint):
                issues.add(_join(path, "endpoint_url"), "must be an http:// or https:// URL")
            else:
                out["endpoint_url"] = endpoint

    if "region" in payload:
        region = _as_str(payload["region"], _join(path, "region"), issues, allow_empty=True)
        if region is not None:
            out["region"] = region

    if "force_path_style" in payload:
        force = _as_bool(payload["force_path_style"], _join(path, "force_path_style"), issues)
        if force is not None:
            out["force_path_style"] = force

    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    if "log_level" in payload:
        level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if level is not None:
            out["log_level"] = level

    if "log_format" in payload:
        log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if log_format is not None:
            out["log_format"] = log_format

    if "log_dir" in payload:
        log_dir = _as_str(payload["log_dir"], _join(path, "log_dir"), issues, allow_empty=True)
        if log_dir is not None:
            if "\x00" in log_dir:
                issues.add(_join(path, "log_dir"), "must not contain NUL bytes")
            else:
                out["log_dir"] = log_dir

    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allow_empty: bool = False,
) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed and not allow_empty:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "field is required")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "BUCKET_NAME_MAX_LENGTH",
    "BUCKET_NAME_MIN_LENGTH",
    "DEFAULT_CONFIG",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ObservabilityConfig",
    "RetentionConfig",
    "S3Config",
    "TargetConfig",
    "assert_valid_config",
    "default_config",
    "is_valid_bucket_name",
    "is_valid_folder",
    "merge_config",
    "validate_config",
]
