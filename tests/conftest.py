"""
version-retention — shared test fixtures

File: tests/conftest.py

Purpose
- Provide an in-memory S3 stand-in that implements the ``ObjectStoreClient``
  protocol closely enough for the retention pipeline: ListObjects (v1) with
  Prefix/Delimiter/Marker/MaxKeys, HeadObject, GetObjectTagging and
  CopyObject onto itself with metadata/tagging directives.
- Record call order and in-flight copy counts so tests can assert paging and
  concurrency behavior.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qsl

import pytest
from botocore.exceptions import ClientError

from version_retention.observability.logging import shutdown_logging
from version_retention.retention.pipeline import RetentionContext

BUCKET = "tinymce-docs-cleanup-action"
FOLDER = "pr-123"
FIXED_NOW = datetime(2024, 5, 17, 8, 30, 12, 345678, tzinfo=UTC)
SAMPLE_FILES = (
    "file-one.txt",
    "file-two.txt",
    "file-three.txt",
    "dir-one/file-four.txt",
    "dir-two/dir-three/file-five.txt",
)


@dataclass(slots=True)
class StoredObject:
    body: bytes = b""
    metadata: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    content_type: str = "binary/octet-stream"
    cache_control: str | None = None
    copies: int = 0


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakeObjectStore:
    """Single-bucket, in-memory object store speaking botocore keyword arguments."""

    def __init__(
        self,
        bucket: str = BUCKET,
        *,
        page_size: int = 1000,
        copy_delay: float = 0.0,
        failing_keys: Iterable[str] = (),
    ) -> None:
        self.bucket = bucket
        self.page_size = page_size
        self.copy_delay = copy_delay
        self.failing_keys = set(failing_keys)
        self.objects: dict[str, StoredObject] = {}
        self.events: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    # -- seeding -----------------------------------------------------------

    def put(
        self,
        key: str,
        *,
        body: bytes = b"",
        metadata: Mapping[str, str] | None = None,
        content_type: str = "text/plain",
        cache_control: str | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        self.objects[key] = StoredObject(
            body=body,
            metadata=dict(metadata or {}),
            tags=dict(tags or {}),
            content_type=content_type,
            cache_control=cache_control,
        )

    def keys_under(self, prefix: str) -> list[str]:
        return sorted(key for key in self.objects if key.startswith(prefix))

    def calls(self, operation: str) -> list[str]:
        return [detail for name, detail in self.events if name == operation]

    # -- protocol ----------------------------------------------------------

    async def head_object(self, **kwargs: Any) -> dict[str, Any]:
        stored = self._lookup(kwargs, "HeadObject", missing_code="404")
        self.events.append(("head_object", kwargs["Key"]))
        await asyncio.sleep(0)
        response: dict[str, Any] = {
            "ContentLength": len(stored.body),
            "ContentType": stored.content_type,
            "Metadata": dict(stored.metadata),
        }
        if stored.cache_control is not None:
            response["CacheControl"] = stored.cache_control
        return response

    async def get_object_tagging(self, **kwargs: Any) -> dict[str, Any]:
        stored = self._lookup(kwargs, "GetObjectTagging", missing_code="NoSuchKey")
        self.events.append(("get_object_tagging", kwargs["Key"]))
        await asyncio.sleep(0)
        return {"TagSet": [{"Key": k, "Value": v} for k, v in sorted(stored.tags.items())]}

    async def copy_object(self, **kwargs: Any) -> dict[str, Any]:
        source = kwargs["CopySource"]
        if source != {"Bucket": kwargs["Bucket"], "Key": kwargs["Key"]}:
            raise _client_error("InvalidRequest", "CopyObject", "only in-place copies")
        stored = self._lookup(kwargs, "CopyObject", missing_code="NoSuchKey")
        key = kwargs["Key"]
        self.events.append(("copy_object", key))

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.copy_delay)
            if key in self.failing_keys:
                raise _client_error("AccessDenied", "CopyObject")
            if kwargs.get("MetadataDirective") == "REPLACE":
                stored.metadata = dict(kwargs.get("Metadata") or {})
                stored.content_type = kwargs.get("ContentType", "binary/octet-stream")
                stored.cache_control = kwargs.get("CacheControl")
            if kwargs.get("TaggingDirective") == "REPLACE":
                stored.tags = dict(parse_qsl(kwargs.get("Tagging", "")))
            stored.copies += 1
        finally:
            self.in_flight -= 1
        return {"CopyObjectResult": {"ETag": f'"{key}-{stored.copies}"'}}

    async def list_objects(self, **kwargs: Any) -> dict[str, Any]:
        self._check_bucket(kwargs, "ListObjects")
        prefix = kwargs.get("Prefix", "")
        delimiter = kwargs.get("Delimiter")
        marker = kwargs.get("Marker", "")
        max_keys = min(int(kwargs.get("MaxKeys", 1000)), self.page_size)
        self.events.append(("list_objects", f"{prefix}|{marker}"))
        await asyncio.sleep(0)

        contents: list[dict[str, Any]] = []
        common: list[str] = []
        last = ""
        truncated = False
        for key in sorted(self.objects):
            if not key.startswith(prefix) or key <= marker:
                continue
            rolled = self._roll_up(key, prefix, delimiter)
            if rolled is not None and (rolled <= marker or rolled in common):
                continue
            if len(contents) + len(common) >= max_keys:
                truncated = True
                break
            if rolled is not None:
                common.append(rolled)
                last = rolled
            else:
                contents.append({"Key": key, "Size": len(self.objects[key].body)})
                last = key

        response: dict[str, Any] = {"IsTruncated": truncated, "Prefix": prefix}
        if contents:
            response["Contents"] = contents
        if common:
            response["CommonPrefixes"] = [{"Prefix": item} for item in common]
        if truncated and delimiter:
            response["NextMarker"] = last
        return response

    # -- helpers -----------------------------------------------------------

    def _check_bucket(self, kwargs: Mapping[str, Any], operation: str) -> None:
        if kwargs.get("Bucket") != self.bucket:
            raise _client_error("NoSuchBucket", operation)

    def _lookup(
        self, kwargs: Mapping[str, Any], operation: str, *, missing_code: str
    ) -> StoredObject:
        self._check_bucket(kwargs, operation)
        stored = self.objects.get(kwargs["Key"])
        if stored is None:
            raise _client_error(missing_code, operation)
        return stored

    @staticmethod
    def _roll_up(key: str, prefix: str, delimiter: str | None) -> str | None:
        if not delimiter:
            return None
        rest = key[len(prefix) :]
        index = rest.find(delimiter)
        if index < 0:
            return None
        return prefix + rest[: index + len(delimiter)]


def seed_published_folder(
    store: FakeObjectStore,
    folder: str = FOLDER,
    runs: Iterable[str] = ("run-12-3", "run-13-1", "run-13-2", "run-14-1"),
    pointer: str | None = "run-13-2",
    files: Iterable[str] = SAMPLE_FILES,
) -> None:
    """Lay out ``folder/<run>/<file>`` objects plus the ``index.html`` pointer."""

    for run in runs:
        for position, name in enumerate(files):
            metadata = {"custom-key": "custom-value", "version": run} if position == 0 else {}
            store.put(
                f"{folder}/{run}/{name}",
                body=f"{run}:{name}".encode(),
                metadata=metadata,
                content_type="text/plain",
            )
    if pointer is not None:
        store.put(
            f"{folder}/index.html",
            metadata={"pointer": pointer},
            content_type="text/html",
        )


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    yield
    shutdown_logging()


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def make_store() -> Callable[..., FakeObjectStore]:
    return FakeObjectStore


@pytest.fixture
def seed_folder() -> Callable[..., None]:
    return seed_published_folder


@pytest.fixture
def retention_ctx(fake_store: FakeObjectStore) -> RetentionContext:
    return RetentionContext(client=fake_store, bucket=BUCKET, clock=lambda: FIXED_NOW)
