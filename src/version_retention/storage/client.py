"""S3 client boundary: call protocol, aioboto3 client factory, error classification."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Protocol

import aioboto3
from botocore.config import Config
from botocore.exceptions import ClientError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_NOT_FOUND_CODES: Final[frozenset[str]] = frozenset({"404", "NoSuchKey", "NotFound"})
_MIN_POOL_CONNECTIONS: Final[int] = 10


class ObjectStoreClient(Protocol):
    """Subset of the aiobotocore S3 client used by the pipeline.

    Methods take botocore keyword arguments (``Bucket=``, ``Key=``, ...) and
    return the parsed response dictionaries.
    """

    async def head_object(self, **kwargs: Any) -> dict[str, Any]: ...

    async def copy_object(self, **kwargs: Any) -> dict[str, Any]: ...

    async def get_object_tagging(self, **kwargs: Any) -> dict[str, Any]: ...

    async def list_objects(self, **kwargs: Any) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class S3Settings:
    """Connection settings for :func:`open_object_store`.

    Empty ``endpoint_url``/``region`` defer to the botocore credential and
    endpoint chain (``AWS_ENDPOINT_URL``, ``AWS_REGION``, profiles, ...).
    """

    endpoint_url: str = ""
    region: str = ""
    force_path_style: bool = True
    max_pool_connections: int = _MIN_POOL_CONNECTIONS
    connect_timeout: float = 5.0
    read_timeout: float = 60.0
    max_attempts: int = 5


def build_boto_config(settings: S3Settings) -> Config:
    return Config(
        s3={"addressing_style": "path" if settings.force_path_style else "auto"},
        max_pool_connections=max(settings.max_pool_connections, _MIN_POOL_CONNECTIONS),
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "adaptive"},
    )


@asynccontextmanager
async def open_object_store(settings: S3Settings) -> AsyncIterator[ObjectStoreClient]:
    """Open an aioboto3 S3 client for the duration of the context."""
    session = aioboto3.Session(region_name=settings.region or None)
    async with session.client(
        "s3",
        endpoint_url=settings.endpoint_url or None,
        config=build_boto_config(settings),
    ) as client:
        yield client


def error_code(exc: BaseException) -> str | None:
    if not isinstance(exc, ClientError):
        return None
    code = exc.response.get("Error", {}).get("Code")
    return str(code) if code is not None else None


def is_not_found(exc: BaseException) -> bool:
    """Return whether ``exc`` is an S3 "no such key" style response."""
    return error_code(exc) in _NOT_FOUND_CODES


__all__ = [
    "ObjectStoreClient",
    "S3Settings",
    "build_boto_config",
    "error_code",
    "is_not_found",
    "open_object_store",
]
