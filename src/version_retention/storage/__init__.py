"""Object-store boundary used by the retention pipeline."""

from version_retention.storage.client import (
    ObjectStoreClient,
    S3Settings,
    build_boto_config,
    error_code,
    is_not_found,
    open_object_store,
)

__all__ = [
    "ObjectStoreClient",
    "S3Settings",
    "build_boto_config",
    "error_code",
    "is_not_found",
    "open_object_store",
]
