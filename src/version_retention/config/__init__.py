"""Configuration schema and loader."""

from version_retention.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from version_retention.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    RetentionConfig,
    assert_valid_config,
    default_config,
    is_valid_bucket_name,
    is_valid_folder,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "RetentionConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "is_valid_bucket_name",
    "is_valid_folder",
    "load_config",
    "validate_config",
]
