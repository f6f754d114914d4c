"""
version-retention — mark superseded published versions in S3 as old.

File: src/version_retention/__init__.py

Purpose
- Package root. A folder in a bucket holds ``run-<run>-<attempt>/`` version
  prefixes and an ``index.html`` pointer naming the live one; every older
  version is tagged ``old=true`` so bucket lifecycle rules can expire it.

Import boundary
- No side effects at import time (no config loading, no logging init, no
  aioboto3 session).
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
