"""Module entrypoint for ``python -m version_retention``."""

from __future__ import annotations

from version_retention.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
