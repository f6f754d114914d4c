"""Command-line interface router for version-retention."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from version_retention.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
)
from version_retention.errors import RetentionError
from version_retention.observability import setup_logging
from version_retention.retention import RetentionContext, RetentionReport, run_retention
from version_retention.storage import S3Settings, open_object_store
from version_retention.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="version-retention",
        description=(
            "version-retention — tag superseded published versions in S3 as old.\n\n"
            "Common workflows:\n"
            "  version-retention run --bucket docs --folder pr-123\n"
            "  version-retention config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./retention.toml if present).",
    )
    common.add_argument("--bucket", default=None, help="Target S3 bucket.")
    common.add_argument(
        "--folder", default=None, help="Folder holding run-<run>-<attempt>/ versions."
    )
    common.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent object updates per page (default: 5).",
    )
    common.add_argument("--endpoint-url", default=None, help="S3-compatible endpoint URL.")
    common.add_argument("--region", default=None, help="AWS region name.")
    common.add_argument("--json", action="store_true", help="Emit JSON output.")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Mark every version older than the current pointer as old",
        description=(
            "Read <folder>/index.html for the current version, then tag every object of\n"
            "each older run-<run>-<attempt>/ prefix with old=true.\n\n"
            "Examples:\n"
            "  version-retention run --bucket docs --folder pr-123\n"
            "  INPUT_BUCKET=docs INPUT_FOLDER=pr-123 INPUT_PARALLEL=10 version-retention run\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default=None,
        help="Log line format on stderr (default: text).",
    )
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, file, inputs, env and flags.\n\n"
            "Examples:\n"
            "  version-retention config\n"
            "  version-retention config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    config = _load_effective_config(args, require_target=True)
    target = config["target"]
    s3 = config["s3"]

    handle = setup_logging(config["observability"], run_id=_new_run_id())
    try:
        report = asyncio.run(
            _execute(
                bucket=target["bucket"],
                folder=target["folder"],
                concurrency=target["concurrency"],
                settings=S3Settings(
                    endpoint_url=s3["endpoint_url"],
                    region=s3["region"],
                    force_path_style=s3["force_path_style"],
                    max_pool_connections=target["concurrency"],
                ),
            )
        )
    except RetentionError as exc:
        handle.logger.error("%s", exc)
        raise CLIError(str(exc), exit_code=1) from exc
    except (ClientError, BotoCoreError) as exc:
        handle.logger.error("S3 request failed: %s", exc)
        raise CLIError(f"S3 request failed: {exc}", exit_code=3) from exc
    finally:
        handle.shutdown()

    if _flag(args, "json"):
        _emit_json({"command": "run", "run_id": handle.run_id, "report": report.to_dict()})
        return 0

    _get_renderer(args).report(report)
    return 0


async def _execute(
    *, bucket: str, folder: str, concurrency: int, settings: S3Settings
) -> RetentionReport:
    async with open_object_store(settings) as client:
        ctx = RetentionContext(client=client, bucket=bucket)
        return await run_retention(ctx, folder, concurrency)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args, require_target=False)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": config})
        return 0

    renderer = _get_renderer(args)
    renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _load_effective_config(args: argparse.Namespace, *, require_target: bool) -> dict[str, Any]:
    try:
        return load_config(
            getattr(args, "config_path", None),
            cli_overrides=_cli_overrides(args),
            require_target=require_target,
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {
        "target.bucket": getattr(args, "bucket", None),
        "target.folder": getattr(args, "folder", None),
        "target.concurrency": getattr(args, "concurrency", None),
        "s3.endpoint_url": getattr(args, "endpoint_url", None),
        "s3.region": getattr(args, "region", None),
        "observability.log_format": getattr(args, "log_format", None),
    }
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"
    return overrides


def _new_run_id() -> str:
    return f"{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}-{uuid.uuid4().hex[:8]}"


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
