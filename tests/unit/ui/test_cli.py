"""
version-retention — unit tests for the CLI router and process entrypoint

File: tests/unit/ui/test_cli.py

What this test file should cover
- Argument parsing and config override wiring.
- ``run`` renders text and JSON reports against an injected object store.
- Failures map to deterministic exit codes with one ``error:`` line.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from version_retention import main as main_module
from version_retention.config import ConfigLoadError
from version_retention.errors import PointerNotFoundError
from version_retention.main import ExitCode, cli_entrypoint
from version_retention.ui import cli as cli_module
from version_retention.ui.cli import build_parser, run_cli

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

BUCKET = "tinymce-docs-cleanup-action"


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "INPUT_BUCKET",
        "INPUT_FOLDER",
        "INPUT_PARALLEL",
        "RETENTION_TARGET_BUCKET",
        "RETENTION_TARGET_FOLDER",
        "RETENTION_TARGET_CONCURRENCY",
        "RETENTION_OBSERVABILITY_LOG_DIR",
        "RETENTION_OBSERVABILITY_LOG_FORMAT",
        "RETENTION_OBSERVABILITY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store_settings(monkeypatch: pytest.MonkeyPatch, fake_store: Any) -> list[Any]:
    """Route ``open_object_store`` to the in-memory store and record its settings."""

    opened: list[Any] = []

    @asynccontextmanager
    async def _open(settings: Any) -> AsyncIterator[Any]:
        opened.append(settings)
        yield fake_store

    monkeypatch.setattr(cli_module, "open_object_store", _open)
    return opened


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_accepts_run_options() -> None:
    args = build_parser().parse_args(
        ["run", "--bucket", "b-1", "--folder", "pr-1", "--concurrency", "7", "--json", "-v"]
    )

    assert (args.command, args.bucket, args.folder, args.concurrency) == ("run", "b-1", "pr-1", 7)
    assert args.json and args.verbose


def test_run_renders_text_report(
    fake_store: Any,
    seed_folder: Any,
    store_settings: list[Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    seed_folder(fake_store)

    code = run_cli(["run", "--bucket", BUCKET, "--folder", "pr-123", "--concurrency", "3"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Retention for pr-123" in out
    assert "Current version: run-13-2" in out
    assert "Objects marked: 10" in out
    assert "  - pr-123/run-12-3/" in out
    (settings,) = store_settings
    assert settings.max_pool_connections == 3
    assert settings.force_path_style is True


def test_run_emits_json_report(
    fake_store: Any,
    seed_folder: Any,
    store_settings: list[Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    seed_folder(fake_store)

    code = run_cli(["run", "--bucket", BUCKET, "--folder", "pr-123", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["command"] == "run"
    assert payload["report"]["outdated"] == ["run-12-3", "run-13-1"]
    assert payload["report"]["marked_prefixes"] == ["pr-123/run-12-3/", "pr-123/run-13-1/"]
    assert payload["report"]["objects_marked"] == 10


def test_run_logs_progress_to_stderr(
    fake_store: Any,
    seed_folder: Any,
    store_settings: list[Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    seed_folder(fake_store)

    run_cli(["run", "--bucket", BUCKET, "--folder", "pr-123"])

    err = capsys.readouterr().err
    assert "Current version: run-13-2" in err
    assert "Found 4 version prefixes" in err
    assert "Tagging pr-123/run-12-3/ as old" in err


def test_missing_pointer_exits_with_retention_failure(
    fake_store: Any,
    seed_folder: Any,
    store_settings: list[Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    seed_folder(fake_store, pointer=None)

    code = cli_entrypoint(["run", "--bucket", BUCKET, "--folder", "pr-123"])

    err = capsys.readouterr().err
    assert code == ExitCode.RETENTION_FAILED
    assert "error: No current version pointer found for pr-123" in err


def test_invalid_bucket_exits_with_config_error(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli_entrypoint(["run", "--bucket", "Invalid_Bucket", "--folder", "pr-123"])

    err = capsys.readouterr().err
    assert code == ExitCode.CONFIG_ERROR
    assert err.startswith("error: invalid config:")
    assert "target.bucket" in err


def test_non_integer_parallel_input_exits_with_config_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("INPUT_BUCKET", BUCKET)
    monkeypatch.setenv("INPUT_FOLDER", "pr-123")
    monkeypatch.setenv("INPUT_PARALLEL", "lots")

    code = cli_entrypoint(["run"])

    assert code == ExitCode.CONFIG_ERROR
    assert "INPUT_PARALLEL" in capsys.readouterr().err


def test_storage_errors_exit_with_storage_code(
    fake_store: Any, store_settings: list[Any], capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_entrypoint(["run", "--bucket", "another-bucket", "--folder", "pr-123"])

    assert code == ExitCode.STORAGE_ERROR
    assert "error: S3 request failed" in capsys.readouterr().err


def test_config_command_prints_effective_config(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("INPUT_PARALLEL", "12")

    code = run_cli(["config", "--json", "--endpoint-url", "http://localhost:4566"])

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["config"]["target"]["concurrency"] == 12
    assert payload["config"]["target"]["bucket"] == ""
    assert payload["config"]["s3"]["endpoint_url"] == "http://localhost:4566"


def test_verbose_switches_logging_to_debug(
    capsys: pytest.CaptureFixture[str],
) -> None:
    code = run_cli(["config", "--json", "--verbose"])

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["config"]["observability"]["log_level"] == "DEBUG"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (PointerNotFoundError("pr-1"), ExitCode.RETENTION_FAILED),
        (ConfigLoadError("bad"), ExitCode.CONFIG_ERROR),
        (ClientError({"Error": {"Code": "AccessDenied"}}, "CopyObject"), ExitCode.STORAGE_ERROR),
        (EndpointConnectionError(endpoint_url="http://localhost:1"), ExitCode.STORAGE_ERROR),
        (KeyError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_uncaught_exceptions_are_routed_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    error: Exception,
    expected: ExitCode,
) -> None:
    def _raise(argv: Any = None) -> int:
        raise error

    monkeypatch.setattr(cli_module, "run_cli", _raise)

    assert cli_entrypoint([]) == expected
    err = capsys.readouterr().err
    if expected is ExitCode.INTERNAL_ERROR:
        assert "Traceback" in err
    else:
        assert err.startswith("error: ")


def test_exception_chain_is_followed_for_routing() -> None:
    try:
        try:
            raise ClientError({"Error": {"Code": "SlowDown"}}, "ListObjects")
        except ClientError as exc:
            raise RuntimeError("listing aborted") from exc
    except RuntimeError as wrapped:
        assert main_module._route_exception(wrapped) is ExitCode.STORAGE_ERROR
