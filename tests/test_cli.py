from __future__ import annotations

import json
import logging

import pytest

from conftest import write_csproj, write_file
from debugify import cli
from debugify.cache.locator import MARKER_NAME


@pytest.fixture
def env_cache(cache_root, monkeypatch):
    monkeypatch.setenv("NUGET_PACKAGES", str(cache_root))
    return cache_root


def test_default_command_is_debug():
    assert cli._with_default_command([]) == ["debug"]
    assert cli._with_default_command(["-p", "x"]) == ["debug", "-p", "x"]
    assert cli._with_default_command(["list", "--verbose"]) == ["list", "--verbose"]
    assert cli._with_default_command(["--help"]) == ["--help"]


def test_parser_reads_debug_flags():
    args = cli._build_parser().parse_args(
        ["debug", "-p", "src", "-v", "1.2.3", "-c", "Release", "--rebuild", "--packargs=--no-restore", "--verbose"]
    )
    assert (args.path, args.version, args.configuration) == ("src", "1.2.3", "Release")
    assert args.rebuild and args.verbose
    assert args.packargs == "--no-restore"


def test_list_and_cleanup_commands(env_cache, caplog):
    write_file(env_cache / "acme.lib" / "1.0.0" / MARKER_NAME, b"2024-01-01 00:00:00 UTC")
    write_file(env_cache / "acme.lib" / "1.1.0" / "lib" / "net6.0" / "Acme.Lib.dll", b"")

    with caplog.at_level(logging.INFO):
        assert cli.main(["list"]) == 0
    assert "Found 1 debugified packages" in caplog.text

    assert cli.main(["cleanup"]) == 0
    assert not (env_cache / "acme.lib" / "1.0.0").exists()
    assert (env_cache / "acme.lib" / "1.1.0").exists()


def test_invalid_version_exits_with_error(env_cache, solution_dir, caplog):
    path = write_csproj(solution_dir / "Lib" / "Lib.csproj", package_id="Acme.Lib", version="1.0.0")
    with caplog.at_level(logging.ERROR):
        assert cli.main(["-p", str(path), "-v", "nope"]) == 1
    assert "not a valid nuget package version" in caplog.text


def test_report_is_written_for_cache_misses(env_cache, solution_dir, tmp_path):
    path = write_csproj(solution_dir / "Lib" / "Lib.csproj", package_id="Acme.Lib", version="1.0.0")
    report = tmp_path / "report.json"

    assert cli.main(["debug", "-p", str(path), "--report", str(report)]) == 0

    data = json.loads(report.read_text(encoding="utf-8"))
    assert [r["status"] for r in data["records"]] == ["no_cache_entry"]
