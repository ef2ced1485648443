from __future__ import annotations

import sys
from pathlib import Path

import pytest

from conftest import FakeRunner, write_csproj
from debugify.build.builder import MSBUILD_FALLBACK_SIGNATURE, ArtifactBuilder, split_extra_args
from debugify.build.runner import ProcessResult, SubprocessRunner
from debugify.errors import BuildError
from debugify.project.types import ProjectDescriptor


@pytest.fixture
def descriptor(tmp_path: Path) -> ProjectDescriptor:
    path = write_csproj(tmp_path / "Lib" / "Lib.csproj", package_id="Acme.Lib", version="1.0.0")
    return ProjectDescriptor("Acme.Lib", "1.0.0", "1.0.0", path)


def test_dotnet_pack_command(descriptor, fake_runner):
    result = ArtifactBuilder(fake_runner).build(descriptor, "Release", extra_args=" --ignore-failed-sources")

    assert result.ok and result.toolchain == "dotnet"
    [(cmd, cwd)] = fake_runner.calls
    assert cmd == (
        "dotnet",
        "pack",
        str(descriptor.descriptor_path),
        "--include-symbols",
        "--include-source",
        "-c",
        "Release",
        "--ignore-failed-sources",
    )
    assert cwd == descriptor.project_dir


def test_force_rebuild_disables_incremental_build(descriptor, fake_runner):
    ArtifactBuilder(fake_runner).build(descriptor, force_rebuild=True)
    assert "--no-incremental" in fake_runner.calls[0][0]


def test_failed_build_is_reported_through_exit_code(descriptor):
    runner = FakeRunner(lambda cmd, cwd: ProcessResult(1, ("error CS0103: nope",)))
    result = ArtifactBuilder(runner).build(descriptor)
    assert not result.ok
    assert result.captured_output == ("error CS0103: nope",)


def _fallback_handler(vswhere_result: ProcessResult):
    def handler(cmd, cwd):
        if cmd[0] == "dotnet":
            return ProcessResult(1, ("Build started", f"C:\\x.csproj : {MSBUILD_FALLBACK_SIGNATURE}"))
        if cmd[0] == "vswhere.exe":
            return vswhere_result
        return ProcessResult(0, ("packed",))

    return handler


def test_falls_back_to_msbuild(descriptor):
    msbuild = r"C:\VS\MSBuild\Current\Bin\MSBuild.exe"
    runner = FakeRunner(_fallback_handler(ProcessResult(0, (msbuild,))))

    result = ArtifactBuilder(runner).build(descriptor, "Debug")

    assert result.ok and result.toolchain == "msbuild"
    assert [c[0][0] for c in runner.calls] == ["dotnet", "vswhere.exe", msbuild]
    assert runner.calls[1][0][1:] == ("-latest", "-requires", "Microsoft.Component.MSBuild", "-find", r"MSBuild\**\Bin\MSBuild.exe")
    assert runner.calls[2][0][1:] == (
        str(descriptor.descriptor_path),
        "/t:pack",
        "/v:m",
        "/p:Configuration=Debug",
        "/p:IncludeSymbols=true",
        "/p:IncludeSource=true",
    )


def test_missing_msbuild_is_a_hard_failure(descriptor):
    runner = FakeRunner(_fallback_handler(ProcessResult(1, ())))
    with pytest.raises(BuildError, match="Could not find msbuild.exe"):
        ArtifactBuilder(runner).build(descriptor)
    assert len(runner.calls) == 2


def test_unspawnable_tool_raises_build_error(descriptor):
    def handler(cmd, cwd):
        raise FileNotFoundError(cmd[0])

    with pytest.raises(BuildError, match="Could not run 'dotnet'"):
        ArtifactBuilder(FakeRunner(handler)).build(descriptor)


def test_split_extra_args():
    assert split_extra_args(None) == []
    assert split_extra_args('--source "C:/my feed" -v q') == ["--source", "C:/my feed", "-v", "q"]
    assert split_extra_args(["--a", "b"]) == ["--a", "b"]


def test_subprocess_runner_captures_both_streams(tmp_path):
    code = "import sys; print('out line'); print(); print('err line', file=sys.stderr); sys.exit(3)"
    result = SubprocessRunner().run([sys.executable, "-c", code], tmp_path)

    assert result.exit_code == 3
    assert sorted(result.output) == ["err line", "out line"]
