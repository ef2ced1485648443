from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from debugify.build.runner import ProcessResult, ProcessRunner, SubprocessRunner
from debugify.errors import BuildError
from debugify.project.types import ProjectDescriptor

logger = logging.getLogger(__name__)

MSBUILD_FALLBACK_SIGNATURE = (
    "error : If you are building projects that require targets from full MSBuild or "
    "MSBuildFrameworkToolsPath, you need to use desktop msbuild ('msbuild.exe') instead of "
    "'dotnet build' or 'dotnet msbuild'"
)
VSWHERE_ARGS = ("-latest", "-requires", "Microsoft.Component.MSBuild", "-find", r"MSBuild\**\Bin\MSBuild.exe")


@dataclass(frozen=True, slots=True)
class BuildResult:
    exit_code: int
    captured_output: tuple[str, ...]
    toolchain: str = "dotnet"
    command: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def split_extra_args(extra_args: str | Sequence[str] | None) -> list[str]:
    if not extra_args:
        return []
    if isinstance(extra_args, str):
        return shlex.split(extra_args)
    return [str(a) for a in extra_args]


def requires_msbuild(output: Sequence[str]) -> bool:
    return any(MSBUILD_FALLBACK_SIGNATURE in line for line in output)


class ArtifactBuilder:
    """
    Pack a project with symbols and sources.

    `dotnet pack` is tried first. Projects needing full-framework targets make
    dotnet print a well known error; those are re-packed with a desktop MSBuild
    located through vswhere.
    """

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        *,
        dotnet: str = "dotnet",
        vswhere: str = "vswhere.exe",
    ) -> None:
        self.runner = runner or SubprocessRunner()
        self.dotnet = dotnet
        self.vswhere = vswhere

    def _run(self, command: list[str], cwd: Path) -> ProcessResult:
        try:
            result = self.runner.run(command, cwd)
        except OSError as exc:
            raise BuildError(f"Could not run '{command[0]}': {exc}") from exc
        for line in result.output:
            logger.debug(line)
        logger.debug("%s returned %s", Path(command[0]).name, result.exit_code)
        return result

    def dotnet_command(
        self,
        descriptor: ProjectDescriptor,
        configuration: str,
        force_rebuild: bool,
        extra_args: Sequence[str],
    ) -> list[str]:
        cmd = [
            self.dotnet,
            "pack",
            str(descriptor.descriptor_path),
            "--include-symbols",
            "--include-source",
            "-c",
            configuration,
        ]
        if force_rebuild:
            cmd.append("--no-incremental")
        return cmd + list(extra_args)

    def msbuild_command(
        self,
        msbuild: str,
        descriptor: ProjectDescriptor,
        configuration: str,
        force_rebuild: bool,
    ) -> list[str]:
        return [
            msbuild,
            str(descriptor.descriptor_path),
            "/t:Rebuild;Pack" if force_rebuild else "/t:pack",
            "/v:m",
            f"/p:Configuration={configuration}",
            "/p:IncludeSymbols=true",
            "/p:IncludeSource=true",
        ]

    def locate_msbuild(self, cwd: Path) -> str:
        result = self._run([self.vswhere, *VSWHERE_ARGS], cwd)
        found = [line.strip() for line in result.output if line.strip()]
        if result.exit_code != 0 or not found:
            raise BuildError(
                "Could not find msbuild.exe. Please ensure that you have Visual Studio 2017 "
                "or higher installed on your machine!"
            )
        logger.debug("found msbuild at '%s'", found[0])
        return found[0]

    def build(
        self,
        descriptor: ProjectDescriptor,
        configuration: str = "Debug",
        force_rebuild: bool = False,
        extra_args: str | Sequence[str] | None = None,
    ) -> BuildResult:
        cwd = descriptor.project_dir
        logger.info("Creating %s %s", descriptor.package_id, descriptor.effective_version)

        cmd = self.dotnet_command(descriptor, configuration, force_rebuild, split_extra_args(extra_args))
        result = self._run(cmd, cwd)
        if not requires_msbuild(result.output):
            return BuildResult(result.exit_code, result.output, "dotnet", tuple(cmd))

        logger.debug("falling back to full MSBuild as advanced targets are required...")
        msbuild = self.locate_msbuild(cwd)
        cmd = self.msbuild_command(msbuild, descriptor, configuration, force_rebuild)
        result = self._run(cmd, cwd)
        return BuildResult(result.exit_code, result.output, "msbuild", tuple(cmd))
