from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

import pytest

from debugify.build.runner import ProcessResult
from debugify.cache.locator import CacheLocator, StaticCachePathResolver


def write_csproj(
    path: Path,
    *,
    package_id: str | None = None,
    version: str | None = None,
    assembly_name: str | None = None,
    legacy: bool = False,
) -> Path:
    props = []
    if package_id:
        props.append(f"    <PackageId>{package_id}</PackageId>")
    if assembly_name:
        props.append(f"    <AssemblyName>{assembly_name}</AssemblyName>")
    if version:
        props.append(f"    <Version>{version}</Version>")
    head = '<Project ToolsVersion="15.0">' if legacy else '<Project Sdk="Microsoft.NET.Sdk">'
    body = "\n".join(
        [
            head,
            "  <PropertyGroup>",
            "    <TargetFramework>net6.0</TargetFramework>",
            *props,
            "  </PropertyGroup>",
            "</Project>",
            "",
        ]
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


def write_file(path: Path, data: bytes = b"") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def write_nupkg(path: Path, entries: dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


@dataclass
class FakeRunner:
    """Stands in for process spawning; `handler` decides each result."""

    handler: Callable[[Sequence[str], Path], ProcessResult] | None = None
    calls: list[tuple[tuple[str, ...], Path]] = field(default_factory=list)

    def run(self, command: Sequence[str], cwd: Path) -> ProcessResult:
        self.calls.append((tuple(str(c) for c in command), Path(cwd)))
        if self.handler is None:
            return ProcessResult(exit_code=0, output=())
        return self.handler(command, cwd)


@pytest.fixture
def solution_dir(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    (root / "Lib.sln").write_text("Microsoft Visual Studio Solution File\n", encoding="utf-8")
    return root


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    root = tmp_path / "nuget-packages"
    root.mkdir()
    return root


@pytest.fixture
def locator(cache_root: Path) -> CacheLocator:
    return CacheLocator(StaticCachePathResolver(cache_root))


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
