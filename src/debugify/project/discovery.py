from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

from debugify.errors import DiscoveryError
from debugify.project.types import ProjectDescriptor
from debugify.project.version import read_declared_version

logger = logging.getLogger(__name__)

DESCRIPTOR_SUFFIX = ".csproj"
SOLUTION_SUFFIX = ".sln"
MAX_SOLUTION_DEPTH = 10
SDK_PROJECT_PREFIX = "<Project Sdk="

_TEST_SUFFIXES = ("test", "tests")


def _read_text(path: Path) -> str:
    # Accept UTF-8 with BOM (common on Windows editors).
    return path.read_text(encoding="utf-8-sig", errors="replace")


def _find_element(text: str, name: str) -> str | None:
    m = re.search(rf"<{name}>(?P<value>[\w.]+)</{name}>", text)
    return m.group("value") if m else None


def resolve_package_id(descriptor_path: Path, text: str | None = None) -> str:
    """PackageId, then AssemblyName, then the descriptor's file name."""
    if text is None:
        text = _read_text(descriptor_path)
    for element in ("PackageId", "AssemblyName"):
        value = _find_element(text, element)
        if value:
            return value
    return descriptor_path.stem


def is_sdk_style(text: str) -> bool:
    for line in text.splitlines():
        if line.strip():
            return line.strip().startswith(SDK_PROJECT_PREFIX)
    return False


def is_test_project(descriptor_path: Path) -> bool:
    return descriptor_path.stem.lower().endswith(_TEST_SUFFIXES)


def find_solution_dir(path: str | Path, max_depth: int = MAX_SOLUTION_DEPTH) -> Path:
    """
    Walk up from `path` (or its folder) looking for a `*.sln` file.

    A `.sln` path resolves to its own folder. Raises DiscoveryError if nothing is
    found within `max_depth` folders.
    """
    p = Path(path)
    if p.is_file() and p.suffix.lower() == SOLUTION_SUFFIX:
        return p.parent

    current = p if p.is_dir() else p.parent
    start = current
    for _ in range(max_depth):
        if any(f.is_file() for f in sorted(current.glob(f"*{SOLUTION_SUFFIX}"))):
            logger.debug("Found sln directory: %s", current)
            return current
        logger.debug(" - No sln in '%s'", current)
        if current.parent == current:
            break
        current = current.parent
    raise DiscoveryError(
        f"Could not find any *{SOLUTION_SUFFIX} file within {start} or any of its {max_depth} parent folders"
    )


def _load_candidate(descriptor_path: Path, version_override: str | None) -> ProjectDescriptor | None:
    text = _read_text(descriptor_path)
    declared = read_declared_version(text)
    if declared is None and not version_override:
        logger.warning(
            "Project file %s does not contain a <Version> element. "
            "Please specify a version using the -v commandline argument.",
            descriptor_path.name,
        )
        return None
    if not is_sdk_style(text):
        logger.warning(
            "Project file %s is not supported: Only latest csproj format is supported",
            descriptor_path.name,
        )
        return None
    return ProjectDescriptor(
        package_id=resolve_package_id(descriptor_path, text),
        declared_version=declared,
        effective_version=declared or version_override or "",
        descriptor_path=descriptor_path,
    )


def discover_projects(path: str | Path, version_override: str | None = None) -> Iterator[ProjectDescriptor]:
    """
    Yield the debugifiable project descriptors at `path`.

    A single `*.csproj` is skipped when it looks like a test project. A directory
    is scanned recursively and every descriptor in it is a candidate.
    """
    root = Path(path)
    if root.is_file() and root.suffix.lower() == DESCRIPTOR_SUFFIX:
        if is_test_project(root):
            logger.warning("Project file %s seems to be a test project and is therefore ignored", root.name)
            return
        descriptor = _load_candidate(root, version_override)
        if descriptor is not None:
            yield descriptor
        return

    folder = root if root.is_dir() else root.parent
    for candidate in sorted(folder.rglob(f"*{DESCRIPTOR_SUFFIX}")):
        if not candidate.is_file():
            continue
        descriptor = _load_candidate(candidate, version_override)
        if descriptor is not None:
            yield descriptor
