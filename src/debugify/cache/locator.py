from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from debugify.cache.types import CacheEntry
from debugify.project.version import to_three_digit_version

logger = logging.getLogger(__name__)

MARKER_NAME = ".debugified.txt"


class CachePathResolver(Protocol):
    def resolve(self) -> Path: ...


class NuGetCachePathResolver:
    """
    `NUGET_PACKAGES` if configured, otherwise `%USERPROFILE%/.nuget/packages`
    (falling back to the home folder where USERPROFILE is not set).
    """

    def __init__(self, override: str | os.PathLike[str] | None = None) -> None:
        self.override = override

    def resolve(self) -> Path:
        if self.override:
            return Path(os.path.expandvars(os.fspath(self.override))).expanduser()
        profile = os.environ.get("USERPROFILE")
        base = Path(profile) if profile else Path.home()
        return base / ".nuget" / "packages"


class StaticCachePathResolver:
    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def resolve(self) -> Path:
        return self.root


def _find_child_dir(parent: Path, name: str) -> Path | None:
    for candidate in (parent / name, parent / name.lower()):
        if candidate.is_dir():
            return candidate
    if not parent.is_dir():
        return None
    lowered = name.lower()
    for child in sorted(parent.iterdir()):
        if child.is_dir() and child.name.lower() == lowered:
            return child
    return None


class CacheLocator:
    def __init__(self, resolver: CachePathResolver) -> None:
        self.resolver = resolver

    @property
    def root(self) -> Path:
        return self.resolver.resolve()

    def exists(self) -> bool:
        return self.root.is_dir()

    def package_dir(self, package_id: str) -> Path | None:
        """Base folder of a package (NuGet stores ids lower-cased), or None."""
        return _find_child_dir(self.root, package_id)

    def entries(self, package_id: str) -> list[CacheEntry]:
        base = self.package_dir(package_id)
        if base is None:
            return []
        return [
            CacheEntry(
                package_id=package_id,
                version=d.name,
                directory_path=d,
                has_marker=(d / MARKER_NAME).is_file(),
            )
            for d in sorted(base.iterdir())
            if d.is_dir()
        ]

    def find_entry(self, package_id: str, version: str) -> CacheEntry | None:
        """The entry for `version`, trying its three-digit form second (`1.2.0.0` is cached as `1.2.0`)."""
        base = self.package_dir(package_id)
        if base is None:
            return None
        for v in dict.fromkeys((version, to_three_digit_version(version))):
            d = _find_child_dir(base, v)
            if d is not None:
                return CacheEntry(package_id, d.name, d, (d / MARKER_NAME).is_file())
        return None
