from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from debugify.cache.locator import MARKER_NAME, CacheLocator
from debugify.cache.types import CacheEntry

logger = logging.getLogger(__name__)


def _utc_now_text() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class CacheMutator:
    """
    Writes into the package cache and undoes it.

    Every version folder of a touched package gets a marker file; markers are the
    only record of what was debugified, so `list_marked` and `remove_marked`
    work from the file system alone.
    """

    def __init__(self, locator: CacheLocator) -> None:
        self.locator = locator

    def write_marker(self, entry_dir: Path) -> Path:
        marker = entry_dir / MARKER_NAME
        logger.debug("Writing %s to %s", MARKER_NAME, entry_dir)
        marker.write_text(_utc_now_text(), encoding="utf-8")
        return marker

    def mark_package(self, package_dir: Path) -> list[Path]:
        return [self.write_marker(d) for d in sorted(package_dir.iterdir()) if d.is_dir()]

    def mark_and_replace(self, package_dir: Path, pairs: Mapping[Path, Path]) -> int:
        """Mark all versions of the package, then copy each local file over its cache file."""
        self.mark_package(package_dir)
        replaced = 0
        for cache_file, local_file in pairs.items():
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(local_file, cache_file)
            logger.debug("Replaced %s", cache_file)
            replaced += 1
        return replaced

    def copy_sources(self, src_dir: Path, entry_dir: Path) -> int:
        if not src_dir.is_dir():
            return 0
        count = 0
        for f in sorted(src_dir.rglob("*")):
            if not f.is_file():
                continue
            target = entry_dir / "src" / f.relative_to(src_dir)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(f, target)
            count += 1
        return count

    def _entry_for_marker(self, root: Path, marker: Path) -> CacheEntry:
        d = marker.parent
        rel = d.relative_to(root)
        package_id = rel.parts[0] if len(rel.parts) > 1 else d.parent.name
        return CacheEntry(package_id=package_id, version=d.name, directory_path=d, has_marker=True)

    def list_marked(self) -> list[CacheEntry]:
        root = self.locator.root
        if not root.is_dir():
            return []
        return [self._entry_for_marker(root, m) for m in sorted(root.rglob(MARKER_NAME)) if m.is_file()]

    def remove_marked(self) -> list[CacheEntry]:
        removed: list[CacheEntry] = []
        for entry in self.list_marked():
            # a marker nested inside an already removed folder is gone with it
            if not entry.directory_path.exists():
                continue
            shutil.rmtree(entry.directory_path)
            logger.debug("Removed %s", entry.directory_path)
            removed.append(entry)
        return removed
