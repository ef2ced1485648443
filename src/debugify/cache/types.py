from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class CacheEntry:
    package_id: str
    version: str
    directory_path: Path
    has_marker: bool = False
