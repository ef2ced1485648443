from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping


class ArtifactKind(Enum):
    BINARY = "binary"
    DEBUG_SYMBOLS = "debug_symbols"


BINARY_SUFFIXES = (".dll", ".exe")
SYMBOL_SUFFIXES = (".pdb",)

# Ordered: the first class matching a segment wins.
MONIKER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"net\d+\.\d+(?:-[a-z][\w.]*)?", re.IGNORECASE),
    re.compile(r"netstandard\d+\.\d+", re.IGNORECASE),
    re.compile(r"netcoreapp\d+\.\d+", re.IGNORECASE),
    re.compile(r"net\d+", re.IGNORECASE),
)


@dataclass(frozen=True, slots=True)
class ArtifactFile:
    file_name: str
    target_framework_moniker: str | None
    kind: ArtifactKind
    path: Path


def artifact_kind(path: Path) -> ArtifactKind | None:
    suffix = path.suffix.lower()
    if suffix in BINARY_SUFFIXES:
        return ArtifactKind.BINARY
    if suffix in SYMBOL_SUFFIXES:
        return ArtifactKind.DEBUG_SYMBOLS
    return None


def infer_moniker(path: str | Path, root: str | Path | None = None) -> str | None:
    """
    Target framework moniker of a file, taken from its folders.

    Folders are scanned from the file outwards (only below `root` when given);
    for each folder the patterns are tried in order and the first match is
    returned lower-cased.
    """
    p = Path(path)
    parents = p.parent
    if root is not None:
        try:
            parents = p.parent.relative_to(Path(root))
        except ValueError:
            pass
    for segment in reversed(parents.parts):
        for pattern in MONIKER_PATTERNS:
            if pattern.fullmatch(segment):
                return segment.lower()
    return None


def scan_artifacts(root: str | Path) -> list[ArtifactFile]:
    root = Path(root)
    if not root.is_dir():
        return []
    out: list[ArtifactFile] = []
    for f in sorted(root.rglob("*")):
        kind = artifact_kind(f)
        if kind is None or not f.is_file():
            continue
        out.append(ArtifactFile(f.name, infer_moniker(f, root), kind, f))
    return out


def is_match(cache_file: ArtifactFile, local_file: ArtifactFile) -> bool:
    if cache_file.file_name.lower() != local_file.file_name.lower():
        return False
    if cache_file.target_framework_moniker and local_file.target_framework_moniker:
        return cache_file.target_framework_moniker.lower() == local_file.target_framework_moniker.lower()
    # either side unknown: the name is all we have
    return True


def match_artifacts(
    cache_files: Iterable[ArtifactFile],
    local_files: Iterable[ArtifactFile],
) -> dict[Path, Path]:
    """Map each cache file to the first local file that matches it."""
    local = list(local_files)
    pairs: dict[Path, Path] = {}
    for cached in cache_files:
        for candidate in local:
            if is_match(cached, candidate):
                pairs[cached.path] = candidate.path
                break
    return pairs


def add_symbol_companions(pairs: Mapping[Path, Path], local_files: Iterable[ArtifactFile]) -> dict[Path, Path]:
    """
    Also map the `.pdb` built next to every replaced binary, so the cache gets
    symbols even when the published package shipped none.
    """
    symbols = {f.path: f for f in local_files if f.kind is ArtifactKind.DEBUG_SYMBOLS}
    out = dict(pairs)
    for cache_path, local_path in pairs.items():
        if artifact_kind(local_path) is not ArtifactKind.BINARY:
            continue
        pdb = local_path.with_suffix(".pdb")
        if pdb not in symbols:
            continue
        out.setdefault(cache_path.with_name(pdb.name), pdb)
    return out
