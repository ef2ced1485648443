from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from debugify.project.types import ProjectDescriptor
from debugify.project.version import short_version

logger = logging.getLogger(__name__)

SYMBOLS_PACKAGE_SUFFIX = ".symbols.nupkg"
PACKAGE_PREFIXES = ("lib", "src")


def symbols_package_names(descriptor: ProjectDescriptor) -> list[str]:
    version = descriptor.effective_version
    names = [
        f"{descriptor.package_id}.{version}{SYMBOLS_PACKAGE_SUFFIX}",
        f"{descriptor.package_id}.{short_version(version)}{SYMBOLS_PACKAGE_SUFFIX}",
    ]
    return list(dict.fromkeys(names))


def find_symbols_package(root: str | Path, descriptor: ProjectDescriptor) -> Path | None:
    wanted = {n.lower() for n in symbols_package_names(descriptor)}
    for f in sorted(Path(root).rglob(f"*{SYMBOLS_PACKAGE_SUFFIX}")):
        if f.is_file() and f.name.lower() in wanted:
            return f
    return None


def delete_symbols_packages(root: str | Path) -> int:
    """Remove stale symbol packages so an old build is never picked up."""
    root = Path(root)
    folder = root if root.is_dir() else root.parent
    count = 0
    for f in list(folder.rglob(f"*{SYMBOLS_PACKAGE_SUFFIX}")):
        if f.is_file():
            logger.debug("deleting existing package %s", f)
            f.unlink()
            count += 1
    return count


def is_package_content(entry_name: str) -> bool:
    return entry_name.startswith(PACKAGE_PREFIXES)


def package_entries(nupkg: str | Path) -> list[str]:
    with zipfile.ZipFile(nupkg, "r") as zf:
        return [n for n in zf.namelist() if is_package_content(n) and not n.endswith("/")]


def extract_package(nupkg: str | Path, dest: str | Path) -> list[Path]:
    """
    Extract the `lib*` and `src*` entries of a package into `dest`.

    Entries resolving outside of `dest` are skipped.
    """
    dest = Path(dest).resolve()
    out: list[Path] = []
    with zipfile.ZipFile(nupkg, "r") as zf:
        for info in zf.infolist():
            name = info.filename
            if info.is_dir():
                continue
            if not is_package_content(name):
                logger.debug("Skipping %s as it does not start with 'src' or 'lib'", name)
                continue
            target = (dest / name).resolve()
            if not target.is_relative_to(dest):
                logger.warning("Skipping %s as it would be extracted outside of %s", name, dest)
                continue
            logger.debug("Extracting %s", name)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(zf.read(info))
            out.append(target)
    return out
