from __future__ import annotations

import codecs
import logging
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from debugify.errors import MutationError, VersionFormatError
from debugify.project.types import ProjectDescriptor

logger = logging.getLogger(__name__)

_VERSION_PATTERN = r"\d+\.\d+\.\d+(?:\.\d+)?[\w.-]*"
VERSION_RE = re.compile(_VERSION_PATTERN)
VERSION_ELEMENT_RE = re.compile(rf"<Version>\s*(?P<version>{_VERSION_PATTERN}?)\s*</Version>")
PACKAGE_ID_CLOSE_RE = re.compile(r"</PackageId>")

_NUMERIC_PREFIX_RE = re.compile(r"^(?P<version>\d+\.\d+\.\d+(?:\.\d+)?)")
_PARTS_RE = re.compile(r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<build>\d+)(?:\.(?P<revision>\d+))?")


def is_valid_version(version: str) -> bool:
    """
    True if the whole string is three dot separated numbers (plus an optional
    fourth one and a suffix), e.g. `1.2.3`, `1.2.3.4`, `1.2.3-beta`.
    """
    return bool(version) and VERSION_RE.fullmatch(version.strip()) is not None


def validate_version(version: str) -> str:
    version = (version or "").strip()
    if not is_valid_version(version):
        raise VersionFormatError(f"'{version}' is not a valid nuget package version")
    return version


def extract_version_number(version: str) -> str | None:
    m = _NUMERIC_PREFIX_RE.match(version)
    return m.group("version") if m else None


def to_three_digit_version(version: str) -> str:
    """
    Drop the revision when it is missing or zero: `1.2.0.0` -> `1.2.0`,
    `1.2.3.4` stays as is. A suffix after the numeric part is dropped as well.
    """
    m = _PARTS_RE.match(version)
    if not m:
        return version
    major, minor, build, revision = m.group("major", "minor", "build", "revision")
    if revision and revision != "0":
        return f"{major}.{minor}.{build}.{revision}"
    return f"{major}.{minor}.{build}"


def short_version(version: str) -> str:
    """Same as `version` with its numeric part normalized to three digits (suffix kept)."""
    numeric = extract_version_number(version)
    if numeric is None:
        return version
    return version.replace(numeric, to_three_digit_version(numeric), 1)


def read_declared_version(text: str) -> str | None:
    m = VERSION_ELEMENT_RE.search(text)
    return m.group("version") if m else None


def _decode(data: bytes) -> tuple[str, bytes]:
    # keep a UTF-8 BOM so the rewritten file keeps the same encoding
    if data.startswith(codecs.BOM_UTF8):
        return data[len(codecs.BOM_UTF8) :].decode("utf-8"), codecs.BOM_UTF8
    return data.decode("utf-8"), b""


def rewrite_version(text: str, new_version: str) -> str:
    new_element = f"<Version>{new_version}</Version>"
    m = VERSION_ELEMENT_RE.search(text)
    if m:
        return text[: m.start()] + new_element + text[m.end() :]
    m = PACKAGE_ID_CLOSE_RE.search(text)
    if m:
        return text[: m.end()] + "\n" + new_element + text[m.end() :]
    raise MutationError("Neither a <Version> nor a </PackageId> element could be found")


class ScopedMutation:
    """
    An in-flight rewrite of one descriptor.

    The original file is moved (not copied) into a private temp folder and moved
    back on `release()`, so the descriptor ends up byte-identical to what it was.
    Release happens at most once; use it as a context manager or through a
    `MutationGuard`.
    """

    def __init__(
        self,
        descriptor_path: Path,
        backup_path: Path | None = None,
        *,
        on_release=None,
    ) -> None:
        self.descriptor_path = Path(descriptor_path)
        self.backup_path = backup_path
        self._on_release = on_release
        self._released = False

    @property
    def is_noop(self) -> bool:
        return self.backup_path is None

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            if self.backup_path is None:
                return
            self.descriptor_path.unlink(missing_ok=True)
            shutil.move(str(self.backup_path), str(self.descriptor_path))
            shutil.rmtree(self.backup_path.parent, ignore_errors=True)
            logger.debug("Restored %s", self.descriptor_path)
        finally:
            if self._on_release is not None:
                self._on_release(self)

    def __enter__(self) -> ScopedMutation:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "noop" if self.is_noop else ("released" if self._released else "open")
        return f"ScopedMutation({self.descriptor_path.name!r}, {state})"


class VersionMutator:
    def __init__(self, temp_root: Path | None = None) -> None:
        self.temp_root = temp_root
        self._open: set[Path] = set()

    def is_open(self, descriptor_path: Path) -> bool:
        return Path(descriptor_path).resolve() in self._open

    def begin_mutation(self, descriptor: ProjectDescriptor, new_version: str) -> ScopedMutation:
        path = descriptor.descriptor_path
        key = path.resolve()
        if key in self._open:
            raise MutationError(f"A version mutation is already open for '{path}'")

        data = path.read_bytes()
        try:
            text, bom = _decode(data)
        except UnicodeDecodeError as exc:
            raise MutationError(f"'{path}' is not UTF-8 encoded: {exc}") from exc
        current = read_declared_version(text)
        if current == new_version:
            descriptor.effective_version = new_version
            return ScopedMutation(path)

        try:
            new_text = rewrite_version(text, new_version)
        except MutationError as exc:
            raise MutationError(f"{exc} in '{path}'") from None

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        temp_dir = Path(tempfile.mkdtemp(prefix=f"debugify_{stamp}_", dir=self.temp_root))
        backup = temp_dir / path.name
        shutil.move(str(path), str(backup))
        try:
            path.write_bytes(bom + new_text.encode("utf-8"))
        except Exception as exc:
            path.unlink(missing_ok=True)
            shutil.move(str(backup), str(path))
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise MutationError(f"Could not write new version to '{path}': {exc}") from exc

        descriptor.effective_version = new_version
        self._open.add(key)
        logger.debug("Changed version of %s from %s to %s", path.name, current, new_version)
        return ScopedMutation(path, backup, on_release=lambda _m: self._open.discard(key))


class MutationGuard:
    """
    Collects scoped mutations and releases all of them (newest first) when the
    enclosing block ends. Release failures are logged, never raised.
    """

    def __init__(self) -> None:
        self._scopes: list[ScopedMutation] = []

    def add(self, scope: ScopedMutation) -> ScopedMutation:
        self._scopes.append(scope)
        return scope

    def __len__(self) -> int:
        return len(self._scopes)

    def release_all(self) -> int:
        failures = 0
        while self._scopes:
            scope = self._scopes.pop()
            try:
                scope.release()
            except Exception as exc:
                failures += 1
                logger.error("Error while restoring %s: %s %s", scope.descriptor_path, type(exc).__name__, exc)
        return failures

    def __enter__(self) -> MutationGuard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()
