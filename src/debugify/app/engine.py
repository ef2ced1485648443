from __future__ import annotations

import logging
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path

from debugify.app.report import DebugReport, ProjectRunRecord, ProjectStatus
from debugify.artifacts.matcher import add_symbol_companions, match_artifacts, scan_artifacts
from debugify.artifacts.package import delete_symbols_packages, extract_package, find_symbols_package
from debugify.build.builder import ArtifactBuilder
from debugify.cache.locator import CacheLocator, NuGetCachePathResolver
from debugify.cache.mutator import CacheMutator
from debugify.cache.types import CacheEntry
from debugify.config import Settings
from debugify.errors import BuildError, CacheMissError, DiscoveryError, MatchError, MutationError
from debugify.project.discovery import discover_projects, find_solution_dir
from debugify.project.types import ProjectDescriptor
from debugify.project.version import MutationGuard, VersionMutator, validate_version
from debugify.util.logging import log_success

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DebugOptions:
    path: Path | None = None
    version: str | None = None
    configuration: str = "Debug"
    force_rebuild: bool = False
    extra_args: str | None = None


class DebugifyEngine:
    """
    Runs the `debug`, `list` and `cleanup` operations.

    Projects are processed strictly one after another. Descriptor versions are
    rewritten for the build only and restored before the cache is touched.
    """

    def __init__(
        self,
        locator: CacheLocator,
        builder: ArtifactBuilder | None = None,
        *,
        version_mutator: VersionMutator | None = None,
        cache_mutator: CacheMutator | None = None,
    ) -> None:
        self.locator = locator
        self.builder = builder or ArtifactBuilder()
        self.version_mutator = version_mutator or VersionMutator()
        self.cache_mutator = cache_mutator or CacheMutator(locator)

    @classmethod
    def from_settings(cls, settings: Settings) -> DebugifyEngine:
        locator = CacheLocator(NuGetCachePathResolver(settings.nuget_packages or None))
        builder = ArtifactBuilder(dotnet=settings.dotnet_executable, vswhere=settings.vswhere_path)
        return cls(locator, builder)

    # ------------------------------------------------------------------
    # debug
    # ------------------------------------------------------------------
    def debug(self, options: DebugOptions) -> DebugReport:
        version = validate_version(options.version) if options.version and options.version.strip() else None

        if options.path is None:
            path = Path.cwd()
            logger.debug("No path provided. Will run in current directory: %s", path)
        else:
            path = Path(options.path).resolve()
            logger.debug("Path: %s", path)
        if not path.exists():
            raise DiscoveryError(f"Path does not exist: {path}")

        solution_dir = find_solution_dir(path)
        projects = list(discover_projects(path, version))
        if not projects:
            where = path if path.is_dir() else path.parent
            raise DiscoveryError(f"Could not find any debugifiable *.csproj files in '{where}'")
        logger.debug("Package cache: %s", self.locator.root)

        order = {p.descriptor_path: i for i, p in enumerate(projects)}
        started: dict[Path, float] = {}
        report = DebugReport()

        def finish(p: ProjectDescriptor, status: ProjectStatus, replaced: int = 0, error: str | None = None) -> None:
            report.add(
                ProjectRunRecord(
                    descriptor_path=p.descriptor_path,
                    package_id=p.package_id,
                    version=p.effective_version,
                    status=status,
                    replaced=replaced,
                    elapsed_s=float(time.perf_counter() - started[p.descriptor_path]),
                    error=error,
                )
            )

        # never build a package that was never restored
        candidates: list[ProjectDescriptor] = []
        for p in projects:
            started[p.descriptor_path] = time.perf_counter()
            if self.locator.package_dir(p.package_id) is None:
                msg = f"Cannot debugify {p.package_id} as the package cannot be found in the cache: {self.locator.root}"
                logger.warning(msg)
                finish(p, "no_cache_entry", error=msg)
            else:
                candidates.append(p)

        built: list[ProjectDescriptor] = []
        if candidates:
            delete_symbols_packages(path)
            with MutationGuard() as guard:
                ready: list[ProjectDescriptor] = []
                for p in candidates:
                    if version is None:
                        ready.append(p)
                        continue
                    logger.debug("changing package version of %s", p.name)
                    try:
                        guard.add(self.version_mutator.begin_mutation(p, version))
                    except (MutationError, OSError) as exc:
                        logger.error("%s", exc)
                        finish(p, "version_failed", error=str(exc))
                        continue
                    ready.append(p)

                for p in ready:
                    try:
                        result = self.builder.build(
                            p,
                            configuration=options.configuration,
                            force_rebuild=options.force_rebuild,
                            extra_args=options.extra_args,
                        )
                    except BuildError as exc:
                        logger.error("%s", exc)
                        finish(p, "build_failed", error=str(exc))
                        continue
                    if not result.ok:
                        msg = f"{result.toolchain} pack failed for {p.name} (exit code {result.exit_code})"
                        logger.error(msg)
                        finish(p, "build_failed", error=msg)
                        continue
                    built.append(p)

        for p in built:
            try:
                replaced = self._replace(p, solution_dir, options.configuration)
            except CacheMissError as exc:
                logger.warning("%s", exc)
                finish(p, "no_cache_entry", error=str(exc))
            except MatchError as exc:
                logger.warning("%s", exc)
                finish(p, "no_match", error=str(exc))
            except (OSError, zipfile.BadZipFile) as exc:
                msg = f"Could not replace files of {p.package_id} in the cache: {type(exc).__name__} {exc}"
                logger.error(msg)
                finish(p, "replace_failed", error=msg)
            else:
                log_success(logger, "Successfully debugified %s version %s", p.package_id, p.effective_version)
                finish(p, "replaced", replaced=replaced)

        report.records.sort(key=lambda r: order[r.descriptor_path])
        if report.failed:
            logger.warning("%d of %d failed", report.failed, report.total)
        if report.cache_misses:
            logger.warning("%d of %d skipped: package not found in the cache", report.cache_misses, report.total)
        return report

    def _local_artifacts_dir(self, p: ProjectDescriptor, solution_dir: Path, configuration: str, staging: Path) -> Path:
        nupkg = find_symbols_package(p.project_dir, p) or find_symbols_package(solution_dir, p)
        if nupkg is None:
            out_dir = p.project_dir / "bin" / configuration
            logger.debug("No symbols package for %s, using build output %s", p.package_id, out_dir)
            return out_dir
        extract_package(nupkg, staging)
        return staging / "lib"

    def _replace(self, p: ProjectDescriptor, solution_dir: Path, configuration: str) -> int:
        package_dir = self.locator.package_dir(p.package_id)
        entry = self.locator.find_entry(p.package_id, p.effective_version) if package_dir else None
        if package_dir is None or entry is None:
            raise CacheMissError(
                f"Cannot debugify {p.package_id} as version {p.effective_version} cannot be found in the cache: "
                f"{package_dir or self.locator.root}"
            )

        with tempfile.TemporaryDirectory(prefix="debugify_pkg_") as tmp:
            staging = Path(tmp)
            local_dir = self._local_artifacts_dir(p, solution_dir, configuration, staging)
            local_files = scan_artifacts(local_dir)
            pairs = match_artifacts(scan_artifacts(entry.directory_path / "lib"), local_files)
            if not pairs:
                raise MatchError(f"Nothing to debugify for {p.package_id} {entry.version}: no built file matches the cache")
            pairs = add_symbol_companions(pairs, local_files)
            replaced = self.cache_mutator.mark_and_replace(package_dir, pairs)
            self.cache_mutator.copy_sources(staging / "src", entry.directory_path)
        return replaced

    # ------------------------------------------------------------------
    # list / cleanup
    # ------------------------------------------------------------------
    def _rel(self, entry: CacheEntry) -> str:
        try:
            return str(entry.directory_path.relative_to(self.locator.root))
        except ValueError:
            return str(entry.directory_path)

    def list_marked(self) -> list[CacheEntry]:
        root = self.locator.root
        if not root.is_dir():
            logger.warning("Could not find nuget package cache at %s", root)
            return []
        logger.info("Listing all debugified packages at %s", root)
        entries = self.cache_mutator.list_marked()
        for e in entries:
            logger.info(" - %s", self._rel(e))
        if entries:
            log_success(logger, "Found %d debugified packages", len(entries))
        else:
            log_success(logger, "All good. Nothing debugified")
        return entries

    def cleanup(self) -> list[CacheEntry]:
        root = self.locator.root
        if not root.is_dir():
            logger.warning("Could not find nuget package cache at %s", root)
            return []
        removed = self.cache_mutator.remove_marked()
        for e in removed:
            logger.info("Undebugifying %s", self._rel(e))
        if removed:
            log_success(logger, "Cleaned up %d debugified packages", len(removed))
        else:
            log_success(logger, "All good. Nothing to undebugify")
        return removed
