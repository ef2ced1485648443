from __future__ import annotations


class DebugifyError(Exception):
    """Base class for errors raised by debugify."""


class DiscoveryError(DebugifyError):
    """No solution root or no eligible project descriptor could be found. Aborts the run."""


class VersionFormatError(DebugifyError):
    """A user supplied version is not a valid package version. Aborts the run."""


class MutationError(DebugifyError):
    """A descriptor's version could not be rewritten. Excludes that project."""


class BuildError(DebugifyError):
    """The build toolchain could not be run or located. Excludes that project."""


class CacheMissError(DebugifyError):
    """The package (or the requested version) is absent from the package cache."""


class MatchError(DebugifyError):
    """No locally built file matches a cached file."""
