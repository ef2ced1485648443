from __future__ import annotations

import argparse
import logging
import sys

logger = logging.getLogger(__name__)

COMMANDS = ("debug", "list", "cleanup")


def _add_verbose(p: argparse.ArgumentParser) -> None:
    p.add_argument("--verbose", action="store_true", help="Set output to verbose messages.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="debugify",
        description="Swap debuggable builds of your libraries into the local NuGet package cache, and back.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    debug = sub.add_parser(
        "debug",
        help="Replace the *.dlls of a project in the local NuGet package cache with debuggable ones (default).",
    )
    debug.add_argument(
        "-p", "--path", default=None, help="Path to a *.csproj or *.sln file or a folder that contains it (directly or in subfolders)"
    )
    debug.add_argument("-v", "--version", default=None, help="Specify the version you'd like to debugify")
    debug.add_argument("-c", "--configuration", default=None, help="Build configuration (default: Debug)")
    debug.add_argument("--rebuild", action="store_true", help="Force a full rebuild instead of an incremental one.")
    debug.add_argument(
        "--packargs", default=None, help="Additional arguments for dotnet pack, e.g. \" --ignore-failed-sources\""
    )
    debug.add_argument("--report", default=None, help="Write a JSON report of the run to this path.")
    _add_verbose(debug)

    lst = sub.add_parser("list", help="List all packages in the local cache that have been debugified.")
    _add_verbose(lst)

    cleanup = sub.add_parser(
        "cleanup", help="Remove all debugified packages from the cache so that the originals are restored again."
    )
    _add_verbose(cleanup)
    return parser


def _with_default_command(argv: list[str]) -> list[str]:
    if not argv or argv[0] not in COMMANDS + ("-h", "--help"):
        return ["debug", *argv]
    return argv


def main(argv: list[str] | None = None) -> int:
    from debugify.util.logging import configure_logging

    args = _build_parser().parse_args(_with_default_command(list(sys.argv[1:] if argv is None else argv)))
    configure_logging(verbose=args.verbose)

    from debugify.app.engine import DebugifyEngine, DebugOptions
    from debugify.config import get_settings
    from debugify.errors import DebugifyError

    settings = get_settings()
    engine = DebugifyEngine.from_settings(settings)

    if args.cmd == "list":
        engine.list_marked()
        return 0

    if args.cmd == "cleanup":
        engine.cleanup()
        return 0

    if args.cmd == "debug":
        from pathlib import Path

        options = DebugOptions(
            path=Path(args.path) if args.path else None,
            version=args.version,
            configuration=args.configuration or settings.configuration,
            force_rebuild=args.rebuild,
            extra_args=args.packargs,
        )
        try:
            report = engine.debug(options)
        except DebugifyError as exc:
            logger.error("%s", exc)
            return 1
        if args.report:
            from debugify.app.report import write_run_report

            out = write_run_report(report, Path(args.report))
            logger.info("Wrote report: %s", out)
        return 0

    raise SystemExit(f"Unknown command: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
