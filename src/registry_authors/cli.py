from __future__ import annotations

import argparse
import datetime as dt
import os
import sys
from pathlib import Path

from .build_report import run_build_report
from .config import DEFAULT_HISTORICAL_CUTOFF, project_paths
from .enrich import ScanOptions, run_postprocess
from .upstream import run_fetch

COMMANDS = (
    ("fetch", "Fetch every upstream registry into dist/<id>/upstream.json."),
    ("postprocess", "Add author attribution to sources and write dist/<id>/index.json."),
    ("build-report", "Merge build/test results into dist/build-report.{json,html}."),
)


def _cutoff_arg(value: str) -> str:
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got: {value!r}") from None
    return value


def _add_root_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument("--root", type=Path, default=Path("."), help="Project root containing data/ and dist/.")


def _print_help() -> None:
    print("usage: registry-authors <command> [options]")
    print("")
    print("Attribute authors to source registry entries from git history.")
    print("")
    print("commands:")
    for name, desc in COMMANDS:
        print(f"  {name:<13}  {desc}")
    print("")
    print("Run `registry-authors <command> --help` for command-specific options.")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        _print_help()
        return 0

    command, rest = argv[0], argv[1:]
    try:
        if command == "fetch":
            p = argparse.ArgumentParser(prog="registry-authors fetch", description=COMMANDS[0][1])
            _add_root_arg(p)
            p.add_argument("--timeout", type=int, default=30, help="HTTP timeout in seconds.")
            p.add_argument("--ca-bundle", type=str, default="", help="Path to a CA bundle file/dir for HTTPS verification.")
            args = p.parse_args(rest)
            paths = project_paths(args.root)
            return run_fetch(paths, timeout_s=int(args.timeout), ca_bundle_path=str(args.ca_bundle or ""))

        if command == "postprocess":
            p = argparse.ArgumentParser(prog="registry-authors postprocess", description=COMMANDS[1][1])
            _add_root_arg(p)
            p.add_argument("--repos-dir", type=Path, default=None, help="Cloned source repos (default: $REPOS_DIR or <root>/repos).")
            p.add_argument(
                "--cutoff",
                type=_cutoff_arg,
                default=DEFAULT_HISTORICAL_CUTOFF,
                help="Only scan commits after this date for registries with historical data.",
            )
            p.add_argument("--include-cutoff-day", action="store_true", help="Also scan commits made on the cutoff date itself.")
            p.add_argument("--jobs", type=int, default=max(1, min(8, (os.cpu_count() or 4))), help="Parallel git jobs.")
            p.add_argument("--git-timeout", type=int, default=300, help="Timeout for a single git log call, in seconds.")
            args = p.parse_args(rest)
            paths = project_paths(args.root, repos_dir=args.repos_dir)
            options = ScanOptions(
                cutoff=str(args.cutoff),
                include_cutoff_day=bool(args.include_cutoff_day),
                jobs=max(1, int(args.jobs)),
                git_timeout_s=int(args.git_timeout),
            )
            return run_postprocess(paths, options=options)

        if command == "build-report":
            p = argparse.ArgumentParser(prog="registry-authors build-report", description=COMMANDS[2][1])
            _add_root_arg(p)
            args = p.parse_args(rest)
            return run_build_report(project_paths(args.root))
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"Unknown command: {command!r}", file=sys.stderr)
    _print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
