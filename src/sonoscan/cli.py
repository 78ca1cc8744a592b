"""Command-line interface for sonoscan.

Each subcommand delegates to :class:`sonoscan.engine.IntegrityEngine` or
to :func:`sonoscan.folders.summarize_folders`.  Run
``python -m sonoscan --help`` for usage.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config_service import ConfigService
from .engine import IntegrityEngine
from .folders import summarize_folders, write_folder_table
from .indexer import NoFilesFound, ScanCancelled
from .reporter import ChartStyle
from .workers import resolve_worker_count

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MOVE_FAILURES = 2
EXIT_CANCELLED = 130


def _worker_spec(value: str) -> Any:
    resolve_worker_count(value)
    return int(value) if value.isdigit() else value.lower()


def _chart_style(value: str) -> str:
    return ChartStyle.parse(value).value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sonoscan",
        description="sonoscan – integrity checks for sensor recording folders",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument("folder", help="Folder holding the recordings")
        subparser.add_argument(
            "--output-root",
            help="Folder receiving dump/, tail/, logs/ and default artifacts (default: the scanned folder)",
        )
        subparser.add_argument(
            "--type",
            dest="chart_style",
            type=_chart_style,
            help="Chart render style: lines, bars or points",
        )
        subparser.add_argument("--log-file", help="Integrity log path")
        subparser.add_argument("--plot-file", help="Chart PNG path")
        subparser.add_argument(
            "--workers",
            type=_worker_spec,
            help="Worker count, 'auto' (cores - 1) or 'disabled'",
        )
        subparser.add_argument("--no-dump", action="store_true", help="Skip dump quarantine")
        subparser.add_argument("--no-tail", action="store_true", help="Skip tail isolation")
        subparser.add_argument("--no-plot", action="store_true", help="Do not render the chart")
        subparser.add_argument(
            "--recursive", action="store_true", help="Scan subfolders of the folder too"
        )
        subparser.add_argument(
            "--portable",
            "-p",
            action="store_true",
            help="Force portable mode (ignored if portable.flag is present)",
        )
        subparser.add_argument("--quiet", "-q", action="store_true", help="No progress output")

    sp = subparsers.add_parser("analyze", help="Scan and classify days, report only (writes nothing)")
    add_common(sp)
    sp = subparsers.add_parser(
        "dry-run", help="Write log and chart, list planned moves without moving files"
    )
    add_common(sp)
    sp = subparsers.add_parser("check", help="Full integrity run: log, chart, dump and tail moves")
    add_common(sp)

    sp = subparsers.add_parser("ranges", help="Summarize date range, files and size per folder")
    sp.add_argument("folder", help="Parent folder of the tree to summarize")
    sp.add_argument("--output", "-o", help="Write the table to this CSV file")
    sp.add_argument("--workers", type=_worker_spec, help="Worker count, 'auto' or 'disabled'")
    sp.add_argument(
        "--portable", "-p", action="store_true", help="Force portable mode (ignored if portable.flag is present)"
    )

    sp = subparsers.add_parser("undo-last-run", help="Move files of the last check run back")
    sp.add_argument("folder", help="Output root used by the run to undo")
    return parser


def _merge_settings(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    settings = dict(config)
    for key in ("chart_style", "log_file", "plot_file", "workers"):
        value = getattr(args, key, None)
        if value is not None:
            settings[key] = value
    if getattr(args, "no_dump", False):
        settings["dump_folder"] = False
    if getattr(args, "no_tail", False):
        settings["tail_folder"] = False
    if getattr(args, "recursive", False):
        settings["recursive"] = True
    return settings


def _output_root(folder: Path, args: argparse.Namespace) -> Path:
    value = getattr(args, "output_root", None)
    return Path(value).expanduser().resolve() if value else folder


def _construct_engine(folder: Path, args: argparse.Namespace, settings: Dict[str, Any]) -> IntegrityEngine:
    output_root = _output_root(folder, args)
    return IntegrityEngine(
        folder=folder,
        output_root=output_root,
        chart_style=settings.get("chart_style", "lines"),
        log_file=settings.get("log_file"),
        plot_file=settings.get("plot_file"),
        workers=settings.get("workers"),
        dump_folder=bool(settings.get("dump_folder", True)),
        tail_folder=bool(settings.get("tail_folder", True)),
        plot=not args.no_plot,
        recursive=bool(settings.get("recursive", False)),
        extensions=settings.get("extensions"),
        dump_pattern=settings.get("dump_pattern"),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    command = args.command
    folder = Path(args.folder).expanduser().resolve()

    if command == "undo-last-run":
        engine = IntegrityEngine(folder=folder)
        print(json.dumps(engine.undo_last_run(), indent=2))
        return EXIT_OK

    config_service = ConfigService(app_dir=folder)
    config = config_service.load_config(cli_portable=args.portable)
    config_service.load_tuning(cli_portable=args.portable, output_root=_output_root(folder, args))
    settings = _merge_settings(config, args)

    if command == "ranges":
        try:
            summaries = summarize_folders(folder, workers=settings.get("workers"))
        except NotADirectoryError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_ERROR
        if args.output:
            out = write_folder_table(summaries, Path(args.output).expanduser().resolve())
            print(f"Folder table saved to: {out}")
        else:
            print(json.dumps([s.to_row() for s in summaries], indent=2))
        return EXIT_OK

    mode = {"analyze": "analyze", "dry-run": "dry-run", "check": "move"}.get(command)
    if mode is None:
        print(f"Error: unrecognized command {command}", file=sys.stderr)
        return EXIT_ERROR

    try:
        engine = _construct_engine(folder, args, settings)
        report = engine.run(mode=mode, log_to_console=not args.quiet)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except NoFilesFound as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except ScanCancelled:
        print("Scan cancelled; no files were moved.", file=sys.stderr)
        return EXIT_CANCELLED

    print(json.dumps(report, indent=2))
    return EXIT_MOVE_FAILURES if report["failed"] else EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
