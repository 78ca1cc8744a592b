"""Core engine for sonoscan.

The :class:`IntegrityEngine` scans a folder of sensor recordings,
aggregates file sizes per calendar day, flags days whose mean size falls
below the median of all files, writes a log and a chart, and optionally
reorganises the folder (dump quarantine and tail isolation).

A run is made of strictly sequential phases:

1. scan (read-only, parallel ``stat`` of every recording),
2. reduce (day summaries, global median, corrupted days),
3. report (integrity log, console summary),
4. mutate (dump quarantine, then tail isolation with parallel moves),
5. chart.

Nothing is written before phase 1 and 2 complete, and nothing at all is
written when the scan finds no recordings or is cancelled.

Modes:
- analyze: MUST NOT write anything (no log, chart, run logs or moves)
- dry-run: writes log, chart and run logs; moves are only planned
- move: full run, moves performed according to the dump/tail toggles
"""

from __future__ import annotations

import csv
import datetime
import json
import os
import re
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import tuning
from .indexer import ScanCancelled, find_marker_files, index_files
from .reorganizer import MoveReport, Reorganizer, select_tail_records
from .reporter import ChartStyle, format_summary, render_chart, write_integrity_log
from .stats import aggregate, corrupted_dates
from .workers import CancelToken, WorkerPool, resolve_worker_count

MODES = ("analyze", "dry-run", "move")
AUDIT_COLUMNS = ["file", "dest", "phase", "size_bytes", "day", "action", "reason"]


@dataclass
class IntegrityEngine:
    """Integrity scan and reorganisation of one recordings folder."""

    folder: Path
    output_root: Optional[Path] = None
    chart_style: Any = ChartStyle.LINES
    log_file: Optional[Path] = None
    plot_file: Optional[Path] = None
    workers: Any = None
    dump_folder: bool = True
    tail_folder: bool = True
    plot: bool = True
    recursive: bool = False
    extensions: Optional[Sequence[str]] = None
    dump_pattern: Optional[str] = None

    current_mode: str = field(init=False, default="analyze")

    def __post_init__(self) -> None:
        self.folder = Path(self.folder)
        self.output_root = Path(self.output_root) if self.output_root else self.folder
        # Closed settings are rejected here, before any scan starts.
        self.chart_style = ChartStyle.parse(self.chart_style)
        if self.workers is None:
            self.workers = tuning.PARALLEL_WORKERS_DEFAULT
        self.worker_count = resolve_worker_count(self.workers)
        if self.extensions is None:
            self.extensions = tuning.INTEGRITY_EXTENSIONS
        self.extensions = tuple(self.extensions)
        if self.dump_pattern is None:
            self.dump_pattern = tuning.DUMP_PATTERN
        try:
            re.compile(self.dump_pattern)
        except re.error as exc:
            raise ValueError(f"Invalid dump pattern {self.dump_pattern!r}: {exc}") from exc

    # ------------------------------------------------------------------
    # Paths
    def _resolve_output(self, value: Optional[Path], default_name: str) -> Path:
        path = Path(value) if value else Path(default_name)
        if not path.is_absolute():
            path = self.output_root / path
        return path

    @property
    def log_path(self) -> Path:
        return self._resolve_output(self.log_file, tuning.LOG_FILE_NAME)

    @property
    def plot_path(self) -> Path:
        return self._resolve_output(self.plot_file, tuning.PLOT_FILE_NAME)

    def _logs_root_dir(self) -> Path:
        return self.output_root / tuning.LOGS_FOLDER_NAME

    # ------------------------------------------------------------------
    def run(
        self,
        mode: str = "analyze",
        log_callback: Optional[Callable[[str], None]] = None,
        log_to_console: bool = True,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Execute a run and return its report dict.

        Raises:
            NoFilesFound: no recording in the folder (nothing is written).
            ScanCancelled: ``cancel`` was set during the scan (nothing is written).
            ValueError: unknown mode.
        """
        mode = (mode or "analyze").lower().strip()
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r} (expected one of: {', '.join(MODES)})")
        self.current_mode = mode
        write_outputs = mode in {"dry-run", "move"}

        buffered: List[str] = []
        log_handle = None

        def _log(msg: str) -> None:
            if log_to_console:
                print(msg)
            if log_callback is not None:
                log_callback(msg)
            if log_handle is not None:
                log_handle.write(msg + "\n")
                log_handle.flush()
            else:
                buffered.append(msg)

        run_id = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_") + uuid.uuid4().hex[:8]
        report: Dict[str, Any] = {
            "run_id": run_id,
            "mode": mode,
            "timestamp": datetime.datetime.now().isoformat(),
            "folder": str(self.folder.resolve()),
            "output_root": str(self.output_root.resolve()),
            "workers": self.worker_count,
            "chart_style": self.chart_style.value,
            "files_scanned": 0,
            "files_unparsed": 0,
            "median_size_bytes": None,
            "median_size_mb": None,
            "days": [],
            "corrupted_dates": [],
            "dump_candidates": 0,
            "tail_candidates": 0,
            "files_moved": 0,
            "failed": 0,
            "failures": [],
            "log_file": None,
            "plot_file": None,
        }

        _log(f"sonoscan run_id={run_id} mode={mode}")
        _log("Analyzing the folder... please wait...")

        audit_file = None
        try:
            with WorkerPool(self.workers) as pool:
                if pool.parallel:
                    _log(f"Using parallel processing with {pool.worker_count} workers")
                else:
                    _log("Using single core (no parallel processing)")

                # Phase 1: read-only scan.
                records = index_files(
                    self.folder,
                    self.extensions,
                    recursive=self.recursive,
                    pool=pool,
                    cancel=cancel,
                    output_root=self.output_root,
                )
                dump_candidates = (
                    find_marker_files(
                        self.folder,
                        self.dump_pattern,
                        recursive=self.recursive,
                        output_root=self.output_root,
                    )
                    if self.dump_folder
                    else []
                )
                if cancel is not None and cancel.cancelled:
                    raise ScanCancelled(f"Scan of {self.folder} cancelled")

                # Phase 2: reduce over the complete snapshot.
                days, threshold = aggregate(records)
                corrupted = corrupted_dates(days, threshold)
                tail_selection = select_tail_records(
                    records, threshold, corrupted, exclude=dump_candidates
                )

                report["files_scanned"] = len(records)
                report["files_unparsed"] = sum(1 for r in records if not r.parsed)
                report["median_size_bytes"] = threshold.median_bytes
                report["median_size_mb"] = threshold.rounded_mb
                report["days"] = [d.to_dict() for d in days]
                report["corrupted_dates"] = [d.isoformat() for d in corrupted]
                report["dump_candidates"] = len(dump_candidates)
                report["tail_candidates"] = len(tail_selection) if self.tail_folder else 0
                _log(
                    f"Files scanned: {len(records)} "
                    f"(unparsed names: {report['files_unparsed']}, days: {len(days)})"
                )

                # Phase 3: textual summary, always before any chart.
                for line in format_summary(threshold, corrupted):
                    _log(line)

                if not write_outputs:
                    _log("Analyze mode: no files written or moved.")
                    return report

                log_dir = self._logs_root_dir() / run_id
                log_dir.mkdir(parents=True, exist_ok=True)
                log_handle = open(log_dir / "run_log.txt", "w", encoding="utf-8", buffering=1)
                log_handle.write("\n".join(buffered) + "\n")

                report["log_file"] = str(write_integrity_log(self.log_path, threshold, corrupted))
                _log(f"Log saved to: {self.log_path}")

                # Phase 4: mutate.
                reorganizer = Reorganizer(self.output_root, dry_run=(mode == "dry-run"), emit=_log)
                move_reports: List[MoveReport] = []
                if self.dump_folder:
                    move_reports.append(reorganizer.quarantine_dumps(dump_candidates))
                if self.tail_folder:
                    move_reports.append(
                        reorganizer.isolate_tail(
                            records, threshold, corrupted, pool=pool, exclude=dump_candidates
                        )
                    )

            for move_report in move_reports:
                report[move_report.phase] = move_report.to_dict()
                report["files_moved"] += len(move_report.moved)
                report["failed"] += len(move_report.failures)
                report["failures"].extend(o.to_dict() for o in move_report.failures)
            for failure in report["failures"]:
                _log(f"Move failed: {failure['source']} -> {failure['dest']}: {failure['reason']}")

            if mode == "move":
                audit_file = open(log_dir / "audit.csv", "w", newline="", encoding="utf-8")
                audit_writer = csv.writer(audit_file)
                audit_writer.writerow(AUDIT_COLUMNS)
                for move_report in move_reports:
                    for outcome in move_report.outcomes:
                        audit_writer.writerow(
                            [
                                str(outcome.source),
                                str(outcome.dest),
                                outcome.phase,
                                "" if outcome.size_bytes is None else outcome.size_bytes,
                                outcome.day.isoformat() if outcome.day else "",
                                outcome.action,
                                outcome.reason,
                            ]
                        )

            # Phase 5: chart.
            if self.plot:
                report["plot_file"] = str(
                    render_chart(days, threshold, self.chart_style, self.plot_path)
                )
                _log(f"Plot saved to: {self.plot_path}")

            _log(
                f"Done. scanned={report['files_scanned']} "
                f"corrupted_days={len(report['corrupted_dates'])} "
                f"moved={report['files_moved']} failed={report['failed']}"
            )
        finally:
            if audit_file:
                audit_file.close()
            if log_handle:
                log_handle.close()

        (log_dir / "run_report.json").write_text(json.dumps(report, indent=2), encoding="utf-8")
        return report

    # ------------------------------------------------------------------
    def undo_last_run(self) -> Dict[str, Any]:
        """Undo the most recent move run using its audit.csv.

        A file whose original location is occupied again is left where it
        is and reported as a conflict.
        """
        logs_root = self._logs_root_dir()
        if not logs_root.exists():
            return {"reverted_count": 0, "conflicts": [], "errors": [], "error": "No logs found"}

        audit_files = sorted(
            logs_root.rglob("audit.csv"), key=lambda p: (os.path.getmtime(p), str(p)), reverse=True
        )
        if not audit_files:
            return {"reverted_count": 0, "conflicts": [], "errors": [], "error": "No audit files found"}

        audit_path = audit_files[0]
        restored = 0
        conflicts: List[Dict[str, str]] = []
        errors: List[Dict[str, str]] = []

        with open(audit_path, "r", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                if str(row.get("action", "")).upper() != "MOVED":
                    continue
                original = Path(row["file"])
                current = Path(row["dest"])
                if not current.exists():
                    errors.append({"file": str(original), "error": f"missing at {current}"})
                    continue
                if original.exists():
                    conflicts.append({"file": str(original), "left_at": str(current)})
                    continue
                try:
                    original.parent.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(current), str(original))
                except OSError as exc:
                    errors.append({"file": str(original), "error": str(exc)})
                    continue
                restored += 1

        return {
            "reverted_count": restored,
            "conflicts": conflicts,
            "errors": errors,
            "audit_file": str(audit_path),
        }
