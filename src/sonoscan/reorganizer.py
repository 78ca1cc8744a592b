"""Filesystem reorganisation: dump quarantine and tail isolation.

Both operations run only after the scan and classification are complete.
Files keep their basename at the destination.  An existing destination
file is never overwritten; that file fails with
:class:`DestinationExistsError` and the remaining files are still
processed.  Failures are collected in the returned :class:`MoveReport`.
"""

from __future__ import annotations

import datetime
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Collection, Dict, Iterable, List, Optional, Sequence

from . import tuning
from .indexer import FileRecord
from .stats import GlobalThreshold
from .workers import WorkerPool

DUMP_PHASE = "dump"
TAIL_PHASE = "tail"


class DestinationExistsError(FileExistsError):
    """Raised when a move target already exists."""


class ReorganizationError(RuntimeError):
    """Aggregate of per-file move failures."""

    def __init__(self, failures: Sequence["MoveOutcome"]):
        self.failures = list(failures)
        names = ", ".join(o.source.name for o in self.failures[:5])
        more = "" if len(self.failures) <= 5 else f" (+{len(self.failures) - 5} more)"
        super().__init__(f"{len(self.failures)} file(s) could not be moved: {names}{more}")


@dataclass(frozen=True)
class MoveOutcome:
    source: Path
    dest: Path
    phase: str
    action: str  # MOVED | PLANNED | FAILED
    reason: str = ""
    size_bytes: Optional[int] = None
    day: Optional[datetime.date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source),
            "dest": str(self.dest),
            "phase": self.phase,
            "action": self.action,
            "reason": self.reason,
            "size_bytes": self.size_bytes,
            "day": self.day.isoformat() if self.day else None,
        }


@dataclass
class MoveReport:
    phase: str
    folder: Path
    outcomes: List[MoveOutcome] = field(default_factory=list)
    folder_created: bool = False

    @property
    def moved(self) -> List[MoveOutcome]:
        return [o for o in self.outcomes if o.action == "MOVED"]

    @property
    def planned(self) -> List[MoveOutcome]:
        return [o for o in self.outcomes if o.action == "PLANNED"]

    @property
    def failures(self) -> List[MoveOutcome]:
        return [o for o in self.outcomes if o.action == "FAILED"]

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ReorganizationError(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "folder": str(self.folder),
            "folder_created": self.folder_created,
            "moved": len(self.moved),
            "planned": len(self.planned),
            "failed": len(self.failures),
            "files": [o.to_dict() for o in self.outcomes],
        }


def _move_file(src: Path, dst: Path) -> None:
    if dst.exists():
        raise DestinationExistsError(f"Destination already exists: {dst}")
    shutil.move(str(src), str(dst))


def select_tail_records(
    records: Iterable[FileRecord],
    threshold: GlobalThreshold,
    corrupted: Collection[datetime.date],
    exclude: Collection[Path] = (),
) -> List[FileRecord]:
    """Records that are individually undersized AND recorded on a corrupted day."""
    corrupted_set = set(corrupted)
    excluded = {Path(p) for p in exclude}
    return [
        r
        for r in records
        if r.day is not None
        and r.day in corrupted_set
        and r.size_bytes < threshold.median_bytes
        and r.path not in excluded
    ]


@dataclass
class Reorganizer:
    """Move quarantined and tail files below ``output_root``."""

    output_root: Path
    dry_run: bool = False
    emit: Optional[Callable[[str], None]] = None

    def __post_init__(self) -> None:
        self.output_root = Path(self.output_root)

    def _emit(self, msg: str) -> None:
        if self.emit is not None:
            self.emit(msg)

    @property
    def dump_dir(self) -> Path:
        return self.output_root / tuning.DUMP_FOLDER_NAME

    @property
    def tail_dir(self) -> Path:
        return self.output_root / tuning.TAIL_FOLDER_NAME

    def _ensure_folder(self, folder: Path, report: MoveReport) -> None:
        if self.dry_run or folder.is_dir():
            return
        folder.mkdir(parents=True, exist_ok=True)
        report.folder_created = True
        self._emit(f"Created '{folder.name}' folder in {self.output_root}")

    def _summary_line(self, report: MoveReport, what: str, folder: Path) -> str:
        if self.dry_run:
            line = f"{len(report.planned)} {what} would be moved to the '{folder.name}' folder."
        else:
            line = f"{len(report.moved)} {what} have been moved to the '{folder.name}' folder."
        if report.failures:
            line += f" {len(report.failures)} could not be moved."
        return line

    def _move_one(
        self,
        src: Path,
        dest_dir: Path,
        phase: str,
        size_bytes: Optional[int] = None,
        day: Optional[datetime.date] = None,
    ) -> MoveOutcome:
        dst = dest_dir / src.name
        if self.dry_run:
            return MoveOutcome(src, dst, phase, "PLANNED", "dry-run", size_bytes, day)
        try:
            _move_file(src, dst)
        except OSError as exc:
            return MoveOutcome(src, dst, phase, "FAILED", str(exc), size_bytes, day)
        return MoveOutcome(src, dst, phase, "MOVED", "", size_bytes, day)

    def quarantine_dumps(self, paths: Sequence[Path]) -> MoveReport:
        report = MoveReport(phase=DUMP_PHASE, folder=self.dump_dir)
        if not paths:
            self._emit("No dump files were found.")
            return report
        self._ensure_folder(self.dump_dir, report)
        for src in paths:
            report.outcomes.append(self._move_one(Path(src), self.dump_dir, DUMP_PHASE))
        self._emit(self._summary_line(report, "dump files", self.dump_dir))
        return report

    def isolate_tail(
        self,
        records: Sequence[FileRecord],
        threshold: GlobalThreshold,
        corrupted: Collection[datetime.date],
        pool: Optional[WorkerPool] = None,
        exclude: Collection[Path] = (),
    ) -> MoveReport:
        report = MoveReport(phase=TAIL_PHASE, folder=self.tail_dir)
        selected = select_tail_records(records, threshold, corrupted, exclude=exclude)
        if not selected:
            self._emit("No corrupted files were found.")
            return report
        self._ensure_folder(self.tail_dir, report)

        # Same basename twice in one batch: only the first (by path) may claim the name.
        claimed: set[str] = set()
        batch: List[FileRecord] = []
        for record in selected:
            if record.filename in claimed:
                report.outcomes.append(
                    MoveOutcome(
                        record.path,
                        self.tail_dir / record.filename,
                        TAIL_PHASE,
                        "FAILED",
                        "another file with the same name is moved in this run",
                        record.size_bytes,
                        record.day,
                    )
                )
                continue
            claimed.add(record.filename)
            batch.append(record)

        def _task(record: FileRecord) -> MoveOutcome:
            return self._move_one(
                record.path, self.tail_dir, TAIL_PHASE, record.size_bytes, record.day
            )

        if pool is None:
            outcomes = [_task(r) for r in batch]
        else:
            outcomes = pool.map(_task, batch)
        report.outcomes.extend(outcomes)
        report.outcomes.sort(key=lambda o: str(o.source))
        self._emit(self._summary_line(report, "files from corrupted dates", self.tail_dir))
        return report
