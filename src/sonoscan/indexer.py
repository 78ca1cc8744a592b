"""File discovery and metadata capture.

The indexer is strictly read-only.  Each matching file is ``stat``-ed
exactly once; the resulting :class:`FileRecord` snapshot is what every
later phase works from, so changes on disk after the scan do not alter
the statistics of a run.
"""

from __future__ import annotations

import datetime
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import tuning
from .naming import has_extension, parse_recording_name
from .workers import CancelToken, WorkerPool


class NoFilesFound(RuntimeError):
    """Raised when a scan root holds no file with a recognised extension."""


class ScanCancelled(RuntimeError):
    """Raised when the scan phase is cancelled before any mutation."""


@dataclass(frozen=True)
class FileRecord:
    """Immutable metadata for one recording."""

    path: Path
    filename: str
    sensor_id: Optional[str]
    timestamp: Optional[datetime.datetime]
    size_bytes: int
    modified_at: datetime.datetime

    @property
    def parsed(self) -> bool:
        return self.timestamp is not None

    @property
    def day(self) -> Optional[datetime.date]:
        """Calendar day of the modification time, ``None`` for unparsed names.

        Grouping deliberately uses the filesystem modification time and not
        the timestamp embedded in the name.
        """
        if self.timestamp is None:
            return None
        return self.modified_at.date()

    @property
    def size_mb(self) -> float:
        return self.size_bytes / tuning.BYTES_PER_MB


def _reserved_dirs() -> set[str]:
    return {tuning.DUMP_FOLDER_NAME, tuning.TAIL_FOLDER_NAME, tuning.LOGS_FOLDER_NAME}


def _iter_candidate_files(
    root: Path, recursive: bool, output_root: Optional[Path] = None
) -> Iterable[Path]:
    if not recursive:
        for entry in sorted(root.iterdir()):
            if entry.is_file():
                yield entry
        return
    reserved = _reserved_dirs()
    # Output folders live under the scan root and, if different, under the output root.
    owners = {root.resolve()}
    if output_root is not None:
        owners.add(Path(output_root).resolve())
    for current, dirs, files in os.walk(root):
        current_path = Path(current)
        at_owner = current_path.resolve() in owners
        dirs[:] = sorted(d for d in dirs if not (at_owner and d in reserved))
        for fname in sorted(files):
            yield current_path / fname


def _stat_file(path: Path) -> os.stat_result:
    return path.stat()


def build_record(path: Path) -> FileRecord:
    """Capture one file's metadata (single ``stat`` call)."""
    st = _stat_file(path)
    sensor_id, timestamp = parse_recording_name(path.name)
    return FileRecord(
        path=path,
        filename=path.name,
        sensor_id=sensor_id,
        timestamp=timestamp,
        size_bytes=int(st.st_size),
        modified_at=datetime.datetime.fromtimestamp(st.st_mtime),
    )


def list_recordings(
    root: Path,
    extensions: Sequence[str],
    recursive: bool = False,
    output_root: Optional[Path] = None,
) -> List[Path]:
    """Return recording paths under ``root`` in deterministic order."""
    return sorted(
        p
        for p in _iter_candidate_files(Path(root), recursive, output_root)
        if has_extension(p.name, extensions)
    )


def index_files(
    root: Path,
    extensions: Optional[Sequence[str]] = None,
    recursive: bool = False,
    pool: Optional[WorkerPool] = None,
    cancel: Optional[CancelToken] = None,
    output_root: Optional[Path] = None,
) -> List[FileRecord]:
    """Scan ``root`` and return one :class:`FileRecord` per recording, sorted by path.

    Raises:
        NoFilesFound: if no file matches ``extensions``.
        ScanCancelled: if ``cancel`` is set before the scan completes.

    Recursive scans skip the reserved output folders directly under ``root``
    and under ``output_root``.
    """
    root = Path(root)
    if extensions is None:
        extensions = tuning.INTEGRITY_EXTENSIONS
    if not root.is_dir():
        raise NoFilesFound(f"Scan root is not a directory: {root}")

    paths = list_recordings(root, extensions, recursive=recursive, output_root=output_root)
    if not paths:
        raise NoFilesFound(
            f"No {'/'.join(extensions)} files found in the specified folder: {root}"
        )

    def _task(path: Path) -> Optional[FileRecord]:
        if cancel is not None and cancel.cancelled:
            return None
        return build_record(path)

    if pool is None:
        results = [_task(p) for p in paths]
    else:
        results = pool.map(_task, paths)

    if cancel is not None and cancel.cancelled:
        raise ScanCancelled(f"Scan of {root} cancelled")

    records = [r for r in results if r is not None]
    return sorted(records, key=lambda r: str(r.path))


def find_marker_files(
    root: Path,
    pattern: Optional[str] = None,
    recursive: bool = False,
    output_root: Optional[Path] = None,
) -> List[Path]:
    """Return files whose basename matches the dump-marker ``pattern``."""
    marker_re = re.compile(pattern if pattern is not None else tuning.DUMP_PATTERN)
    return sorted(
        p
        for p in _iter_candidate_files(Path(root), recursive, output_root)
        if marker_re.search(p.name)
    )
