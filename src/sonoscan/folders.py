"""Per-folder recording coverage.

Every directory of a tree (the parent included) yields one
:class:`FolderSummary`, even when it holds no recordings.  Only the files
directly inside a folder are counted for it.  Start/end come from the
timestamps embedded in the filenames, not from filesystem metadata.
"""

from __future__ import annotations

import csv
import datetime
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from . import tuning
from .naming import has_extension, parse_recording_name
from .workers import WorkerPool

TABLE_COLUMNS = ["folder", "sensor", "start", "end", "n_files", "total_size_mb"]
SENSOR_SEPARATOR = ";"


@dataclass(frozen=True)
class FolderSummary:
    folder_path: Path
    sensor_id: Optional[str]
    start: Optional[datetime.datetime]
    end: Optional[datetime.datetime]
    file_count: int
    total_size_mb: float

    def to_row(self) -> Dict[str, Any]:
        return {
            "folder": str(self.folder_path),
            "sensor": self.sensor_id or "",
            "start": self.start.isoformat(sep=" ") if self.start else "",
            "end": self.end.isoformat(sep=" ") if self.end else "",
            "n_files": self.file_count,
            "total_size_mb": round(self.total_size_mb, 3),
        }


def list_folders(parent: Path) -> List[Path]:
    """The parent and all of its subdirectories, in sorted walk order."""
    parent = Path(parent)
    folders: List[Path] = []
    for current, dirs, _files in os.walk(parent):
        dirs.sort()
        folders.append(Path(current))
    return folders


def summarize_folder(folder: Path, extensions: Sequence[str]) -> FolderSummary:
    folder = Path(folder)
    files = sorted(
        p for p in folder.iterdir() if p.is_file() and has_extension(p.name, extensions)
    )
    if not files:
        return FolderSummary(folder, None, None, None, 0, 0.0)

    total_bytes = 0
    sensors = set()
    stamps: List[datetime.datetime] = []
    for path in files:
        total_bytes += path.stat().st_size
        sensor_id, timestamp = parse_recording_name(path.name)
        if timestamp is None:
            continue
        sensors.add(sensor_id)
        stamps.append(timestamp)

    return FolderSummary(
        folder_path=folder,
        sensor_id=SENSOR_SEPARATOR.join(sorted(sensors)) if sensors else None,
        start=min(stamps) if stamps else None,
        end=max(stamps) if stamps else None,
        file_count=len(files),
        total_size_mb=total_bytes / tuning.BYTES_PER_MB,
    )


def summarize_folders(
    parent: Path,
    extensions: Optional[Sequence[str]] = None,
    workers: Any = None,
) -> List[FolderSummary]:
    """Summarize every folder under ``parent`` (inclusive), one row per folder."""
    parent = Path(parent)
    if not parent.is_dir():
        raise NotADirectoryError(f"Not a directory: {parent}")
    if extensions is None:
        extensions = tuning.RANGE_EXTENSIONS
    if workers is None:
        workers = tuning.PARALLEL_WORKERS_DEFAULT

    folders = list_folders(parent)
    with WorkerPool(workers) as pool:
        return pool.map(lambda f: summarize_folder(f, extensions), folders)


def write_folder_table(summaries: Sequence[FolderSummary], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=TABLE_COLUMNS)
        writer.writeheader()
        for summary in summaries:
            writer.writerow(summary.to_row())
    return path
