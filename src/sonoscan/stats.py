"""Per-day size aggregation and corruption classification.

The global threshold is the median of every scanned file size.  A day is
flagged as corrupted when the mean size of its files is strictly below
that threshold.  This is a size heuristic and nothing more: a corpus with
a heavily skewed size distribution (for example many short test captures)
will flag healthy days, and a day with one huge file can hide truncated
ones.
"""

from __future__ import annotations

import datetime
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Set, Tuple

import numpy as np

from . import tuning
from .indexer import FileRecord


@dataclass(frozen=True)
class DaySummary:
    date: datetime.date
    mean_size_mb: float
    file_count: int

    @property
    def rounded_mean_mb(self) -> int:
        return int(round(self.mean_size_mb))

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "mean_size_mb": self.rounded_mean_mb,
            "file_count": self.file_count,
        }


@dataclass(frozen=True)
class GlobalThreshold:
    """Median file size of a scan, kept in bytes at full precision."""

    median_bytes: float

    @property
    def median_mb(self) -> float:
        return self.median_bytes / tuning.BYTES_PER_MB

    @property
    def rounded_mb(self) -> int:
        return int(round(self.median_mb))


def median_size(records: Sequence[FileRecord]) -> GlobalThreshold:
    if not records:
        raise ValueError("Cannot compute a median over zero records")
    sizes = np.fromiter((r.size_bytes for r in records), dtype=np.float64, count=len(records))
    return GlobalThreshold(float(np.median(sizes)))


def summarize_days(records: Iterable[FileRecord]) -> List[DaySummary]:
    """Group records by modification day and average their sizes (MB).

    Records whose name did not parse have no day and are left out.
    """
    groups: Dict[datetime.date, List[int]] = defaultdict(list)
    for record in records:
        day = record.day
        if day is None:
            continue
        groups[day].append(record.size_bytes)

    summaries: List[DaySummary] = []
    for day in sorted(groups):
        sizes = np.asarray(groups[day], dtype=np.float64)
        summaries.append(
            DaySummary(
                date=day,
                mean_size_mb=float(np.mean(sizes)) / tuning.BYTES_PER_MB,
                file_count=int(sizes.size),
            )
        )
    return summaries


def aggregate(records: Sequence[FileRecord]) -> Tuple[List[DaySummary], GlobalThreshold]:
    """Reduce a scan snapshot into day summaries and the global threshold."""
    return summarize_days(records), median_size(records)


def is_corrupted(day: DaySummary, threshold: GlobalThreshold) -> bool:
    return day.mean_size_mb < threshold.median_mb


def corrupted_dates(days: Iterable[DaySummary], threshold: GlobalThreshold) -> List[datetime.date]:
    """Dates flagged as corrupted, ascending and without duplicates."""
    flagged: Set[datetime.date] = {d.date for d in days if is_corrupted(d, threshold)}
    return sorted(flagged)
