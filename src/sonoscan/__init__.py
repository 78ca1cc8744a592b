"""sonoscan package

Integrity scanning for time-ordered collections of sensor recordings:
per-day size statistics, detection of days with truncated captures,
dump/tail reorganisation, and per-folder coverage summaries.

Public classes and functions are re-exported here for convenience.
"""

from .engine import IntegrityEngine  # noqa: F401
from .folders import FolderSummary, summarize_folders  # noqa: F401
from .indexer import FileRecord, NoFilesFound, ScanCancelled, index_files  # noqa: F401
from .reporter import ChartStyle  # noqa: F401
from .stats import DaySummary, GlobalThreshold, aggregate, corrupted_dates  # noqa: F401
from .workers import CancelToken, WorkerPool  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "IntegrityEngine",
    "FolderSummary",
    "summarize_folders",
    "FileRecord",
    "NoFilesFound",
    "ScanCancelled",
    "index_files",
    "ChartStyle",
    "DaySummary",
    "GlobalThreshold",
    "aggregate",
    "corrupted_dates",
    "CancelToken",
    "WorkerPool",
]
