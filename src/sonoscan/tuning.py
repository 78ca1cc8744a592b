"""Centralized constants for corpus integrity scanning.

Scan, threshold and chart parameters are defined here and referenced by
the engine and its helpers (single source of truth).  A ``tuning.json``
file may override them at run time, see :func:`apply_overrides`.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

# ---------------------------------------------------------------------------
# Sizes
BYTES_PER_MB = 1024 * 1024

# ---------------------------------------------------------------------------
# Discovery
INTEGRITY_EXTENSIONS: Tuple[str, ...] = (".wav",)
RANGE_EXTENSIONS: Tuple[str, ...] = (".wav", ".WAV", ".wac", ".flac")
DUMP_PATTERN = r"dump$"

DUMP_FOLDER_NAME = "dump"
TAIL_FOLDER_NAME = "tail"
LOGS_FOLDER_NAME = "logs"

# ---------------------------------------------------------------------------
# Default artifact names (resolved against the output root)
LOG_FILE_NAME = "wave_integrity_log.txt"
PLOT_FILE_NAME = "wave_integrity_plot.png"

# ---------------------------------------------------------------------------
# Worker pool: "auto" = cores - 1, "disabled" = serial
PARALLEL_WORKERS_DEFAULT: Any = "auto"

# ---------------------------------------------------------------------------
# Chart rendering
CHART_PARAMS: Dict[str, Any] = {
    "width_in": 8.0,
    "height_in": 6.0,
    "dpi": 100,
    "title": "WAV files integrity",
    "x_label": "Date",
    "y_label": "Mean Size (MB)",
    "bar_width_days": 0.5,
    "highlight_color": "red",
    "highlight_size": 36.0,
    "label_rotation": 45,
}


def apply_overrides(data: Dict[str, Any]) -> None:
    """Merge numeric/string/dict overrides into module globals (best-effort)."""
    if not isinstance(data, dict):
        return

    module_globals = globals()
    for key, value in data.items():
        if key not in module_globals or key.startswith("_"):
            continue
        current = module_globals[key]
        if isinstance(current, dict) and isinstance(value, dict):
            current.update(value)
        elif isinstance(current, tuple) and isinstance(value, list):
            module_globals[key] = tuple(str(v) for v in value)
        elif isinstance(current, bool) or isinstance(value, bool):
            continue
        elif isinstance(current, (int, float)) and isinstance(value, (int, float)):
            module_globals[key] = value
        elif isinstance(current, str) and isinstance(value, (str, int)):
            module_globals[key] = value
