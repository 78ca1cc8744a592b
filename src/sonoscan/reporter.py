"""Integrity log and chart output.

The log has a fixed layout::

    Median file size: 3 MB
    Dates with corrupted files:
    2024-05-02
    2024-05-03

An empty corrupted set is written as a single ``(none)`` line.

Charts are drawn with matplotlib.  The render style is a closed set
(:class:`ChartStyle`); each member maps to a drawing strategy and the
corrupted days are overlaid as highlighted points on every style.
"""

from __future__ import annotations

import datetime
import enum
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from . import tuning
from .stats import DaySummary, GlobalThreshold, is_corrupted

EMPTY_DATES_MARKER = "(none)"
CORRUPTED_HEADER = "Dates with corrupted files:"


def format_summary(threshold: GlobalThreshold, corrupted: Sequence[datetime.date]) -> List[str]:
    lines = [f"Median file size: {threshold.rounded_mb} MB", CORRUPTED_HEADER]
    if corrupted:
        lines.extend(d.isoformat() for d in corrupted)
    else:
        lines.append(EMPTY_DATES_MARKER)
    return lines


def write_integrity_log(
    path: Path, threshold: GlobalThreshold, corrupted: Sequence[datetime.date]
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(format_summary(threshold, corrupted)) + "\n", encoding="utf-8")
    return path


def read_integrity_log(path: Path) -> Dict[str, object]:
    """Parse a log written by :func:`write_integrity_log`."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    if len(lines) < 2 or lines[1] != CORRUPTED_HEADER:
        raise ValueError(f"Not an integrity log: {path}")
    median_text = lines[0].split(":", 1)[1].strip()
    dates = [
        datetime.date.fromisoformat(line)
        for line in lines[2:]
        if line.strip() and line.strip() != EMPTY_DATES_MARKER
    ]
    return {"median_mb": int(median_text.split()[0]), "corrupted_dates": dates}


# ---------------------------------------------------------------------------
# Chart styles


def _draw_lines(ax, dates, values) -> None:
    ax.plot(dates, values, color="black", linewidth=1.0)


def _draw_bars(ax, dates, values) -> None:
    ax.bar(dates, values, width=float(tuning.CHART_PARAMS["bar_width_days"]), color="grey")


def _draw_points(ax, dates, values) -> None:
    ax.scatter(dates, values, color="black", s=16)


class ChartStyle(enum.Enum):
    LINES = "lines"
    BARS = "bars"
    POINTS = "points"

    @classmethod
    def parse(cls, value) -> "ChartStyle":
        """Resolve a style name, rejecting anything outside the closed set."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown chart style {value!r} (expected one of: {allowed})")

    @property
    def draw(self) -> Callable:
        return _STYLE_STRATEGIES[self]


_STYLE_STRATEGIES: Dict[ChartStyle, Callable] = {
    ChartStyle.LINES: _draw_lines,
    ChartStyle.BARS: _draw_bars,
    ChartStyle.POINTS: _draw_points,
}


def _import_pyplot():
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except Exception as exc:
        raise RuntimeError(
            "matplotlib is required to render charts. Install with: pip install matplotlib"
        ) from exc
    return plt


def chart_series(days: Sequence[DaySummary], threshold: GlobalThreshold):
    """Return ``(dates, means, highlighted_dates, highlighted_means)`` for plotting."""
    dates = [d.date for d in days]
    means = [d.mean_size_mb for d in days]
    flagged = [d for d in days if is_corrupted(d, threshold)]
    return dates, means, [d.date for d in flagged], [d.mean_size_mb for d in flagged]


def render_chart(
    days: Sequence[DaySummary],
    threshold: GlobalThreshold,
    style: ChartStyle,
    path: Path,
) -> Path:
    """Draw mean size per day and save the figure to ``path`` (PNG)."""
    style = ChartStyle.parse(style)
    plt = _import_pyplot()
    import matplotlib.dates as mdates

    params = tuning.CHART_PARAMS
    dates, means, hl_dates, hl_means = chart_series(days, threshold)

    fig, ax = plt.subplots(figsize=(float(params["width_in"]), float(params["height_in"])))
    try:
        style.draw(ax, dates, means)
        if hl_dates:
            ax.scatter(
                hl_dates,
                hl_means,
                color=params["highlight_color"],
                s=float(params["highlight_size"]),
                zorder=3,
                label="corrupted",
            )
        ax.set_title(str(params["title"]))
        ax.set_xlabel(str(params["x_label"]))
        ax.set_ylabel(str(params["y_label"]))
        if dates:
            ax.set_xticks(dates)
            ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
        ax.tick_params(axis="x", labelrotation=int(params["label_rotation"]))
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=int(params["dpi"]))
    finally:
        plt.close(fig)
    return path
