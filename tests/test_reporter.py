import datetime
from pathlib import Path

import sys
import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from sonoscan.reporter import (
    ChartStyle,
    chart_series,
    format_summary,
    read_integrity_log,
    render_chart,
    write_integrity_log,
)
from sonoscan.stats import DaySummary, GlobalThreshold

MB = 1024 * 1024


def sample_days():
    return [
        DaySummary(datetime.date(2024, 5, 1), 10.2, 12),
        DaySummary(datetime.date(2024, 5, 2), 1.4, 12),
        DaySummary(datetime.date(2024, 5, 3), 9.8, 11),
    ]


def test_summary_lists_dates():
    lines = format_summary(GlobalThreshold(9.6 * MB), [datetime.date(2024, 5, 2)])
    assert lines == ["Median file size: 10 MB", "Dates with corrupted files:", "2024-05-02"]


def test_empty_date_list_is_explicit(tmp_path):
    path = write_integrity_log(tmp_path / "logs" / "log.txt", GlobalThreshold(2 * MB), [])
    assert path.read_text(encoding="utf-8") == (
        "Median file size: 2 MB\nDates with corrupted files:\n(none)\n"
    )
    assert read_integrity_log(path) == {"median_mb": 2, "corrupted_dates": []}


def test_log_roundtrip_with_dates(tmp_path):
    dates = [datetime.date(2024, 5, 2), datetime.date(2024, 5, 9)]
    path = write_integrity_log(tmp_path / "log.txt", GlobalThreshold(5 * MB), dates)
    assert read_integrity_log(path)["corrupted_dates"] == dates


def test_chart_style_closed_set():
    assert ChartStyle.parse("Bars") is ChartStyle.BARS
    assert ChartStyle.parse(ChartStyle.POINTS) is ChartStyle.POINTS
    for bad in ("pie", "", None, "line"):
        with pytest.raises(ValueError):
            ChartStyle.parse(bad)


def test_chart_series_highlights_corrupted_days():
    dates, means, hl_dates, hl_means = chart_series(sample_days(), GlobalThreshold(9.8 * MB))
    assert len(dates) == len(means) == 3
    assert hl_dates == [datetime.date(2024, 5, 2)]
    assert hl_means == [1.4]


@pytest.mark.parametrize("style", list(ChartStyle))
def test_render_chart_each_style(tmp_path, style):
    out = render_chart(sample_days(), GlobalThreshold(9.8 * MB), style, tmp_path / f"{style.value}.png")
    assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_render_chart_without_days(tmp_path):
    out = render_chart([], GlobalThreshold(MB), "lines", tmp_path / "empty.png")
    assert out.exists()
