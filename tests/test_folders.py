import csv
import datetime
from pathlib import Path

import sys

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from sonoscan.folders import TABLE_COLUMNS, summarize_folders, write_folder_table


def create_tree(tmp_path: Path) -> Path:
    """Parent holds recordings; one empty subfolder."""
    parent = tmp_path / "deployment"
    parent.mkdir()
    (parent / "S4A01_20240501_050000.wav").write_bytes(b"\x00" * 1024)
    (parent / "S4A01_20240503_230000.flac").write_bytes(b"\x00" * 2048)
    (parent / "S4A01_20240502_120000.wac").write_bytes(b"\x00" * 1024)
    (parent / "readme.txt").write_text("ignored", encoding="utf-8")
    (parent / "empty").mkdir()
    return parent


def test_populated_and_empty_folder(tmp_path):
    parent = create_tree(tmp_path)

    rows = summarize_folders(parent, workers=2)

    assert [r.folder_path for r in rows] == [parent, parent / "empty"]
    full, empty = rows
    assert full.sensor_id == "S4A01"
    assert full.start == datetime.datetime(2024, 5, 1, 5, 0, 0)
    assert full.end == datetime.datetime(2024, 5, 3, 23, 0, 0)
    assert full.file_count == 3
    assert full.total_size_mb == 4096 / (1024 * 1024)

    assert empty.sensor_id is None
    assert empty.start is None and empty.end is None
    assert empty.file_count == 0
    assert empty.total_size_mb == 0.0


def test_nested_folders_each_get_a_row(tmp_path):
    parent = tmp_path / "site"
    (parent / "b" / "deep").mkdir(parents=True)
    (parent / "a").mkdir()
    (parent / "b" / "deep" / "X9_20240101_000000.WAV").write_bytes(b"1")

    rows = summarize_folders(parent, workers="disabled")

    assert [r.folder_path.relative_to(parent).as_posix() for r in rows] == [".", "a", "b", "b/deep"]
    assert [r.file_count for r in rows] == [0, 0, 0, 1]
    assert rows[3].sensor_id == "X9"


def test_unparseable_names_counted_without_range(tmp_path):
    folder = tmp_path / "f"
    folder.mkdir()
    (folder / "clip.wav").write_bytes(b"12")
    (folder / "clip2.wav").write_bytes(b"34")

    (row,) = summarize_folders(folder, workers=1)

    assert row.file_count == 2
    assert row.sensor_id is None
    assert row.start is None and row.end is None


def test_several_sensors_joined(tmp_path):
    folder = tmp_path / "mixed"
    folder.mkdir()
    (folder / "B2_20240101_000000.wav").write_bytes(b"1")
    (folder / "A1_20240102_000000.wav").write_bytes(b"1")

    (row,) = summarize_folders(folder, workers=1)

    assert row.sensor_id == "A1;B2"


def test_write_folder_table(tmp_path):
    parent = create_tree(tmp_path)
    out = write_folder_table(summarize_folders(parent, workers=1), tmp_path / "ranges.csv")

    with open(out, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        assert reader.fieldnames == TABLE_COLUMNS
        rows = list(reader)

    assert rows[0]["start"] == "2024-05-01 05:00:00"
    assert rows[0]["n_files"] == "3"
    assert rows[1]["sensor"] == "" and rows[1]["start"] == ""
    assert rows[1]["n_files"] == "0"
