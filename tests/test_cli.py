import datetime
import json
import os
from pathlib import Path

import sys
import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from sonoscan import tuning
from sonoscan.cli import main


@pytest.fixture(autouse=True)
def isolated_appdata(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "xdg"))


@pytest.fixture
def folder(tmp_path: Path) -> Path:
    folder = tmp_path / "rec"
    folder.mkdir()
    for day, size in ((1, 4000), (2, 4000), (3, 400)):
        for hour in range(3):
            path = folder / f"S1_2024050{day}_{hour:02d}0000.wav"
            path.write_bytes(b"\x00" * size)
            mtime = datetime.datetime(2024, 5, day, hour).timestamp()
            os.utime(path, (mtime, mtime))
    return folder


def test_analyze_prints_report(folder, capsys):
    code = main(["analyze", str(folder), "--workers", "disabled", "-q"])
    report = json.loads(capsys.readouterr().out)

    assert code == 0
    assert report["mode"] == "analyze"
    assert report["corrupted_dates"] == ["2024-05-03"]
    assert not (folder / "wave_integrity_log.txt").exists()


def test_check_moves_and_writes(folder, capsys):
    code = main(["check", str(folder), "--workers", "2", "--type", "bars", "-q"])
    report = json.loads(capsys.readouterr().out)

    assert code == 0
    assert report["files_moved"] == 3
    assert (folder / "wave_integrity_log.txt").exists()
    assert (folder / "wave_integrity_plot.png").exists()
    assert len(list((folder / "tail").iterdir())) == 3


def test_check_toggles(folder, capsys):
    code = main(["check", str(folder), "--no-tail", "--no-dump", "--no-plot", "-q"])
    capsys.readouterr()

    assert code == 0
    assert not (folder / "tail").exists()
    assert not (folder / "dump").exists()
    assert not (folder / "wave_integrity_plot.png").exists()


def test_check_reports_move_failures(folder, capsys):
    (folder / "tail").mkdir()
    (folder / "tail" / "S1_20240503_000000.wav").write_bytes(b"old")

    code = main(["check", str(folder), "--no-plot", "-q"])
    report = json.loads(capsys.readouterr().out)

    assert code == 2
    assert report["failed"] == 1


def test_empty_folder_is_an_error(tmp_path, capsys):
    empty = tmp_path / "empty"
    empty.mkdir()

    code = main(["check", str(empty), "-q"])

    assert code == 1
    assert "Error:" in capsys.readouterr().err
    assert list(empty.iterdir()) == []


def test_unknown_style_rejected(folder):
    with pytest.raises(SystemExit):
        main(["analyze", str(folder), "--type", "pie"])


def test_ranges_to_csv(folder, tmp_path, capsys):
    out = tmp_path / "ranges.csv"
    code = main(["ranges", str(folder), "--output", str(out), "--workers", "1"])

    assert code == 0
    assert out.read_text(encoding="utf-8").splitlines()[0] == "folder,sensor,start,end,n_files,total_size_mb"


def test_check_reads_tuning_from_output_root(folder, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(tuning, "LOG_FILE_NAME", tuning.LOG_FILE_NAME)
    out = tmp_path / "out"
    out.mkdir()
    (out / "tuning.json").write_text(json.dumps({"LOG_FILE_NAME": "integrity.txt"}), encoding="utf-8")

    code = main(["check", str(folder), "--output-root", str(out), "--no-plot", "-q"])
    report = json.loads(capsys.readouterr().out)

    assert code == 0
    assert Path(report["log_file"]).resolve() == (out / "integrity.txt").resolve()
    assert (out / "integrity.txt").exists()


def test_undo_last_run(folder, capsys):
    main(["check", str(folder), "--no-plot", "-q"])
    capsys.readouterr()

    code = main(["undo-last-run", str(folder)])
    result = json.loads(capsys.readouterr().out)

    assert code == 0
    assert result["reverted_count"] == 3
    assert len(list(folder.glob("*.wav"))) == 9
