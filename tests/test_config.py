import json
from pathlib import Path

import sys
import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from sonoscan import tuning
from sonoscan.config_service import DEFAULT_CONFIG, ConfigService


@pytest.fixture
def isolated_appdata(tmp_path, monkeypatch):
    appdata = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(appdata))
    monkeypatch.setenv("APPDATA", str(appdata))
    return appdata


def test_portable_mode_default_appdata(tmp_path, isolated_appdata):
    config_service = ConfigService(app_dir=tmp_path)
    assert not config_service.is_portable_mode()
    assert config_service.get_config_dir() == isolated_appdata / "sonoscan"


def test_portable_mode_flag_detection(tmp_path):
    (tmp_path / "portable.flag").touch()
    config_service = ConfigService(app_dir=tmp_path)
    assert config_service.is_portable_mode()
    assert config_service.get_config_dir() == tmp_path


def test_missing_config_gives_defaults(tmp_path, isolated_appdata):
    assert ConfigService(app_dir=tmp_path).load_config() == DEFAULT_CONFIG


def test_save_and_load_roundtrip(tmp_path, isolated_appdata):
    config_service = ConfigService(app_dir=tmp_path)
    config_service.save_config({"chart_style": "points", "workers": 2}, cli_portable=True)

    loaded = ConfigService(app_dir=tmp_path).load_config(cli_portable=True)

    assert loaded["chart_style"] == "points"
    assert loaded["workers"] == 2
    assert loaded["tail_folder"] is True


@pytest.mark.parametrize(
    "payload",
    [
        {"chart_style": "pie"},
        {"workers": 0},
        {"workers": "lots"},
        {"unknown_key": 1},
        {"extensions": ["wav"]},
    ],
)
def test_invalid_config_falls_back(tmp_path, payload, capsys):
    (tmp_path / "portable.flag").touch()
    (tmp_path / "config.json").write_text(json.dumps(payload), encoding="utf-8")

    cfg = ConfigService(app_dir=tmp_path).load_config()

    assert cfg == DEFAULT_CONFIG
    assert "Warning" in capsys.readouterr().out


def test_save_rejects_invalid(tmp_path):
    with pytest.raises(ValueError):
        ConfigService(app_dir=tmp_path).save_config({"chart_style": "pie"}, cli_portable=True)


def test_tuning_overrides(tmp_path, monkeypatch):
    monkeypatch.setattr(tuning, "CHART_PARAMS", dict(tuning.CHART_PARAMS))
    monkeypatch.setattr(tuning, "LOG_FILE_NAME", tuning.LOG_FILE_NAME)
    monkeypatch.setattr(tuning, "RANGE_EXTENSIONS", tuning.RANGE_EXTENSIONS)
    (tmp_path / "portable.flag").touch()
    (tmp_path / "tuning.json").write_text(
        json.dumps(
            {
                "CHART_PARAMS": {"dpi": 72},
                "LOG_FILE_NAME": "integrity.txt",
                "RANGE_EXTENSIONS": [".wav", ".w64"],
                "apply_overrides": 1,
            }
        ),
        encoding="utf-8",
    )

    assert ConfigService(app_dir=tmp_path).load_tuning()

    assert tuning.CHART_PARAMS["dpi"] == 72
    assert tuning.CHART_PARAMS["title"] == "WAV files integrity"
    assert tuning.LOG_FILE_NAME == "integrity.txt"
    assert tuning.RANGE_EXTENSIONS == (".wav", ".w64")
    assert callable(tuning.apply_overrides)


def test_tuning_from_output_root_wins(tmp_path, monkeypatch):
    monkeypatch.setattr(tuning, "LOG_FILE_NAME", tuning.LOG_FILE_NAME)
    monkeypatch.setattr(tuning, "PLOT_FILE_NAME", tuning.PLOT_FILE_NAME)
    app_dir = tmp_path / "app"
    out = tmp_path / "out"
    app_dir.mkdir()
    out.mkdir()
    (app_dir / "portable.flag").touch()
    (app_dir / "tuning.json").write_text(
        json.dumps({"LOG_FILE_NAME": "from_config.txt", "PLOT_FILE_NAME": "config.png"}),
        encoding="utf-8",
    )
    (out / "tuning.json").write_text(
        json.dumps({"LOG_FILE_NAME": "from_output.txt"}), encoding="utf-8"
    )

    assert ConfigService(app_dir=app_dir).load_tuning(output_root=out)

    assert tuning.LOG_FILE_NAME == "from_output.txt"
    assert tuning.PLOT_FILE_NAME == "config.png"


def test_tuning_missing_everywhere(tmp_path, isolated_appdata):
    assert not ConfigService(app_dir=tmp_path).load_tuning(output_root=tmp_path / "out")
