from __future__ import annotations

import importlib.util
from pathlib import Path

import sys

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from sonoscan.engine import IntegrityEngine
from sonoscan.folders import summarize_folders


def _load_generator_module(repo_root: Path):
    module_path = repo_root / "scripts" / "generate_synthetic_corpus.py"
    spec = importlib.util.spec_from_file_location("generate_synthetic_corpus", module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to load generator module from {module_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_synthetic_corpus_end_to_end(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    generator = _load_generator_module(repo_root)
    corpus = tmp_path / "corpus"
    corpus.mkdir()
    manifest = generator.build_corpus(corpus)

    engine = IntegrityEngine(corpus, workers=2, chart_style="points")
    report = engine.run(mode="move", log_to_console=False)

    assert report["corrupted_dates"] == manifest["expected_corrupted_dates"]
    truncated = sorted(c["path"] for c in manifest["cases"] if c["truncated"])
    assert sorted(p.name for p in (corpus / "tail").iterdir()) == truncated
    assert sorted(p.name for p in (corpus / "dump").iterdir()) == manifest["dump_files"]
    assert Path(report["plot_file"]).exists()


def test_synthetic_corpus_folder_range(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    generator = _load_generator_module(repo_root)
    manifest = generator.build_corpus(tmp_path, days=2, files_per_day=2, truncated_day=-1)

    (row,) = summarize_folders(tmp_path, workers=1)

    assert manifest["expected_corrupted_dates"] == []
    assert row.sensor_id == generator.SENSOR_ID
    assert row.file_count == 4
    assert row.start.isoformat() == "2024-05-01T05:00:00"
    assert row.end.isoformat() == "2024-05-02T07:00:00"
