from __future__ import annotations

import argparse
import datetime
import json
import math
import os
import wave
from pathlib import Path

SAMPLE_RATE = 8000
SENSOR_ID = "S4A09999"


def _clamp(v: float) -> float:
    return max(-1.0, min(1.0, v))


def write_wav(path: Path, samples: list[float], sample_rate: int = SAMPLE_RATE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        pcm = bytearray()
        for s in samples:
            x = int(_clamp(s) * 32767)
            pcm += int(x).to_bytes(2, byteorder="little", signed=True)
        wf.writeframes(pcm)


def dawn_chorus(duration_s: float, seed: int) -> list[float]:
    """Deterministic chirp train standing in for a field recording."""
    n = int(duration_s * SAMPLE_RATE)
    out: list[float] = []
    state = seed or 1
    for i in range(n):
        state = (1103515245 * state + 12345) & 0x7FFFFFFF
        noise = ((state / 0x7FFFFFFF) * 2.0) - 1.0
        t = i / SAMPLE_RATE
        chirp = math.sin(2.0 * math.pi * (2000.0 + 800.0 * math.sin(6.0 * t)) * t)
        out.append(0.3 * chirp * (0.5 + 0.5 * math.sin(3.0 * t)) + 0.02 * noise)
    return out


def recording_name(sensor: str, stamp: datetime.datetime) -> str:
    return f"{sensor}_{stamp.strftime('%Y%m%d_%H%M%S')}.wav"


def build_corpus(
    root: Path,
    start: datetime.date = datetime.date(2024, 5, 1),
    days: int = 4,
    files_per_day: int = 3,
    full_seconds: float = 2.0,
    truncated_seconds: float = 0.25,
    truncated_day: int = 2,
) -> dict[str, object]:
    """Write a small sensor corpus where one day holds truncated captures.

    File modification times are set to the capture time encoded in the
    name, so grouping by mtime and by name agree.
    """
    cases: list[dict[str, object]] = []
    for day_index in range(days):
        day = start + datetime.timedelta(days=day_index)
        truncated = day_index == truncated_day
        for slot in range(files_per_day):
            stamp = datetime.datetime.combine(day, datetime.time(hour=5 + 2 * slot))
            path = root / recording_name(SENSOR_ID, stamp)
            seconds = truncated_seconds if truncated else full_seconds
            write_wav(path, dawn_chorus(seconds, seed=day_index * 100 + slot + 1))
            mtime = stamp.timestamp()
            os.utime(path, (mtime, mtime))
            cases.append(
                {
                    "path": path.name,
                    "date": day.isoformat(),
                    "seconds": seconds,
                    "truncated": truncated,
                }
            )

    dump_path = root / f"{SENSOR_ID}_{start.strftime('%Y%m%d')}_000000.dump"
    dump_path.write_bytes(b"\x00" * 64)

    return {
        "version": 1,
        "description": "Deterministic synthetic sensor corpus with one truncated day.",
        "generator": "scripts/generate_synthetic_corpus.py",
        "sensor": SENSOR_ID,
        "expected_corrupted_dates": [
            (start + datetime.timedelta(days=truncated_day)).isoformat()
        ]
        if 0 <= truncated_day < days
        else [],
        "dump_files": [dump_path.name],
        "cases": cases,
    }


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a tiny deterministic sensor recording corpus for demos/tests."
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("examples") / "synthetic_corpus",
        help="Output folder (default: examples/synthetic_corpus)",
    )
    parser.add_argument("--days", type=int, default=4, help="Number of recording days")
    parser.add_argument("--files-per-day", type=int, default=3, help="Recordings per day")
    parser.add_argument(
        "--truncated-day", type=int, default=2, help="Zero-based index of the truncated day"
    )
    args = parser.parse_args()

    output_root = args.output.resolve()
    output_root.mkdir(parents=True, exist_ok=True)
    manifest = build_corpus(
        output_root,
        days=args.days,
        files_per_day=args.files_per_day,
        truncated_day=args.truncated_day,
    )
    # Manifest lives next to the corpus; its .json suffix keeps it out of scans.
    (output_root / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    print(f"Generated {len(manifest['cases'])} WAV files under {output_root}")
    print(f"Wrote manifest: {output_root / 'manifest.json'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
