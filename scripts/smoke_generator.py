from __future__ import annotations

import argparse
import json
import sys
import time
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

BYTES_PER_SAMPLE = 2


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def expected_byte_rate(sample_rate: int, channels: int) -> int:
    return sample_rate * channels * BYTES_PER_SAMPLE


def check_stream(
    *,
    total_bytes: int,
    elapsed_s: float,
    sample_rate: int,
    channels: int,
    rate_tolerance: float,
) -> dict:
    frame_size = channels * BYTES_PER_SAMPLE
    expected = expected_byte_rate(sample_rate, channels)
    observed = (total_bytes / elapsed_s) if elapsed_s > 0 else 0.0
    return {
        "total_bytes": total_bytes,
        "elapsed_s": round(elapsed_s, 3),
        "expected_bytes_per_s": expected,
        "observed_bytes_per_s": round(observed, 1),
        "frame_aligned": total_bytes % frame_size == 0,
        "rate_gate_pass": total_bytes > 0 and abs(observed - expected) <= expected * rate_tolerance,
    }


def resolve_status(
    *,
    total_bytes: int,
    min_bytes: int,
    frame_aligned: bool,
    rate_gate_pass: bool,
) -> str:
    if total_bytes < min_bytes:
        return "UNVERIFIED"
    if frame_aligned and rate_gate_pass:
        return "PASS"
    return "FAIL"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Noise generator smoke test")
    parser.add_argument("--preset", default="smooth-brown")
    parser.add_argument("--seconds", type=float, default=3.0)
    parser.add_argument("--ffmpeg", default="")
    parser.add_argument("--rate-tolerance", type=float, default=0.25)
    parser.add_argument("--min-bytes", type=int, default=48000 * 2 * 2)
    return parser.parse_args()


def main() -> int:
    from soursound.audio.generator import GeneratorSupervisor
    from soursound.audio.params import apply_preset, to_generator_params
    from soursound.audio.presets import PresetCatalog
    from soursound.config import BotConfig
    from soursound.errors import GeneratorUnavailableError
    from soursound.types import NoiseSession

    args = parse_args()
    config = BotConfig.from_env()
    ffmpeg = args.ffmpeg or config.ffmpeg_path
    preset = PresetCatalog().find(args.preset)
    if preset is None:
        print(f"[{_now()}] unknown preset: {args.preset}", file=sys.stderr)
        return 2

    session = apply_preset(NoiseSession(), preset)
    params = to_generator_params(session, sample_rate=config.sample_rate, channels=config.channels)
    supervisor = GeneratorSupervisor(ffmpeg)
    try:
        handle = supervisor.start(0, params)
    except GeneratorUnavailableError as exc:
        print(f"[{_now()}] {exc}", file=sys.stderr)
        return 1

    total = 0
    t0 = time.perf_counter()
    try:
        while time.perf_counter() - t0 < args.seconds:
            chunk = handle.stdout.read(3840)
            if not chunk:
                break
            total += len(chunk)
    finally:
        elapsed = time.perf_counter() - t0
        supervisor.terminate(0)

    report = check_stream(
        total_bytes=total,
        elapsed_s=elapsed,
        sample_rate=params.sample_rate,
        channels=params.channels,
        rate_tolerance=args.rate_tolerance,
    )
    report["preset"] = preset.id
    report["command"] = handle.command
    report["status"] = resolve_status(
        total_bytes=total,
        min_bytes=args.min_bytes,
        frame_aligned=report["frame_aligned"],
        rate_gate_pass=report["rate_gate_pass"],
    )
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0 if report["status"] == "PASS" else 1


if __name__ == "__main__":
    raise SystemExit(main())
