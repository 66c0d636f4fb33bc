from __future__ import annotations

import json
import os
import platform
import shutil
import subprocess
import importlib.util


def run_cmd(cmd: list[str]) -> str:
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT, text=True, timeout=8)
        return out.strip().splitlines()[0] if out.strip() else ""
    except Exception as exc:
        return f"ERROR: {exc}"


def has_module(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except Exception:
        return False


def resolve_ffmpeg() -> str | None:
    configured = os.getenv("SOURSOUND_FFMPEG_PATH", "").strip()
    if configured:
        return configured if (os.path.isabs(configured) and os.path.exists(configured)) or shutil.which(configured) else None
    return shutil.which("ffmpeg")


def probe_lavfi_noise(ffmpeg: str) -> str:
    # One short render of the same source the bot uses.
    return run_cmd(
        [
            ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-f", "lavfi",
            "-i", "anoisesrc=color=brown:sample_rate=48000:duration=0.1",
            "-f", "null",
            "-",
        ]
    ) or "ok"


def main() -> None:
    ffmpeg = resolve_ffmpeg()
    token = os.getenv("SOURSOUND_DISCORD_TOKEN", os.getenv("DISCORD_BOT_TOKEN", "")).strip()
    report = {
        "os": platform.platform(),
        "python": platform.python_version(),
        "ffmpeg_path": ffmpeg,
        "ffmpeg": run_cmd([ffmpeg, "-version"]) if ffmpeg else "ERROR: ffmpeg executable not found",
        "anoisesrc": probe_lavfi_noise(ffmpeg) if ffmpeg else "skipped",
        "discord_installed": has_module("discord"),
        "pynacl_installed": has_module("nacl"),
        "fastapi_installed": has_module("fastapi"),
        "uvicorn_installed": has_module("uvicorn"),
        "token_configured": bool(token),
        "prefix": os.getenv("SOURSOUND_PREFIX", "S"),
    }
    print(json.dumps(report, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
