from __future__ import annotations

import os
import shutil
from dataclasses import dataclass


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_ffmpeg_path() -> str:
    return shutil.which("ffmpeg") or "ffmpeg"


@dataclass(slots=True)
class BotConfig:
    discord_token: str
    command_prefix: str
    presence_text: str

    ffmpeg_path: str
    sample_rate: int
    channels: int

    menu_timeout_s: float

    status_api_enabled: bool
    status_api_host: str
    status_api_port: int

    log_level: str

    @classmethod
    def from_env(cls) -> "BotConfig":
        return cls(
            discord_token=os.getenv(
                "SOURSOUND_DISCORD_TOKEN",
                os.getenv("DISCORD_BOT_TOKEN", ""),
            ).strip(),
            command_prefix=os.getenv("SOURSOUND_PREFIX", "S") or "S",
            presence_text=os.getenv("SOURSOUND_PRESENCE_TEXT", "Shelp | Sremote"),
            ffmpeg_path=os.getenv("SOURSOUND_FFMPEG_PATH", "") or _default_ffmpeg_path(),
            sample_rate=max(8000, int(os.getenv("SOURSOUND_SAMPLE_RATE", "48000"))),
            channels=max(1, int(os.getenv("SOURSOUND_CHANNELS", "2"))),
            menu_timeout_s=max(1.0, float(os.getenv("SOURSOUND_MENU_TIMEOUT_S", "120"))),
            status_api_enabled=_as_bool(
                os.getenv("SOURSOUND_STATUS_API_ENABLED"), default=False
            ),
            status_api_host=os.getenv("SOURSOUND_STATUS_API_HOST", "127.0.0.1"),
            status_api_port=int(os.getenv("SOURSOUND_STATUS_API_PORT", "8788")),
            log_level=os.getenv("SOURSOUND_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def ffmpeg_available(self) -> bool:
        if os.path.isabs(self.ffmpeg_path):
            return os.path.exists(self.ffmpeg_path)
        return shutil.which(self.ffmpeg_path) is not None
