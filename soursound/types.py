from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

NoiseColor = Literal["brown", "pink", "white"]
NOISE_COLORS: tuple[NoiseColor, ...] = ("brown", "pink", "white")
CUSTOM_PRESET = "custom"


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass(slots=True)
class NoiseSession:
    noise_color: NoiseColor = "brown"
    lowpass_hz: int = 800
    highpass_hz: int = 10
    volume: float = 0.4
    active_preset: str = "smooth-brown"


@dataclass(frozen=True, slots=True)
class RemoteViewRef:
    channel_id: int
    message_id: int


class Preset(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    label: str
    description: str
    noise_color: NoiseColor
    lowpass_hz: int
    highpass_hz: int
    volume: float


class GeneratorParams(BaseModel):
    model_config = ConfigDict(frozen=True)
    noise_color: NoiseColor
    sample_rate: int = 48000
    channels: int = 2
    lowpass_hz: int = Field(ge=1)
    highpass_hz: int = Field(ge=1)
    volume: float = Field(ge=0.0, le=1.0)


class ViewField(BaseModel):
    name: str
    value: str
    inline: bool = True


class SelectOption(BaseModel):
    label: str
    value: str
    description: str = ""


class SelectorControl(BaseModel):
    custom_id: str
    placeholder: str
    options: list[SelectOption]


class ButtonControl(BaseModel):
    custom_id: str
    label: str
    style: Literal["primary", "secondary", "success", "danger"] = "secondary"


class RemoteView(BaseModel):
    title: str
    description: str | None = None
    color: int = 0x00F7FF
    fields: list[ViewField]
    footer: str = ""
    selectors: list[SelectorControl] = Field(default_factory=list)
    button_rows: list[list[ButtonControl]] = Field(default_factory=list)


class SessionStateResponse(BaseModel):
    session_key: int
    noise_color: NoiseColor
    lowpass_hz: int
    highpass_hz: int
    volume: float
    active_preset: str
    generator_running: bool = False
    sink_attached: bool = False
    remote_view: dict[str, int] | None = None


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    gateway_connected: bool
    ffmpeg_path: str
    ffmpeg_available: bool
    session_count: int
    live_generators: int
    detail: str


class WsEvent(BaseModel):
    type: str
    ts: str = Field(default_factory=utc_now_iso)
    data: dict[str, Any]
