from __future__ import annotations

import math
import threading
from typing import Any, Literal

from soursound.types import (
    CUSTOM_PRESET,
    NOISE_COLORS,
    GeneratorParams,
    NoiseColor,
    NoiseSession,
    Preset,
    RemoteViewRef,
)

ParamField = Literal["lowpass", "highpass", "volume"]
Direction = Literal["inc", "dec"]
Magnitude = Literal["fine", "coarse"]

DEFAULT_VOLUME = 0.4
DEFAULT_FREQUENCY_HZ = 800
MAX_VOLUME = 1.0

STEP_TABLE: dict[str, dict[str, float]] = {
    "lowpass": {"fine": 100, "coarse": 500},
    "highpass": {"fine": 10, "coarse": 50},
    "volume": {"fine": 0.02, "coarse": 0.10},
}


def _as_finite_float(value: Any) -> float | None:
    try:
        raw = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(raw):
        return None
    return raw


def clamp_volume(value: Any) -> float:
    raw = _as_finite_float(value)
    if raw is None:
        return DEFAULT_VOLUME
    return min(max(raw, 0.0), MAX_VOLUME)


def clamp_frequency(value: Any) -> int:
    # No upper bound: ffmpeg decides what to do with extreme cutoffs.
    raw = _as_finite_float(value)
    if raw is None:
        return DEFAULT_FREQUENCY_HZ
    return max(1, int(math.floor(raw)))


def clamp_session(session: NoiseSession) -> NoiseSession:
    session.volume = clamp_volume(session.volume)
    session.lowpass_hz = clamp_frequency(session.lowpass_hz)
    session.highpass_hz = clamp_frequency(session.highpass_hz)
    return session


def apply_delta(
    session: NoiseSession,
    field: ParamField,
    direction: Direction,
    magnitude: Magnitude,
) -> NoiseSession:
    try:
        step = STEP_TABLE[field][magnitude]
    except KeyError as exc:
        raise ValueError(f"unsupported nudge: {field}/{magnitude}") from exc
    if direction not in ("inc", "dec"):
        raise ValueError(f"unsupported direction: {direction}")
    signed = step if direction == "inc" else -step

    if field == "lowpass":
        session.lowpass_hz = clamp_frequency(session.lowpass_hz + signed)
    elif field == "highpass":
        session.highpass_hz = clamp_frequency(session.highpass_hz + signed)
    else:
        # Keep volume on the 0.01 grid so repeated nudges don't drift.
        session.volume = round(clamp_volume(session.volume + signed), 2)
    session.active_preset = CUSTOM_PRESET
    return session


def apply_color(session: NoiseSession, color: NoiseColor) -> NoiseSession:
    if color not in NOISE_COLORS:
        raise ValueError(f"unsupported noise color: {color}")
    session.noise_color = color
    session.active_preset = CUSTOM_PRESET
    return session


def apply_preset(session: NoiseSession, preset: Preset) -> NoiseSession:
    session.noise_color = preset.noise_color
    session.lowpass_hz = preset.lowpass_hz
    session.highpass_hz = preset.highpass_hz
    session.volume = preset.volume
    session.active_preset = preset.id
    return session


def to_generator_params(
    session: NoiseSession,
    *,
    sample_rate: int = 48000,
    channels: int = 2,
) -> GeneratorParams:
    return GeneratorParams(
        noise_color=session.noise_color,
        sample_rate=sample_rate,
        channels=channels,
        lowpass_hz=clamp_frequency(session.lowpass_hz),
        highpass_hz=clamp_frequency(session.highpass_hz),
        volume=clamp_volume(session.volume),
    )


class SessionRegistry:
    """Process-wide per-guild state: settings, remote view refs, menu cursors.

    Records are created lazily and never removed.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: dict[int, NoiseSession] = {}
        self._remote_refs: dict[int, RemoteViewRef] = {}
        self._preset_cursors: dict[int, int] = {}

    def get_or_create(self, session_key: int) -> NoiseSession:
        with self._lock:
            session = self._sessions.get(session_key)
            if session is None:
                session = NoiseSession()
                self._sessions[session_key] = session
            return session

    def peek(self, session_key: int) -> NoiseSession | None:
        with self._lock:
            return self._sessions.get(session_key)

    def keys(self) -> list[int]:
        with self._lock:
            return sorted(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def remote_ref(self, session_key: int) -> RemoteViewRef | None:
        with self._lock:
            return self._remote_refs.get(session_key)

    def set_remote_ref(self, session_key: int, ref: RemoteViewRef) -> None:
        with self._lock:
            self._remote_refs[session_key] = ref

    def preset_cursor(self, session_key: int) -> int:
        with self._lock:
            return self._preset_cursors.setdefault(session_key, 0)

    def set_preset_cursor(self, session_key: int, index: int) -> None:
        with self._lock:
            self._preset_cursors[session_key] = int(index)
