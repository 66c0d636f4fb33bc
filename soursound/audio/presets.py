from __future__ import annotations

from collections.abc import Iterator, Sequence

from soursound.types import Preset

DEFAULT_PRESETS: tuple[Preset, ...] = (
    Preset(
        id="deep-rumble",
        label="Deep Rumble",
        description="Very low, deep, sub-bass rumble",
        noise_color="brown",
        lowpass_hz=250,
        highpass_hz=2,
        volume=0.6,
    ),
    Preset(
        id="soft-breeze",
        label="Soft Breeze",
        description="Soft, airy, great for sleeping",
        noise_color="pink",
        lowpass_hz=1500,
        highpass_hz=0,
        volume=0.3,
    ),
    Preset(
        id="smooth-brown",
        label="Smooth Brown",
        description="Balanced brown noise, warm & steady",
        noise_color="brown",
        lowpass_hz=800,
        highpass_hz=10,
        volume=0.4,
    ),
    Preset(
        id="wind-tunnel",
        label="Wind Tunnel",
        description="Whooshing like inside an airplane cabin",
        noise_color="pink",
        lowpass_hz=3000,
        highpass_hz=40,
        volume=0.5,
    ),
    Preset(
        id="bright-hiss",
        label="Bright Hiss",
        description="Sharper, high-frequency static-like hiss",
        noise_color="white",
        lowpass_hz=12000,
        highpass_hz=200,
        volume=0.5,
    ),
)


class PresetCatalog:
    """Ordered, read-only list of presets.

    Order matters: the quick-select menu walks it cyclically.
    """

    def __init__(self, presets: Sequence[Preset] = DEFAULT_PRESETS) -> None:
        if not presets:
            raise ValueError("preset catalog must not be empty")
        ids = [p.id for p in presets]
        if len(set(ids)) != len(ids):
            raise ValueError("preset ids must be unique")
        self._presets: tuple[Preset, ...] = tuple(presets)

    def __len__(self) -> int:
        return len(self._presets)

    def __iter__(self) -> Iterator[Preset]:
        return iter(self._presets)

    def at(self, index: int) -> Preset:
        return self._presets[index % len(self._presets)]

    def get(self, preset_id: str | None) -> Preset | None:
        if not preset_id:
            return None
        for preset in self._presets:
            if preset.id == preset_id:
                return preset
        return None

    def find(self, name: str) -> Preset | None:
        # Matches either the id or the display label, case-insensitively.
        key = " ".join(str(name or "").split()).lower()
        if not key:
            return None
        for preset in self._presets:
            if preset.id == key or preset.label.lower() == key:
                return preset
        return None

    def step(self, index: int, offset: int) -> int:
        return (index + offset) % len(self._presets)

    def ids(self) -> list[str]:
        return [p.id for p in self._presets]
