from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal

from soursound.audio.params import SessionRegistry
from soursound.audio.presets import PresetCatalog
from soursound.types import Preset

PREVIOUS = "⬅️"
SELECT = "▶️"
NEXT = "➡️"
MENU_REACTIONS: tuple[str, ...] = (PREVIOUS, SELECT, NEXT)


@dataclass(frozen=True, slots=True)
class MenuAction:
    kind: Literal["move", "select"]
    index: int
    preset: Preset


class QuickSelectFlow:
    """Reaction-driven preset picker bound to one user and one deadline.

    The cursor position is written back to the registry on every reaction, so
    the next menu opened for the session starts where this one left off.
    """

    def __init__(
        self,
        session_key: int,
        user_id: int,
        registry: SessionRegistry,
        catalog: PresetCatalog,
        *,
        timeout_s: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_key = session_key
        self.user_id = user_id
        self.registry = registry
        self.catalog = catalog
        self._clock = clock
        self.deadline = clock() + timeout_s
        self.index = registry.preset_cursor(session_key) % len(catalog)
        self.closed = False

    @property
    def current(self) -> Preset:
        return self.catalog.at(self.index)

    def remaining(self) -> float:
        return max(0.0, self.deadline - self._clock())

    def expired(self) -> bool:
        return self.closed or self._clock() >= self.deadline

    def accepts(self, emoji: str, user_id: int) -> bool:
        return not self.expired() and user_id == self.user_id and emoji in MENU_REACTIONS

    def handle(self, emoji: str, user_id: int) -> MenuAction | None:
        if not self.accepts(emoji, user_id):
            return None
        if emoji == PREVIOUS:
            self.index = self.catalog.step(self.index, -1)
        elif emoji == NEXT:
            self.index = self.catalog.step(self.index, 1)
        self.registry.set_preset_cursor(self.session_key, self.index)
        kind: Literal["move", "select"] = "select" if emoji == SELECT else "move"
        return MenuAction(kind=kind, index=self.index, preset=self.current)

    def close(self) -> None:
        self.closed = True
