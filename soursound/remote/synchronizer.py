from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any

import discord

from soursound.audio.params import SessionRegistry
from soursound.audio.presets import PresetCatalog
from soursound.commands.decoding import (
    color_value,
    control_tag,
    nudge_tag,
    preset_value,
    select_tag,
)
from soursound.remote.discord_view import to_message_kwargs
from soursound.types import (
    NOISE_COLORS,
    ButtonControl,
    NoiseSession,
    Preset,
    RemoteView,
    RemoteViewRef,
    SelectOption,
    SelectorControl,
    ViewField,
)

logger = logging.getLogger("soursound.remote")

REMOTE_TITLE = "🔊 SourSound - Remote Control"
REMOTE_FOOTER = "Fine buttons change small steps; Coarse buttons change larger steps."
MENU_TITLE = "🔊 Noise Selector"
MENU_FOOTER = "⬅️ / ➡️ to change, ▶️ to play"

_COLOR_LABELS = {
    "brown": "Brown (deep)",
    "pink": "Pink (balanced)",
    "white": "White (bright)",
}

# (field, direction, magnitude, label, style), one row per field.
_NUDGE_ROWS: tuple[tuple[tuple[str, str, str, str, str], ...], ...] = (
    (
        ("lowpass", "dec", "coarse", "-500", "secondary"),
        ("lowpass", "dec", "fine", "-100", "secondary"),
        ("lowpass", "inc", "fine", "+100", "primary"),
        ("lowpass", "inc", "coarse", "+500", "primary"),
    ),
    (
        ("highpass", "dec", "coarse", "-50", "secondary"),
        ("highpass", "dec", "fine", "-10", "secondary"),
        ("highpass", "inc", "fine", "+10", "primary"),
        ("highpass", "inc", "coarse", "+50", "primary"),
    ),
)


def _settings_fields(session: NoiseSession, preset: Preset | None) -> list[ViewField]:
    return [
        ViewField(name="Preset", value=preset.label if preset else "Custom"),
        ViewField(name="Noise Type", value=session.noise_color),
        ViewField(name="Volume", value=f"{session.volume:.2f}"),
        ViewField(name="Lowpass", value=f"{session.lowpass_hz} Hz"),
        ViewField(name="Highpass", value=f"{session.highpass_hz} Hz"),
    ]


def render_view(
    session_key: int,
    session: NoiseSession,
    catalog: PresetCatalog,
    *,
    with_controls: bool = True,
) -> RemoteView:
    preset = catalog.get(session.active_preset)
    view = RemoteView(
        title=REMOTE_TITLE,
        description=preset.description if preset else None,
        fields=_settings_fields(session, preset),
        footer=REMOTE_FOOTER,
    )
    if not with_controls:
        return view

    view.selectors = [
        SelectorControl(
            custom_id=select_tag("preset", session_key),
            placeholder="Choose preset",
            options=[
                SelectOption(
                    label=p.label,
                    value=preset_value(p.id),
                    description=p.description[:50],
                )
                for p in catalog
            ],
        ),
        SelectorControl(
            custom_id=select_tag("color", session_key),
            placeholder="Noise type",
            options=[
                SelectOption(label=_COLOR_LABELS[c], value=color_value(c))
                for c in NOISE_COLORS
            ],
        ),
    ]
    rows = [
        [
            ButtonControl(
                custom_id=nudge_tag(field, direction, magnitude, session_key),
                label=label,
                style=style,
            )
            for field, direction, magnitude, label, style in row
        ]
        for row in _NUDGE_ROWS
    ]
    rows.append(
        [
            ButtonControl(custom_id=nudge_tag("volume", "dec", "coarse", session_key), label="-0.10"),
            ButtonControl(
                custom_id=nudge_tag("volume", "inc", "coarse", session_key),
                label="+0.10",
                style="primary",
            ),
            ButtonControl(custom_id=control_tag("play", session_key), label="▶ Play", style="success"),
            ButtonControl(custom_id=control_tag("stop", session_key), label="⏹ Stop", style="danger"),
            ButtonControl(custom_id=control_tag("leave", session_key), label="👋 Leave"),
        ]
    )
    view.button_rows = rows
    return view


def render_menu_view(preset: Preset) -> RemoteView:
    return RemoteView(
        title=MENU_TITLE,
        description=f"**{preset.label}**: {preset.description}",
        fields=[
            ViewField(name="Type", value=preset.noise_color),
            ViewField(name="Lowpass", value=f"{preset.lowpass_hz} Hz"),
            ViewField(name="Highpass", value=f"{preset.highpass_hz} Hz"),
            ViewField(name="Volume", value=f"{preset.volume:g}"),
        ],
        footer=MENU_FOOTER,
    )


class EditOutcome(enum.Enum):
    UPDATED = "updated"
    STALE = "stale"
    FATAL = "fatal"


@dataclass(slots=True)
class EditResult:
    outcome: EditOutcome
    message: Any = None
    error: BaseException | None = None


class RemoteSynchronizer:
    """Keeps one remote-control message per session in step with its settings.

    The stored message reference is only a hint: if the message or channel is
    gone, a fresh message is posted and the reference replaced.
    """

    def __init__(self, registry: SessionRegistry, catalog: PresetCatalog, client: Any) -> None:
        self.registry = registry
        self.catalog = catalog
        self.client = client

    def render(self, session_key: int, *, with_controls: bool = True) -> RemoteView:
        session = self.registry.get_or_create(session_key)
        return render_view(session_key, session, self.catalog, with_controls=with_controls)

    async def reconcile(self, session_key: int, destination: Any) -> Any:
        view = self.render(session_key)
        ref = self.registry.remote_ref(session_key)
        if ref is not None:
            result = await self._edit_existing(ref, view)
            if result.outcome is EditOutcome.UPDATED:
                return result.message
            if result.outcome is EditOutcome.FATAL and result.error is not None:
                raise result.error
            logger.info(
                "remote view for session %s is stale (channel=%s message=%s); sending a new one",
                session_key,
                ref.channel_id,
                ref.message_id,
            )
        sent = await destination.send(**to_message_kwargs(view))
        self.registry.set_remote_ref(
            session_key,
            RemoteViewRef(channel_id=int(destination.id), message_id=int(sent.id)),
        )
        return sent

    async def _fetch_channel(self, channel_id: int) -> Any:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        return channel

    async def _edit_existing(self, ref: RemoteViewRef, view: RemoteView) -> EditResult:
        try:
            channel = await self._fetch_channel(ref.channel_id)
            message = await channel.fetch_message(ref.message_id)
            await message.edit(**to_message_kwargs(view))
        except discord.NotFound as exc:
            return EditResult(EditOutcome.STALE, error=exc)
        except (discord.Forbidden, discord.HTTPException, discord.InvalidData, asyncio.TimeoutError) as exc:
            logger.debug("remote view edit failed: %s", exc)
            return EditResult(EditOutcome.STALE, error=exc)
        except Exception as exc:
            logger.exception("unexpected error while editing remote view %s", ref)
            return EditResult(EditOutcome.FATAL, error=exc)
        return EditResult(EditOutcome.UPDATED, message=message)
