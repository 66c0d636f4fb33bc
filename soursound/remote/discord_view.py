from __future__ import annotations

from typing import Any

import discord

from soursound.types import RemoteView

_BUTTON_STYLES = {
    "primary": discord.ButtonStyle.primary,
    "secondary": discord.ButtonStyle.secondary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
}


def build_embed(view: RemoteView) -> discord.Embed:
    embed = discord.Embed(
        title=view.title,
        description=view.description,
        color=discord.Color(view.color),
    )
    for field in view.fields:
        embed.add_field(name=field.name, value=field.value, inline=field.inline)
    if view.footer:
        embed.set_footer(text=view.footer)
    return embed


def build_components(view: RemoteView) -> discord.ui.View | None:
    """Components carry only custom ids; clicks are routed by ``on_interaction``."""
    if not view.selectors and not view.button_rows:
        return None
    ui_view = discord.ui.View(timeout=None)
    row = 0
    for selector in view.selectors:
        ui_view.add_item(
            discord.ui.Select(
                custom_id=selector.custom_id,
                placeholder=selector.placeholder,
                options=[
                    discord.SelectOption(
                        label=option.label,
                        value=option.value,
                        description=option.description or None,
                    )
                    for option in selector.options
                ],
                row=row,
            )
        )
        row += 1
    for buttons in view.button_rows:
        for button in buttons:
            ui_view.add_item(
                discord.ui.Button(
                    style=_BUTTON_STYLES[button.style],
                    label=button.label,
                    custom_id=button.custom_id,
                    row=row,
                )
            )
        row += 1
    return ui_view


def to_message_kwargs(view: RemoteView) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"embed": build_embed(view)}
    components = build_components(view)
    if components is not None:
        kwargs["view"] = components
    return kwargs
