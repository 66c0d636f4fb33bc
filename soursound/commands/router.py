from __future__ import annotations

import asyncio
import logging
from typing import Any

import discord

from soursound.audio.params import SessionRegistry, apply_color, apply_delta, apply_preset
from soursound.audio.presets import PresetCatalog
from soursound.commands.decoding import (
    InvalidControlError,
    NudgeCallback,
    SelectCallback,
    SessionControlCallback,
    TypedCommand,
    decode_control_tag,
    decode_select_value,
    parse_command,
)
from soursound.commands.quick_select import MENU_REACTIONS, QuickSelectFlow
from soursound.config import BotConfig
from soursound.errors import ClientInputError, GeneratorUnavailableError
from soursound.realtime.playback import PlaybackManager
from soursound.remote.discord_view import build_embed
from soursound.remote.synchronizer import RemoteSynchronizer, render_menu_view

logger = logging.getLogger("soursound.router")

JOIN_VOICE_FIRST = "Join a voice channel first."
JOIN_VOICE_TO_PLAY = "Join a voice channel to play audio."
INVALID_CONTROL = "Invalid control."
GENERATOR_FAILED = "Could not start the noise generator."
GENERIC_FAILURE = "Something went wrong handling that command."


def voice_channel_of(member: Any) -> Any:
    return getattr(getattr(member, "voice", None), "channel", None)


def help_text(prefix: str, catalog: PresetCatalog) -> str:
    p = prefix
    return (
        "```\n"
        f"SourSound Commands (Prefix: {p})\n"
        "\n"
        f"{p}remote         open the interactive remote control panel\n"
        f"{p}noises         open the quick presets selector (reaction menu)\n"
        f"{p}play <name>    play a preset by name (e.g. {p}play soft-breeze)\n"
        f"{p}stop           stop playback\n"
        f"{p}leave          disconnect bot\n"
        f"{p}status         show current settings\n"
        "\n"
        "Preset names:\n"
        f"{', '.join(catalog.ids())}\n"
        "\n"
        f"Use {p}remote for fine control (lowpass, highpass, volume, type).\n"
        "```"
    )


class CommandRouter:
    """Turns gateway events into parameter changes and playback calls.

    A change, its playback restart and the remote-view reconcile run under the
    session's playback lock, so views are edited in the order changes land.
    The issuer is answered after the lock is released.
    """

    def __init__(
        self,
        config: BotConfig,
        client: Any,
        registry: SessionRegistry,
        catalog: PresetCatalog,
        playback: PlaybackManager,
        synchronizer: RemoteSynchronizer,
    ) -> None:
        self.config = config
        self.client = client
        self.registry = registry
        self.catalog = catalog
        self.playback = playback
        self.synchronizer = synchronizer

    # ---- typed commands -------------------------------------------------

    async def handle_message(self, message: Any) -> None:
        if getattr(message.author, "bot", False) or message.guild is None:
            return
        command = parse_command(message.content or "", self.config.command_prefix)
        if command is None:
            return
        try:
            await self._dispatch_command(command, message)
        except ClientInputError as exc:
            logger.debug("command %s rejected: %s", command.name, exc)
            await self._safe_reply(message, str(exc))
        except GeneratorUnavailableError as exc:
            logger.warning("command %s failed: %s", command.name, exc)
            await self._safe_reply(message, GENERATOR_FAILED)
        except Exception:
            logger.exception("command %s failed for session %s", command.name, message.guild.id)
            await self._safe_reply(message, GENERIC_FAILURE)

    async def _dispatch_command(self, command: TypedCommand, message: Any) -> None:
        session_key = int(message.guild.id)
        voice_channel = voice_channel_of(message.author)

        if command.name == "help":
            await message.reply(help_text(self.config.command_prefix, self.catalog))
            return

        if command.name == "status":
            view = self.synchronizer.render(session_key, with_controls=False)
            await message.reply(embed=build_embed(view))
            return

        if command.name == "stop":
            async with self.playback.session_lock(session_key):
                await self.playback.stop(session_key)
                await self.synchronizer.reconcile(session_key, message.channel)
            await message.reply("Stopped playback.")
            return

        if command.name == "leave":
            async with self.playback.session_lock(session_key):
                await self.playback.leave(session_key)
                await self.synchronizer.reconcile(session_key, message.channel)
            await message.reply("Left the voice channel.")
            return

        if voice_channel is None:
            raise ClientInputError(JOIN_VOICE_FIRST)

        if command.name == "play":
            preset = self.catalog.find(command.argument)
            if preset is None:
                raise ClientInputError(
                    f"Preset not found. Try {self.config.command_prefix}noises for a menu."
                )
            async with self.playback.session_lock(session_key):
                apply_preset(self.registry.get_or_create(session_key), preset)
                await self.playback.play_current(session_key, voice_channel)
                await self.synchronizer.reconcile(session_key, message.channel)
            await message.reply(f"Now playing **{preset.label}**")
            return

        if command.name == "remote":
            async with self.playback.session_lock(session_key):
                self.registry.get_or_create(session_key)
                await self.synchronizer.reconcile(session_key, message.channel)
            return

        if command.name == "noises":
            await self._run_quick_select(message, session_key, voice_channel)

    # ---- quick-select menu ----------------------------------------------

    async def _run_quick_select(self, message: Any, session_key: int, voice_channel: Any) -> None:
        flow = QuickSelectFlow(
            session_key,
            int(message.author.id),
            self.registry,
            self.catalog,
            timeout_s=self.config.menu_timeout_s,
        )
        menu = await message.reply(embed=build_embed(render_menu_view(flow.current)))
        for emoji in MENU_REACTIONS:
            await menu.add_reaction(emoji)

        def check(reaction: Any, user: Any) -> bool:
            return reaction.message.id == menu.id and flow.accepts(str(reaction.emoji), int(user.id))

        try:
            while not flow.expired():
                try:
                    reaction, user = await self.client.wait_for(
                        "reaction_add", check=check, timeout=flow.remaining()
                    )
                except asyncio.TimeoutError:
                    break
                await self._discard_reaction(reaction, user)
                action = flow.handle(str(reaction.emoji), int(user.id))
                if action is None:
                    continue
                if action.kind == "select":
                    await self._play_from_menu(message, session_key, voice_channel, action.preset)
                try:
                    await menu.edit(embed=build_embed(render_menu_view(flow.current)))
                except discord.HTTPException as exc:
                    logger.debug("quick-select menu edit failed: %s", exc)
        finally:
            flow.close()
        logger.debug("quick-select menu for session %s expired", session_key)

    async def _play_from_menu(self, message: Any, session_key: int, voice_channel: Any, preset: Any) -> None:
        try:
            async with self.playback.session_lock(session_key):
                apply_preset(self.registry.get_or_create(session_key), preset)
                await self.playback.play_current(session_key, voice_channel)
                await self.synchronizer.reconcile(session_key, message.channel)
        except GeneratorUnavailableError as exc:
            logger.warning("quick-select play failed: %s", exc)
            await self._safe_reply(message, GENERATOR_FAILED)
            return
        await self._safe_reply(message, f"Now playing **{preset.label}**")

    async def _discard_reaction(self, reaction: Any, user: Any) -> None:
        try:
            await reaction.remove(user)
        except discord.HTTPException as exc:
            logger.debug("could not remove menu reaction: %s", exc)

    # ---- component callbacks --------------------------------------------

    async def handle_interaction(self, interaction: Any) -> None:
        if interaction.type is not discord.InteractionType.component:
            return
        data = interaction.data or {}
        try:
            callback = decode_control_tag(str(data.get("custom_id", "")))
            guild_id = getattr(interaction, "guild_id", None)
            if guild_id is not None and int(guild_id) != callback.session_key:
                raise InvalidControlError("control belongs to another session")
        except InvalidControlError as exc:
            logger.debug("rejected control: %s", exc)
            await self._respond(interaction, INVALID_CONTROL)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            async with self.playback.session_lock(callback.session_key):
                content = await self._dispatch_callback(
                    callback, interaction, list(data.get("values") or [])
                )
        except ClientInputError as exc:
            content = str(exc)
        except GeneratorUnavailableError as exc:
            logger.warning("control %s failed: %s", callback.kind, exc)
            content = GENERATOR_FAILED
        except Exception:
            logger.exception("control %s failed for session %s", callback.kind, callback.session_key)
            content = GENERIC_FAILURE
        await self._followup(interaction, content)

    async def _dispatch_callback(
        self,
        callback: SelectCallback | NudgeCallback | SessionControlCallback,
        interaction: Any,
        values: list[str],
    ) -> str:
        session_key = callback.session_key
        voice_channel = voice_channel_of(interaction.user)

        if isinstance(callback, SessionControlCallback):
            if callback.operation == "play":
                if voice_channel is None:
                    raise ClientInputError(JOIN_VOICE_TO_PLAY)
                await self.playback.play_current(session_key, voice_channel)
                reply = "Playing (settings applied)."
            elif callback.operation == "stop":
                await self.playback.stop(session_key)
                reply = "Stopped playback."
            else:
                await self.playback.leave(session_key)
                reply = "Left the voice channel."
            await self.synchronizer.reconcile(session_key, interaction.channel)
            return reply

        session = self.registry.get_or_create(session_key)
        if isinstance(callback, SelectCallback):
            if not values:
                raise ClientInputError("No selection.")
            if callback.target == "preset":
                try:
                    preset_id = decode_select_value("preset", values[0])
                except InvalidControlError as exc:
                    raise ClientInputError("Invalid preset value.") from exc
                preset = self.catalog.get(preset_id)
                if preset is None:
                    raise ClientInputError("Preset not found.")
                apply_preset(session, preset)
                reply = f"Applied preset **{preset.label}**"
            else:
                try:
                    color = decode_select_value("color", values[0])
                except InvalidControlError as exc:
                    raise ClientInputError("Invalid type.") from exc
                apply_color(session, color)  # type: ignore[arg-type]
                reply = f"Noise type set to {color}"
        else:
            apply_delta(session, callback.field, callback.direction, callback.magnitude)
            reply = "Updated setting."

        # Settings changed; only restart audio when the issuer can hear it.
        if voice_channel is not None:
            await self.playback.play_current(session_key, voice_channel)
        else:
            self.playback.notify_changed(session_key)
        await self.synchronizer.reconcile(session_key, interaction.channel)
        return reply

    # ---- replies --------------------------------------------------------

    async def _safe_reply(self, message: Any, content: str) -> None:
        try:
            await message.reply(content)
        except discord.HTTPException as exc:
            logger.debug("reply failed: %s", exc)

    async def _respond(self, interaction: Any, content: str) -> None:
        try:
            await interaction.response.send_message(content, ephemeral=True)
        except discord.HTTPException as exc:
            logger.debug("interaction response failed: %s", exc)

    async def _followup(self, interaction: Any, content: str) -> None:
        try:
            await interaction.followup.send(content, ephemeral=True)
        except discord.HTTPException as exc:
            logger.debug("interaction followup failed: %s", exc)
