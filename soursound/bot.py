from __future__ import annotations

import logging
from typing import Any, Callable

import discord

from soursound.audio.generator import GeneratorSupervisor
from soursound.audio.params import SessionRegistry
from soursound.audio.presets import PresetCatalog
from soursound.commands.router import CommandRouter
from soursound.config import BotConfig
from soursound.realtime.playback import PlaybackManager
from soursound.remote.synchronizer import RemoteSynchronizer
from soursound.types import WsEvent

logger = logging.getLogger("soursound.bot")


def build_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.voice_states = True
    intents.guild_messages = True
    intents.message_content = True
    intents.guild_reactions = True
    return intents


class SourSoundBot(discord.Client):
    def __init__(
        self,
        config: BotConfig,
        registry: SessionRegistry,
        catalog: PresetCatalog,
        supervisor: GeneratorSupervisor,
        *,
        event_sink: Callable[[WsEvent], None] | None = None,
    ) -> None:
        super().__init__(intents=build_intents())
        self.config = config
        self.registry = registry
        self.catalog = catalog
        self.supervisor = supervisor
        self.playback = PlaybackManager(
            registry,
            supervisor,
            find_connection=self._voice_client_for,
            event_sink=event_sink,
            sample_rate=config.sample_rate,
            channels=config.channels,
        )
        self.synchronizer = RemoteSynchronizer(registry, catalog, self)
        self.router = CommandRouter(
            config,
            self,
            registry,
            catalog,
            self.playback,
            self.synchronizer,
        )

    def _voice_client_for(self, session_key: int) -> Any:
        guild = self.get_guild(session_key)
        return guild.voice_client if guild is not None else None

    def gateway_connected(self) -> bool:
        return self.is_ready() and not self.is_closed()

    async def on_ready(self) -> None:
        await self.change_presence(
            activity=discord.Game(name=self.config.presence_text),
            status=discord.Status.online,
        )
        logger.info("logged in as %s (guilds=%d)", self.user, len(self.guilds))

    async def on_message(self, message: discord.Message) -> None:
        await self.router.handle_message(message)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        await self.router.handle_interaction(interaction)

    async def close(self) -> None:
        try:
            await self.playback.shutdown()
        finally:
            await super().close()
