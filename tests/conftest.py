from __future__ import annotations

import asyncio
import io
import itertools
from types import SimpleNamespace
from typing import Any

import discord
import pytest

from soursound.audio.generator import GeneratorSupervisor
from soursound.audio.params import SessionRegistry
from soursound.audio.presets import PresetCatalog
from soursound.commands.router import CommandRouter
from soursound.config import BotConfig
from soursound.realtime.playback import PlaybackManager
from soursound.remote.synchronizer import RemoteSynchronizer

_ids = itertools.count(1000)


def http_error(cls: type[discord.HTTPException], status: int, text: str) -> discord.HTTPException:
    return cls(SimpleNamespace(status=status, reason=text), text)


class FakeProcess:
    def __init__(self, command: list[str], **kwargs: Any) -> None:
        self.command = command
        self.kwargs = kwargs
        self.pid = next(_ids)
        self.returncode: int | None = None
        self.stdout = io.BytesIO(b"\x00" * 3840)
        self.kill_calls = 0

    def poll(self) -> int | None:
        return self.returncode

    def kill(self) -> None:
        self.kill_calls += 1
        self.returncode = -9

    def wait(self, timeout: float | None = None) -> int | None:
        return self.returncode


class FakePopen:
    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []

    def __call__(self, command: list[str], **kwargs: Any) -> FakeProcess:
        proc = FakeProcess(command, **kwargs)
        self.processes.append(proc)
        return proc


class FakeVoiceClient:
    def __init__(self, channel: Any) -> None:
        self.channel = channel
        self.connected = True
        self.playing = False
        self.sources: list[Any] = []
        self.stop_calls = 0
        self.moves: list[Any] = []
        self.disconnects = 0

    def is_connected(self) -> bool:
        return self.connected

    def is_playing(self) -> bool:
        return self.playing

    def is_paused(self) -> bool:
        return False

    def play(self, source: Any, after: Any = None) -> None:
        if self.playing:
            raise discord.ClientException("Already playing audio.")
        self.sources.append(source)
        self.playing = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.playing = False

    async def move_to(self, channel: Any) -> None:
        self.moves.append(channel)
        self.channel = channel

    async def disconnect(self, force: bool = False) -> None:
        self.disconnects += 1
        self.connected = False
        self.playing = False


class FakeVoiceChannel:
    def __init__(self, channel_id: int, guild: Any) -> None:
        self.id = channel_id
        self.guild = guild
        self.connect_calls = 0

    async def connect(self, self_deaf: bool = False) -> FakeVoiceClient:
        self.connect_calls += 1
        client = FakeVoiceClient(self)
        self.guild.voice_client = client
        return client


class FakeSentMessage:
    def __init__(self, channel: "FakeTextChannel", content: str | None, kwargs: dict[str, Any]) -> None:
        self.id = next(_ids)
        self.channel = channel
        self.content = content
        self.kwargs = kwargs
        self.edits: list[dict[str, Any]] = []
        self.reactions: list[str] = []

    async def edit(self, **kwargs: Any) -> None:
        self.edits.append(kwargs)

    async def add_reaction(self, emoji: str) -> None:
        self.reactions.append(emoji)


class FakeTextChannel:
    def __init__(self, channel_id: int) -> None:
        self.id = channel_id
        self.sent: list[FakeSentMessage] = []
        self.messages: dict[int, FakeSentMessage] = {}

    async def send(self, content: str | None = None, **kwargs: Any) -> FakeSentMessage:
        msg = FakeSentMessage(self, content, kwargs)
        self.sent.append(msg)
        self.messages[msg.id] = msg
        return msg

    async def fetch_message(self, message_id: int) -> FakeSentMessage:
        msg = self.messages.get(message_id)
        if msg is None:
            raise http_error(discord.NotFound, 404, "Unknown Message")
        return msg


class FakeGateway:
    """Stands in for ``discord.Client`` as seen by the synchronizer and router."""

    def __init__(self) -> None:
        self.channels: dict[int, Any] = {}
        self.pending_reactions: list[tuple[Any, Any]] = []
        self.wait_for_timeouts: list[float | None] = []

    def add_channel(self, channel: Any) -> Any:
        self.channels[channel.id] = channel
        return channel

    def get_channel(self, channel_id: int) -> Any:
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id: int) -> Any:
        raise http_error(discord.NotFound, 404, "Unknown Channel")

    async def wait_for(self, event: str, *, check: Any = None, timeout: float | None = None) -> Any:
        self.wait_for_timeouts.append(timeout)
        while self.pending_reactions:
            reaction, user = self.pending_reactions.pop(0)
            if check is None or check(reaction, user):
                return reaction, user
        raise asyncio.TimeoutError()


class FakeMember:
    def __init__(self, user_id: int, voice_channel: Any = None) -> None:
        self.id = user_id
        self.bot = False
        self.voice = SimpleNamespace(channel=voice_channel) if voice_channel is not None else None


class FakeIncomingMessage:
    def __init__(self, content: str, author: FakeMember, guild: Any, channel: FakeTextChannel) -> None:
        self.content = content
        self.author = author
        self.guild = guild
        self.channel = channel
        self.replies: list[FakeSentMessage] = []

    async def reply(self, content: str | None = None, **kwargs: Any) -> FakeSentMessage:
        msg = FakeSentMessage(self.channel, content, kwargs)
        self.channel.messages[msg.id] = msg
        self.replies.append(msg)
        return msg


class FakeReaction:
    def __init__(self, message: Any, emoji: str) -> None:
        self.message = message
        self.emoji = emoji
        self.removed_for: list[Any] = []

    async def remove(self, user: Any) -> None:
        self.removed_for.append(user)


class FakeInteractionResponse:
    def __init__(self) -> None:
        self.messages: list[tuple[str, bool]] = []
        self.deferred = False

    async def send_message(self, content: str, ephemeral: bool = False) -> None:
        self.messages.append((content, ephemeral))

    async def defer(self, ephemeral: bool = False, thinking: bool = False) -> None:
        self.deferred = True


class FakeFollowup:
    def __init__(self) -> None:
        self.messages: list[tuple[str, bool]] = []

    async def send(self, content: str, ephemeral: bool = False) -> None:
        self.messages.append((content, ephemeral))


class FakeInteraction:
    type = discord.InteractionType.component

    def __init__(
        self,
        custom_id: str,
        user: FakeMember,
        channel: FakeTextChannel,
        guild_id: int | None,
        values: list[str] | None = None,
    ) -> None:
        self.data: dict[str, Any] = {"custom_id": custom_id}
        if values is not None:
            self.data["values"] = values
        self.user = user
        self.channel = channel
        self.guild_id = guild_id
        self.response = FakeInteractionResponse()
        self.followup = FakeFollowup()

    def replies(self) -> list[str]:
        return [c for c, _ in self.response.messages] + [c for c, _ in self.followup.messages]


def make_config(**overrides: Any) -> BotConfig:
    values: dict[str, Any] = {
        "discord_token": "",
        "command_prefix": "S",
        "presence_text": "Shelp | Sremote",
        "ffmpeg_path": "ffmpeg",
        "sample_rate": 48000,
        "channels": 2,
        "menu_timeout_s": 120.0,
        "status_api_enabled": False,
        "status_api_host": "127.0.0.1",
        "status_api_port": 8788,
        "log_level": "INFO",
    }
    values.update(overrides)
    return BotConfig(**values)


class Harness:
    GUILD_ID = 4242

    def __init__(self, **config_overrides: Any) -> None:
        self.config = make_config(**config_overrides)
        self.popen = FakePopen()
        self.gateway = FakeGateway()
        self.registry = SessionRegistry()
        self.catalog = PresetCatalog()
        self.supervisor = GeneratorSupervisor("ffmpeg", popen=self.popen)
        self.events: list[Any] = []
        self.playback = PlaybackManager(
            self.registry,
            self.supervisor,
            event_sink=self.events.append,
        )
        self.synchronizer = RemoteSynchronizer(self.registry, self.catalog, self.gateway)
        self.router = CommandRouter(
            self.config,
            self.gateway,
            self.registry,
            self.catalog,
            self.playback,
            self.synchronizer,
        )
        self.guild = SimpleNamespace(id=self.GUILD_ID, voice_client=None)
        self.text_channel = self.gateway.add_channel(FakeTextChannel(next(_ids)))
        self.voice_channel = FakeVoiceChannel(next(_ids), self.guild)

    def member(self, user_id: int = 7, *, in_voice: bool = True) -> FakeMember:
        return FakeMember(user_id, self.voice_channel if in_voice else None)

    def message(self, content: str, *, in_voice: bool = True, user_id: int = 7) -> FakeIncomingMessage:
        return FakeIncomingMessage(content, self.member(user_id, in_voice=in_voice), self.guild, self.text_channel)

    def interaction(
        self,
        custom_id: str,
        *,
        values: list[str] | None = None,
        in_voice: bool = True,
        guild_id: int | None = GUILD_ID,
    ) -> FakeInteraction:
        return FakeInteraction(custom_id, self.member(in_voice=in_voice), self.text_channel, guild_id, values)

    def live_processes(self) -> list[FakeProcess]:
        return [p for p in self.popen.processes if p.poll() is None]


@pytest.fixture
def harness() -> Harness:
    return Harness()
