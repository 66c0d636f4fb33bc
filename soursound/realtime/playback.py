from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, IO

import discord

from soursound.audio.generator import GeneratorSupervisor
from soursound.audio.params import SessionRegistry, clamp_session, to_generator_params
from soursound.types import SessionStateResponse, WsEvent

logger = logging.getLogger("soursound.playback")

VoiceConnect = Callable[[Any], Awaitable[Any]]
ConnectionLookup = Callable[[int], Any]
AudioFactory = Callable[[IO[bytes]], Any]


async def connect_voice_channel(target: Any) -> Any:
    """Join ``target`` or reuse the guild's existing voice client."""
    existing = getattr(target.guild, "voice_client", None)
    if existing is not None and existing.is_connected():
        if getattr(existing.channel, "id", None) != target.id:
            await existing.move_to(target)
        return existing
    return await target.connect(self_deaf=True)


class SinkPlayer:
    """A guild's voice client used as the audio sink.

    Lives across generator restarts; only the PCM source is swapped.
    """

    def __init__(
        self,
        session_key: int,
        voice_client: Any,
        audio_factory: AudioFactory = discord.PCMAudio,
    ) -> None:
        self.session_key = session_key
        self.voice_client = voice_client
        self._audio_factory = audio_factory

    @property
    def channel_id(self) -> int | None:
        return getattr(getattr(self.voice_client, "channel", None), "id", None)

    def connected(self) -> bool:
        return bool(self.voice_client.is_connected())

    def busy(self) -> bool:
        return bool(self.voice_client.is_playing() or self.voice_client.is_paused())

    def attach(self, stream: IO[bytes]) -> None:
        source = self._audio_factory(stream)
        if self.busy():
            self.voice_client.stop()
        self.voice_client.play(source, after=self._after)

    def stop(self) -> None:
        if self.busy():
            self.voice_client.stop()

    def _after(self, error: Exception | None) -> None:
        # Runs on discord.py's player thread.
        if error is not None:
            logger.warning("voice playback ended with error: session=%s error=%s", self.session_key, error)


class PlaybackManager:
    """Single entry point that turns settings into sound.

    Every operation on one session runs under that session's lock, so a
    restart always reads, restarts and re-attaches as one unit. Callers that
    mutate settings hold the same lock through the restart and the view
    update; it is reentrant for the task holding it.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        supervisor: GeneratorSupervisor,
        *,
        connect: VoiceConnect = connect_voice_channel,
        find_connection: ConnectionLookup | None = None,
        audio_factory: AudioFactory = discord.PCMAudio,
        event_sink: Callable[[WsEvent], None] | None = None,
        sample_rate: int = 48000,
        channels: int = 2,
    ) -> None:
        self.registry = registry
        self.supervisor = supervisor
        self._connect = connect
        self._find_connection = find_connection
        self._audio_factory = audio_factory
        self._event_sink = event_sink
        self.sample_rate = sample_rate
        self.channels = channels
        self._sinks: dict[int, SinkPlayer] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._owners: dict[int, asyncio.Task[Any]] = {}

    def _lock_for(self, session_key: int) -> asyncio.Lock:
        lock = self._locks.get(session_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_key] = lock
        return lock

    @asynccontextmanager
    async def session_lock(self, session_key: int) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and self._owners.get(session_key) is task:
            yield
            return
        async with self._lock_for(session_key):
            if task is not None:
                self._owners[session_key] = task
            try:
                yield
            finally:
                self._owners.pop(session_key, None)

    def sink(self, session_key: int) -> SinkPlayer | None:
        return self._sinks.get(session_key)

    async def play_current(self, session_key: int, target: Any) -> None:
        async with self.session_lock(session_key):
            session = clamp_session(self.registry.get_or_create(session_key))
            params = to_generator_params(
                session,
                sample_rate=self.sample_rate,
                channels=self.channels,
            )
            sink = await self._ensure_sink(session_key, target)
            # The old source must stop reading before its pipe is closed.
            sink.stop()
            handle = await asyncio.to_thread(self.supervisor.start, session_key, params)
            sink.attach(handle.stdout)
        self.notify_changed(session_key)

    async def stop(self, session_key: int) -> None:
        async with self.session_lock(session_key):
            sink = self._sinks.get(session_key)
            if sink is not None:
                sink.stop()
            await asyncio.to_thread(self.supervisor.terminate, session_key)
        self.notify_changed(session_key)

    async def leave(self, session_key: int) -> None:
        async with self.session_lock(session_key):
            sink = self._sinks.pop(session_key, None)
            voice_client = sink.voice_client if sink is not None else None
            if voice_client is None and self._find_connection is not None:
                voice_client = self._find_connection(session_key)
            if voice_client is not None:
                try:
                    await voice_client.disconnect(force=True)
                except (discord.DiscordException, asyncio.TimeoutError, OSError) as exc:
                    logger.warning("voice disconnect failed: session=%s error=%s", session_key, exc)
            await asyncio.to_thread(self.supervisor.terminate, session_key)
        self.notify_changed(session_key)

    async def shutdown(self) -> None:
        for session_key in list(self._sinks):
            await self.leave(session_key)
        self.supervisor.terminate_all()

    async def _ensure_sink(self, session_key: int, target: Any) -> SinkPlayer:
        sink = self._sinks.get(session_key)
        if sink is not None and sink.connected():
            if sink.channel_id != getattr(target, "id", None):
                await sink.voice_client.move_to(target)
            return sink
        voice_client = await self._connect(target)
        sink = SinkPlayer(session_key, voice_client, audio_factory=self._audio_factory)
        self._sinks[session_key] = sink
        logger.info("voice sink attached: session=%s channel=%s", session_key, sink.channel_id)
        return sink

    def state(self, session_key: int) -> SessionStateResponse | None:
        session = self.registry.peek(session_key)
        if session is None:
            return None
        sink = self._sinks.get(session_key)
        ref = self.registry.remote_ref(session_key)
        return SessionStateResponse(
            session_key=session_key,
            noise_color=session.noise_color,
            lowpass_hz=session.lowpass_hz,
            highpass_hz=session.highpass_hz,
            volume=session.volume,
            active_preset=session.active_preset,
            generator_running=self.supervisor.is_running(session_key),
            sink_attached=sink is not None and sink.connected(),
            remote_view=(
                {"channel_id": ref.channel_id, "message_id": ref.message_id}
                if ref is not None
                else None
            ),
        )

    def notify_changed(self, session_key: int) -> None:
        if self._event_sink is None:
            return
        state = self.state(session_key)
        if state is None:
            return
        self._event_sink(WsEvent(type="session_changed", data=state.model_dump()))
