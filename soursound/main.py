from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Literal

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from soursound.audio.generator import GeneratorSupervisor
from soursound.audio.params import SessionRegistry
from soursound.audio.presets import PresetCatalog
from soursound.bot import SourSoundBot
from soursound.config import BotConfig
from soursound.types import HealthResponse, Preset, SessionStateResponse, WsEvent
from soursound.ws_manager import SessionEventHub

config = BotConfig.from_env()
logger = logging.getLogger("soursound")
logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

registry = SessionRegistry()
catalog = PresetCatalog()
supervisor = GeneratorSupervisor(config.ffmpeg_path)
event_hub = SessionEventHub()

_loop: asyncio.AbstractEventLoop | None = None


def _event_sink(event: WsEvent) -> None:
    if _loop is None:
        return
    _loop.call_soon_threadsafe(asyncio.create_task, event_hub.publish(event.model_dump()))


bot = SourSoundBot(config, registry, catalog, supervisor, event_sink=_event_sink)


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _loop
    _loop = asyncio.get_running_loop()
    yield


app = FastAPI(title="SourSound Status", version="0.1.0", lifespan=lifespan)


@app.get("/api/v1/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    ffmpeg_ok = config.ffmpeg_available()
    connected = bot.gateway_connected()
    status: Literal["ok", "degraded"]
    if not ffmpeg_ok:
        status = "degraded"
        detail = f"ffmpeg not found at {config.ffmpeg_path!r}"
    elif not connected:
        status = "degraded"
        detail = "discord gateway is not connected"
    else:
        status = "ok"
        detail = "gateway connected and ffmpeg available"
    return HealthResponse(
        status=status,
        gateway_connected=connected,
        ffmpeg_path=config.ffmpeg_path,
        ffmpeg_available=ffmpeg_ok,
        session_count=len(registry),
        live_generators=supervisor.live_count(),
        detail=detail,
    )


@app.get("/api/v1/presets", response_model=list[Preset])
async def list_presets() -> list[Preset]:
    return list(catalog)


@app.get("/api/v1/sessions", response_model=list[SessionStateResponse])
async def list_sessions() -> list[SessionStateResponse]:
    out: list[SessionStateResponse] = []
    for key in registry.keys():
        state = bot.playback.state(key)
        if state is not None:
            out.append(state)
    return out


@app.get("/api/v1/sessions/{session_key}", response_model=SessionStateResponse)
async def get_session(session_key: int) -> SessionStateResponse:
    state = bot.playback.state(session_key)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_key}")
    return state


@app.websocket("/ws/sessions")
async def ws_sessions(websocket: WebSocket, session_key: int | None = None):
    await event_hub.connect(websocket, session_key)
    try:
        keys = [session_key] if session_key is not None else registry.keys()
        for key in keys:
            state = bot.playback.state(key)
            if state is not None:
                await websocket.send_json(
                    WsEvent(type="session_changed", data=state.model_dump()).model_dump()
                )
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await event_hub.disconnect(websocket)
    except Exception:
        await event_hub.disconnect(websocket)


async def serve() -> None:
    global _loop
    _loop = asyncio.get_running_loop()
    if not config.discord_token:
        raise RuntimeError("SOURSOUND_DISCORD_TOKEN (or DISCORD_BOT_TOKEN) is not set")
    if not config.ffmpeg_available():
        logger.warning("ffmpeg not found at %r; playback will fail", config.ffmpeg_path)

    tasks = [bot.start(config.discord_token)]
    server: uvicorn.Server | None = None
    if config.status_api_enabled:
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.status_api_host,
                port=config.status_api_port,
                log_level=config.log_level.lower(),
            )
        )
        tasks.append(server.serve())
        logger.info(
            "status api listening on http://%s:%s",
            config.status_api_host,
            config.status_api_port,
        )
    try:
        await asyncio.gather(*tasks)
    finally:
        if server is not None:
            server.should_exit = True
        if not bot.is_closed():
            await bot.close()


def main() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("interrupted; shutting down")
