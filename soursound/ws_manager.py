from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket


class SessionEventHub:
    """Fans session events out to websocket listeners.

    A listener may subscribe to a single session; ``None`` means every
    session.
    """

    def __init__(self) -> None:
        self._listeners: dict[WebSocket, int | None] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_key: int | None = None) -> None:
        await websocket.accept()
        async with self._lock:
            self._listeners[websocket] = session_key

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._listeners.pop(websocket, None)

    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, message: dict[str, Any]) -> None:
        session_key = (message.get("data") or {}).get("session_key")
        async with self._lock:
            targets = [
                ws
                for ws, wanted in self._listeners.items()
                if wanted is None or wanted == session_key
            ]
        dead: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_json(message)
            except Exception:
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._listeners.pop(ws, None)
