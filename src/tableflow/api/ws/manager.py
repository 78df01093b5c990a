from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """WebSocket clients grouped by the event topic they listen to."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._socket_to_topic: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, websocket: WebSocket, topic: str, role: str) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[topic].add(websocket)
            self._socket_to_topic[websocket] = topic
        logger.info("ws_client_connected", extra={"topic": topic, "role": role})

    async def unregister(self, websocket: WebSocket) -> None:
        async with self._lock:
            topic = self._socket_to_topic.pop(websocket, None)
            if topic is None:
                return
            sockets = self._connections.get(topic)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(topic, None)
        logger.info("ws_client_disconnected", extra={"topic": topic})

    async def broadcast(self, topic: str, message_json_str: str) -> None:
        async with self._lock:
            targets = list(self._connections.get(topic, set()))

        stale: list[WebSocket] = []
        for websocket in targets:
            try:
                await websocket.send_text(message_json_str)
            except Exception:
                stale.append(websocket)

        for websocket in stale:
            await self.unregister(websocket)
