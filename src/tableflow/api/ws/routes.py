from __future__ import annotations

import logging
import re

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from tableflow.api.ws.manager import ConnectionManager

router = APIRouter()
logger = logging.getLogger(__name__)

_TOPIC_PATTERN = re.compile(r"^(admin|runner|station:(food|drinks)|order:[A-Z0-9]{4,12})$")


def is_valid_topic(topic: str) -> bool:
    return bool(_TOPIC_PATTERN.match(topic))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    topic = (websocket.query_params.get("topic") or "").strip()
    role = websocket.query_params.get("role", "unknown")
    if topic.startswith("order:"):
        topic = "order:" + topic.split(":", 1)[1].upper()
    if not is_valid_topic(topic):
        await websocket.close(code=1008, reason="a valid topic query parameter is required")
        return

    manager: ConnectionManager = websocket.app.state.ws_manager
    await manager.register(websocket=websocket, topic=topic, role=role)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.unregister(websocket)
    except Exception:
        logger.exception("ws_connection_error", extra={"topic": topic})
        await manager.unregister(websocket)
