from __future__ import annotations

import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from formpulse.utils import loads_json

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def analytics_socket(websocket: WebSocket) -> None:
    hub = websocket.app.state.hub
    client_id = await hub.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = loads_json(raw)
            except orjson.JSONDecodeError:
                logger.warning("Ignoring malformed frame from %s", client_id)
                continue
            await hub.handle_message(client_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(client_id)
