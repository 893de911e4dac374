from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

from formpulse.channel import (
    CONNECTED_EVENT,
    FORM_UPDATE_EVENT,
    JOIN_MESSAGE,
    JOINED_EVENT,
    LEAVE_MESSAGE,
    UPDATE_EVENT,
)
from formpulse.utils import dumps_json, new_ulid

logger = logging.getLogger(__name__)


class AnalyticsHub:
    def __init__(self) -> None:
        self._clients: dict[str, WebSocket] = {}
        self._rooms: dict[str, dict[str, WebSocket]] = {}

    def room_size(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, {}))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        client_id = new_ulid()
        self._clients[client_id] = websocket
        logger.info("Client connected: %s", client_id)
        await self._send(websocket, {"type": CONNECTED_EVENT, "client_id": client_id})
        return client_id

    def disconnect(self, client_id: str) -> None:
        self._clients.pop(client_id, None)
        for room_id in list(self._rooms):
            self._discard(room_id, client_id)
        logger.info("Client disconnected: %s", client_id)

    def join(self, client_id: str, room_id: str) -> None:
        websocket = self._clients.get(client_id)
        if websocket is None:
            return
        self._rooms.setdefault(room_id, {})[client_id] = websocket

    def leave(self, client_id: str, room_id: str) -> None:
        self._discard(room_id, client_id)

    async def handle_message(self, client_id: str, message: Any) -> None:
        if not isinstance(message, dict):
            return
        form_id = message.get("form_id")
        if not isinstance(form_id, str) or not form_id:
            return
        msg_type = message.get("type")
        if msg_type == JOIN_MESSAGE:
            self.join(client_id, form_id)
            logger.info("Client %s joined analytics room for form: %s", client_id, form_id)
            websocket = self._clients.get(client_id)
            if websocket is not None:
                await self._send(websocket, {"type": JOINED_EVENT, "form_id": form_id})
        elif msg_type == LEAVE_MESSAGE:
            self.leave(client_id, form_id)
            logger.info("Client %s left analytics room for form: %s", client_id, form_id)

    async def broadcast_analytics(self, form_id: str, analytics: dict[str, Any]) -> None:
        logger.info("Broadcasting analytics update to room: %s", form_id)
        await self._broadcast(
            form_id,
            {
                "type": UPDATE_EVENT,
                "form_id": form_id,
                "analytics": analytics,
                "timestamp": analytics.get("created_at"),
            },
        )

    async def broadcast_form_update(self, form_id: str, form: dict[str, Any]) -> None:
        logger.info("Broadcasting form update to room: %s", form_id)
        await self._broadcast(form_id, {"type": FORM_UPDATE_EVENT, "form_id": form_id, "form": form})

    async def _broadcast(self, room_id: str, message: dict[str, Any]) -> None:
        members = list(self._rooms.get(room_id, {}).items())
        for client_id, websocket in members:
            if not await self._send(websocket, message):
                logger.warning("Dropping client %s after failed send", client_id)
                self._discard(room_id, client_id)
                self._clients.pop(client_id, None)

    async def _send(self, websocket: WebSocket, message: dict[str, Any]) -> bool:
        try:
            await websocket.send_text(dumps_json(message))
            return True
        except Exception:
            logger.warning("WebSocket write failed", exc_info=True)
            return False

    def _discard(self, room_id: str, client_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            return
        room.pop(client_id, None)
        if not room:
            del self._rooms[room_id]
