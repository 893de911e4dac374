"""Live analytics subscription over a persistent connection.

One :class:`AnalyticsChannel` serves one dashboard view. It keeps at most
one room membership, sends ``join-analytics``/``leave-analytics`` requests,
and hands inbound events to a single handler per event type.

Joins are fire-and-forget. After the first join request a single retry is
scheduled. If neither an update nor a join ack for the room arrives before
it fires, the join is sent once more and the room is assumed joined.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Protocol

import orjson
from websockets.exceptions import ConnectionClosed
from websockets.asyncio.client import connect as ws_connect

from formpulse.utils import dumps_json, loads_json

logger = logging.getLogger(__name__)

JOIN_MESSAGE = "join-analytics"
LEAVE_MESSAGE = "leave-analytics"
CONNECTED_EVENT = "connected"
JOINED_EVENT = "analytics-joined"
UPDATE_EVENT = "analytics-update"
FORM_UPDATE_EVENT = "form-update"

DEFAULT_RETRY_DELAY = 1.0

Handler = Callable[[dict[str, Any]], None]


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TransportClosed(Exception):
    pass


class Transport(Protocol):
    async def send(self, message: dict[str, Any]) -> None: ...

    async def receive(self) -> dict[str, Any]: ...

    async def close(self) -> None: ...


Connector = Callable[[], Awaitable[Transport]]


class WebSocketTransport:
    def __init__(self, connection: Any) -> None:
        self._connection = connection

    @classmethod
    async def connect(
        cls, url: str, headers: dict[str, str] | None = None
    ) -> WebSocketTransport:
        connection = await ws_connect(url, additional_headers=headers)
        return cls(connection)

    async def send(self, message: dict[str, Any]) -> None:
        await self._connection.send(dumps_json(message))

    async def receive(self) -> dict[str, Any]:
        while True:
            try:
                raw = await self._connection.recv()
            except ConnectionClosed as exc:
                raise TransportClosed(str(exc)) from exc
            try:
                return loads_json(raw)
            except orjson.JSONDecodeError:
                logger.warning("Ignoring malformed analytics frame")

    async def close(self) -> None:
        await self._connection.close()


def websocket_connector(url: str, headers: dict[str, str] | None = None) -> Connector:
    async def _connect() -> Transport:
        return await WebSocketTransport.connect(url, headers=headers)

    return _connect


class AnalyticsChannel:
    def __init__(self, connector: Connector, retry_delay: float = DEFAULT_RETRY_DELAY) -> None:
        self._connector = connector
        self.retry_delay = retry_delay
        self.state = ConnectionState.DISCONNECTED
        self.room_key: str | None = None
        self.joined = False
        self.client_id: str | None = None
        self._join_requested = False
        self._generation = 0
        self._transport: Transport | None = None
        self._reader: asyncio.Task[None] | None = None
        self._retry: asyncio.Task[None] | None = None
        self._handlers: dict[str, Handler] = {}

    @property
    def retry_pending(self) -> bool:
        return self._retry is not None and not self._retry.done()

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event] = handler

    def off(self, event: str) -> None:
        self._handlers.pop(event, None)

    async def open(self) -> None:
        if self.state is not ConnectionState.DISCONNECTED:
            return
        self.state = ConnectionState.CONNECTING
        generation = self._generation
        try:
            transport = await self._connector()
        except Exception:
            logger.exception("Analytics channel failed to connect")
            if generation == self._generation:
                self.state = ConnectionState.DISCONNECTED
            return
        if generation != self._generation:
            logger.info("Analytics channel closed while connecting")
            await self._close_transport(transport)
            return
        self._transport = transport
        self.state = ConnectionState.CONNECTED
        self.joined = False
        logger.info("Analytics channel connected")
        self._reader = asyncio.create_task(self._read_loop(transport))
        if self.room_key is not None:
            await self._send_join(self.room_key)

    async def join(self, form_id: str) -> None:
        if form_id == self.room_key and (self._join_requested or self.joined):
            return
        if self.room_key is not None and self.room_key != form_id:
            await self._leave_room(self.room_key)
        self.room_key = form_id
        if self.state is ConnectionState.CONNECTED:
            await self._send_join(form_id)

    async def leave(self) -> None:
        if self.room_key is not None:
            await self._leave_room(self.room_key)
        self.room_key = None
        self.off(UPDATE_EVENT)

    async def close(self) -> None:
        self._generation += 1
        await self.leave()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)
        self._mark_disconnected()

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.warning("Error while closing analytics transport", exc_info=True)

    async def _send_join(self, room: str) -> None:
        self._cancel_retry()
        self.joined = False
        self._join_requested = True
        logger.info("Joining analytics room %s", room)
        await self._send({"type": JOIN_MESSAGE, "form_id": room})
        self._retry = asyncio.create_task(self._retry_join(room))

    async def _retry_join(self, room: str) -> None:
        await asyncio.sleep(self.retry_delay)
        if self.joined or self.room_key != room or self.state is not ConnectionState.CONNECTED:
            return
        logger.info("Retrying join for analytics room %s", room)
        await self._send({"type": JOIN_MESSAGE, "form_id": room})
        self.joined = True

    async def _leave_room(self, room: str) -> None:
        self._cancel_retry()
        requested = self._join_requested or self.joined
        self.joined = False
        self._join_requested = False
        if requested and self.state is ConnectionState.CONNECTED:
            logger.info("Leaving analytics room %s", room)
            await self._send({"type": LEAVE_MESSAGE, "form_id": room})

    async def _send(self, message: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None or self.state is not ConnectionState.CONNECTED:
            logger.debug("Dropping %s while disconnected", message.get("type"))
            return
        try:
            await transport.send(message)
        except Exception:
            logger.warning("Failed to send %s", message.get("type"), exc_info=True)

    async def _read_loop(self, transport: Transport) -> None:
        try:
            while True:
                message = await transport.receive()
                self._dispatch(message)
        except TransportClosed:
            logger.info("Analytics channel closed by peer")
        except Exception:
            logger.exception("Analytics channel transport error")
        if self._transport is transport:
            self._transport = None
            self._mark_disconnected()

    def _dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object analytics message")
            return
        event = message.get("type")
        if event == CONNECTED_EVENT:
            self.client_id = message.get("client_id")
        elif event in (UPDATE_EVENT, JOINED_EVENT):
            if self.room_key is None or message.get("form_id") != self.room_key:
                logger.debug("Ignoring %s for room %s", event, message.get("form_id"))
                return
            self._cancel_retry()
            self.joined = True
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            return
        try:
            handler(message)
        except Exception:
            logger.exception("Analytics handler for %s failed", event)

    def _cancel_retry(self) -> None:
        retry, self._retry = self._retry, None
        if retry is not None and not retry.done() and retry is not asyncio.current_task():
            retry.cancel()

    def _mark_disconnected(self) -> None:
        self._cancel_retry()
        self.state = ConnectionState.DISCONNECTED
        self.joined = False
        self._join_requested = False
