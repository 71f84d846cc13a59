"""Real-time event channel.

Clients connect over a WebSocket and join the room of their own user.
Services never talk to sockets directly: they publish through a
ChannelHolder, which is created before the socket layer exists and set
once during application startup.

Delivery over the live channel is at-most-once. A user without an open
connection simply receives nothing; the persisted notification is picked
up by polling.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from fastapi import WebSocket

from app.events.types import ChannelEvent, ChannelMessage, user_room
from app.services.errors import ChannelNotReadyError

logger = logging.getLogger(__name__)


class EventChannel(Protocol):
    """What the services need from a push channel."""

    def is_ready(self) -> bool: ...

    async def publish_to_user(
        self, user_id: int, event: ChannelEvent, payload: dict[str, Any]
    ) -> int: ...


@dataclass
class UserConnection:
    """A WebSocket connection joined to a user's room."""
    websocket: WebSocket
    user_id: int
    connected_at: datetime = field(default_factory=datetime.utcnow)
    last_activity: datetime = field(default_factory=datetime.utcnow)


class ConnectionManager:
    """
    Manages WebSocket connections grouped into per-user rooms.

    A user may hold several connections (tabs, devices); every one of
    them receives the events published to the user's room.
    """

    def __init__(self):
        # room name -> connections
        self._rooms: dict[str, list[UserConnection]] = {}
        self._lock = asyncio.Lock()

    def is_ready(self) -> bool:
        return True

    async def connect(self, websocket: WebSocket, user_id: int) -> UserConnection:
        """Accept the socket and join the user's room."""
        await websocket.accept()
        connection = UserConnection(websocket=websocket, user_id=user_id)

        async with self._lock:
            self._rooms.setdefault(user_room(user_id), []).append(connection)

        logger.info(
            "WebSocket connected",
            extra={"user_id": user_id, "room": user_room(user_id)},
        )

        await self._send(
            connection,
            ChannelMessage(type=ChannelEvent.CONNECTED, data={"room": user_room(user_id)}),
        )
        return connection

    async def disconnect(self, connection: UserConnection) -> None:
        """Leave the room; empty rooms are dropped."""
        room = user_room(connection.user_id)
        async with self._lock:
            members = self._rooms.get(room, [])
            if connection in members:
                members.remove(connection)
            if not members:
                self._rooms.pop(room, None)

        logger.info("WebSocket disconnected", extra={"user_id": connection.user_id})

    def connection_count(self, user_id: int) -> int:
        return len(self._rooms.get(user_room(user_id), []))

    async def publish_to_user(
        self, user_id: int, event: ChannelEvent, payload: dict[str, Any]
    ) -> int:
        """
        Push an event to every connection in the user's room.

        Returns:
            Number of connections the event was written to
        """
        members = list(self._rooms.get(user_room(user_id), []))
        if not members:
            logger.debug("No live connection for user", extra={"user_id": user_id})
            return 0

        message = ChannelMessage(type=event, data=payload)
        delivered = 0
        dead_connections = []

        for connection in members:
            if await self._send(connection, message):
                delivered += 1
            else:
                dead_connections.append(connection)

        for connection in dead_connections:
            await self.disconnect(connection)

        return delivered

    async def _send(self, connection: UserConnection, message: ChannelMessage) -> bool:
        try:
            await connection.websocket.send_json(message.to_wire())
            connection.last_activity = datetime.utcnow()
            return True
        except Exception as e:
            logger.error(f"Error sending to user {connection.user_id}: {e}")
            return False


class LoggingChannel:
    """Channel for processes without WebSocket clients (CLI sweeps).

    Publishes are only logged.
    """

    def is_ready(self) -> bool:
        return True

    async def publish_to_user(
        self, user_id: int, event: ChannelEvent, payload: dict[str, Any]
    ) -> int:
        logger.info(
            "[OFFLINE] Event not pushed, no socket layer in this process",
            extra={"user_id": user_id, "event": event.value, "payload_id": payload.get("id")},
        )
        return 0


class ChannelHolder:
    """Indirection to the channel, set once at startup.

    Components built before the socket layer keep a reference to the
    holder; publishing before set() fails with ChannelNotReadyError.
    """

    def __init__(self, channel: EventChannel | None = None) -> None:
        self._channel = channel

    def set(self, channel: EventChannel) -> None:
        if self._channel is not None and self._channel is not channel:
            logger.warning("Replacing an already initialised event channel")
        self._channel = channel

    def is_ready(self) -> bool:
        return self._channel is not None and self._channel.is_ready()

    def get(self) -> EventChannel:
        if not self.is_ready():
            raise ChannelNotReadyError("Event channel not initialized")
        return self._channel

    async def publish_to_user(
        self, user_id: int, event: ChannelEvent, payload: dict[str, Any]
    ) -> int:
        return await self.get().publish_to_user(user_id, event, payload)
