"""WebSocket endpoint for live notifications."""

import json
import logging
from collections.abc import Callable

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from sqlmodel import Session

from app.events.types import ChannelEvent, ChannelMessage
from app.models.user import User
from app.services.auth import decode_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def authenticate_socket_user(token: str, session_factory: Callable[[], Session]) -> User | None:
    user_id = decode_user_id(token)
    if user_id is None:
        return None
    with session_factory() as session:
        return session.get(User, user_id)


@router.websocket("/ws/notifications")
async def notifications_websocket(websocket: WebSocket, token: str = Query(...)):
    """
    Live notification stream for the authenticated user.

    Connect: WS /ws/notifications?token=<jwt>

    Server events:
    - connected: Joined room user_<id>
    - notification: A notification was created for the user
    - pong: Response to ping

    Client events:
    - ping: Keep-alive ping
    """
    context = websocket.app.state.context
    user = authenticate_socket_user(token, context.session_factory)
    if user is None:
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    connections = context.connections
    connection = await connections.connect(websocket, user.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json(
                    ChannelMessage(type=ChannelEvent.ERROR, data={"message": "Invalid JSON"}).to_wire()
                )
                continue

            if isinstance(message, dict) and message.get("type") == ChannelEvent.PING.value:
                await websocket.send_json(ChannelMessage(type=ChannelEvent.PONG).to_wire())

    except WebSocketDisconnect:
        logger.debug("Client closed notification socket", extra={"user_id": user.id})
    finally:
        await connections.disconnect(connection)
