"""Real-time event channel module.

Components:
- types.py: Event names and the wire envelope
- channel.py: WebSocket room manager and the startup-time channel holder
"""

from app.events.types import ChannelEvent, ChannelMessage, user_room
from app.events.channel import (
    ChannelHolder,
    ConnectionManager,
    EventChannel,
    LoggingChannel,
    UserConnection,
)

__all__ = [
    # Types
    "ChannelEvent",
    "ChannelMessage",
    "user_room",
    # Channel
    "EventChannel",
    "ChannelHolder",
    "ConnectionManager",
    "LoggingChannel",
    "UserConnection",
]
