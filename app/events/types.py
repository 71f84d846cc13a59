"""Event definitions for the real-time channel."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChannelEvent(str, Enum):
    """Event names pushed to connected clients."""

    CONNECTED = "connected"
    NOTIFICATION = "notification"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


class ChannelMessage(BaseModel):
    """Envelope sent over the WebSocket for every event."""

    type: ChannelEvent
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    def to_wire(self) -> dict[str, Any]:
        """Convert to the JSON shape clients receive."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


def user_room(user_id: int) -> str:
    """Name of the per-user logical destination."""
    return f"user_{user_id}"
