"""Per-connection state for an authenticated websocket."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "general"


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Send JSON through *websocket*, returning ``False`` if it is already gone."""

    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class ConnectionSession:
    """One realtime connection bound to a single user.

    The username is fixed when the session is created. The current channel
    is only changed by :class:`~huddle.realtime.membership.ChannelMembershipRouter`
    so that membership and the pointer never disagree.
    """

    __slots__ = ("id", "websocket", "_username", "current_channel", "connected_at")

    def __init__(
        self,
        websocket: WebSocket,
        username: str,
        *,
        channel: str = DEFAULT_CHANNEL,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self._username = username
        self.current_channel = channel
        self.connected_at = datetime.now(timezone.utc)

    @property
    def username(self) -> str:
        return self._username

    async def send(self, event: str, data: Any = None) -> bool:
        return await safe_send_json(self.websocket, {"event": event, "data": data})

    def __repr__(self) -> str:
        return (
            f"ConnectionSession(id={self.id!r}, username={self._username!r}, "
            f"channel={self.current_channel!r})"
        )
