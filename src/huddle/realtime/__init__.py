"""Realtime message delivery and session presence."""

from .gateway import GatewayOptions, MediaHost, RealtimeGateway  # noqa: F401
from .membership import ChannelMembershipRouter  # noqa: F401
from .messages import (  # noqa: F401
    ChatMessage,
    InboundChatMessage,
    MessageStore,
    MessageType,
    ReplySnapshot,
)
from .presence import PresenceManager, PresenceTracker  # noqa: F401
from .session import DEFAULT_CHANNEL, ConnectionSession, safe_send_json  # noqa: F401

__all__ = [
    "RealtimeGateway",
    "GatewayOptions",
    "MediaHost",
    "ChannelMembershipRouter",
    "PresenceManager",
    "PresenceTracker",
    "ConnectionSession",
    "DEFAULT_CHANNEL",
    "safe_send_json",
    "ChatMessage",
    "InboundChatMessage",
    "MessageStore",
    "MessageType",
    "ReplySnapshot",
]
