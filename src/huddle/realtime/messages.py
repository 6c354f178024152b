"""Message model, inbound payloads and the storage contract."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

# Event names used on the websocket protocol.
EVENT_CHAT_HISTORY = "chat history"
EVENT_JOIN_CHANNEL = "join channel"
EVENT_CHAT_MESSAGE = "chat message"
EVENT_MESSAGE_EDITED = "message edited"
EVENT_MESSAGE_DELETED = "message deleted"
EVENT_ONLINE_USERS = "online users"
EVENT_USER_CONNECTED = "user connected"
EVENT_USER_DISCONNECTED = "user disconnected"
EVENT_ERROR = "error"
EVENT_PING = "ping"
EVENT_PONG = "pong"


class MessageType(str, Enum):
    """Kinds of content a message can carry."""

    CHAT = "chat"
    STATUS = "status"
    IMAGE = "image"
    TENOR = "tenor"


CLIENT_MESSAGE_TYPES = frozenset({MessageType.CHAT, MessageType.IMAGE, MessageType.TENOR})


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ReplySnapshot(_WireModel):
    """Copy of the replied-to message taken when the reply was sent.

    The snapshot is never refreshed, so its text may be stale after the
    original message is edited or deleted.
    """

    id: int | str
    username: str | None = None
    text: str = ""


class ChatMessage(_WireModel):
    """A persisted chat event as stored and broadcast."""

    id: int | None = None
    username: str | None = None
    channel: str
    type: MessageType = MessageType.CHAT
    message: str = ""
    image_url: str | None = None
    post_id: str | None = None
    reply_to: ReplySnapshot | None = None
    timestamp: datetime

    @classmethod
    def status(cls, channel: str, text: str) -> "ChatMessage":
        """Build a system message announcing a presence change."""

        return cls(
            username=None,
            channel=channel,
            type=MessageType.STATUS,
            message=text,
            timestamp=datetime.now(timezone.utc),
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InboundChatMessage(_WireModel):
    """Payload of a client ``chat message`` event.

    Author, channel and timestamp are never taken from the client; a
    ``username`` key sent by older clients is accepted and ignored.
    """

    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    image_url: str | None = None
    post_id: str | None = None
    type: MessageType = MessageType.CHAT
    reply_to: ReplySnapshot | None = None

    @field_validator("post_id", mode="before")
    @classmethod
    def coerce_post_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("type")
    @classmethod
    def reject_reserved_types(cls, value: MessageType) -> MessageType:
        if value not in CLIENT_MESSAGE_TYPES:
            raise ValueError(f"Message type '{value.value}' cannot be sent by clients")
        return value


class MessageStore(Protocol):
    """Persistence contract consumed by the gateway.

    Reads are scoped by channel and return newest messages first. Every
    operation touches a single row, so the store's own atomicity is all the
    gateway relies on.
    """

    async def insert(self, message: ChatMessage) -> ChatMessage:
        """Persist *message* and return it with ``id`` populated."""

    async def recent(self, channel: str, limit: int = 50) -> list[ChatMessage]:
        """Return the newest *limit* messages of *channel*, newest first."""

    async def page(self, channel: str, skip: int, limit: int = 50) -> list[ChatMessage]:
        """Return *limit* messages after skipping the *skip* newest ones."""

    async def find_by_id(self, message_id: int) -> ChatMessage | None:
        """Return a single message or ``None``."""

    async def update(self, message_id: int, text: str) -> ChatMessage | None:
        """Replace the text of a message, returning the stored result."""

    async def delete_by_id(self, message_id: int) -> bool:
        """Remove a message, returning ``False`` when it did not exist."""

    async def count_image_references(self, image_url: str) -> int:
        """Return how many stored messages point at *image_url*."""
