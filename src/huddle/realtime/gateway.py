"""Protocol engine tying sessions, membership, presence and storage together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi.websockets import WebSocket
from pydantic import ValidationError as PydanticValidationError

from app.monitoring.metrics import media_cleanup_failures_total, realtime_events_total

from .errors import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from .membership import ChannelMembershipRouter
from .messages import (
    EVENT_CHAT_HISTORY,
    EVENT_CHAT_MESSAGE,
    EVENT_ERROR,
    EVENT_JOIN_CHANNEL,
    EVENT_MESSAGE_DELETED,
    EVENT_MESSAGE_EDITED,
    EVENT_ONLINE_USERS,
    EVENT_PING,
    EVENT_PONG,
    EVENT_USER_CONNECTED,
    EVENT_USER_DISCONNECTED,
    ChatMessage,
    InboundChatMessage,
    MessageStore,
    MessageType,
)
from .presence import PresenceManager
from .session import DEFAULT_CHANNEL, ConnectionSession

logger = logging.getLogger(__name__)


class MediaHost(Protocol):
    """External image host used for uploads and cascaded cleanup."""

    async def upload(self, data: bytes, content_type: str, *, owner: str | None = None) -> str:
        """Store *data* for *owner* and return the public URL."""

    async def delete(self, url: str, *, owner: str | None = None) -> bool:
        """Best-effort removal; ``False`` when the URL is not hosted here
        or was not uploaded by *owner*."""


@dataclass(slots=True)
class GatewayOptions:
    """Tunables for :class:`RealtimeGateway`."""

    default_channel: str = DEFAULT_CHANNEL
    history_limit: int = 50
    max_message_length: int = 2000
    max_channel_length: int = 64
    announce_presence: bool = True


class RealtimeGateway:
    """Handle inbound realtime events and the HTTP operations sharing the store.

    Realtime handlers never raise into the receive loop: persistence failures
    are logged and dropped, malformed payloads are answered with an
    ``error`` event to the sender only. HTTP operations raise
    :mod:`huddle.realtime.errors` exceptions for the API layer to map.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        router: ChannelMembershipRouter | None = None,
        presence: PresenceManager | None = None,
        media_host: MediaHost | None = None,
        options: GatewayOptions | None = None,
    ) -> None:
        self._store = store
        self._router = router or ChannelMembershipRouter()
        self._presence = presence or PresenceManager()
        self._media_host = media_host
        self._options = options or GatewayOptions()

    @property
    def router(self) -> ChannelMembershipRouter:
        return self._router

    @property
    def presence(self) -> PresenceManager:
        return self._presence

    @property
    def options(self) -> GatewayOptions:
        return self._options

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def connect(self, websocket: WebSocket, username: str) -> ConnectionSession:
        """Register an authenticated websocket and bring the client up to date."""

        channel = self._options.default_channel
        session = ConnectionSession(websocket, username, channel=channel)
        await self._router.join(session, channel)
        came_online = self._presence.acquire(username)
        logger.info("%s connected to %s (session %s)", username, channel, session.id)

        try:
            await self._send_history(session, channel)
            await self._broadcast_presence()
            if came_online and self._options.announce_presence:
                await self._announce(username, joined=True, exclude=session)
        except BaseException:
            # The caller never receives the session, so nobody else will release it.
            await self._router.leave(session)
            self._presence.release(username)
            raise
        return session

    async def disconnect(self, session: ConnectionSession) -> None:
        """Drop membership now and release presence after the grace delay."""

        await self._router.leave(session)
        logger.info("%s disconnected (session %s)", session.username, session.id)
        self._presence.release_later(session.username, self._expire_presence)

    async def _expire_presence(self, username: str) -> None:
        went_offline = self._presence.release(username)
        await self._broadcast_presence()
        if went_offline and self._options.announce_presence:
            await self._announce(username, joined=False)

    async def shutdown(self) -> None:
        await self._presence.shutdown()

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    async def dispatch(self, session: ConnectionSession, frame: Any) -> None:
        """Route one decoded client frame to its handler."""

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self._reject(session, "Frames must be objects with an 'event' name")
            return
        event = frame["event"]
        data = frame.get("data")
        realtime_events_total.labels(event, "in").inc()

        if event == EVENT_CHAT_MESSAGE:
            await self.chat_message(session, data)
        elif event == EVENT_JOIN_CHANNEL:
            await self.join_channel(session, data)
        elif event == EVENT_PING:
            await session.send(EVENT_PONG)
        elif event == EVENT_PONG:
            return
        else:
            await self._reject(session, f"Unknown event: {event}")

    async def join_channel(self, session: ConnectionSession, channel: Any) -> None:
        try:
            name = self._normalize_channel(channel)
        except ValidationError as exc:
            await self._reject(session, exc.detail)
            return

        previous = await self._router.join(session, name)
        logger.debug("%s moved from %s to %s", session.username, previous, name)
        await self._send_history(session, name)

    async def chat_message(self, session: ConnectionSession, payload: Any) -> ChatMessage | None:
        """Persist a client message and fan it out to its channel.

        Fire and forget: there is no acknowledgement, and a failed write
        produces neither a broadcast nor a retry.
        """

        try:
            inbound = self._parse_chat_payload(payload)
        except ValidationError as exc:
            await self._reject(session, exc.detail)
            return None

        message = ChatMessage(
            username=session.username,
            channel=session.current_channel,
            type=inbound.type,
            message=inbound.message or "",
            image_url=inbound.image_url,
            post_id=inbound.post_id,
            reply_to=inbound.reply_to,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            stored = await self._store.insert(message)
        except PersistenceError:
            logger.warning(
                "Dropped message from %s in %s; store unavailable",
                session.username,
                message.channel,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            return None

        await self._router.broadcast(stored.channel, EVENT_CHAT_MESSAGE, stored.to_payload())
        return stored

    # ------------------------------------------------------------------
    # HTTP operations
    # ------------------------------------------------------------------
    async def history(self, channel: str, skip: int = 0) -> list[ChatMessage]:
        """Return one page of *channel* history, oldest message first."""

        name = self._normalize_channel(channel)
        if skip < 0:
            raise ValidationError("skip must not be negative")
        page = await self._store.page(name, skip, self._options.history_limit)
        page.reverse()
        return page

    async def edit_message(self, message_id: int, username: str, new_text: Any) -> ChatMessage:
        message = await self._require_owned(message_id, username)
        if message.type is not MessageType.CHAT:
            raise ValidationError("Only text messages can be edited")
        text = self._validate_text(new_text)

        updated = await self._store.update(message_id, text)
        if updated is None:
            raise NotFoundError("Message not found")
        await self._router.broadcast_all(EVENT_MESSAGE_EDITED, updated.to_payload())
        return updated

    async def delete_message(self, message_id: int, username: str) -> None:
        message = await self._require_owned(message_id, username)
        if not await self._store.delete_by_id(message_id):
            raise NotFoundError("Message not found")
        await self._cleanup_media(message)
        await self._router.broadcast_all(EVENT_MESSAGE_DELETED, message_id)

    async def _require_owned(self, message_id: int, username: str) -> ChatMessage:
        message = await self._store.find_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.username is None or message.username != username:
            raise ForbiddenError("Forbidden: Not your message")
        return message

    async def _cleanup_media(self, message: ChatMessage) -> None:
        if self._media_host is None or message.type is not MessageType.IMAGE:
            return
        if not message.image_url:
            return
        try:
            if await self._store.count_image_references(message.image_url):
                logger.debug("Kept %s; other messages still use it", message.image_url)
                return
            await self._media_host.delete(message.image_url, owner=message.username)
        except Exception:
            media_cleanup_failures_total.inc()
            logger.warning(
                "Failed to remove hosted media for message %s", message.id, exc_info=True
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _send_history(self, session: ConnectionSession, channel: str) -> None:
        try:
            recent = await self._store.recent(channel, self._options.history_limit)
        except PersistenceError:
            logger.warning(
                "Could not load history for %s in %s", session.username, channel,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            return
        recent.reverse()
        await session.send(EVENT_CHAT_HISTORY, [message.to_payload() for message in recent])

    async def _broadcast_presence(self) -> None:
        await self._router.broadcast_all(EVENT_ONLINE_USERS, self._presence.online())

    async def _announce(
        self,
        username: str,
        *,
        joined: bool,
        exclude: ConnectionSession | None = None,
    ) -> None:
        channel = self._options.default_channel
        verb = "joined" if joined else "left"
        try:
            status = await self._store.insert(
                ChatMessage.status(channel, f"{username} {verb} the chat")
            )
        except PersistenceError:
            logger.warning("Could not record that %s %s", username, verb)
        else:
            await self._router.broadcast(channel, EVENT_CHAT_MESSAGE, status.to_payload())

        event = EVENT_USER_CONNECTED if joined else EVENT_USER_DISCONNECTED
        await self._router.broadcast_all(
            event, username, exclude=[exclude] if exclude is not None else None
        )

    async def _reject(self, session: ConnectionSession, detail: str) -> None:
        logger.debug("Rejected frame from %s: %s", session.username, detail)
        await session.send(EVENT_ERROR, {"detail": detail})

    def _normalize_channel(self, channel: Any) -> str:
        if not isinstance(channel, str) or not channel.strip():
            raise ValidationError("Channel name must be a non-empty string")
        name = channel.strip()
        if len(name) > self._options.max_channel_length:
            raise ValidationError(
                f"Channel name exceeds {self._options.max_channel_length} characters"
            )
        return name

    def _validate_text(self, text: Any) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message content cannot be empty")
        if len(text) > self._options.max_message_length:
            raise ValidationError(
                f"Message exceeds maximum length of {self._options.max_message_length} characters"
            )
        return text

    def _parse_chat_payload(self, payload: Any) -> InboundChatMessage:
        if isinstance(payload, str):
            payload = {"message": payload}
        if not isinstance(payload, dict):
            raise ValidationError("Chat message payload must be an object")
        try:
            inbound = InboundChatMessage.model_validate(payload)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
            raise ValidationError(f"Invalid chat message {location}: {first.get('msg')}") from None
        has_text = bool(inbound.message and inbound.message.strip())
        if not (has_text or inbound.image_url or inbound.post_id):
            raise ValidationError("Message content is required")
        if inbound.message and len(inbound.message) > self._options.max_message_length:
            raise ValidationError(
                f"Message exceeds maximum length of {self._options.max_message_length} characters"
            )
        return inbound
