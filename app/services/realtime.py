"""Construction of the process-wide realtime gateway."""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from app.config import Settings
from app.core.storage import LocalMediaHost
from app.services.message_store import SqlMessageStore
from huddle.realtime import GatewayOptions, MediaHost, PresenceManager, RealtimeGateway


def build_media_host(settings: Settings) -> LocalMediaHost:
    return LocalMediaHost(
        settings.media_root,
        settings.media_base_url,
        max_size=settings.max_upload_size,
    )


def build_gateway(
    settings: Settings,
    *,
    session_factory: sessionmaker[Session] | None = None,
    media_host: MediaHost | None = None,
) -> RealtimeGateway:
    """Wire the SQL store, presence grace timers and media host into a gateway."""

    options = GatewayOptions(
        default_channel=settings.default_channel,
        history_limit=settings.chat_history_page_size,
        max_message_length=settings.chat_message_max_length,
        max_channel_length=settings.channel_name_max_length,
        announce_presence=settings.announce_presence,
    )
    return RealtimeGateway(
        SqlMessageStore(session_factory),
        presence=PresenceManager(grace_seconds=settings.presence_grace_seconds),
        media_host=media_host,
        options=options,
    )
