"""Application service helpers."""

from .gif_search import GifSearchProvider, TenorClient
from .message_store import SqlMessageStore, to_chat_message
from .realtime import build_gateway, build_media_host

__all__ = [
    "GifSearchProvider",
    "TenorClient",
    "SqlMessageStore",
    "to_chat_message",
    "build_gateway",
    "build_media_host",
]
