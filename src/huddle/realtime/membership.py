"""Channel membership and fan-out for connected sessions."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Set

from app.monitoring.metrics import realtime_connections, realtime_events_total

from .session import ConnectionSession

logger = logging.getLogger(__name__)


class ChannelMembershipRouter:
    """Track which channel every live session listens to.

    A session is a member of exactly one channel; joining another channel
    removes it from the previous one under the same lock.
    """

    def __init__(self) -> None:
        self._members: Dict[str, Set[ConnectionSession]] = defaultdict(set)
        self._registered: Set[ConnectionSession] = set()
        self._lock = asyncio.Lock()

    async def join(self, session: ConnectionSession, channel: str) -> str | None:
        """Move *session* into *channel*, returning the channel it left."""

        async with self._lock:
            previous: str | None = None
            if session in self._registered:
                previous = session.current_channel
                self._discard_locked(previous, session)
            else:
                self._registered.add(session)
                realtime_connections.labels("chat").inc()
            self._members[channel].add(session)
            session.current_channel = channel
            return previous

    async def leave(self, session: ConnectionSession) -> None:
        async with self._lock:
            if session not in self._registered:
                return
            self._registered.discard(session)
            self._discard_locked(session.current_channel, session)
            realtime_connections.labels("chat").dec()

    def _discard_locked(self, channel: str, session: ConnectionSession) -> None:
        bucket = self._members.get(channel)
        if bucket is None:
            return
        bucket.discard(session)
        if not bucket:
            self._members.pop(channel, None)

    def members(self, channel: str) -> list[ConnectionSession]:
        return list(self._members.get(channel, ()))

    def channels(self) -> list[str]:
        return sorted(self._members)

    def connection_count(self) -> int:
        return len(self._registered)

    async def broadcast(
        self,
        channel: str,
        event: str,
        data: Any,
        *,
        exclude: Iterable[ConnectionSession] | None = None,
    ) -> int:
        """Send an event to the sessions subscribed to *channel* right now."""

        targets = list(self._members.get(channel, ()))
        return await self._deliver(targets, event, data, exclude)

    async def broadcast_all(
        self,
        event: str,
        data: Any,
        *,
        exclude: Iterable[ConnectionSession] | None = None,
    ) -> int:
        """Send an event to every registered session regardless of channel."""

        targets = list(self._registered)
        return await self._deliver(targets, event, data, exclude)

    async def _deliver(
        self,
        targets: list[ConnectionSession],
        event: str,
        data: Any,
        exclude: Iterable[ConnectionSession] | None,
    ) -> int:
        exclude_set = set(exclude or ())
        delivered = 0
        for session in targets:
            if session in exclude_set:
                continue
            if await session.send(event, data):
                delivered += 1
            else:
                logger.debug("Skipped closed connection %s for %s", session.id, event)
        realtime_events_total.labels(event, "out").inc()
        return delivered
