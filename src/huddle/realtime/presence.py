"""Reference-counted presence with a grace delay on disconnect."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Dict, Set

from app.monitoring.metrics import presence_online_users

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[str], Awaitable[None]]


class PresenceTracker:
    """Map of username to the number of open connections.

    Counts never go below zero and a user disappears from the snapshot as
    soon as the count reaches zero. Methods are synchronous, so each call is
    atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}

    def increment(self, username: str) -> int:
        count = self._counts.get(username, 0) + 1
        self._counts[username] = count
        return count

    def decrement(self, username: str) -> int:
        count = self._counts.get(username, 0) - 1
        if count <= 0:
            self._counts.pop(username, None)
            return 0
        self._counts[username] = count
        return count

    def count(self, username: str) -> int:
        return self._counts.get(username, 0)

    def snapshot(self) -> list[str]:
        return sorted(self._counts)

    def __contains__(self, username: object) -> bool:
        return username in self._counts

    def __len__(self) -> int:
        return len(self._counts)


class PresenceManager:
    """Apply presence changes and defer decrements issued on disconnect.

    Every disconnect schedules exactly one release. Because the tracker is
    count based, a reconnect inside the grace window keeps the user online
    even though the earlier release still fires.
    """

    def __init__(
        self,
        tracker: PresenceTracker | None = None,
        *,
        grace_seconds: float = 10.0,
    ) -> None:
        self._tracker = tracker or PresenceTracker()
        self._grace = max(float(grace_seconds), 0.0)
        self._pending: Set[asyncio.Task[None]] = set()

    @property
    def tracker(self) -> PresenceTracker:
        return self._tracker

    @property
    def grace_seconds(self) -> float:
        return self._grace

    @property
    def pending(self) -> int:
        return len(self._pending)

    def online(self) -> list[str]:
        return self._tracker.snapshot()

    def acquire(self, username: str) -> bool:
        """Count a new connection; ``True`` when the user just came online."""

        count = self._tracker.increment(username)
        presence_online_users.set(len(self._tracker))
        return count == 1

    def release(self, username: str) -> bool:
        """Drop one connection; ``True`` when the user just went offline."""

        was_online = username in self._tracker
        count = self._tracker.decrement(username)
        presence_online_users.set(len(self._tracker))
        return was_online and count == 0

    def release_later(self, username: str, callback: ReleaseCallback) -> asyncio.Task[None]:
        """Run *callback* for *username* once the grace delay has elapsed."""

        task = asyncio.create_task(
            self._release_after_grace(username, callback),
            name=f"presence-grace-{username}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _release_after_grace(self, username: str, callback: ReleaseCallback) -> None:
        if self._grace:
            await asyncio.sleep(self._grace)
        try:
            await callback(username)
        except Exception:
            logger.exception("Presence release failed for %s", username)

    async def drain(self) -> None:
        """Wait for every scheduled release to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()
