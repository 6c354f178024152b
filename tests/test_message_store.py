from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.monitoring.metrics import message_store_errors_total
from app.services.message_store import SqlMessageStore
from huddle.realtime import ChatMessage, MessageType, ReplySnapshot
from huddle.realtime.errors import PersistenceError

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def store(session_factory) -> SqlMessageStore:
    return SqlMessageStore(session_factory)


def _message(channel: str, text: str, offset: int, **extra) -> ChatMessage:
    return ChatMessage(
        username="alice",
        channel=channel,
        message=text,
        timestamp=BASE + timedelta(seconds=offset),
        **extra,
    )


@pytest.mark.anyio("asyncio")
async def test_insert_assigns_id_and_round_trips_fields(store) -> None:
    stored = await store.insert(
        _message(
            "general",
            "",
            0,
            type=MessageType.TENOR,
            post_id="987",
            reply_to=ReplySnapshot(id=3, username="bob", text="original"),
        )
    )

    assert stored.id is not None
    loaded = await store.find_by_id(stored.id)
    assert loaded == stored
    assert loaded.type is MessageType.TENOR
    assert loaded.reply_to == ReplySnapshot(id=3, username="bob", text="original")
    assert loaded.timestamp == BASE


@pytest.mark.anyio("asyncio")
async def test_recent_is_channel_scoped_and_newest_first(store) -> None:
    for offset in range(3):
        await store.insert(_message("general", f"g{offset}", offset))
    await store.insert(_message("random", "r0", 10))

    recent = await store.recent("general", limit=2)

    assert [m.message for m in recent] == ["g2", "g1"]
    assert [m.message for m in await store.recent("random")] == ["r0"]
    assert await store.recent("empty") == []


@pytest.mark.anyio("asyncio")
async def test_pages_are_gapless_with_equal_timestamps(store) -> None:
    for index in range(7):
        await store.insert(_message("general", f"m{index}", index // 3))

    seen: list[str] = []
    skip = 0
    while True:
        page = await store.page("general", skip, limit=3)
        if not page:
            break
        seen.extend(m.message for m in page)
        skip += len(page)

    assert sorted(seen) == [f"m{index}" for index in range(7)]
    assert len(seen) == len(set(seen))
    assert seen[0] == "m6"


@pytest.mark.anyio("asyncio")
async def test_update_and_delete(store) -> None:
    stored = await store.insert(_message("general", "before", 0))

    updated = await store.update(stored.id, "after")
    assert updated is not None and updated.message == "after"
    assert await store.update(404, "missing") is None

    assert await store.delete_by_id(stored.id) is True
    assert await store.delete_by_id(stored.id) is False
    assert await store.find_by_id(stored.id) is None


@pytest.mark.anyio("asyncio")
async def test_database_errors_become_persistence_errors() -> None:
    class BrokenSession:
        def __enter__(self):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        def __exit__(self, *exc_info) -> None:
            return None

    store = SqlMessageStore(lambda: BrokenSession())
    before = message_store_errors_total.value("insert")

    with pytest.raises(PersistenceError) as exc:
        await store.insert(_message("general", "lost", 0))

    assert exc.value.detail == "Message store insert failed"
    assert message_store_errors_total.value("insert") == before + 1


@pytest.mark.anyio("asyncio")
async def test_count_image_references(store) -> None:
    first = await store.insert(_message("general", "", 0, type=MessageType.IMAGE, image_url="/media/a.png"))
    await store.insert(_message("random", "", 1, type=MessageType.IMAGE, image_url="/media/a.png"))

    assert await store.count_image_references("/media/a.png") == 2
    await store.delete_by_id(first.id)
    assert await store.count_image_references("/media/a.png") == 1
    assert await store.count_image_references("/media/other.png") == 0
