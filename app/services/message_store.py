"""SQLAlchemy implementation of the realtime message store."""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Callable, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.database import SessionLocal
from app.models import Message
from app.monitoring.metrics import message_store_errors_total
from huddle.realtime.errors import PersistenceError
from huddle.realtime.messages import ChatMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_chat_message(row: Message) -> ChatMessage:
    """Convert an ORM row into the wire model."""

    timestamp = row.timestamp
    if timestamp.tzinfo is None:
        # SQLite drops the offset; every stored timestamp is UTC.
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return ChatMessage(
        id=row.id,
        username=row.username,
        channel=row.channel,
        type=row.type,
        message=row.message or "",
        image_url=row.image_url,
        post_id=row.post_id,
        reply_to=row.reply_to,
        timestamp=timestamp,
    )


class SqlMessageStore:
    """Message store backed by short-lived SQLAlchemy sessions.

    Each call opens its own session and runs in the thread pool, so the
    awaiting handler yields to other connections while the database works.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    async def insert(self, message: ChatMessage) -> ChatMessage:
        return await self._run("insert", self._insert, message)

    async def recent(self, channel: str, limit: int = 50) -> list[ChatMessage]:
        return await self._run("recent", self._page, channel, 0, limit)

    async def page(self, channel: str, skip: int, limit: int = 50) -> list[ChatMessage]:
        return await self._run("page", self._page, channel, skip, limit)

    async def find_by_id(self, message_id: int) -> ChatMessage | None:
        return await self._run("find", self._find, message_id)

    async def update(self, message_id: int, text: str) -> ChatMessage | None:
        return await self._run("update", self._update, message_id, text)

    async def delete_by_id(self, message_id: int) -> bool:
        return await self._run("delete", self._delete, message_id)

    async def count_image_references(self, image_url: str) -> int:
        return await self._run("references", self._count_references, image_url)

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await run_in_threadpool(func, *args)
        except SQLAlchemyError as exc:
            message_store_errors_total.labels(operation).inc()
            logger.error("Message store %s failed", operation, exc_info=True)
            raise PersistenceError(f"Message store {operation} failed") from exc

    def _insert(self, message: ChatMessage) -> ChatMessage:
        with self._session_factory() as db:
            row = Message(
                username=message.username,
                channel=message.channel,
                type=message.type,
                message=message.message,
                image_url=message.image_url,
                post_id=message.post_id,
                reply_to=message.reply_to.model_dump(mode="json") if message.reply_to else None,
                timestamp=message.timestamp,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return to_chat_message(row)

    def _page(self, channel: str, skip: int, limit: int) -> list[ChatMessage]:
        stmt = (
            select(Message)
            .where(Message.channel == channel)
            .order_by(Message.timestamp.desc(), Message.id.desc())
            .offset(skip)
            .limit(limit)
        )
        with self._session_factory() as db:
            return [to_chat_message(row) for row in db.execute(stmt).scalars()]

    def _find(self, message_id: int) -> ChatMessage | None:
        with self._session_factory() as db:
            row = db.get(Message, message_id)
            return to_chat_message(row) if row is not None else None

    def _update(self, message_id: int, text: str) -> ChatMessage | None:
        with self._session_factory() as db:
            row = db.get(Message, message_id)
            if row is None:
                return None
            row.message = text
            db.commit()
            db.refresh(row)
            return to_chat_message(row)

    def _delete(self, message_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(Message, message_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def _count_references(self, image_url: str) -> int:
        stmt = select(func.count()).select_from(Message).where(Message.image_url == image_url)
        with self._session_factory() as db:
            return db.execute(stmt).scalar_one()
