"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.api import ws as ws_module
from app.config import get_settings
from app.core.security import create_access_token, get_password_hash
from app.core.storage import LocalMediaHost
from app.database import get_db
from app.main import app
from app.models import Base, User
from app.services import build_gateway
from huddle.realtime import RealtimeGateway


class DummyWebSocket:
    """Records frames sent through :func:`safe_send_json`."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame["event"] == name]

    def close(self) -> None:
        self.application_state = WebSocketState.DISCONNECTED


@pytest.fixture()
def make_socket() -> Callable[[], DummyWebSocket]:
    return DummyWebSocket


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def media_host(tmp_path) -> LocalMediaHost:
    return LocalMediaHost(tmp_path / "media", "/media", max_size=1024)


@pytest.fixture()
def make_user(session_factory) -> Callable[[str], str]:
    """Create a user and return a bearer token for it."""

    def factory(username: str, password: str = "supersecret") -> str:
        with session_factory() as session:
            user = User(username=username, hashed_password=get_password_hash(password))
            session.add(user)
            session.commit()
            user_id = user.id
        return create_access_token({"sub": str(user_id)})

    return factory


@pytest.fixture()
def gateway(session_factory, media_host) -> RealtimeGateway:
    """Gateway backed by the test database with presence announcements off."""

    realtime = build_gateway(get_settings(), session_factory=session_factory, media_host=media_host)
    realtime.options.announce_presence = False
    return realtime


@pytest.fixture()
def client(session_factory, gateway, media_host, monkeypatch) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database and realtime state overridden."""

    @contextmanager
    def test_db_session() -> Iterator[Session]:
        with session_factory() as session:
            yield session

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(ws_module, "get_db_session", test_db_session)
    original_state = (app.state.gateway, app.state.media_host)
    app.dependency_overrides[get_db] = override_get_db
    app.state.gateway = gateway
    app.state.media_host = media_host
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        app.state.gateway, app.state.media_host = original_state
