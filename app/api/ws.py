"""WebSocket endpoint for the realtime chat protocol."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from functools import partial
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.api.deps import resolve_user
from app.config import get_settings
from app.database import get_db_session
from huddle.realtime import RealtimeGateway, safe_send_json
from huddle.realtime.errors import UnauthorizedError
from huddle.realtime.messages import EVENT_ERROR, EVENT_PING

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"event": EVENT_PING, "data": None}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _receive_frame(websocket: WebSocket) -> str | None:
    """Receive one frame; binary frames yield ``None`` instead of raising."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    return message.get("text")


def _extract_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    return token or None


async def _resolve_username(websocket: WebSocket) -> str | None:
    token = _extract_token(websocket)
    if token is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
        return None

    try:
        with get_db_session() as db:
            return resolve_user(token, db).username
    except UnauthorizedError as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
        return None


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Run one realtime chat connection until the client goes away."""

    username = await _resolve_username(websocket)
    if username is None:
        return

    gateway: RealtimeGateway = websocket.app.state.gateway
    await websocket.accept()
    session = await gateway.connect(websocket, username)

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            partial(_receive_frame, websocket),
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if raw_message is None:
                await session.send(EVENT_ERROR, {"detail": "Invalid message format"})
                continue
            try:
                frame = json.loads(raw_message)
            except json.JSONDecodeError:
                await session.send(EVENT_ERROR, {"detail": "Invalid message format"})
                continue
            await gateway.dispatch(session, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect(session)
