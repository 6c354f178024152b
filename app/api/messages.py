"""HTTP endpoints for message history, edits and deletions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user, get_gateway, http_error
from app.models import User
from app.schemas import MessageDeleteResponse, MessageEditRequest
from huddle.realtime import ChatMessage, RealtimeGateway
from huddle.realtime.errors import ChatError

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[ChatMessage], response_model_by_alias=True)
async def list_messages(
    skip: int = Query(0, ge=0),
    channel: str | None = Query(None),
    current_user: User = Depends(get_current_user),
    gateway: RealtimeGateway = Depends(get_gateway),
) -> list[ChatMessage]:
    """Return older channel history, oldest first, for infinite scroll."""

    try:
        return await gateway.history(channel or gateway.options.default_channel, skip)
    except ChatError as exc:
        raise http_error(exc) from exc


@router.put("/{message_id}", response_model=ChatMessage, response_model_by_alias=True)
async def edit_message(
    message_id: int,
    payload: MessageEditRequest,
    current_user: User = Depends(get_current_user),
    gateway: RealtimeGateway = Depends(get_gateway),
) -> ChatMessage:
    try:
        return await gateway.edit_message(message_id, current_user.username, payload.new_message)
    except ChatError as exc:
        raise http_error(exc) from exc


@router.delete("/{message_id}", response_model=MessageDeleteResponse)
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    gateway: RealtimeGateway = Depends(get_gateway),
) -> MessageDeleteResponse:
    try:
        await gateway.delete_message(message_id, current_user.username)
    except ChatError as exc:
        raise http_error(exc) from exc
    return MessageDeleteResponse(success=True)
