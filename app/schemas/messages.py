"""Schemas for the message history and moderation endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MessageEditRequest(BaseModel):
    """Body of ``PUT /messages/{id}``."""

    model_config = ConfigDict(populate_by_name=True)

    new_message: str = Field(..., alias="newMessage", description="Replacement text")


class MessageDeleteResponse(BaseModel):
    success: bool = True
