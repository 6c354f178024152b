"""Pydantic schemas for API payloads."""

from .auth import LoginRequest, Token, UserCreate, UserRead
from .media import GifResult, ImageUploadRequest, ImageUploadResponse
from .messages import MessageDeleteResponse, MessageEditRequest

__all__ = [
    "LoginRequest",
    "Token",
    "UserCreate",
    "UserRead",
    "GifResult",
    "ImageUploadRequest",
    "ImageUploadResponse",
    "MessageDeleteResponse",
    "MessageEditRequest",
]
