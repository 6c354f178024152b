"""Schemas for authentication endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr


class UserCreate(BaseModel):
    """Payload for creating a new user via registration."""

    username: constr(strip_whitespace=True, min_length=3, max_length=64, pattern=r"^[\w.-]+$") = Field(
        ..., description="Unique username of 3-64 letters, digits, '.', '_' or '-'"
    )
    password: constr(min_length=8, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )


class UserRead(BaseModel):
    """Representation of a user returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_at: datetime


class LoginRequest(BaseModel):
    """Payload for user login."""

    username: constr(strip_whitespace=True, min_length=3, max_length=64) = Field(..., description="Username")
    password: constr(min_length=1, max_length=128) = Field(..., description="User password")


class Token(BaseModel):
    """Access token returned after successful authentication."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    username: str = Field(..., description="Username bound to the token")
    expires_in: int | None = Field(
        default=None,
        description="Number of seconds until the access token expires",
    )
