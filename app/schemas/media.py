"""Schemas for image uploads and GIF search."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImageUploadRequest(BaseModel):
    """Image sent as a data URL or a bare base64 string."""

    image: str = Field(..., min_length=1)


class ImageUploadResponse(BaseModel):
    success: bool = True
    url: str


class GifResult(BaseModel):
    """A single GIF search hit."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    preview_url: str
