"""Image upload and media serving endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from app.api.deps import get_current_user, get_media_host, http_error
from app.core.storage import LocalMediaHost, decode_image_payload
from app.models import User
from app.schemas import ImageUploadRequest, ImageUploadResponse
from huddle.realtime.errors import ChatError, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])
files_router = APIRouter(tags=["media"])


@router.post("/upload-image", response_model=ImageUploadResponse)
async def upload_image(
    payload: ImageUploadRequest,
    current_user: User = Depends(get_current_user),
    media_host: LocalMediaHost = Depends(get_media_host),
) -> ImageUploadResponse:
    """Store a base64 image and return the URL to reference in a chat message."""

    try:
        data, content_type = decode_image_payload(payload.image, media_host.max_size)
        url = await media_host.upload(data, content_type, owner=current_user.username)
    except UpstreamError as exc:
        # The host is our own disk, so storage failures are server errors.
        raise http_error(exc, status_code=500) from exc
    except ChatError as exc:
        raise http_error(exc) from exc
    logger.info("%s uploaded %s (%d bytes)", current_user.username, url, len(data))
    return ImageUploadResponse(success=True, url=url)


@files_router.get("/media/{file_name}", response_class=FileResponse)
def get_media(
    file_name: str,
    media_host: LocalMediaHost = Depends(get_media_host),
) -> FileResponse:
    try:
        path = media_host.resolve_path(file_name)
    except ChatError as exc:
        raise http_error(exc) from exc
    return FileResponse(path)
