"""Local filesystem media host for uploaded chat images."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
from pathlib import Path
from typing import Final
from urllib.parse import urlparse
from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from huddle.realtime.errors import (
    NotFoundError,
    PayloadTooLargeError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_EXTENSIONS: Final[dict[str, str]] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
_STORED_NAME = re.compile(r"^(?:(?P<owner>[0-9a-f]{16})_)?[0-9a-f]{32}\.(png|jpg|gif|webp)$")
_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w=.-]+)*;base64,", re.IGNORECASE)


def owner_tag(username: str) -> str:
    """Short stable tag embedded in file names to record the uploader."""

    return hashlib.sha256(username.encode("utf-8")).hexdigest()[:16]


def sniff_image_type(data: bytes) -> str | None:
    """Return the MIME type of *data* based on its magic bytes."""

    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def decode_image_payload(raw: str, max_size: int) -> tuple[bytes, str]:
    """Decode a base64 string or data URL into bytes and a sniffed MIME type."""

    match = _DATA_URL.match(raw)
    encoded = raw[match.end():] if match else raw
    encoded = "".join(encoded.split())
    # Reject before decoding: base64 inflates the payload by a third.
    if len(encoded) * 3 // 4 > max_size + 2:
        raise PayloadTooLargeError("Image exceeds allowed size")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image is not valid base64") from exc
    if not data:
        raise ValidationError("Image is empty")
    if len(data) > max_size:
        raise PayloadTooLargeError("Image exceeds allowed size")
    content_type = sniff_image_type(data)
    if content_type is None:
        raise ValidationError("Only PNG, JPEG, GIF or WEBP images are accepted")
    return data, content_type


class LocalMediaHost:
    """Store images under ``root`` and hand out URLs below ``base_url``."""

    def __init__(self, root: Path, base_url: str, *, max_size: int) -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")
        self._base_path = urlparse(self._base_url).path.rstrip("/")
        self._max_size = max_size

    @property
    def max_size(self) -> int:
        return self._max_size

    def _images_dir(self) -> Path:
        target = self._root / "images"
        target.mkdir(parents=True, exist_ok=True)
        return target

    async def upload(self, data: bytes, content_type: str, *, owner: str | None = None) -> str:
        if len(data) > self._max_size:
            raise PayloadTooLargeError("Image exceeds allowed size")
        extension = _EXTENSIONS.get(content_type)
        if extension is None:
            raise ValidationError(f"Unsupported image type: {content_type}")

        prefix = f"{owner_tag(owner)}_" if owner else ""
        file_name = f"{prefix}{uuid4().hex}{extension}"
        try:
            await run_in_threadpool(self._write, file_name, data)
        except OSError as exc:
            logger.error("Failed to store uploaded image %s", file_name, exc_info=True)
            raise UpstreamError("Media host failed to store the image") from exc
        return f"{self._base_url}/{file_name}"

    def _write(self, file_name: str, data: bytes) -> None:
        (self._images_dir() / file_name).write_bytes(data)

    async def delete(self, url: str, *, owner: str | None = None) -> bool:
        """Remove a hosted image.

        With *owner* set, only files uploaded by that user are removed.
        """

        file_name = self.file_name_for(url)
        if file_name is None:
            return False
        if owner is not None and self.owner_of(file_name) != owner_tag(owner):
            logger.info("Kept %s; it was not uploaded by %s", file_name, owner)
            return False
        path = self._images_dir() / file_name
        try:
            await run_in_threadpool(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise UpstreamError("Media host failed to delete the image") from exc
        logger.info("Removed hosted image %s", file_name)
        return True

    def file_name_for(self, url: str) -> str | None:
        """Return the stored file name when *url* points at this host."""

        path = urlparse(url).path
        prefix = f"{self._base_path}/"
        if not path.startswith(prefix):
            return None
        candidate = path[len(prefix):]
        return candidate if _STORED_NAME.match(candidate) else None

    @staticmethod
    def owner_of(file_name: str) -> str | None:
        match = _STORED_NAME.match(file_name)
        return match.group("owner") if match else None

    def resolve_path(self, file_name: str) -> Path:
        """Return the absolute path of a stored image."""

        if not _STORED_NAME.match(file_name):
            raise NotFoundError("File not found")
        candidate = self._images_dir() / file_name
        if not candidate.is_file():
            raise NotFoundError("File not found")
        return candidate
