"""Error taxonomy shared by the realtime gateway and the HTTP layer."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for failures raised by the chat core."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class UnauthorizedError(ChatError):
    """No identity could be established for the caller."""


class NotFoundError(ChatError):
    """The referenced message does not exist."""


class ForbiddenError(ChatError):
    """The caller does not own the message it tries to change."""


class ValidationError(ChatError):
    """A client payload is malformed."""


class PayloadTooLargeError(ValidationError):
    """Uploaded media exceeds the configured size limit."""


class UpstreamError(ChatError):
    """An external collaborator (media host, GIF provider) failed."""


class PersistenceError(ChatError):
    """The message store is unavailable or rejected the operation."""
