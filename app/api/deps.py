"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.core.storage import LocalMediaHost
from app.database import get_db
from app.models import User
from app.services.gif_search import GifSearchProvider
from huddle.realtime import RealtimeGateway
from huddle.realtime.errors import (
    ChatError,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# Checked in order, so subclasses come before their parents.
_ERROR_STATUS: tuple[tuple[type[ChatError], int], ...] = (
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PayloadTooLargeError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def http_error(exc: ChatError, *, status_code: int | None = None) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""

    if status_code is None:
        status_code = next(
            (code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=status_code, detail=exc.detail, headers=headers)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def resolve_user(token: str | None, db: Session) -> User:
    """Resolve a user from a JWT token or raise :class:`UnauthorizedError`."""

    if not token:
        raise UnauthorizedError("Missing access token")
    payload = decode_access_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Could not validate credentials") from None

    user = db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("Could not validate credentials")
    return user


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token or raise an HTTP 401 error."""

    try:
        return resolve_user(token, db)
    except UnauthorizedError as exc:
        raise http_error(exc) from None


def get_gateway(request: Request) -> RealtimeGateway:
    return request.app.state.gateway


def get_media_host(request: Request) -> LocalMediaHost:
    return request.app.state.media_host


def get_gif_provider(request: Request) -> GifSearchProvider:
    return request.app.state.gif_provider
