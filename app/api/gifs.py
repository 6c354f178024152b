"""GIF search proxy."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user, get_gif_provider, http_error
from app.models import User
from app.schemas import GifResult
from app.services.gif_search import GifSearchProvider
from huddle.realtime.errors import ChatError, ValidationError

router = APIRouter(prefix="/gifs", tags=["gifs"])


@router.get("/search", response_model=list[GifResult], response_model_by_alias=True)
async def search_gifs(
    q: str = Query(""),
    current_user: User = Depends(get_current_user),
    provider: GifSearchProvider = Depends(get_gif_provider),
) -> list[GifResult]:
    """Proxy a search to the GIF provider so the API key stays server side."""

    try:
        query = q.strip()
        if not query:
            raise ValidationError("Search query is required")
        return await provider.search(query)
    except ChatError as exc:
        raise http_error(exc) from exc
