"""Tenor GIF search client."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from app.schemas.media import GifResult
from huddle.realtime.errors import UpstreamError

logger = logging.getLogger(__name__)


class GifSearchProvider(Protocol):
    async def search(self, query: str) -> list[GifResult]:
        """Return GIFs matching *query*."""


class TenorClient:
    """Thin wrapper around the Tenor v2 ``search`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://tenor.googleapis.com/v2",
        client_key: str = "huddle",
        limit: int = 20,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client_key = client_key
        self.limit = limit
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> list[GifResult]:
        """
        Search Tenor for *query*.

        Returns:
            Results with a small preview URL, in provider order

        Raises:
            UpstreamError: If the client is not configured or the request fails
        """
        if not self.configured:
            raise UpstreamError("GIF search is not configured")

        params = {
            "q": query,
            "key": self.api_key,
            "client_key": self.client_key,
            "limit": self.limit,
            "media_filter": "tinygif,gif",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/search", params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Tenor search for %r failed: %s", query, exc)
            raise UpstreamError("GIF provider request failed") from exc
        except ValueError as exc:
            raise UpstreamError("GIF provider returned malformed data") from exc

        return self._parse_results(payload)

    @staticmethod
    def _parse_results(payload: Any) -> list[GifResult]:
        if not isinstance(payload, dict):
            raise UpstreamError("GIF provider returned malformed data")
        results: list[GifResult] = []
        for item in payload.get("results") or []:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            formats = item.get("media_formats") or {}
            preview = (formats.get("tinygif") or formats.get("gif") or {}).get("url")
            if not preview:
                continue
            results.append(GifResult(id=str(item["id"]), preview_url=preview))
        return results
