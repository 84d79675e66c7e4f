"""
HERE Geocoding & Search client.

Two endpoints are used:

- ``/v1/geocode`` turns a free-text address into coordinates when a venue is
  created without a position.
- ``/v1/discover`` powers the dashboard's venue search box.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.server.core.config import settings

logger = get_logger(__name__)

GEOCODE_URL = "https://geocode.search.hereapi.com/v1/geocode"
DISCOVER_URL = "https://discover.search.hereapi.com/v1/discover"
DEFAULT_SEARCH_CENTER = "39.8283,-98.5795"
US_AREA_FILTER = "countryCode:USA"
USER_AGENT = "Singr-Management-Portal/1.0"


class HereApiError(Exception):
    """Raised when a HERE API call fails or the client is not configured."""


class HereClient:
    """Thin async wrapper over the HERE REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 10.0,
        geocode_url: str = GEOCODE_URL,
        discover_url: str = DISCOVER_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.geocode_url = geocode_url
        self.discover_url = discover_url
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise HereApiError("HERE API key not configured")
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        async with httpx.AsyncClient(timeout=self.timeout, headers=headers, transport=self._transport) as client:
            try:
                response = await client.get(url, params={**params, "apiKey": self.api_key})
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"HERE API error {e.response.status_code} for {url}: {e.response.text[:200]}")
                raise HereApiError(f"HERE API returned {e.response.status_code}") from e
            except httpx.HTTPError as e:
                logger.error(f"HERE API request to {url} failed: {e}")
                raise HereApiError(str(e)) from e
            return response.json()

    async def geocode(self, query: str) -> Optional[Dict[str, float]]:
        """
        Geocode a free-text address.

        Returns:
            ``{"lat": ..., "lng": ...}`` of the best match, or None when HERE
            has no result for the address.
        """
        data = await self._get(self.geocode_url, {"q": query})
        items = data.get("items") or []
        position = items[0].get("position") if items else None
        if not position:
            return None
        return {"lat": position["lat"], "lng": position["lng"]}

    async def discover(
        self,
        query: str,
        at: Optional[str] = None,
        area: Optional[str] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """
        Search places matching ``query``.

        Args:
            query: Free-text search
            at: ``lat,lng`` search center
            area: HERE ``in`` filter, e.g. ``countryCode:USA``
            limit: Maximum number of items

        Returns:
            The raw HERE result items
        """
        params: Dict[str, Any] = {"q": query, "limit": limit}
        if at:
            params["at"] = at
        if area:
            params["in"] = area
        data = await self._get(self.discover_url, params)
        return data.get("items") or []

    async def try_geocode(self, query: str) -> Optional[Dict[str, float]]:
        """Geocode ``query``, logging and swallowing any failure."""
        if not self.configured:
            return None
        try:
            return await self.geocode(query)
        except HereApiError as e:
            logger.warning(f"Failed to geocode address '{query}': {e}")
            return None


_here_client: Optional[HereClient] = None


def get_here_client() -> HereClient:
    global _here_client
    if _here_client is None:
        _here_client = HereClient(api_key=settings.here_api_key, timeout=settings.here_timeout_seconds)
    return _here_client
