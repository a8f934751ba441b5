"""Provider adapter contracts and shared HTTP helpers."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from explorer.errors import ProviderError, TransportError
from explorer.models import Event, Location
from explorer.utils.logging import get_logger


logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class LocationProvider(Protocol):
    """Place search provider returning canonical Locations."""

    async def search_nearby(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        keyword: Optional[str] = None,
        type: Optional[str] = None,
    ) -> list[Location]:
        """Search places around a point."""

    async def search_text(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius: Optional[float] = None,
    ) -> list[Location]:
        """Free-text place search, optionally biased to a point."""


class EventProvider(Protocol):
    """Event search provider returning canonical Events."""

    async def search_events(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Event]:
        """Search events around a point."""


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    provider: str,
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    retries: int = 3,
) -> httpx.Response:
    """GET with simple retry and backoff.

    Transport failures that survive the retries raise TransportError. Retryable
    status codes are retried and then returned to the caller as-is.
    """
    attempt = 0
    while True:
        try:
            response = await client.get(url, params=params, headers=headers)
            if response.status_code in RETRY_STATUS_CODES and attempt < retries:
                attempt += 1
                await asyncio.sleep(min(0.5 * 2**attempt, 8))
                continue
            return response
        except httpx.RequestError as exc:
            attempt += 1
            if attempt > retries:
                raise TransportError(f"{provider} request failed: {exc}") from exc
            logger.debug("provider.retry provider=%s attempt=%s error=%s", provider, attempt, exc)
            await asyncio.sleep(min(0.5 * 2**attempt, 8))


def decode_json(response: httpx.Response, provider: str) -> dict[str, Any]:
    """Decode a JSON object body or raise ProviderError."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderError(provider, f"HTTP_{response.status_code}", "invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise ProviderError(provider, f"HTTP_{response.status_code}", "unexpected JSON shape")
    return payload
