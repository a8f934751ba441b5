"""Eventbrite adapter.

Finds venues around a point, then pulls each venue's events and normalizes
them into canonical Events.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from explorer.config import Settings
from explorer.errors import ProviderError
from explorer.models import Event
from explorer.providers.base import decode_json, get_with_retry
from explorer.utils.geo import is_valid_coordinate
from explorer.utils.logging import get_logger
from explorer.utils.time import parse_timestamp, utc_now


logger = get_logger(__name__)

PROVIDER = "eventbrite"


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Text(_Raw):
    text: Optional[str] = None


class _Time(_Raw):
    utc: Optional[str] = None
    local: Optional[str] = None
    timezone: Optional[str] = None


class _Address(_Raw):
    localized_address_display: Optional[str] = None


class _Venue(_Raw):
    id: Optional[str] = None
    name: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    address: Optional[_Address] = None


class _Logo(_Raw):
    url: Optional[str] = None


class _Organizer(_Raw):
    name: Optional[str] = None


class _EventbriteEvent(_Raw):
    id: Optional[str] = None
    name: Optional[_Text] = None
    description: Optional[_Text] = None
    start: Optional[_Time] = None
    end: Optional[_Time] = None
    venue: Optional[_Venue] = None
    logo: Optional[_Logo] = None
    organizer: Optional[_Organizer] = None
    category_id: Optional[str] = None
    url: Optional[str] = None
    is_free: Optional[bool] = None


def parse_event_time(value: Optional[_Time]) -> Optional[datetime]:
    """Resolve an Eventbrite time block to an aware UTC datetime.

    Prefers the UTC field; a local time is interpreted in the block's own timezone.
    """
    if value is None:
        return None

    if value.utc:
        parsed = parse_timestamp(value.utc)
        if parsed is not None:
            return parsed.astimezone(timezone.utc)

    if value.local:
        try:
            local = datetime.fromisoformat(value.local.replace("Z", "+00:00"))
        except ValueError:
            return None
        if local.tzinfo is None and value.timezone:
            try:
                local = local.replace(tzinfo=ZoneInfo(value.timezone))
            except (ZoneInfoNotFoundError, ValueError):
                return None
        if local.tzinfo is None:
            local = local.replace(tzinfo=timezone.utc)
        return local.astimezone(timezone.utc)

    return None


def event_to_canonical(event: _EventbriteEvent, now: Optional[datetime] = None) -> Optional[Event]:
    """Map an Eventbrite event onto an Event, or None if it cannot be placed or dated."""
    if not event.id:
        return None
    title = event.name.text.strip() if event.name and event.name.text else ""
    if not title:
        return None

    start_time = parse_event_time(event.start)
    if start_time is None:
        return None

    venue = event.venue
    if venue is None or venue.latitude is None or venue.longitude is None:
        return None
    try:
        lat = float(venue.latitude)
        lng = float(venue.longitude)
    except ValueError:
        return None
    if not is_valid_coordinate(lat, lng):
        return None

    cost_type = None
    if event.is_free is not None:
        cost_type = "free" if event.is_free else "paid"

    now = now or utc_now()
    return Event(
        id=f"{PROVIDER}_{event.id}",
        title=title,
        description=event.description.text if event.description else None,
        start_time=start_time,
        end_time=parse_event_time(event.end),
        location_name=venue.name or "",
        coordinates={"lat": lat, "lng": lng},
        address=venue.address.localized_address_display if venue.address else None,
        image_url=event.logo.url if event.logo else None,
        organizer=event.organizer.name if event.organizer else None,
        category=f"eventbrite_category_{event.category_id}" if event.category_id else None,
        source=PROVIDER,
        external_id=event.id,
        url=event.url,
        cost_type=cost_type,
        visibility="public",
        created_at=now,
        updated_at=now,
    )


def normalize_events(items: list[Any]) -> list[Event]:
    """Normalize raw events, dropping entries that fail to parse."""
    now = utc_now()
    events: list[Event] = []
    seen: set[str] = set()
    for item in items:
        try:
            raw = _EventbriteEvent.model_validate(item)
            event = event_to_canonical(raw, now=now)
        except PydanticValidationError as exc:
            logger.debug("eventbrite.normalize.drop error=%s", exc)
            continue
        if event is None:
            logger.debug("eventbrite.normalize.drop id=%s", raw.id)
            continue
        if event.external_id in seen:
            continue
        seen.add(event.external_id)
        events.append(event)
    return events


class EventbriteAdapter:
    """Event provider backed by the Eventbrite v3 API."""

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None) -> None:
        self.client = client
        self.settings = settings or Settings()
        self.base_url = self.settings.eventbrite_base_url.rstrip("/")
        if not self.settings.eventbrite_api_key:
            logger.warning("eventbrite.adapter.no_api_key base_url=%s", self.base_url)

    async def search_events(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Event]:
        radius_meters = radius or self.settings.event_default_radius_meters
        venue_ids = await self._venue_ids(lat, lng, radius_meters)
        if not venue_ids:
            return []

        params: dict[str, Any] = {"expand": "venue,organizer,ticket_classes"}
        if start_date is not None:
            params["start_date"] = _format_date(start_date)
        if end_date is not None:
            params["end_date"] = _format_date(end_date)

        results = await asyncio.gather(
            *(self._get(f"venues/{venue_id}/events/", params) for venue_id in venue_ids),
            return_exceptions=True,
        )

        raw_events: list[Any] = []
        for venue_id, result in zip(venue_ids, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("eventbrite.venue_events.failed venue_id=%s error=%s", venue_id, result)
                continue
            items = result.get("events")
            if isinstance(items, list):
                raw_events.extend(items)

        events = normalize_events(raw_events)
        logger.info(
            "eventbrite.search_events venues=%s raw=%s count=%s",
            len(venue_ids),
            len(raw_events),
            len(events),
        )
        return events

    async def _venue_ids(self, lat: float, lng: float, radius_meters: float) -> list[str]:
        payload = await self._get(
            "venues/search/",
            {
                "latitude": lat,
                "longitude": lng,
                "within": f"{radius_meters / 1000:g}km",
            },
        )
        venues = payload.get("venues")
        if not isinstance(venues, list):
            raise ProviderError(PROVIDER, "INVALID_RESPONSE", "venues missing")
        return [str(venue["id"]) for venue in venues if isinstance(venue, dict) and venue.get("id")]

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        headers = {}
        if self.settings.eventbrite_api_key:
            headers["Authorization"] = f"Bearer {self.settings.eventbrite_api_key}"

        response = await get_with_retry(
            self.client,
            f"{self.base_url}/{path}",
            PROVIDER,
            params=params,
            headers=headers,
            retries=self.settings.provider_max_retries,
        )
        payload = decode_json(response, PROVIDER)
        if response.is_error or "error" in payload:
            status = payload.get("error") or f"HTTP_{response.status_code}"
            raise ProviderError(PROVIDER, str(status), payload.get("error_description"))
        return payload


def _format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
