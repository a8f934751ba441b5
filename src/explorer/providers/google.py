"""Google Places adapter.

Talks to the Places web service JSON endpoints (or an internal proxy exposing
the same shape) and normalizes results into canonical Locations. The raw
payload models below never leave this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from explorer.config import Settings
from explorer.errors import ProviderError
from explorer.models import Location, OpeningPeriod
from explorer.providers.base import decode_json, get_with_retry
from explorer.utils.geo import is_valid_coordinate
from explorer.utils.logging import get_logger
from explorer.utils.time import utc_now


logger = get_logger(__name__)

PROVIDER = "google"

DETAILS_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "geometry",
    "rating",
    "user_ratings_total",
    "photos",
    "website",
    "formatted_phone_number",
    "opening_hours",
    "price_level",
    "types",
)

EMPTY_STATUSES = {"ZERO_RESULTS"}
NOT_FOUND_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _LatLng(_Raw):
    lat: Optional[float] = None
    lng: Optional[float] = None


class _Geometry(_Raw):
    location: Optional[_LatLng] = None


class _Photo(_Raw):
    photo_reference: Optional[str] = None


class _PeriodPoint(_Raw):
    day: Optional[int] = None
    time: Optional[str] = None


class _Period(_Raw):
    open: Optional[_PeriodPoint] = None
    close: Optional[_PeriodPoint] = None


class _OpeningHours(_Raw):
    periods: list[_Period] = Field(default_factory=list)


class _GooglePlace(_Raw):
    place_id: Optional[str] = None
    name: Optional[str] = None
    geometry: Optional[_Geometry] = None
    formatted_address: Optional[str] = None
    vicinity: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    photos: list[_Photo] = Field(default_factory=list)
    website: Optional[str] = None
    formatted_phone_number: Optional[str] = None
    opening_hours: Optional[_OpeningHours] = None
    price_level: Optional[int] = None
    types: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Photo:
    content: bytes
    content_type: str


def place_to_location(place: _GooglePlace, now: Optional[datetime] = None) -> Optional[Location]:
    """Map a Google place onto a Location, or None if it lacks id, name or coordinates."""
    if not place.place_id or not place.name or not place.name.strip():
        return None

    point = place.geometry.location if place.geometry else None
    if point is None or point.lat is None or point.lng is None:
        return None
    if not is_valid_coordinate(point.lat, point.lng):
        return None

    hours: Optional[list[OpeningPeriod]] = None
    if place.opening_hours is not None:
        hours = [
            OpeningPeriod(
                open=period.open.time,
                close=period.close.time if period.close else None,
                day=period.open.day,
            )
            for period in place.opening_hours.periods
            if period.open is not None
            and period.open.time is not None
            and period.open.day is not None
            and 0 <= period.open.day <= 6
        ]

    return Location(
        id=f"{PROVIDER}_{place.place_id}",
        name=place.name,
        description=", ".join(place.types) if place.types else None,
        coordinates={"lat": point.lat, "lng": point.lng},
        address=place.formatted_address or place.vicinity,
        rating=place.rating,
        total_ratings=place.user_ratings_total,
        photos=[photo.photo_reference for photo in place.photos if photo.photo_reference],
        website=place.website,
        phone=place.formatted_phone_number,
        hours=hours,
        price_level=place.price_level,
        types=list(place.types),
        source=PROVIDER,
        source_id=place.place_id,
        last_updated=now or utc_now(),
    )


def normalize_results(results: list[Any]) -> list[Location]:
    """Normalize a results array, dropping entries that cannot become Locations."""
    now = utc_now()
    locations: list[Location] = []
    for item in results:
        try:
            place = _GooglePlace.model_validate(item)
            location = place_to_location(place, now=now)
        except PydanticValidationError as exc:
            logger.debug("google.normalize.drop error=%s", exc)
            continue
        if location is None:
            logger.debug("google.normalize.drop place_id=%s", place.place_id)
            continue
        locations.append(location)
    return locations


class GooglePlacesAdapter:
    """Places provider backed by the Google Places web service."""

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None) -> None:
        self.client = client
        self.settings = settings or Settings()
        self.base_url = self.settings.google_places_base_url.rstrip("/")
        if not self.settings.google_places_api_key:
            logger.warning("google.adapter.no_api_key base_url=%s", self.base_url)

    async def search_nearby(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        keyword: Optional[str] = None,
        type: Optional[str] = None,
    ) -> list[Location]:
        params: dict[str, Any] = {
            "location": f"{lat},{lng}",
            "radius": _radius_param(radius or self.settings.nearby_default_radius_meters),
        }
        if keyword:
            params["keyword"] = keyword
        if type:
            params["type"] = type

        payload = await self._get("nearbysearch/json", params)
        locations = self._results(payload)
        logger.info("google.search_nearby count=%s", len(locations))
        return locations

    async def search_text(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius: Optional[float] = None,
    ) -> list[Location]:
        params: dict[str, Any] = {"query": query}
        if lat is not None and lng is not None:
            params["location"] = f"{lat},{lng}"
        if radius:
            params["radius"] = _radius_param(radius)

        payload = await self._get("textsearch/json", params)
        locations = self._results(payload)
        logger.info("google.search_text count=%s", len(locations))
        return locations

    async def get_details(self, place_id: str) -> Optional[Location]:
        """Fetch a single place by id; None when Google does not know it."""
        params = {"place_id": place_id, "fields": ",".join(DETAILS_FIELDS)}
        payload = await self._get("details/json", params)
        status = payload.get("status")
        if status in NOT_FOUND_STATUSES:
            return None
        if status != "OK":
            raise ProviderError(PROVIDER, str(status), payload.get("error_message"))

        result = payload.get("result") or {}
        result.setdefault("place_id", place_id)
        locations = normalize_results([result])
        return locations[0] if locations else None

    async def fetch_photo(self, photo_reference: str, max_width: int = 400) -> Photo:
        """Pass-through fetch of a photo's binary data."""
        params = {"maxwidth": max_width, "photo_reference": photo_reference}
        response = await get_with_retry(
            self.client,
            f"{self.base_url}/photo",
            PROVIDER,
            params=self._with_key(params),
            retries=self.settings.provider_max_retries,
        )
        if response.is_error:
            raise ProviderError(PROVIDER, f"HTTP_{response.status_code}", "photo fetch failed")
        return Photo(
            content=response.content,
            content_type=response.headers.get("content-type") or "image/jpeg",
        )

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await get_with_retry(
            self.client,
            f"{self.base_url}/{path}",
            PROVIDER,
            params=self._with_key(params),
            retries=self.settings.provider_max_retries,
        )
        payload = decode_json(response, PROVIDER)
        if response.is_error and "status" not in payload:
            raise ProviderError(PROVIDER, f"HTTP_{response.status_code}", payload.get("error"))
        return payload

    def _results(self, payload: dict[str, Any]) -> list[Location]:
        status = payload.get("status")
        if status in EMPTY_STATUSES:
            return []
        if status != "OK":
            raise ProviderError(PROVIDER, str(status), payload.get("error_message"))
        results = payload.get("results")
        if not isinstance(results, list):
            raise ProviderError(PROVIDER, "INVALID_RESPONSE", "results missing")
        return normalize_results(results)

    def _with_key(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.settings.google_places_api_key:
            return {**params, "key": self.settings.google_places_api_key}
        return params


def _radius_param(radius: float) -> str:
    return str(int(radius)) if float(radius).is_integer() else str(radius)
