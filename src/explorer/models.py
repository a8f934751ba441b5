"""Canonical Location and Event models shared by adapters, stores and aggregators."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from explorer.utils.time import utc_now


LocationSource = Literal["google", "yelp", "osm"]
EventSource = Literal["eventbrite", "meetup", "user", "pedra"]
CostType = Literal["free", "paid", "donation"]
Visibility = Literal["public", "private", "shared"]

USER_EVENT_SOURCE: EventSource = "user"


class _Canonical(BaseModel):
    """Immutable model that serializes with camelCase keys for UI callers."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Coordinates(_Canonical):
    """WGS84 point."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class OpeningPeriod(_Canonical):
    """One opening period; times are provider-local HHMM strings."""

    open: str
    close: Optional[str] = None
    day: int = Field(ge=0, le=6)


class Location(_Canonical):
    """Normalized place, independent of any provider's schema."""

    id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    coordinates: Coordinates
    address: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    total_ratings: Optional[int] = Field(default=None, ge=0)
    photos: list[str] = Field(default_factory=list)
    hours: Optional[list[OpeningPeriod]] = None
    price_level: Optional[int] = None
    types: list[str] = Field(default_factory=list)
    source: LocationSource
    source_id: str = Field(min_length=1)
    last_updated: datetime = Field(default_factory=utc_now)

    @property
    def conflict_key(self) -> tuple[str, str]:
        return (self.source, self.source_id)


class Event(_Canonical):
    """Normalized event from a provider or created by a user."""

    id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    location_name: str = ""
    coordinates: Coordinates
    address: Optional[str] = None
    image_url: Optional[str] = None
    organizer: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    source: EventSource
    external_id: Optional[str] = None
    url: Optional[str] = None
    cost_type: Optional[CostType] = None
    cost_amount: Optional[float] = None
    visibility: Visibility = "public"
    owner_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def conflict_key(self) -> tuple[str, Optional[str]]:
        return (self.source, self.external_id)


class EventDraft(_Canonical):
    """User submission for a new event."""

    title: str = ""
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    location_name: str = ""
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    image_url: Optional[str] = None
    organizer: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    cost_type: Optional[CostType] = None
    cost_amount: Optional[float] = None
    visibility: Visibility = "public"

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        return (value or "").strip()
