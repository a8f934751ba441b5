"""Event aggregator: cache-first event search plus user event reads and writes."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from explorer.aggregation.base import CachingAggregator, check_point, resolve_radius
from explorer.cache.rows import event_to_row, row_to_event, rows_to_events
from explorer.cache.store import EventStore
from explorer.config import Settings
from explorer.errors import (
    AggregationError,
    PersistenceError,
    ProviderError,
    RowConversionError,
    TransportError,
    ValidationError,
)
from explorer.models import USER_EVENT_SOURCE, Event, EventDraft
from explorer.providers.base import EventProvider
from explorer.utils.logging import get_logger
from explorer.utils.time import parse_timestamp, utc_now


logger = get_logger(__name__)


class EventAggregator(CachingAggregator):
    """Search events through the cache, falling back to the events provider."""

    kind = "events"

    def __init__(
        self,
        store: EventStore,
        provider: EventProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(settings)
        self.store = store
        self.provider = provider

    async def search_events(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        viewer_id: Optional[str] = None,
    ) -> list[Event]:
        """Return events near a point.

        Cached rows count only if updated within the TTL and visible to the viewer
        (public, or owned by viewer_id). Without a start_date only upcoming events
        are read from the cache.
        """
        check_point(lat, lng)
        radius = resolve_radius(radius, self.settings.event_default_radius_meters)
        start_date = parse_timestamp(start_date)
        end_date = parse_timestamp(end_date)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must not be before start_date")

        now = utc_now()
        updated_since = now - timedelta(hours=self.settings.event_cache_ttl_hours)
        cache_ok = True
        try:
            rows = await self.store.query_nearby(
                lat,
                lng,
                radius,
                updated_since=updated_since,
                start_after=start_date or now,
                start_before=end_date,
                viewer_id=viewer_id,
            )
        except Exception:
            cache_ok = False
            rows = []
            self.stats.cache_errors += 1
            logger.warning(
                "events.cache.query_failed lat=%s lng=%s radius=%s",
                lat,
                lng,
                radius,
                exc_info=True,
            )

        cached = rows_to_events(rows)
        if cached:
            self.stats.cache_hits += 1
            logger.info("events.cache.hit count=%s", len(cached))
            return cached
        if cache_ok:
            self.stats.cache_misses += 1
            logger.info("events.cache.miss rows=%s", len(rows))

        try:
            events = await self.provider.search_events(
                lat,
                lng,
                radius=radius,
                start_date=start_date,
                end_date=end_date,
            )
        except (TransportError, ProviderError) as exc:
            self.stats.provider_errors += 1
            logger.error("events.search_events.unavailable error=%s", exc)
            raise AggregationError(f"Event search unavailable: {exc}") from exc

        if events:
            self.schedule_writeback(
                lambda: [event_to_row(event) for event in events],
                self.store.upsert,
            )
        return events

    async def get_user_events(self, user_id: str) -> list[Event]:
        """Return a user's events ordered by start time. No provider fallback."""
        if not user_id:
            raise ValidationError("user_id is required")
        try:
            rows = await self.store.query_by_owner(user_id)
        except TransportError as exc:
            raise PersistenceError(f"Could not read events for user: {exc}") from exc

        events = rows_to_events(rows)
        return sorted(events, key=lambda event: event.start_time)

    async def create_event(self, draft: EventDraft, owner_id: Optional[str] = None) -> Event:
        """Store a user-created event and return it as persisted."""
        if draft.coordinates is None:
            raise ValidationError("Event coordinates are required")
        if not draft.title:
            raise ValidationError("Event title is required")

        start_time = parse_timestamp(draft.start_time)
        end_time = parse_timestamp(draft.end_time)
        if start_time is None:
            raise ValidationError("Event start_time is required")
        if end_time is not None and end_time < start_time:
            raise ValidationError("Event end_time must not be before start_time")

        now = utc_now()
        fields = draft.model_dump(exclude={"start_time", "end_time", "coordinates"})
        try:
            event = Event(
                **fields,
                id=str(uuid.uuid4()),
                start_time=start_time,
                end_time=end_time,
                coordinates=draft.coordinates,
                source=USER_EVENT_SOURCE,
                external_id=None,
                owner_id=owner_id,
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid event: {exc}") from exc

        try:
            stored = await self.store.insert(event_to_row(event))
        except TransportError as exc:
            raise PersistenceError(f"Could not store event: {exc}") from exc

        try:
            created = row_to_event(stored)
        except RowConversionError as exc:
            raise PersistenceError(f"Stored event could not be read back: {exc}") from exc

        logger.info("events.create id=%s owner_id=%s", created.id, owner_id)
        return created
