"""Process-level wiring of stores, adapters and aggregators."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Literal, Optional

import httpx

from explorer.aggregation import EventAggregator, LocationAggregator
from explorer.cache.memory import MemoryEventStore, MemoryLocationStore
from explorer.cache.postgres import PostgresEventStore, PostgresLocationStore
from explorer.config import Settings
from explorer.providers import EventbriteAdapter, GooglePlacesAdapter
from explorer.utils.logging import get_logger


logger = get_logger(__name__)

StoreKind = Literal["postgres", "memory"]


@dataclass
class Services:
    settings: Settings
    places: GooglePlacesAdapter
    events_provider: EventbriteAdapter
    locations: LocationAggregator
    events: EventAggregator


def build_services(
    client: httpx.AsyncClient,
    settings: Optional[Settings] = None,
    store: StoreKind = "postgres",
) -> Services:
    """Construct every service once, sharing one HTTP client."""
    settings = settings or Settings()
    places = GooglePlacesAdapter(client, settings)
    events_provider = EventbriteAdapter(client, settings)

    if store == "memory":
        location_store = MemoryLocationStore()
        event_store = MemoryEventStore()
    else:
        location_store = PostgresLocationStore(settings)
        event_store = PostgresEventStore(settings)

    return Services(
        settings=settings,
        places=places,
        events_provider=events_provider,
        locations=LocationAggregator(location_store, places, settings),
        events=EventAggregator(event_store, events_provider, settings),
    )


@asynccontextmanager
async def open_services(
    settings: Optional[Settings] = None,
    store: StoreKind = "postgres",
) -> AsyncIterator[Services]:
    """Yield wired services; pending cache write-backs finish before the client closes."""
    settings = settings or Settings()
    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        services = build_services(client, settings, store=store)
        try:
            yield services
        finally:
            await services.locations.drain()
            await services.events.drain()
            logger.info(
                "services.closed locations=%s events=%s",
                services.locations.stats,
                services.events.stats,
            )
