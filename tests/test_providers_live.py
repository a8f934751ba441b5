import os

import httpx
import pytest

from explorer.config import Settings
from explorer.providers import EventbriteAdapter, GooglePlacesAdapter


pytestmark = pytest.mark.skipif(
    not os.getenv("RUN_LIVE_API_TESTS"),
    reason="Set RUN_LIVE_API_TESTS=1 to run live API tests",
)


@pytest.mark.asyncio
async def test_google_nearby_returns_places_or_skips():
    settings = Settings()
    if not settings.google_places_api_key:
        pytest.skip("GOOGLE_PLACES_API_KEY not set")

    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        places = await GooglePlacesAdapter(client, settings).search_nearby(42.3601, -71.0589)
    if not places:
        pytest.skip("No places returned around the test point")

    assert places[0].source == "google"
    assert places[0].source_id


@pytest.mark.asyncio
async def test_eventbrite_search_returns_events_or_skips():
    settings = Settings()
    if not settings.eventbrite_api_key:
        pytest.skip("EVENTBRITE_API_KEY not set")

    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        events = await EventbriteAdapter(client, settings).search_events(42.3601, -71.0589)
    if not events:
        pytest.skip("No events returned around the test point")

    assert events[0].external_id
    assert events[0].start_time.tzinfo is not None
