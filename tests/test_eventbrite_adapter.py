from datetime import datetime, timezone

import httpx
import pytest

from explorer.errors import ProviderError
from explorer.providers.eventbrite import EventbriteAdapter


VENUE = {
    "id": "v1",
    "name": "Harbor Stage",
    "latitude": "42.3554",
    "longitude": "-71.0497",
    "address": {"localized_address_display": "1 Harbor Way, Boston"},
}


def _event(event_id: str, **overrides) -> dict:
    data = {
        "id": event_id,
        "name": {"text": "Harbor Jazz Night"},
        "description": {"text": "Live jazz by the water"},
        "start": {"utc": "2026-11-02T23:00:00Z", "timezone": "America/New_York"},
        "end": {"utc": "2026-11-03T02:00:00Z", "timezone": "America/New_York"},
        "venue": VENUE,
        "logo": {"url": "https://img.example.com/jazz.png"},
        "organizer": {"name": "Harbor Arts"},
        "category_id": "103",
        "url": f"https://www.eventbrite.com/e/{event_id}",
        "is_free": False,
    }
    data.update(overrides)
    return data


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_search_events_walks_venues_then_events(settings):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/venues/search/"):
            return httpx.Response(200, json={"venues": [{"id": "v1"}]})
        return httpx.Response(200, json={"events": [_event("1001")]})

    async with _client(handler) as client:
        events = await EventbriteAdapter(client, settings).search_events(42.36, -71.06)

    search, venue_events = requests
    assert search.url.params["within"] == "10km"
    assert search.url.params["latitude"] == "42.36"
    assert search.headers["Authorization"] == "Bearer test-token"
    assert venue_events.url.path.endswith("/venues/v1/events/")

    (event,) = events
    assert event.id == "eventbrite_1001"
    assert event.external_id == "1001"
    assert event.source == "eventbrite"
    assert event.title == "Harbor Jazz Night"
    assert event.start_time == datetime(2026, 11, 2, 23, 0, tzinfo=timezone.utc)
    assert event.location_name == "Harbor Stage"
    assert event.coordinates.lat == pytest.approx(42.3554)
    assert event.coordinates.lng == pytest.approx(-71.0497)
    assert event.address == "1 Harbor Way, Boston"
    assert event.category == "eventbrite_category_103"
    assert event.cost_type == "paid"
    assert event.visibility == "public"


@pytest.mark.asyncio
async def test_search_events_passes_date_window(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/venues/search/"):
            return httpx.Response(200, json={"venues": [{"id": "v1"}]})
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"events": []})

    async with _client(handler) as client:
        await EventbriteAdapter(client, settings).search_events(
            42.36,
            -71.06,
            radius=2500,
            start_date=datetime(2026, 11, 1, tzinfo=timezone.utc),
            end_date=datetime(2026, 11, 8, tzinfo=timezone.utc),
        )

    assert seen["start_date"] == "2026-11-01T00:00:00Z"
    assert seen["end_date"] == "2026-11-08T00:00:00Z"


@pytest.mark.asyncio
async def test_local_time_is_converted_with_block_timezone(settings):
    local_only = _event(
        "1002",
        start={"local": "2026-11-02T19:00:00", "timezone": "America/New_York"},
        end=None,
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/venues/search/"):
            return httpx.Response(200, json={"venues": [{"id": "v1"}]})
        return httpx.Response(200, json={"events": [local_only]})

    async with _client(handler) as client:
        (event,) = await EventbriteAdapter(client, settings).search_events(42.36, -71.06)

    # EST is UTC-5 in November
    assert event.start_time == datetime(2026, 11, 3, 0, 0, tzinfo=timezone.utc)
    assert event.end_time is None


@pytest.mark.asyncio
async def test_unplaceable_or_undated_events_are_dropped(settings):
    items = [
        _event("good"),
        _event("bad-start", start={"utc": "soon"}),
        _event("no-venue", venue=None),
        _event("no-coords", venue={"id": "v2", "name": "Somewhere"}),
        _event("no-title", name={"text": "   "}),
        _event("good"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/venues/search/"):
            return httpx.Response(200, json={"venues": [{"id": "v1"}]})
        return httpx.Response(200, json={"events": items})

    async with _client(handler) as client:
        events = await EventbriteAdapter(client, settings).search_events(42.36, -71.06)

    assert [event.external_id for event in events] == ["good"]


@pytest.mark.asyncio
async def test_failed_venue_is_skipped(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/venues/search/"):
            return httpx.Response(200, json={"venues": [{"id": "v1"}, {"id": "v2"}]})
        if "/venues/v1/" in path:
            return httpx.Response(404, json={"error": "NOT_FOUND", "error_description": "gone"})
        return httpx.Response(200, json={"events": [_event("2001")]})

    async with _client(handler) as client:
        events = await EventbriteAdapter(client, settings).search_events(42.36, -71.06)

    assert [event.external_id for event in events] == ["2001"]


@pytest.mark.asyncio
async def test_no_venues_means_no_events(settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"venues": []})

    async with _client(handler) as client:
        assert await EventbriteAdapter(client, settings).search_events(42.36, -71.06) == []

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_venue_search_error_raises_provider_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            json={"error": "INVALID_AUTH", "error_description": "token rejected"},
        )

    async with _client(handler) as client:
        with pytest.raises(ProviderError) as excinfo:
            await EventbriteAdapter(client, settings).search_events(42.36, -71.06)

    assert excinfo.value.status == "INVALID_AUTH"
    assert excinfo.value.provider == "eventbrite"
