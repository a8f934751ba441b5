from datetime import datetime, timezone

import pytest

from explorer.config import Settings
from explorer.models import Event, Location


@pytest.fixture
def settings() -> Settings:
    return Settings(
        PROVIDER_MAX_RETRIES=0,
        GOOGLE_PLACES_API_KEY="test-key",
        EVENTBRITE_API_KEY="test-token",
    )


@pytest.fixture
def make_location():
    def _make(**overrides) -> Location:
        data = {
            "id": "google_ChIJthinkingcup",
            "name": "Thinking Cup",
            "description": "cafe, food",
            "coordinates": {"lat": 42.3601, "lng": -71.0589},
            "address": "165 Tremont St, Boston",
            "website": "https://thinkingcup.com",
            "phone": "(617) 482-5555",
            "rating": 4.4,
            "total_ratings": 1892,
            "photos": ["ref-1", "ref-2"],
            "hours": [{"open": "0700", "close": "2200", "day": 1}],
            "price_level": 2,
            "types": ["cafe", "food"],
            "source": "google",
            "source_id": "ChIJthinkingcup",
            "last_updated": datetime(2026, 10, 1, 12, 30, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Location.model_validate(data)

    return _make


@pytest.fixture
def make_event():
    def _make(**overrides) -> Event:
        data = {
            "id": "eventbrite_1001",
            "title": "Harbor Jazz Night",
            "description": "Live jazz by the water",
            "start_time": datetime(2026, 11, 2, 23, 0, tzinfo=timezone.utc),
            "end_time": datetime(2026, 11, 3, 2, 0, tzinfo=timezone.utc),
            "location_name": "Harbor Stage",
            "coordinates": {"lat": 42.3554, "lng": -71.0497},
            "address": "1 Harbor Way, Boston",
            "image_url": "https://img.example.com/jazz.png",
            "organizer": "Harbor Arts",
            "category": "eventbrite_category_103",
            "tags": ["music"],
            "source": "eventbrite",
            "external_id": "1001",
            "url": "https://www.eventbrite.com/e/1001",
            "cost_type": "paid",
            "cost_amount": 25.0,
            "visibility": "public",
            "created_at": datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc),
            "updated_at": datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Event.model_validate(data)

    return _make
