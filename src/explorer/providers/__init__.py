"""Provider adapters."""

from explorer.providers.base import EventProvider, LocationProvider
from explorer.providers.eventbrite import EventbriteAdapter
from explorer.providers.google import GooglePlacesAdapter, Photo

__all__ = [
    "EventProvider",
    "LocationProvider",
    "EventbriteAdapter",
    "GooglePlacesAdapter",
    "Photo",
]
