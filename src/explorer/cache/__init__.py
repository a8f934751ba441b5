"""Cache store package: row mapping, store contract and implementations."""

from explorer.cache.memory import MemoryEventStore, MemoryLocationStore
from explorer.cache.postgres import PostgresEventStore, PostgresLocationStore
from explorer.cache.rows import (
    event_to_row,
    location_to_row,
    row_to_event,
    row_to_location,
    rows_to_events,
    rows_to_locations,
)
from explorer.cache.store import EventStore, LocationStore, UpsertResult

__all__ = [
    "EventStore",
    "LocationStore",
    "UpsertResult",
    "MemoryEventStore",
    "MemoryLocationStore",
    "PostgresEventStore",
    "PostgresLocationStore",
    "event_to_row",
    "location_to_row",
    "row_to_event",
    "row_to_location",
    "rows_to_events",
    "rows_to_locations",
]
