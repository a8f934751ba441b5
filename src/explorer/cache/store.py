"""Cache store contract and shared row validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, TypeVar

from explorer.cache.rows import Row
from explorer.utils.geo import is_valid_coordinate, parse_point
from explorer.utils.logging import get_logger
from explorer.utils.time import parse_timestamp


logger = get_logger(__name__)

LOCATION_CONFLICT_KEY = ("source", "source_id")
EVENT_CONFLICT_KEY = ("source", "external_id")


@dataclass
class UpsertResult:
    total: int
    inserted: int
    updated: int
    skipped: int = 0


class LocationStore(Protocol):
    """Geospatial cache of previously seen places."""

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: float,
        keyword: Optional[str] = None,
    ) -> list[Row]:
        """Return rows within radius_meters of (lat, lng), optionally keyword-filtered."""

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        """Insert or update rows keyed by (source, source_id)."""


class EventStore(Protocol):
    """Geospatial cache and system of record for events."""

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: float,
        updated_since: Optional[datetime] = None,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        viewer_id: Optional[str] = None,
    ) -> list[Row]:
        """Return event rows within radius_meters of (lat, lng).

        Only public rows are returned, plus the viewer's own rows when viewer_id is given.
        """

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        """Insert or update rows keyed by (source, external_id)."""

    async def insert(self, row: Row) -> Row:
        """Insert a single row and return it as stored."""

    async def query_by_owner(self, owner_id: str) -> list[Row]:
        """Return the owner's event rows ordered by start_time ascending."""


def location_row_problem(row: Row) -> Optional[str]:
    """Return why a location row cannot be written, or None if it is valid."""
    if not row.get("source") or not row.get("source_id"):
        return "missing_conflict_key"
    if not row.get("name"):
        return "missing_name"
    try:
        lat, lng = parse_point(row.get("coordinates") or "")
    except ValueError:
        return "invalid_coordinates"
    if not is_valid_coordinate(lat, lng):
        return "invalid_coordinates"
    return None


def event_row_problem(row: Row, require_external_id: bool = True) -> Optional[str]:
    """Return why an event row cannot be written, or None if it is valid."""
    if not row.get("source"):
        return "missing_source"
    if require_external_id and not row.get("external_id"):
        return "missing_conflict_key"
    if not row.get("title"):
        return "missing_title"
    try:
        lat = float(row.get("latitude"))
        lng = float(row.get("longitude"))
    except (TypeError, ValueError):
        return "invalid_coordinates"
    if not is_valid_coordinate(lat, lng):
        return "invalid_coordinates"
    if parse_timestamp(row.get("start_time")) is None:
        return "invalid_start_time"
    return None


def partition_rows(
    rows: Iterable[Row],
    conflict_key: tuple[str, str],
    problem: Callable[[Row], Optional[str]],
) -> tuple[list[Row], int]:
    """Drop malformed rows and collapse duplicates on the conflict key (last wins)."""
    valid: dict[tuple[Any, ...], Row] = {}
    skipped = 0
    for row in rows:
        reason = problem(row)
        if reason is not None:
            skipped += 1
            logger.warning(
                "store.upsert.skip_row reason=%s key=%s",
                reason,
                tuple(row.get(column) for column in conflict_key),
            )
            continue
        key = tuple(row.get(column) for column in conflict_key)
        valid.pop(key, None)
        valid[key] = row
    return list(valid.values()), skipped


T = TypeVar("T")


def chunked(items: Sequence[T], batch_size: int) -> list[list[T]]:
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]
