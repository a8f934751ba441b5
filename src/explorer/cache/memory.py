"""In-process cache stores implementing the same contract as the Postgres stores."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from explorer.cache.rows import Row
from explorer.cache.store import (
    EVENT_CONFLICT_KEY,
    LOCATION_CONFLICT_KEY,
    UpsertResult,
    event_row_problem,
    location_row_problem,
    partition_rows,
)
from explorer.errors import PersistenceError
from explorer.utils.geo import haversine_meters, parse_point
from explorer.utils.time import parse_timestamp


class MemoryLocationStore:
    """Locations cache held in a dict keyed by (source, source_id)."""

    def __init__(self) -> None:
        self._rows: dict[tuple[Any, ...], Row] = {}

    def __len__(self) -> int:
        return len(self._rows)

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: float,
        keyword: Optional[str] = None,
    ) -> list[Row]:
        needle = keyword.strip().lower() if keyword and keyword.strip() else None
        matches: list[tuple[float, Row]] = []
        for row in self._rows.values():
            row_lat, row_lng = parse_point(row["coordinates"])
            distance = haversine_meters(lat, lng, row_lat, row_lng)
            if distance > radius_meters:
                continue
            if needle and not _location_matches(row, needle):
                continue
            matches.append((distance, {**row, "lat": row_lat, "lng": row_lng}))

        matches.sort(key=lambda item: item[0])
        return [row for _, row in matches]

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        valid, skipped = partition_rows(rows, LOCATION_CONFLICT_KEY, location_row_problem)
        inserted = 0
        for row in valid:
            key = tuple(row[column] for column in LOCATION_CONFLICT_KEY)
            existing = self._rows.get(key)
            if existing is None:
                inserted += 1
                row_id = str(uuid.uuid4())
            else:
                row_id = existing["id"]
            self._rows[key] = {**row, "id": row_id}

        return UpsertResult(
            total=len(valid), inserted=inserted, updated=len(valid) - inserted, skipped=skipped
        )


class MemoryEventStore:
    """Events held in a dict keyed by row id."""

    def __init__(self) -> None:
        self._rows: dict[str, Row] = {}

    def __len__(self) -> int:
        return len(self._rows)

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
        matches: list[Row] = []
        for row in self._rows.values():
            distance = haversine_meters(lat, lng, float(row["latitude"]), float(row["longitude"]))
            if distance > radius_meters:
                continue
            start_time = parse_timestamp(row["start_time"])
            updated_at = parse_timestamp(row.get("updated_at"))
            if updated_since is not None and (updated_at is None or updated_at < updated_since):
                continue
            if start_after is not None and start_time < start_after:
                continue
            if start_before is not None and start_time > start_before:
                continue
            if not _visible_to(row, viewer_id):
                continue
            matches.append(dict(row))

        return sorted(matches, key=lambda row: parse_timestamp(row["start_time"]))

    async def query_by_owner(self, owner_id: str) -> list[Row]:
        rows = [dict(row) for row in self._rows.values() if row.get("owner_id") == owner_id]
        return sorted(rows, key=lambda row: parse_timestamp(row["start_time"]))

    async def insert(self, row: Row) -> Row:
        problem = event_row_problem(row, require_external_id=False)
        if problem is not None:
            raise PersistenceError(f"Event row rejected: {problem}")
        row_id = row.get("id") or str(uuid.uuid4())
        if row_id in self._rows:
            raise PersistenceError(f"Duplicate event id {row_id}")
        stored = {**row, "id": row_id}
        self._rows[row_id] = stored
        return dict(stored)

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        valid, skipped = partition_rows(rows, EVENT_CONFLICT_KEY, event_row_problem)
        by_key = {
            tuple(row.get(column) for column in EVENT_CONFLICT_KEY): row_id
            for row_id, row in self._rows.items()
        }
        inserted = 0
        for row in valid:
            key = tuple(row[column] for column in EVENT_CONFLICT_KEY)
            existing_id = by_key.get(key)
            if existing_id is None:
                inserted += 1
                row_id = row.get("id") or str(uuid.uuid4())
                self._rows[row_id] = {**row, "id": row_id}
                by_key[key] = row_id
            else:
                created_at = self._rows[existing_id].get("created_at")
                self._rows[existing_id] = {**row, "id": existing_id, "created_at": created_at}

        return UpsertResult(
            total=len(valid), inserted=inserted, updated=len(valid) - inserted, skipped=skipped
        )


def _visible_to(row: Row, viewer_id: Optional[str]) -> bool:
    if (row.get("visibility") or "public") == "public":
        return True
    return viewer_id is not None and row.get("owner_id") == viewer_id


def _location_matches(row: Row, needle: str) -> bool:
    haystack = [row.get("name") or "", row.get("description") or "", *(row.get("types") or [])]
    return any(needle in value.lower() for value in haystack)
