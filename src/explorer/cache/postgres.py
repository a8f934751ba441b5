"""Postgres/PostGIS implementations of the cache store contract."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional, Sequence

import psycopg
from psycopg import AsyncCursor
from psycopg.types.json import Jsonb

from explorer.cache.rows import Row
from explorer.cache.store import (
    EVENT_CONFLICT_KEY,
    LOCATION_CONFLICT_KEY,
    UpsertResult,
    chunked,
    event_row_problem,
    location_row_problem,
    partition_rows,
)
from explorer.config import Settings
from explorer.db.client import db_cursor
from explorer.errors import PersistenceError, TransportError
from explorer.utils.logging import get_logger
from explorer.utils.time import parse_timestamp


logger = get_logger(__name__)

QUERY_LIMIT = 60

LOCATION_COLUMNS = (
    "name",
    "description",
    "coordinates",
    "address",
    "rating",
    "total_ratings",
    "photos",
    "website",
    "phone",
    "hours",
    "price_level",
    "types",
    "source",
    "source_id",
    "last_updated",
)

EVENT_COLUMNS = (
    "id",
    "title",
    "description",
    "start_time",
    "end_time",
    "location_name",
    "latitude",
    "longitude",
    "address",
    "image_url",
    "organizer",
    "category",
    "tags",
    "source",
    "external_id",
    "url",
    "cost_type",
    "cost_amount",
    "visibility",
    "owner_id",
    "created_at",
    "updated_at",
)

_EVENT_TIMESTAMPS = ("start_time", "end_time", "created_at", "updated_at")

_LOCATION_SELECT = """
    select
      id::text as id,
      name,
      description,
      st_y(coordinates::geometry) as lat,
      st_x(coordinates::geometry) as lng,
      address,
      rating,
      total_ratings,
      photos,
      website,
      phone,
      hours,
      price_level,
      types,
      source,
      source_id,
      last_updated
    from locations
"""

_EVENT_POINT = "st_setsrid(st_makepoint(longitude, latitude), 4326)::geography"
_QUERY_POINT = "st_setsrid(st_makepoint(%s, %s), 4326)::geography"


def like_pattern(keyword: str) -> str:
    """Build a case-insensitive substring pattern with LIKE wildcards escaped."""
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class _PostgresStore:
    """Shared connection and error handling for the Postgres stores."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()

    @asynccontextmanager
    async def _cursor(self, action: str) -> AsyncIterator[AsyncCursor[Any]]:
        """Open a cursor, translating driver failures into store errors."""
        try:
            async with db_cursor(self.settings) as cursor:
                yield cursor
        except psycopg.OperationalError as exc:
            raise TransportError(f"Cache store unavailable: {exc}") from exc
        except psycopg.Error as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc

    async def _fetch(self, query: str, params: Sequence[Any]) -> list[Row]:
        async with self._cursor("Cache store query") as cursor:
            await cursor.execute(query, params)
            return list(await cursor.fetchall())


class PostgresLocationStore(_PostgresStore):
    """Locations cache on a PostGIS geography column."""

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: float,
        keyword: Optional[str] = None,
    ) -> list[Row]:
        conditions = [f"st_dwithin(coordinates, {_QUERY_POINT}, %s)"]
        params: list[object] = [lng, lat, radius_meters]

        if keyword and keyword.strip():
            pattern = like_pattern(keyword.strip())
            conditions.append(
                "(name ilike %s or description ilike %s "
                "or array_to_string(types, ' ') ilike %s)"
            )
            params.extend([pattern, pattern, pattern])

        query = (
            _LOCATION_SELECT
            + f" where {' and '.join(conditions)}"
            + f" order by st_distance(coordinates, {_QUERY_POINT}) limit %s"
        )
        params.extend([lng, lat, QUERY_LIMIT])
        return await self._fetch(query, params)

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        valid, skipped = partition_rows(rows, LOCATION_CONFLICT_KEY, location_row_problem)
        if not valid:
            return UpsertResult(total=0, inserted=0, updated=0, skipped=skipped)

        async with self._cursor("Location upsert") as cursor:
            result = await _upsert_locations(cursor, valid, self.settings.upsert_batch_size)

        result.skipped = skipped
        logger.info(
            "locations.upsert total=%s inserted=%s updated=%s skipped=%s",
            result.total,
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result


class PostgresEventStore(_PostgresStore):
    """Events table with latitude/longitude columns."""

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
        conditions = [f"st_dwithin({_EVENT_POINT}, {_QUERY_POINT}, %s)"]
        params: list[object] = [lng, lat, radius_meters]

        if updated_since is not None:
            conditions.append("updated_at >= %s")
            params.append(updated_since)
        if start_after is not None:
            conditions.append("start_time >= %s")
            params.append(start_after)
        if start_before is not None:
            conditions.append("start_time <= %s")
            params.append(start_before)
        if viewer_id is not None:
            conditions.append("(visibility = 'public' or owner_id = %s)")
            params.append(viewer_id)
        else:
            conditions.append("visibility = 'public'")

        query = (
            f"select * from events where {' and '.join(conditions)} "
            "order by start_time asc limit %s"
        )
        params.append(QUERY_LIMIT)
        return await self._fetch(query, params)

    async def query_by_owner(self, owner_id: str) -> list[Row]:
        return await self._fetch(
            "select * from events where owner_id = %s order by start_time asc",
            (owner_id,),
        )

    async def insert(self, row: Row) -> Row:
        problem = event_row_problem(row, require_external_id=False)
        if problem is not None:
            raise PersistenceError(f"Event row rejected: {problem}")

        columns = [column for column in EVENT_COLUMNS if not (column == "id" and not row.get("id"))]
        placeholders = ",".join(["%s"] * len(columns))
        query = (
            f"insert into events ({', '.join(columns)}) values ({placeholders}) returning *"
        )
        async with self._cursor("Event insert") as cursor:
            await cursor.execute(query, _event_values(row, columns))
            stored = await cursor.fetchone()

        if stored is None:
            raise PersistenceError("Event insert returned no row")
        return stored

    async def upsert(self, rows: Sequence[Row]) -> UpsertResult:
        valid, skipped = partition_rows(rows, EVENT_CONFLICT_KEY, event_row_problem)
        if not valid:
            return UpsertResult(total=0, inserted=0, updated=0, skipped=skipped)

        async with self._cursor("Event upsert") as cursor:
            result = await _upsert_events(cursor, valid, self.settings.upsert_batch_size)

        result.skipped = skipped
        logger.info(
            "events.upsert total=%s inserted=%s updated=%s skipped=%s",
            result.total,
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result


async def _upsert_locations(
    cursor: AsyncCursor[Any],
    rows: list[Row],
    batch_size: int = 500,
) -> UpsertResult:
    placeholders = "(" + ",".join(
        "st_geogfromtext(%s)" if column == "coordinates" else "%s" for column in LOCATION_COLUMNS
    ) + ")"
    updates = ", ".join(
        f"{column} = excluded.{column}"
        for column in LOCATION_COLUMNS
        if column not in LOCATION_CONFLICT_KEY
    )
    total_inserted = 0
    total_updated = 0

    for batch in chunked(rows, batch_size):
        values: list[object] = []
        for row in batch:
            values.extend(
                [
                    row.get("name"),
                    row.get("description"),
                    row["coordinates"],
                    row.get("address"),
                    row.get("rating"),
                    row.get("total_ratings"),
                    list(row.get("photos") or []),
                    row.get("website"),
                    row.get("phone"),
                    Jsonb(row["hours"]) if row.get("hours") is not None else None,
                    row.get("price_level"),
                    list(row.get("types") or []),
                    row["source"],
                    row["source_id"],
                    parse_timestamp(row.get("last_updated")),
                ]
            )

        query = (
            f"insert into locations ({', '.join(LOCATION_COLUMNS)}) values "
            + ",".join([placeholders] * len(batch))
            + f" on conflict ({', '.join(LOCATION_CONFLICT_KEY)}) do update set {updates}"
            + " returning (xmax = 0) as inserted"
        )
        await cursor.execute(query, values)
        results = await cursor.fetchall()
        inserted = sum(1 for result in results if result["inserted"])
        total_inserted += inserted
        total_updated += len(results) - inserted

    return UpsertResult(
        total=total_inserted + total_updated, inserted=total_inserted, updated=total_updated
    )


async def _upsert_events(
    cursor: AsyncCursor[Any],
    rows: list[Row],
    batch_size: int = 500,
) -> UpsertResult:
    placeholders = "(" + ",".join(["%s"] * len(EVENT_COLUMNS)) + ")"
    updates = ", ".join(
        f"{column} = excluded.{column}"
        for column in EVENT_COLUMNS
        if column not in EVENT_CONFLICT_KEY and column not in ("id", "created_at")
    )
    total_inserted = 0
    total_updated = 0

    for batch in chunked(rows, batch_size):
        values: list[object] = []
        for row in batch:
            values.extend(_event_values(row, EVENT_COLUMNS))

        query = (
            f"insert into events ({', '.join(EVENT_COLUMNS)}) values "
            + ",".join([placeholders] * len(batch))
            + f" on conflict ({', '.join(EVENT_CONFLICT_KEY)}) do update set {updates}"
            + " returning (xmax = 0) as inserted"
        )
        await cursor.execute(query, values)
        results = await cursor.fetchall()
        inserted = sum(1 for result in results if result["inserted"])
        total_inserted += inserted
        total_updated += len(results) - inserted

    return UpsertResult(
        total=total_inserted + total_updated, inserted=total_inserted, updated=total_updated
    )


def _event_values(row: Row, columns: Sequence[str]) -> list[object]:
    values: list[object] = []
    for column in columns:
        value = row.get(column)
        if column in _EVENT_TIMESTAMPS:
            value = parse_timestamp(value)
        elif column == "tags":
            value = list(value or [])
        values.append(value)
    return values
