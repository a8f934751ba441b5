from contextlib import asynccontextmanager

import psycopg
import pytest

from explorer.cache import postgres
from explorer.cache.postgres import PostgresEventStore, PostgresLocationStore, like_pattern
from explorer.cache.rows import event_to_row, location_to_row
from explorer.config import Settings
from explorer.errors import PersistenceError, TransportError


class FakeCursor:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.executed = []

    async def execute(self, query, params=None):
        if self.error is not None:
            raise self.error
        self.executed.append((query, params))

    async def fetchall(self):
        return self.results

    async def fetchone(self):
        return self.results[0] if self.results else None


@pytest.fixture
def fake_cursor(monkeypatch):
    cursor = FakeCursor()

    @asynccontextmanager
    async def fake_db_cursor(settings=None):
        yield cursor

    monkeypatch.setattr(postgres, "db_cursor", fake_db_cursor)
    return cursor


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off") == "%50\\%\\_off%"
    assert like_pattern("cafe") == "%cafe%"


@pytest.mark.asyncio
async def test_location_upsert_sql_and_counts(fake_cursor, settings, make_location):
    fake_cursor.results = [{"inserted": True}, {"inserted": False}]
    rows = [
        location_to_row(make_location()),
        location_to_row(make_location(source_id="second")),
    ]

    result = await PostgresLocationStore(settings).upsert(rows)

    assert (result.total, result.inserted, result.updated) == (2, 1, 1)
    ((query, params),) = fake_cursor.executed
    assert "insert into locations" in query
    assert "st_geogfromtext(%s)" in query
    assert "on conflict (source, source_id) do update set" in query
    assert "returning (xmax = 0) as inserted" in query
    assert "POINT(-71.0589 42.3601)" in params


@pytest.mark.asyncio
async def test_location_upsert_batches(fake_cursor, make_location):
    fake_cursor.results = [{"inserted": True}]
    rows = [location_to_row(make_location(source_id=f"p{i}")) for i in range(3)]

    await PostgresLocationStore(Settings(UPSERT_BATCH_SIZE=1)).upsert(rows)

    assert len(fake_cursor.executed) == 3


@pytest.mark.asyncio
async def test_location_upsert_with_only_bad_rows_skips_the_database(fake_cursor, settings):
    result = await PostgresLocationStore(settings).upsert([{"name": "no key"}])
    assert result.skipped == 1
    assert fake_cursor.executed == []


@pytest.mark.asyncio
async def test_location_query_uses_distance_filter_and_keyword(fake_cursor, settings):
    await PostgresLocationStore(settings).query_nearby(42.36, -71.06, 500, keyword="tea_room")

    ((query, params),) = fake_cursor.executed
    assert "st_dwithin" in query
    assert "ilike" in query
    # longitude goes first into st_makepoint
    assert params[:3] == [-71.06, 42.36, 500]
    assert "%tea\\_room%" in params


@pytest.mark.asyncio
async def test_event_upsert_never_overwrites_id_or_created_at(fake_cursor, settings, make_event):
    fake_cursor.results = [{"inserted": False}]

    result = await PostgresEventStore(settings).upsert([event_to_row(make_event())])

    assert result.updated == 1
    ((query, _),) = fake_cursor.executed
    assert "on conflict (source, external_id) do update set" in query
    update_clause = query.split("do update set", 1)[1]
    assert "id = excluded.id" not in update_clause
    assert "created_at = excluded.created_at" not in update_clause
    assert "updated_at = excluded.updated_at" in update_clause


@pytest.mark.asyncio
async def test_event_insert_returns_stored_row(fake_cursor, settings, make_event):
    row = event_to_row(make_event(source="user", external_id=None, id="u-1"))
    fake_cursor.results = [{**row, "id": "u-1"}]

    stored = await PostgresEventStore(settings).insert(row)

    assert stored["id"] == "u-1"
    ((query, _),) = fake_cursor.executed
    assert query.startswith("insert into events")
    assert query.endswith("returning *")


@pytest.mark.asyncio
async def test_operational_errors_become_transport_errors(fake_cursor, settings):
    fake_cursor.error = psycopg.OperationalError("server closed the connection")
    with pytest.raises(TransportError):
        await PostgresEventStore(settings).query_by_owner("me")


@pytest.mark.asyncio
async def test_query_errors_become_persistence_errors(fake_cursor, settings):
    fake_cursor.error = psycopg.errors.UndefinedTable("relation \"events\" does not exist")
    with pytest.raises(PersistenceError):
        await PostgresEventStore(settings).query_nearby(42.36, -71.06, 500)


@pytest.mark.asyncio
async def test_missing_database_settings_are_a_persistence_error():
    settings = Settings(DATABASE_URL=None, PGHOST=None, PGUSER=None)
    with pytest.raises(PersistenceError):
        await PostgresLocationStore(settings).query_nearby(42.36, -71.06, 500)


@pytest.mark.asyncio
async def test_event_query_is_limited_to_public_rows(fake_cursor, settings):
    store = PostgresEventStore(settings)

    await store.query_nearby(42.36, -71.06, 500)
    await store.query_nearby(42.36, -71.06, 500, viewer_id="alice")

    (anonymous, _), (viewer, viewer_params) = fake_cursor.executed
    assert "visibility = 'public'" in anonymous
    assert "owner_id" not in anonymous
    assert "(visibility = 'public' or owner_id = %s)" in viewer
    assert "alice" in viewer_params


@pytest.mark.asyncio
async def test_value_errors_inside_a_query_are_not_reported_as_configuration(
    fake_cursor, settings
):
    fake_cursor.error = ValueError("cannot adapt value")
    with pytest.raises(ValueError, match="cannot adapt value"):
        await PostgresEventStore(settings).query_by_owner("me")
