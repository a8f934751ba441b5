from datetime import datetime, timezone

import pytest

from explorer.config import Settings
from explorer.utils.geo import format_point, haversine_meters, is_valid_coordinate, parse_point
from explorer.utils.time import parse_timestamp


def test_parse_point_accepts_ewkt_and_returns_lat_first():
    assert parse_point("SRID=4326;POINT(-71.0589 42.3601)") == (42.3601, -71.0589)
    assert parse_point(format_point(42.3601, -71.0589)) == (42.3601, -71.0589)


def test_parse_point_rejects_other_geometries():
    with pytest.raises(ValueError):
        parse_point("LINESTRING(0 0, 1 1)")


def test_coordinate_bounds():
    assert is_valid_coordinate(90, 180)
    assert not is_valid_coordinate(90.0001, 0)
    assert not is_valid_coordinate(0, float("nan"))


def test_haversine_is_about_111km_per_degree_of_latitude():
    assert haversine_meters(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)


def test_parse_timestamp_assumes_utc_for_naive_values():
    assert parse_timestamp("2026-11-05T17:00:00") == datetime(2026, 11, 5, 17, tzinfo=timezone.utc)
    assert parse_timestamp("2026-11-05T17:00:00Z") == datetime(2026, 11, 5, 17, tzinfo=timezone.utc)
    assert parse_timestamp("tomorrow") is None
    assert parse_timestamp("") is None


def test_database_url_from_pg_parts():
    settings = Settings(
        PGHOST="db",
        PGUSER="explorer",
        PGPASSWORD="secret",
        PGDATABASE="places",
        DATABASE_URL=None,
    )
    assert settings.get_database_url() == "postgresql://explorer:secret@db:5432/places"
    assert settings.has_database()


def test_database_url_missing_raises():
    settings = Settings(DATABASE_URL=None, PGHOST=None, PGUSER=None)
    with pytest.raises(ValueError):
        settings.get_database_url()
