"""Bidirectional mapping between canonical entities and cache store rows.

Location rows store the point as a WKT literal in ``coordinates``. Rows read
back from the geospatial query carry separate ``lat``/``lng`` columns, often
as numeric strings, so both shapes are accepted on the way in. Event rows
keep ``latitude``/``longitude`` as plain columns.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import orjson
from pydantic import ValidationError as PydanticValidationError

from explorer.errors import RowConversionError
from explorer.models import Coordinates, Event, Location
from explorer.utils.geo import format_point, parse_point
from explorer.utils.logging import get_logger
from explorer.utils.time import parse_timestamp, to_iso, utc_now


logger = get_logger(__name__)

Row = dict[str, Any]

# canonical attribute -> column, for columns that copy over unchanged
LOCATION_COLUMNS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "address": "address",
    "rating": "rating",
    "total_ratings": "total_ratings",
    "photos": "photos",
    "website": "website",
    "phone": "phone",
    "price_level": "price_level",
    "types": "types",
    "source": "source",
    "source_id": "source_id",
}

EVENT_COLUMNS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "location_name": "location_name",
    "address": "address",
    "image_url": "image_url",
    "organizer": "organizer",
    "category": "category",
    "tags": "tags",
    "source": "source",
    "external_id": "external_id",
    "url": "url",
    "cost_type": "cost_type",
    "cost_amount": "cost_amount",
    "visibility": "visibility",
    "owner_id": "owner_id",
}


def location_to_row(location: Location) -> Row:
    """Convert a Location into a locations-table row (id is store-assigned)."""
    row: Row = {column: getattr(location, attr) for attr, column in LOCATION_COLUMNS.items()}
    row["photos"] = list(location.photos)
    row["types"] = list(location.types)
    row["coordinates"] = format_point(location.coordinates.lat, location.coordinates.lng)
    row["hours"] = (
        [period.model_dump() for period in location.hours] if location.hours is not None else None
    )
    row["last_updated"] = to_iso(location.last_updated)
    return row


def row_to_location(row: Mapping[str, Any]) -> Location:
    """Convert a cache row into a Location. Raises RowConversionError."""
    lat, lng = _row_point(row, lat_key="lat", lng_key="lng", wkt_key="coordinates")
    data: dict[str, Any] = {attr: row.get(column) for attr, column in LOCATION_COLUMNS.items()}
    data["id"] = _row_id(row, data)
    data["coordinates"] = {"lat": lat, "lng": lng}
    data["rating"] = _optional_float(row.get("rating"), "rating")
    data["photos"] = list(row.get("photos") or [])
    data["types"] = list(row.get("types") or [])
    data["hours"] = _decode_json(row.get("hours"), "hours")
    data["last_updated"] = parse_timestamp(row.get("last_updated")) or utc_now()

    try:
        return Location.model_validate(data)
    except PydanticValidationError as exc:
        raise RowConversionError(f"Invalid location row id={row.get('id')}: {exc}") from exc


def event_to_row(event: Event) -> Row:
    """Convert an Event into an events-table row."""
    row: Row = {column: getattr(event, attr) for attr, column in EVENT_COLUMNS.items()}
    row["id"] = event.id or None
    row["tags"] = list(event.tags)
    row["latitude"] = event.coordinates.lat
    row["longitude"] = event.coordinates.lng
    row["start_time"] = to_iso(event.start_time)
    row["end_time"] = to_iso(event.end_time)
    row["created_at"] = to_iso(event.created_at)
    row["updated_at"] = to_iso(event.updated_at)
    return row


def row_to_event(row: Mapping[str, Any]) -> Event:
    """Convert a cache row into an Event. Raises RowConversionError."""
    lat, lng = _row_point(row, lat_key="latitude", lng_key="longitude", wkt_key=None)
    start_time = parse_timestamp(row.get("start_time"))
    if start_time is None:
        raise RowConversionError(f"Invalid start_time in event row id={row.get('id')}")

    data: dict[str, Any] = {attr: row.get(column) for attr, column in EVENT_COLUMNS.items()}
    data["id"] = str(row.get("id") or "")
    data["coordinates"] = {"lat": lat, "lng": lng}
    data["tags"] = list(row.get("tags") or [])
    data["cost_amount"] = _optional_float(row.get("cost_amount"), "cost_amount")
    data["location_name"] = row.get("location_name") or ""
    data["visibility"] = row.get("visibility") or "public"
    data["start_time"] = start_time
    data["end_time"] = parse_timestamp(row.get("end_time"))
    data["created_at"] = parse_timestamp(row.get("created_at")) or utc_now()
    data["updated_at"] = parse_timestamp(row.get("updated_at")) or data["created_at"]
    if data["owner_id"] is not None:
        data["owner_id"] = str(data["owner_id"])

    try:
        return Event.model_validate(data)
    except PydanticValidationError as exc:
        raise RowConversionError(f"Invalid event row id={row.get('id')}: {exc}") from exc


def rows_to_locations(rows: Iterable[Mapping[str, Any]]) -> list[Location]:
    """Convert rows, skipping (and logging) any row that fails conversion."""
    locations: list[Location] = []
    for row in rows:
        try:
            locations.append(row_to_location(row))
        except RowConversionError as exc:
            logger.warning("rows.location.skip id=%s error=%s", row.get("id"), exc)
    return locations


def rows_to_events(rows: Iterable[Mapping[str, Any]]) -> list[Event]:
    """Convert rows, skipping (and logging) any row that fails conversion."""
    events: list[Event] = []
    for row in rows:
        try:
            events.append(row_to_event(row))
        except RowConversionError as exc:
            logger.warning("rows.event.skip id=%s error=%s", row.get("id"), exc)
    return events


def _row_id(row: Mapping[str, Any], data: Mapping[str, Any]) -> str:
    if row.get("id") is not None:
        return str(row["id"])
    return f"{data.get('source')}_{data.get('source_id')}"


def _row_point(
    row: Mapping[str, Any],
    lat_key: str,
    lng_key: str,
    wkt_key: Optional[str],
) -> tuple[float, float]:
    raw_lat = row.get(lat_key)
    raw_lng = row.get(lng_key)
    if raw_lat is not None and raw_lng is not None:
        try:
            return float(raw_lat), float(raw_lng)
        except (TypeError, ValueError) as exc:
            raise RowConversionError(
                f"Unparsable coordinates {raw_lat!r},{raw_lng!r} in row id={row.get('id')}"
            ) from exc

    if wkt_key and isinstance(row.get(wkt_key), str):
        try:
            return parse_point(row[wkt_key])
        except ValueError as exc:
            raise RowConversionError(f"{exc} in row id={row.get('id')}") from exc

    raise RowConversionError(f"Missing coordinates in row id={row.get('id')}")


def _optional_float(value: Any, column: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise RowConversionError(f"Unparsable {column}: {value!r}") from exc


def _decode_json(value: Any, column: str) -> Any:
    if value is None or not isinstance(value, (str, bytes)):
        return value
    try:
        return orjson.loads(value)
    except orjson.JSONDecodeError as exc:
        raise RowConversionError(f"Unparsable {column} JSON") from exc
