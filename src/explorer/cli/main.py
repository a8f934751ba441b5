"""Typer CLI entry point."""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

import orjson
import typer
from pydantic import BaseModel

from explorer.config import Settings
from explorer.db.client import db_cursor
from explorer.errors import (
    AggregationError,
    PersistenceError,
    ProviderError,
    TransportError,
    ValidationError,
)
from explorer.models import EventDraft
from explorer.services import Services, open_services
from explorer.utils.logging import configure_logging, get_logger
from explorer.utils.time import parse_timestamp


app = typer.Typer(help="Places and events explorer CLI")
places_app = typer.Typer(help="Place search commands")
events_app = typer.Typer(help="Event commands")
db_app = typer.Typer(help="Database utilities")

app.add_typer(places_app, name="places")
app.add_typer(events_app, name="events")
app.add_typer(db_app, name="db")

logger = get_logger(__name__)


class StoreChoice(str, Enum):
    postgres = "postgres"
    memory = "memory"


STORE_OPTION = typer.Option(StoreChoice.postgres, help="Cache store backend")


@app.callback()
def main() -> None:
    """Initialize logging for all commands."""
    settings = Settings()
    configure_logging(settings.log_level)


def _echo_json(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    elif isinstance(payload, (list, tuple)):
        payload = [
            item.model_dump(mode="json", by_alias=True) if isinstance(item, BaseModel) else item
            for item in payload
        ]
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise typer.BadParameter(f"{name} must be an ISO-8601 date or datetime")
    return parsed


def _run(store: StoreChoice, action: Callable[[Services], Awaitable[Any]]) -> None:
    """Run one action against freshly wired services and print its JSON result."""

    async def _main() -> Any:
        async with open_services(store=store.value) as services:
            return await action(services)

    try:
        result = asyncio.run(_main())
    except ValidationError as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(2)
    except AggregationError as exc:
        logger.error("cli.search_unavailable: %s", exc)
        typer.echo("search unavailable", err=True)
        raise typer.Exit(1)
    except (PersistenceError, ProviderError, TransportError) as exc:
        typer.echo(f"Request failed: {exc}", err=True)
        raise typer.Exit(1)

    _echo_json(result)


@places_app.command("nearby")
def places_nearby(
    lat: float = typer.Option(..., help="Latitude"),
    lng: float = typer.Option(..., help="Longitude"),
    radius: Optional[float] = typer.Option(None, help="Radius in meters"),
    keyword: Optional[str] = typer.Option(None, help="Keyword filter"),
    store: StoreChoice = STORE_OPTION,
) -> None:
    """Search places near a point."""
    _run(
        store,
        lambda services: services.locations.search_nearby(lat, lng, radius=radius, keyword=keyword),
    )


@places_app.command("text")
def places_text(
    query: str = typer.Argument(..., help="Search text"),
    lat: Optional[float] = typer.Option(None, help="Latitude to anchor the search"),
    lng: Optional[float] = typer.Option(None, help="Longitude to anchor the search"),
    radius: Optional[float] = typer.Option(None, help="Radius in meters"),
    store: StoreChoice = STORE_OPTION,
) -> None:
    """Free-text place search."""
    _run(
        store,
        lambda services: services.locations.search_text(query, lat=lat, lng=lng, radius=radius),
    )


@places_app.command("details")
def places_details(place_id: str = typer.Argument(..., help="Google place id")) -> None:
    """Fetch one place straight from the provider."""

    async def _details(services: Services) -> Any:
        location = await services.places.get_details(place_id)
        return location if location is not None else {}

    _run(StoreChoice.memory, _details)


@events_app.command("search")
def events_search(
    lat: float = typer.Option(..., help="Latitude"),
    lng: float = typer.Option(..., help="Longitude"),
    radius: Optional[float] = typer.Option(None, help="Radius in meters"),
    start: Optional[str] = typer.Option(None, help="Earliest start (ISO-8601)"),
    end: Optional[str] = typer.Option(None, help="Latest start (ISO-8601)"),
    viewer_id: Optional[str] = typer.Option(
        None, help="Also include this user's private and shared events"
    ),
    store: StoreChoice = STORE_OPTION,
) -> None:
    """Search events near a point."""
    start_date = _parse_date(start, "start")
    end_date = _parse_date(end, "end")
    _run(
        store,
        lambda services: services.events.search_events(
            lat,
            lng,
            radius=radius,
            start_date=start_date,
            end_date=end_date,
            viewer_id=viewer_id,
        ),
    )


@events_app.command("mine")
def events_mine(
    user_id: str = typer.Option(..., help="Owner id"),
    store: StoreChoice = STORE_OPTION,
) -> None:
    """List a user's events ordered by start time."""
    _run(store, lambda services: services.events.get_user_events(user_id))


@events_app.command("create")
def events_create(
    title: str = typer.Option(..., help="Event title"),
    lat: float = typer.Option(..., help="Latitude"),
    lng: float = typer.Option(..., help="Longitude"),
    start: str = typer.Option(..., help="Start time (ISO-8601)"),
    end: Optional[str] = typer.Option(None, help="End time (ISO-8601)"),
    location_name: str = typer.Option("", help="Venue or place name"),
    description: Optional[str] = typer.Option(None, help="Description"),
    category: Optional[str] = typer.Option(None, help="Category"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    cost_type: Optional[str] = typer.Option(None, help="free, paid or donation"),
    visibility: str = typer.Option("public", help="public, private or shared"),
    owner_id: Optional[str] = typer.Option(None, help="Owner id"),
    store: StoreChoice = STORE_OPTION,
) -> None:
    """Create a user event."""
    try:
        draft = EventDraft(
            title=title,
            description=description,
            start_time=_parse_date(start, "start"),
            end_time=_parse_date(end, "end"),
            location_name=location_name,
            coordinates={"lat": lat, "lng": lng},
            category=category,
            tags=list(tags or []),
            cost_type=cost_type,
            visibility=visibility,
        )
    except ValueError as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(2)

    _run(store, lambda services: services.events.create_event(draft, owner_id=owner_id))


@db_app.command("check")
def db_check() -> None:
    """Check database connectivity and the PostGIS extension."""

    async def _check() -> Sequence[Any]:
        async with db_cursor() as cursor:
            await cursor.execute("select postgis_version() as postgis")
            return await cursor.fetchall()

    try:
        rows = asyncio.run(_check())
        logger.info("db.check.ok postgis=%s", rows[0]["postgis"] if rows else None)
    except Exception as exc:
        logger.error("db.check.failed: %s", exc)
        typer.echo(f"Database check failed: {exc}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
