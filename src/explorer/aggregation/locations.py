"""Location aggregator: cache-first place search with background cache warming."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from explorer.aggregation.base import CachingAggregator, check_point, resolve_radius
from explorer.cache.rows import location_to_row, rows_to_locations
from explorer.cache.store import LocationStore
from explorer.config import Settings
from explorer.errors import AggregationError, ProviderError, TransportError, ValidationError
from explorer.models import Location
from explorer.providers.base import LocationProvider
from explorer.utils.logging import get_logger


logger = get_logger(__name__)


class LocationAggregator(CachingAggregator):
    """Search places through the cache, falling back to the places provider."""

    kind = "locations"

    def __init__(
        self,
        store: LocationStore,
        provider: LocationProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(settings)
        self.store = store
        self.provider = provider

    async def search_nearby(
        self,
        lat: float,
        lng: float,
        radius: Optional[float] = None,
        keyword: Optional[str] = None,
    ) -> list[Location]:
        """Return places near a point, from the cache when it has any."""
        check_point(lat, lng)
        radius = resolve_radius(radius, self.settings.nearby_default_radius_meters)

        cached = await self._from_cache(lat, lng, radius, keyword)
        if cached:
            return cached

        return await self._from_provider(
            "search_nearby",
            lambda: self.provider.search_nearby(lat, lng, radius=radius, keyword=keyword),
        )

    async def search_text(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius: Optional[float] = None,
    ) -> list[Location]:
        """Free-text search; the cache is only consulted when a point is given."""
        if not query or not query.strip():
            raise ValidationError("Search query must not be empty")
        query = query.strip()

        if lat is not None and lng is not None:
            check_point(lat, lng)
            cache_radius = resolve_radius(radius, self.settings.text_search_cache_radius_meters)
            cached = await self._from_cache(lat, lng, cache_radius, query)
            if cached:
                return cached
        elif radius is not None:
            resolve_radius(radius, self.settings.text_search_cache_radius_meters)

        return await self._from_provider(
            "search_text",
            lambda: self.provider.search_text(query, lat=lat, lng=lng, radius=radius),
        )

    async def _from_cache(
        self,
        lat: float,
        lng: float,
        radius: float,
        keyword: Optional[str],
    ) -> list[Location]:
        try:
            rows = await self.store.query_nearby(lat, lng, radius, keyword=keyword)
        except Exception:
            self.stats.cache_errors += 1
            logger.warning(
                "locations.cache.query_failed lat=%s lng=%s radius=%s",
                lat,
                lng,
                radius,
                exc_info=True,
            )
            return []

        locations = rows_to_locations(rows)
        if locations:
            self.stats.cache_hits += 1
            logger.info("locations.cache.hit count=%s", len(locations))
        else:
            self.stats.cache_misses += 1
            logger.info("locations.cache.miss rows=%s", len(rows))
        return locations

    async def _from_provider(
        self,
        operation: str,
        call: Callable[[], Awaitable[list[Location]]],
    ) -> list[Location]:
        """Call the provider once the cache has nothing to offer.

        A provider failure here means no source answered, so it raises AggregationError.
        """
        try:
            locations = await call()
        except (TransportError, ProviderError) as exc:
            self.stats.provider_errors += 1
            logger.error("locations.%s.unavailable error=%s", operation, exc)
            raise AggregationError(f"Place search unavailable: {exc}") from exc

        if locations:
            self.schedule_writeback(
                lambda: [location_to_row(location) for location in locations],
                self.store.upsert,
            )
        return locations
