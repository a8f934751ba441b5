"""Shared cache-then-provider machinery for the aggregators."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from explorer.cache.rows import Row
from explorer.cache.store import UpsertResult
from explorer.config import Settings
from explorer.errors import ValidationError
from explorer.utils.geo import is_valid_coordinate
from explorer.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass
class AggregatorStats:
    """Counters an operator can read next to the logs."""

    cache_hits: int = 0
    cache_misses: int = 0
    cache_errors: int = 0
    provider_errors: int = 0
    writebacks: int = 0
    writeback_failures: int = 0


class CachingAggregator:
    """Owns the stats and the background cache write-backs."""

    kind = "aggregator"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.stats = AggregatorStats()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending_writebacks(self) -> int:
        return len(self._pending)

    def schedule_writeback(
        self,
        build_rows: Callable[[], list[Row]],
        upsert: Callable[[Sequence[Row]], Awaitable[UpsertResult]],
    ) -> None:
        """Start a write-back task without waiting for it.

        The task is not tied to the caller, so cancelling the caller leaves it running.
        """
        task = asyncio.create_task(self._writeback(build_rows, upsert))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled write-back to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _writeback(
        self,
        build_rows: Callable[[], list[Row]],
        upsert: Callable[[Sequence[Row]], Awaitable[UpsertResult]],
    ) -> None:
        rows: list[Row] = []
        try:
            rows = build_rows()
            result = await upsert(rows)
        except Exception:
            self.stats.writeback_failures += 1
            logger.exception("%s.writeback.failed rows=%s", self.kind, len(rows))
            return

        self.stats.writebacks += 1
        logger.info(
            "%s.writeback.complete rows=%s inserted=%s updated=%s skipped=%s",
            self.kind,
            len(rows),
            result.inserted,
            result.updated,
            result.skipped,
        )


def check_point(lat: float, lng: float) -> None:
    """Raise ValidationError unless (lat, lng) is a valid WGS84 point."""
    try:
        valid = is_valid_coordinate(float(lat), float(lng))
    except (TypeError, ValueError):
        valid = False
    if not valid:
        raise ValidationError(f"Invalid coordinates lat={lat!r} lng={lng!r}")


def resolve_radius(radius: Optional[float], default: float) -> float:
    """Apply the default radius and reject non-positive values."""
    if radius is None:
        return float(default)
    try:
        value = float(radius)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid radius {radius!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"Invalid radius {radius!r}")
    return value
