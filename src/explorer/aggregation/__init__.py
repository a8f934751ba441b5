"""Aggregators: cache-then-provider search over places and events."""

from explorer.aggregation.base import AggregatorStats
from explorer.aggregation.events import EventAggregator
from explorer.aggregation.locations import LocationAggregator

__all__ = ["AggregatorStats", "EventAggregator", "LocationAggregator"]
