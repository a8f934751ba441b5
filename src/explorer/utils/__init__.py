"""Utility helpers."""

from explorer.utils.geo import format_point, haversine_meters, is_valid_coordinate, parse_point
from explorer.utils.logging import configure_logging, get_logger
from explorer.utils.time import parse_timestamp, to_iso, utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "format_point",
    "parse_point",
    "haversine_meters",
    "is_valid_coordinate",
    "parse_timestamp",
    "to_iso",
    "utc_now",
]
