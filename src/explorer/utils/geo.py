"""Geometry helpers: WKT points, coordinate checks and distances."""

from __future__ import annotations

import math
import re
from typing import Tuple

EARTH_RADIUS_METERS = 6_371_008.8

_POINT_RE = re.compile(
    r"^\s*(?:SRID=\d+;)?\s*POINT\s*\(\s*([-+0-9.eE]+)\s+([-+0-9.eE]+)\s*\)\s*$",
    re.IGNORECASE,
)


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Return True if lat/lng are finite and inside WGS84 ranges."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def format_point(lat: float, lng: float) -> str:
    """Build a WKT point literal. WKT puts longitude first."""
    return f"POINT({float(lng)!r} {float(lat)!r})"


def parse_point(value: str) -> Tuple[float, float]:
    """Parse a WKT/EWKT point literal into (lat, lng)."""
    match = _POINT_RE.match(value or "")
    if not match:
        raise ValueError(f"Not a WKT point: {value!r}")
    lng = float(match.group(1))
    lat = float(match.group(2))
    return lat, lng


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))
