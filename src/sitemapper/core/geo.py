"""
Geodesic helpers.

Everything here works on a sphere (R = 6371 km) with WGS-84 lat/lng in decimal
degrees.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, degrees, isfinite, radians, sin, sqrt
from typing import Iterable, Sequence

EARTH_RADIUS_KM = 6371.0

CARDINALS: tuple[str, ...] = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


def _check_finite(*values: float) -> None:
    for v in values:
        if not isfinite(float(v)):
            raise ValueError(f"coordinate must be a finite number, got {v!r}")


def parse_coordinate(value: object) -> float | None:
    """Parse a form/CSV coordinate value; None when missing, non-numeric or non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        x = float(str(value).strip()) if isinstance(value, str) else float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return x if isfinite(x) else None


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres (haversine)."""
    _check_finite(lat1, lng1, lat2, lng2)
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = radians(lat2 - lat1)
    dlmb = radians(lng2 - lng1)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlmb / 2) ** 2
    # Rounding can push h a hair past 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(h), sqrt(1 - h))


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, in [0, 360).

    Identical points return 0.
    """
    _check_finite(lat1, lng1, lat2, lng2)
    if lat1 == lat2 and lng1 == lng2:
        return 0.0
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dlmb = radians(lng2 - lng1)

    y = sin(dlmb) * cos(phi2)
    x = cos(phi1) * sin(phi2) - sin(phi1) * cos(phi2) * cos(dlmb)
    theta = degrees(atan2(y, x))
    out = (theta + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to exactly 360.0.
    return 0.0 if out >= 360.0 else out


def normalize_bearing(value: float) -> float:
    """Map any finite angle into [0, 360)."""
    _check_finite(value)
    out = float(value) % 360.0
    return 0.0 if out >= 360.0 else out


def cardinal(bearing: float) -> str:
    """Classify a bearing into one of 8 compass sectors, each 45 degrees wide."""
    b = normalize_bearing(bearing)
    return CARDINALS[int((b + 22.5) // 45) % 8]


def path_length_km(points: Iterable[GeoPoint] | Sequence[tuple[float, float]]) -> float:
    """Sum of great-circle distances over consecutive points (0 for < 2 points)."""
    total = 0.0
    prev: tuple[float, float] | None = None
    for p in points:
        cur = (p.lat, p.lng) if isinstance(p, GeoPoint) else (float(p[0]), float(p[1]))
        if prev is not None:
            total += distance_km(prev[0], prev[1], cur[0], cur[1])
        prev = cur
    return total
