"""Geometry primitives over ``(lon, lat)`` coordinate sequences.

All distances are great-circle (Haversine) kilometres on a sphere of the
mean Earth radius. Inputs are assumed valid; use ``ensure_coordinates``
at the boundaries where raw user coordinates enter.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

from shapely import wkt
from shapely.geometry import LineString
from shapely.geometry import Point as ShapelyPoint

from bikepath.core.exceptions import InvalidCoordinateError

EARTH_RADIUS_KM = 6371.0

Point = tuple[float, float]


# ── Coordinate contract ─────────────────────────────────────────────────


def validate_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """True when lat ∈ [-90, 90], lon ∈ [-180, 180] and neither is NaN."""
    if lat is None or lon is None:
        return False
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def ensure_coordinates(lat: Optional[float], lon: Optional[float]) -> None:
    """Raise ``InvalidCoordinateError`` unless the pair is valid."""
    if not validate_coordinates(lat, lon):
        raise InvalidCoordinateError(f"Invalid coordinates: lat={lat!r}, lon={lon!r}")


# ── Distances ───────────────────────────────────────────────────────────


def distance_km(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Haversine distance between two points in kilometres."""
    phi_a, phi_b = math.radians(lat_a), math.radians(lat_b)
    dphi = phi_b - phi_a
    dlmb = math.radians(lon_b - lon_a)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi_a) * math.cos(phi_b) * math.sin(dlmb / 2) ** 2
    # rounding can push h just past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def nearest_distance(points: Sequence[Point], lat: float, lon: float) -> float:
    """Minimum distance from a query point to any vertex of ``points``.

    Returns ``math.inf`` for an empty sequence.
    """
    best = math.inf
    for p_lon, p_lat in points:
        d = distance_km(p_lat, p_lon, lat, lon)
        if d < best:
            best = d
    return best


def path_length_km(points: Sequence[Point]) -> float:
    """Sum of consecutive segment lengths."""
    total = 0.0
    for (lon_a, lat_a), (lon_b, lat_b) in zip(points, points[1:]):
        total += distance_km(lat_a, lon_a, lat_b, lon_b)
    return total


def path_deviation(points: Sequence[Point]) -> float:
    """Winding-ness ``L = 1 - straight / actual`` in [0, 1].

    0 for fewer than two points, a zero-length path, or a closed loop;
    none of these carries a meaningful winding signal.
    """
    if len(points) < 2:
        return 0.0

    actual = path_length_km(points)
    if actual == 0:
        return 0.0

    (lon_a, lat_a), (lon_b, lat_b) = points[0], points[-1]
    straight = distance_km(lat_a, lon_a, lat_b, lon_b)
    if straight == 0:
        return 0.0

    return max(0.0, min(1.0, 1.0 - straight / actual))


# ── Polylines ───────────────────────────────────────────────────────────


def _is_coordinate(value) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value[:2])
    )


def combine_segments(polylines: Iterable[Sequence[Point]]) -> Optional[list[Point]]:
    """Concatenate street polylines in order into one path geometry.

    The first coordinate of every street after the first is dropped, since
    consecutive streets share their junction. Malformed coordinates are
    skipped. Returns ``None`` when fewer than two coordinates remain.
    """
    combined: list[Point] = []
    for line in polylines:
        valid = [(float(c[0]), float(c[1])) for c in (line or []) if _is_coordinate(c)]
        if not valid:
            continue
        combined.extend(valid if not combined else valid[1:])

    if len(combined) < 2:
        return None
    return combined


def to_wkt(points: Optional[Sequence[Point]]) -> Optional[str]:
    """Serialize a polyline as WKT; a single vertex becomes a POINT."""
    if not points:
        return None
    if len(points) == 1:
        return ShapelyPoint(points[0]).wkt
    return LineString(points).wkt


def from_wkt(text: Optional[str]) -> list[Point]:
    """Parse a WKT LineString back into ``(lon, lat)`` tuples."""
    if not text:
        return []
    geom = wkt.loads(text)
    return [(float(x), float(y)) for x, y, *_ in geom.coords]
