"""Match-tier classification of candidate paths against a route query.

Tiers are tried in strict order and the first one that fires wins:

  exact   — both names found among the path's street names
  partial — one name found, the other query point near the geometry
  nearby  — no name found, both query points near the geometry

Names match by case-insensitive substring. "Near" means the closest path
vertex is within ``nearby_threshold_km`` of the query point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from bikepath.core.config import DEFAULT_CONFIG
from bikepath.core.exceptions import InvalidQueryError
from bikepath.core.models import Coordinate, MatchType, Path
from bikepath.geometry.distance import combine_segments, ensure_coordinates, nearest_distance

logger = logging.getLogger("bikepath.matching.matcher")


@dataclass(frozen=True)
class RouteQuery:
    """A start/end street pair, optionally pinned to coordinates."""

    start_name: str
    end_name: str
    start_lat: Optional[float] = None
    start_lon: Optional[float] = None
    end_lat: Optional[float] = None
    end_lon: Optional[float] = None
    nearby_threshold_km: float = DEFAULT_CONFIG.matching.nearby_threshold_km

    def __post_init__(self) -> None:
        if not self.start_name.strip() or not self.end_name.strip():
            raise InvalidQueryError("Start and end street names are required")
        if self.start_name.strip().lower() == self.end_name.strip().lower():
            raise InvalidQueryError("Start and end streets must be different")
        if self.nearby_threshold_km <= 0:
            raise InvalidQueryError(
                f"Nearby threshold must be positive, got {self.nearby_threshold_km}"
            )
        for lat, lon in ((self.start_lat, self.start_lon), (self.end_lat, self.end_lon)):
            if lat is not None or lon is not None:
                ensure_coordinates(lat, lon)

    @property
    def has_coordinates(self) -> bool:
        return None not in (self.start_lat, self.start_lon, self.end_lat, self.end_lon)


@dataclass(frozen=True)
class MatchInfo:
    """Tier plus the distance (km) of each query point; 0 for a name-matched side."""

    match_type: MatchType
    start_dist: float = 0.0
    end_dist: float = 0.0


def name_matches(query: str, street_names: Iterable[str]) -> bool:
    needle = query.strip().lower()
    return any(needle in (name or "").lower() for name in street_names)


def path_geometry(path: Path) -> Optional[list[Coordinate]]:
    """Stored path geometry, or the one derived from its streets."""
    if path.coordinates:
        return list(path.coordinates)
    ordered = sorted(path.segments, key=lambda s: s.order_index)
    return combine_segments(s.street.coordinates for s in ordered if s.street is not None)


def classify(path: Path, query: RouteQuery) -> Optional[MatchInfo]:
    """Classify one candidate path; ``None`` excludes it."""
    names = path.street_names
    has_start = name_matches(query.start_name, names)
    has_end = name_matches(query.end_name, names)

    if has_start and has_end:
        return MatchInfo(MatchType.EXACT)

    if not query.has_coordinates:
        return None
    coords = path_geometry(path)
    if not coords:
        return None

    start_dist = nearest_distance(coords, query.start_lat, query.start_lon)
    end_dist = nearest_distance(coords, query.end_lat, query.end_lon)
    threshold = query.nearby_threshold_km

    if has_start and end_dist <= threshold:
        return MatchInfo(MatchType.PARTIAL, 0.0, end_dist)
    if has_end and start_dist <= threshold:
        return MatchInfo(MatchType.PARTIAL, start_dist, 0.0)
    if not has_start and not has_end and start_dist <= threshold and end_dist <= threshold:
        return MatchInfo(MatchType.NEARBY, start_dist, end_dist)
    return None


def match_paths(
    paths: Iterable[Path], query: RouteQuery
) -> list[tuple[Path, MatchInfo]]:
    """Classify every candidate, keeping only the matched ones."""
    matched = []
    for path in paths:
        if not path.segments:
            continue
        info = classify(path, query)
        if info is None:
            continue
        logger.debug("Path %s matched as %s", path.id, info.match_type.value)
        matched.append((path, info))
    return matched
