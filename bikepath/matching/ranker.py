"""Proximity penalty and ranking of matched paths."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from functools import cmp_to_key
from typing import Any, Iterable, Optional

from bikepath.core.config import DEFAULT_CONFIG, MatchingConfig
from bikepath.core.models import Coordinate, MatchType, Path
from bikepath.geometry.distance import path_length_km
from bikepath.matching.matcher import MatchInfo, RouteQuery, match_paths, path_geometry

logger = logging.getLogger("bikepath.matching.ranker")


@dataclass
class RouteResult:
    """One ranked answer to a route query."""

    path_id: str
    name: str
    score: float
    original_score: float
    match_type: MatchType
    proximity_penalty: float
    distance_km: float
    travel_time_minutes: int
    streets: list[dict[str, Any]] = field(default_factory=list)
    coordinates: Optional[list[Coordinate]] = None
    obstacles: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["match_type"] = self.match_type.value
        return data


def proximity_penalty(
    start_dist: float,
    end_dist: float,
    per_km: float = DEFAULT_CONFIG.matching.penalty_per_km,
) -> float:
    """Points lost for the average distance (km) of the two query points."""
    return per_km * (start_dist + end_dist) / 2


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_result(
    path: Path, match: MatchInfo, config: MatchingConfig = DEFAULT_CONFIG.matching
) -> RouteResult:
    original = path.score if path.score is not None else config.default_score
    penalty = proximity_penalty(match.start_dist, match.end_dist, config.penalty_per_km)

    coords = path_geometry(path)
    if coords:
        distance = round(path_length_km(coords), 2)
        minutes = _round_half_up(distance / config.average_speed_kmh * 60)
    else:
        distance = config.fallback_distance_km
        minutes = config.fallback_travel_minutes

    streets = [
        {
            "id": seg.street.id,
            "name": seg.street.name,
            "status": seg.street.status.value if seg.street.status else None,
        }
        for seg in sorted(path.segments, key=lambda s: s.order_index)
        if seg.street is not None
    ]
    return RouteResult(
        path_id=path.id,
        name=path.name,
        score=max(0.0, original - penalty),
        original_score=original,
        match_type=match.match_type,
        proximity_penalty=penalty,
        distance_km=distance,
        travel_time_minutes=minutes,
        streets=streets,
        coordinates=coords,
    )


def sort_results(
    results: list[RouteResult], tie_epsilon: float = DEFAULT_CONFIG.matching.tie_epsilon
) -> list[RouteResult]:
    """Adjusted score descending; near-ties go to the better tier, then the smaller penalty."""

    def compare(a: RouteResult, b: RouteResult) -> float:
        diff = b.score - a.score
        if abs(diff) > tie_epsilon:
            return diff
        tier = a.match_type.rank - b.match_type.rank
        if tier != 0:
            return tier
        return a.proximity_penalty - b.proximity_penalty

    return sorted(results, key=cmp_to_key(compare))


def find_routes(
    paths: Iterable[Path],
    query: RouteQuery,
    config: MatchingConfig = DEFAULT_CONFIG.matching,
) -> list[RouteResult]:
    """Match, penalize, rank and cap candidate paths for a query.

    An empty list means "no matches"; it is not an error.
    """
    matched = match_paths(paths, query)
    if not matched:
        logger.info("No routes between %r and %r", query.start_name, query.end_name)
        return []

    ranked = sort_results([build_result(p, m, config) for p, m in matched], config.tie_epsilon)
    logger.info(
        "Found %d routes between %r and %r (returning %d)",
        len(ranked),
        query.start_name,
        query.end_name,
        min(len(ranked), config.max_results),
    )
    return ranked[: config.max_results]
