"""One-liner API for BikePath — ``import bikepath; bikepath.find_routes(...)``.

Wraps the store, the aggregation engine and the route ranker for scripting,
notebooks and CLI usage. Every function opens the database file, does its
work and closes it again.

Examples
--------
>>> import bikepath
>>> r = bikepath.find_routes("bikepath.db", "Via Roma", "Corso Como")
>>> print(r.summary())
>>> bikepath.aggregate_street("bikepath.db", "a1b2c3d4e5f6")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from bikepath.aggregation.engine import AggregationEngine
from bikepath.core.config import DEFAULT_CONFIG, BikePathConfig
from bikepath.matching.matcher import RouteQuery
from bikepath.matching.ranker import find_routes as _rank_routes
from bikepath.storage.database import BikePathStore

logger = logging.getLogger("bikepath.api")


# ── Result Containers ───────────────────────────────────────────────────


class RouteSearchResult(dict):
    """Ranked routes for a query with a nice ``__repr__``."""

    def __repr__(self) -> str:
        routes = self.get("routes", [])
        best = routes[0]["score"] if routes else None
        best_txt = f"{best:.1f}" if best is not None else "-"
        return f"<RouteSearchResult routes={len(routes)} best={best_txt}>"

    def summary(self) -> str:
        """Return a human-readable summary string."""
        routes = self.get("routes", [])
        lines = [f"🚲 Routes from {self.get('start')!r} to {self.get('end')!r}"]
        if not routes:
            lines.append("   No matching paths found.")
            return "\n".join(lines)
        for i, r in enumerate(routes, 1):
            lines.append(
                f"   {i}. {r['name']}  score={r['score']:.1f} "
                f"(raw {r['original_score']:.1f}, penalty {r['proximity_penalty']:.2f})  "
                f"[{r['match_type']}]  {r['distance_km']:.2f} km, ~{r['travel_time_minutes']} min"
            )
            obstacles = r.get("obstacles", [])
            if obstacles:
                confirmed = sum(1 for o in obstacles if o["confirmed"])
                lines.append(f"      ⚠️  {len(obstacles)} obstacles ({confirmed} confirmed)")
        return "\n".join(lines)


class PathScoreResult(dict):
    """Score breakdown of a single path."""

    def __repr__(self) -> str:
        return (
            f"<PathScoreResult path={self.get('path_id')} "
            f"score={self.get('score', 0):.1f} status={self.get('status')}>"
        )

    def summary(self) -> str:
        c = self.get("components", {})
        return "\n".join([
            f"📊 Path {self.get('path_id')}",
            f"   Score:      {self.get('score', 0):.2f}/100",
            f"   Status:     {self.get('status') or 'unset'}",
            f"   Ratings P:  {c.get('rating', 0):.1f}",
            f"   Streets S:  {c.get('condition', 0):.1f}",
            f"   Obstacles:  {c.get('obstacles', 0)}",
            f"   Deviation:  {c.get('deviation', 0):.3f}",
        ])


# ── Internal Helpers ────────────────────────────────────────────────────


@contextmanager
def _open(db_path: str | Path) -> Iterator[BikePathStore]:
    store = BikePathStore(Path(db_path))
    try:
        yield store
    finally:
        store.close()


# ── Public API ──────────────────────────────────────────────────────────


def find_routes(
    db_path: str | Path,
    start: str,
    end: str,
    *,
    start_lat: Optional[float] = None,
    start_lon: Optional[float] = None,
    end_lat: Optional[float] = None,
    end_lon: Optional[float] = None,
    nearby_threshold_km: Optional[float] = None,
    config: BikePathConfig = DEFAULT_CONFIG,
) -> RouteSearchResult:
    """Rank stored paths between two street names.

    Parameters
    ----------
    db_path : str or Path
        SQLite database written by ``BikePathStore``.
    start, end : str
        Street names, matched case-insensitively as substrings.
    start_lat, start_lon, end_lat, end_lon : float, optional
        Query points; with all four, partial and nearby matches are allowed.
    nearby_threshold_km : float, optional
        Defaults to ``config.matching.nearby_threshold_km``.

    Returns
    -------
    RouteSearchResult
        ``routes`` is empty when nothing matches.

    Raises
    ------
    InvalidQueryError, InvalidCoordinateError
        If the query is rejected before any computation.
    """
    query = RouteQuery(
        start_name=start,
        end_name=end,
        start_lat=start_lat,
        start_lon=start_lon,
        end_lat=end_lat,
        end_lon=end_lon,
        nearby_threshold_km=(
            config.matching.nearby_threshold_km
            if nearby_threshold_km is None
            else nearby_threshold_km
        ),
    )
    with _open(db_path) as store:
        routes = _rank_routes(store.list_paths(), query, config.matching)
        engine = AggregationEngine(store, config)
        for route in routes:
            route.obstacles = engine.route_obstacles(route.path_id)

    return RouteSearchResult(
        start=start,
        end=end,
        routes=[r.to_dict() for r in routes],
    )


def aggregate_street(
    db_path: str | Path,
    street_id: str,
    config: BikePathConfig = DEFAULT_CONFIG,
) -> Optional[str]:
    """Re-aggregate a street and rescore its paths; returns the new status value."""
    with _open(db_path) as store:
        status = AggregationEngine(store, config).aggregate_street(street_id)
    return status.value if status else None


def recompute_path(
    db_path: str | Path,
    path_id: str,
    config: BikePathConfig = DEFAULT_CONFIG,
) -> PathScoreResult:
    """Rescore a path and return the breakdown."""
    with _open(db_path) as store:
        result = AggregationEngine(store, config).recompute_path(path_id)

    return PathScoreResult(
        path_id=path_id,
        score=result.score,
        status=result.status.value if result.status else None,
        calculated_at=result.calculated_at.isoformat(),
        components={
            "rating": result.components.rating,
            "condition": result.components.condition,
            "obstacles": result.components.obstacles,
            "deviation": result.components.deviation,
        },
    )
