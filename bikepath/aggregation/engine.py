"""Aggregation engine — read, compute, write back, propagate.

Wires the pure functions of this package to the store:

  report written    → aggregate its street → rescore every path using it
  obstacle reported → rescore the paths of the obstacle's trip
  path published    → score it once before it is ranked

Obstacle lifecycle moves do not rescore: O counts obstacles created since
the last calculation, so a status change leaves it untouched.

Each write is a separate transaction; a redundant trigger (one per changed
street of the same path) just recomputes the same snapshot again.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from bikepath.aggregation.freshness import recency_bonus
from bikepath.aggregation.lifecycle import obstacle_summary, transition
from bikepath.aggregation.scoring import PathScore, PathScoreInputs, score_path
from bikepath.aggregation.status import aggregate_status
from bikepath.core.config import DEFAULT_CONFIG, BikePathConfig
from bikepath.core.models import Obstacle, ObstacleStatus, Path, Report, StreetStatus, utcnow
from bikepath.storage.database import BikePathStore

logger = logging.getLogger("bikepath.aggregation.engine")


class AggregationEngine:
    """Keeps cached street statuses and path scores in step with the evidence.

    Usage::

        engine = AggregationEngine(store)
        report = engine.record_report("user-1", "optimal", visit_id=visit.id)
        result = engine.recompute_path(path.id)
    """

    def __init__(
        self,
        store: BikePathStore,
        config: BikePathConfig = DEFAULT_CONFIG,
        clock: Callable[[], datetime] = utcnow,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.config = config
        self.clock = clock
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # ── Streets ─────────────────────────────────────────────────────────

    def aggregate_street(self, street_id: str) -> Optional[StreetStatus]:
        """Recompute a street's status and rescore every path containing it.

        Returns ``None`` when there is no fresh publishable evidence; the
        street status is then written back as unset.
        """
        now = self.clock()
        since = now - timedelta(days=self.config.freshness.horizon_days)
        reports = self.store.reports_for_street(street_id, since=since)
        status = aggregate_status(reports, now, self.config.freshness)

        self.store.set_street_status(street_id, status, now)
        logger.info(
            "Street %s aggregated from %d reports → %s",
            street_id,
            len(reports),
            status.value if status else "unset",
        )

        for path_id in self.store.paths_containing_street(street_id):
            self.recompute_path(path_id)

        self._changed()
        return status

    # ── Paths ───────────────────────────────────────────────────────────

    def publish_path(
        self,
        name: str,
        street_ids: list[str],
        trip_id: Optional[str] = None,
    ) -> Path:
        """Create a path over ``street_ids`` and score it straight away."""
        path = self.store.add_path(name, street_ids, trip_id=trip_id, now=self.clock())
        self.recompute_path(path.id)
        logger.info("Path %s published with %d streets", path.id, len(street_ids))
        return self.store.get_path(path.id)

    def score_inputs(self, path_id: str) -> PathScoreInputs:
        """Read the storage snapshot a path score is computed from."""
        path = self.store.get_path(path_id)
        inputs = PathScoreInputs(
            statuses=[seg.street.status for seg in path.segments if seg.street is not None],
            coordinates=path.coordinates,
        )
        if path.trip_id:
            reports = self.store.reports_for_trip(path.trip_id)
            inputs.ratings = [r.rating for r in reports if r.publishable and r.rating is not None]
            inputs.fallback_rating = self.store.get_trip(path.trip_id).rating
            inputs.obstacle_count = len(
                self.store.obstacles_for_trip(path.trip_id, since=path.last_scored_at)
            )
        return inputs

    def compute_path(self, path_id: str) -> PathScore:
        """Score a path without writing anything."""
        return score_path(self.score_inputs(path_id), self.clock(), self.config.scoring)

    def recompute_path(self, path_id: str) -> PathScore:
        """Score a path and store ``{score, status, score_calculated_at}``."""
        result = self.compute_path(path_id)
        self.store.set_path_score(path_id, result.score, result.status, result.calculated_at)
        logger.info(
            "Path %s rescored: score=%.2f status=%s (P=%.1f S=%.1f O=%d L=%.3f)",
            path_id,
            result.score,
            result.status.value if result.status else "unset",
            result.components.rating,
            result.components.condition,
            result.components.obstacles,
            result.components.deviation,
        )
        self._changed()
        return result

    def evidence_recency(self, path_id: str) -> float:
        """Recency bonus of the fresh publishable reports on a path's streets."""
        now = self.clock()
        since = now - timedelta(days=self.config.freshness.horizon_days)
        path = self.store.get_path(path_id)
        times = []
        for street_id in {seg.street_id for seg in path.segments}:
            times.extend(
                r.created_at
                for r in self.store.reports_for_street(street_id, since=since)
                if r.publishable
            )
        return recency_bonus(times, now, self.config.freshness)

    def street_activity(self, path_id: str) -> list[dict]:
        """Per-street count and date of the fresh publishable reports, in path order."""
        since = self.clock() - timedelta(days=self.config.freshness.horizon_days)
        activity = []
        for seg in self.store.get_path(path_id).segments:
            reports = [
                r for r in self.store.reports_for_street(seg.street_id, since=since)
                if r.publishable
            ]
            activity.append({
                "street_id": seg.street_id,
                "recent_report_count": len(reports),
                "last_report_date": reports[0].created_at if reports else None,
            })
        return activity

    def route_obstacles(self, path_id: str) -> list[dict]:
        return [obstacle_summary(o) for o in self.store.obstacles_for_path(path_id)]

    # ── Reports ─────────────────────────────────────────────────────────

    def record_report(self, author_id: str, status: StreetStatus | str, **fields) -> Report:
        """Store a new report and aggregate the street it concerns."""
        fields.setdefault("created_at", self.clock())
        report = self.store.add_report(author_id, status, **fields)
        self.aggregate_street(self.store.street_of_report(report))
        return report

    def edit_report(
        self,
        report_id: str,
        status: Optional[StreetStatus | str] = None,
        rating: Optional[int] = None,
        publishable: Optional[bool] = None,
    ) -> Report:
        """Apply an explicit edit and re-trigger aggregation."""
        changes: dict = {}
        if status is not None:
            changes["status"] = status
        if rating is not None:
            changes["rating"] = rating
        if publishable is not None:
            changes["publishable"] = publishable
        report = replace(self.store.get_report(report_id), **changes)
        self.store.save_report(report)
        self.aggregate_street(self.store.street_of_report(report))
        return report

    def delete_report(self, report_id: str) -> Report:
        """Delete a report; re-aggregate its street if it counted towards the status."""
        street_id = self.store.street_of_report(self.store.get_report(report_id))
        report = self.store.delete_report(report_id)
        logger.info("Report %s deleted from street %s", report_id, street_id)
        if report.publishable:
            self.aggregate_street(street_id)
        else:
            self._changed()
        return report

    # ── Obstacles ───────────────────────────────────────────────────────

    def _rescore_trip_paths(self, visit_id: str) -> None:
        trip_id = self.store.get_visit(visit_id).trip_id
        for path_id in self.store.paths_for_trip(trip_id):
            self.recompute_path(path_id)

    def record_obstacle(self, visit_id: str, kind: str, lat: float, lon: float,
                        description: Optional[str] = None) -> Obstacle:
        obstacle = self.store.add_obstacle(
            visit_id, kind, lat, lon, description=description, created_at=self.clock()
        )
        logger.info("Obstacle %s (%s) reported on visit %s", obstacle.id, kind, visit_id)
        self._rescore_trip_paths(visit_id)
        return obstacle

    def update_obstacle(
        self,
        obstacle_id: str,
        target: ObstacleStatus | str,
        description: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> Obstacle:
        """Move an obstacle through its lifecycle and persist it.

        Path scores are left as they are.
        """
        obstacle = transition(
            self.store.get_obstacle(obstacle_id),
            target,
            self.clock(),
            description=description,
            lat=lat,
            lon=lon,
        )
        self.store.save_obstacle(obstacle)
        self._changed()
        return obstacle
