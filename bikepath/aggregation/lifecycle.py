"""Obstacle report lifecycle.

    PENDING ──► CONFIRMED | REJECTED | CORRECTED | EXPIRED

All four outcomes are terminal. A correction may update the description
and location of the obstacle.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from bikepath.core.exceptions import InvalidTransitionError, UnknownStatusError
from bikepath.core.models import Obstacle, ObstacleStatus
from bikepath.geometry.distance import ensure_coordinates

logger = logging.getLogger("bikepath.aggregation.lifecycle")

VALID_TRANSITIONS: dict[ObstacleStatus, frozenset[ObstacleStatus]] = {
    ObstacleStatus.PENDING: frozenset({
        ObstacleStatus.CONFIRMED,
        ObstacleStatus.REJECTED,
        ObstacleStatus.CORRECTED,
        ObstacleStatus.EXPIRED,
    }),
    ObstacleStatus.CONFIRMED: frozenset(),
    ObstacleStatus.REJECTED: frozenset(),
    ObstacleStatus.CORRECTED: frozenset(),
    ObstacleStatus.EXPIRED: frozenset(),
}


def can_transition(current: ObstacleStatus, target: ObstacleStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


def is_confirmed_evidence(obstacle: Obstacle) -> bool:
    """Confirmed and corrected obstacles count as verified evidence."""
    return obstacle.status in (ObstacleStatus.CONFIRMED, ObstacleStatus.CORRECTED)


def transition(
    obstacle: Obstacle,
    target: ObstacleStatus | str,
    now: datetime,
    description: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
) -> Obstacle:
    """Return a copy of ``obstacle`` moved to ``target``.

    Raises
    ------
    InvalidTransitionError
        If the move is not allowed from the current state, or if
        correction fields are supplied for a non-correcting move.
    """
    try:
        target = ObstacleStatus(target)
    except ValueError:
        raise UnknownStatusError(f"Unknown obstacle status: {target!r}") from None
    if not can_transition(obstacle.status, target):
        raise InvalidTransitionError(
            f"Invalid transition: {obstacle.status.value} -> {target.value}"
        )

    changes: dict = {"status": target}
    has_correction = description is not None or lat is not None or lon is not None

    if target == ObstacleStatus.CORRECTED:
        if description is not None:
            changes["description"] = description
        if lat is not None or lon is not None:
            new_lat = obstacle.lat if lat is None else lat
            new_lon = obstacle.lon if lon is None else lon
            ensure_coordinates(new_lat, new_lon)
            changes["lat"], changes["lon"] = new_lat, new_lon
    elif has_correction:
        raise InvalidTransitionError(
            f"Only a correction may change obstacle details, not {target.value}"
        )

    if target in (ObstacleStatus.CONFIRMED, ObstacleStatus.CORRECTED):
        changes["confirmed_at"] = now

    logger.info(
        "Obstacle %s: %s → %s", obstacle.id, obstacle.status.value, target.value
    )
    return replace(obstacle, **changes)


def obstacle_summary(obstacle: Obstacle) -> dict:
    """Public view of an obstacle as attached to routes and path details."""
    return {
        "id": obstacle.id,
        "kind": obstacle.kind,
        "lat": obstacle.lat,
        "lon": obstacle.lon,
        "description": obstacle.description,
        "status": obstacle.status.value,
        "confirmed": is_confirmed_evidence(obstacle),
    }
