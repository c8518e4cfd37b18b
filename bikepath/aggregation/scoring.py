"""Composite path score used to rank paths.

    Score = clamp(0, 100, α·P + β·S − γ·O·100 − δ·L·100)

Where:
  P — average user rating, 1-5 normalized to 0-100
  S — average condition score of the path's streets, 0-100
  O — obstacles reported since the last score calculation
  L — path deviation from the straight line, 0-1

One obstacle alone costs γ·100 = 60 points, so obstacles dominate the
street condition, which dominates shape, which dominates ratings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from bikepath.aggregation.status import status_from_segments
from bikepath.core.config import DEFAULT_CONFIG, ScoringWeights
from bikepath.core.models import Coordinate, StreetStatus
from bikepath.geometry.distance import path_deviation


@dataclass(frozen=True)
class ScoreComponents:
    """The four raw inputs of a path score."""

    rating: float
    condition: float
    obstacles: int
    deviation: float


@dataclass
class PathScoreInputs:
    """Everything the calculator needs, already read from storage."""

    ratings: list[int] = field(default_factory=list)
    fallback_rating: Optional[int] = None
    statuses: list[Optional[StreetStatus]] = field(default_factory=list)
    obstacle_count: int = 0
    coordinates: Optional[Sequence[Coordinate]] = None


@dataclass
class PathScore:
    """Result of scoring a path; status is computed independently of score."""

    score: float
    status: Optional[StreetStatus]
    components: ScoreComponents
    calculated_at: datetime


def normalize_rating(rating: float) -> float:
    """Map a 1-5 rating onto 0-100 (1→0, 3→50, 5→100)."""
    return (rating - 1) / 4 * 100


def rating_component(
    ratings: Iterable[int],
    fallback_rating: Optional[int] = None,
    neutral: float = DEFAULT_CONFIG.scoring.neutral_component,
) -> float:
    """P: community ratings, else the trip's own rating, else neutral."""
    values = [r for r in ratings if r is not None]
    if values:
        return normalize_rating(sum(values) / len(values))
    if fallback_rating is not None:
        return normalize_rating(fallback_rating)
    return neutral


def condition_component(
    statuses: Iterable[Optional[StreetStatus]],
    neutral: float = DEFAULT_CONFIG.scoring.neutral_component,
) -> float:
    """S: mean condition score over streets with a known status."""
    scores = [s.score for s in statuses if s is not None]
    if not scores:
        return neutral
    return sum(scores) / len(scores)


def calc_score(
    rating: float,
    condition: float,
    obstacles: float,
    deviation: float = 0.0,
    weights: ScoringWeights = DEFAULT_CONFIG.scoring,
) -> float:
    """Apply the weighted formula and clamp to [0, 100]."""
    raw = (
        weights.alpha * rating
        + weights.beta * condition
        - weights.gamma * obstacles * 100
        - weights.delta * deviation * 100
    )
    return max(0.0, min(100.0, raw))


def score_path(
    inputs: PathScoreInputs,
    now: datetime,
    weights: ScoringWeights = DEFAULT_CONFIG.scoring,
) -> PathScore:
    """Compute score and status of a path from a storage snapshot."""
    components = ScoreComponents(
        rating=rating_component(inputs.ratings, inputs.fallback_rating, weights.neutral_component),
        condition=condition_component(inputs.statuses, weights.neutral_component),
        obstacles=inputs.obstacle_count,
        deviation=path_deviation(inputs.coordinates) if inputs.coordinates else 0.0,
    )
    score = calc_score(
        components.rating,
        components.condition,
        components.obstacles,
        components.deviation,
        weights,
    )
    return PathScore(
        score=score,
        status=status_from_segments(inputs.statuses),
        components=components,
        calculated_at=now,
    )
