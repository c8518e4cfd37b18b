"""Core data models for the BikePath service.

Defines the entities that flow through aggregation and matching:
  Report → Street.status → Path.score / Path.status → RouteResult

Coordinates are stored as ``(lon, lat)`` pairs, the GeoJSON / shapely
x-y order, everywhere in the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from bikepath.core.exceptions import InvalidRatingError, UnknownStatusError
from bikepath.geometry.distance import ensure_coordinates

Coordinate = tuple[float, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ───────────────────────────────────────────────────────────────


class StreetStatus(Enum):
    """Ordered condition levels, best first.

    Each member carries its ordinal ``level`` (4 = best … 1 = worst) and the
    ``score`` it contributes to the condition component of a path score.
    """

    OPTIMAL = ("optimal", 4, 100.0)
    MEDIUM = ("medium", 3, 70.0)
    SUFFICIENT = ("sufficient", 2, 50.0)
    REQUIRES_MAINTENANCE = ("requires_maintenance", 1, 20.0)

    def __new__(cls, value: str, level: int, score: float):
        obj = object.__new__(cls)
        obj._value_ = value
        obj.level = level
        obj.score = score
        return obj

    @classmethod
    def from_level(cls, level: int) -> "StreetStatus":
        for member in cls:
            if member.level == level:
                return member
        raise UnknownStatusError(f"No status with level {level}")

    @classmethod
    def parse(cls, value: "str | StreetStatus") -> "StreetStatus":
        """Accept a member or its string value; reject anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownStatusError(f"Unknown status: {value!r}") from None


class ObstacleStatus(Enum):
    """Lifecycle state of an obstacle report."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CORRECTED = "CORRECTED"
    EXPIRED = "EXPIRED"


class MatchType(Enum):
    """How strongly a path satisfies a named start/end query."""

    EXACT = "exact"
    PARTIAL = "partial"
    NEARBY = "nearby"

    @property
    def rank(self) -> int:
        """Tie-break order, lower is better."""
        return _MATCH_RANK[self]


_MATCH_RANK = {MatchType.EXACT: 0, MatchType.PARTIAL: 1, MatchType.NEARBY: 2}


def _check_rating(rating: Optional[int]) -> None:
    if rating is not None and not 1 <= rating <= 5:
        raise InvalidRatingError(f"Rating must be between 1 and 5, got {rating}")


# ── Streets & Paths ─────────────────────────────────────────────────────


@dataclass
class Street:
    """A named polyline, the atomic unit of condition reporting."""

    id: str
    name: str
    coordinates: list[Coordinate] = field(default_factory=list)
    status: Optional[StreetStatus] = None
    city: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.status is not None:
            self.status = StreetStatus.parse(self.status)
        for lon, lat in self.coordinates:
            ensure_coordinates(lat, lon)


@dataclass
class PathSegment:
    """One street of a path at a zero-based position."""

    street_id: str
    order_index: int
    street: Optional[Street] = None


@dataclass
class Path:
    """An ordered composition of streets with a cached score and status."""

    id: str
    name: str
    segments: list[PathSegment] = field(default_factory=list)
    coordinates: Optional[list[Coordinate]] = None
    trip_id: Optional[str] = None
    score: Optional[float] = None
    status: Optional[StreetStatus] = None
    score_calculated_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def street_names(self) -> list[str]:
        return [s.street.name for s in self.segments if s.street is not None]

    @property
    def last_scored_at(self) -> datetime:
        """Obstacles newer than this count against the next score."""
        return self.score_calculated_at or self.created_at


# ── Trips, Visits, Reports, Obstacles ───────────────────────────────────


@dataclass
class Trip:
    """A recorded ride; its original rating is the fallback for P."""

    id: str
    author_id: str
    rating: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        _check_rating(self.rating)


@dataclass
class Visit:
    """One traversal of a street within a trip."""

    id: str
    trip_id: str
    street_id: str
    order_index: int = 0


@dataclass
class Report:
    """A user assertion of a street's condition at a point in time.

    Linked either to a ``visit_id`` or, when standalone, to a ``street_id``
    with an optional point.
    """

    id: str
    author_id: str
    status: StreetStatus
    created_at: datetime = field(default_factory=utcnow)
    rating: Optional[int] = None
    publishable: bool = True
    visit_id: Optional[str] = None
    street_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    def __post_init__(self) -> None:
        self.status = StreetStatus.parse(self.status)
        _check_rating(self.rating)
        if self.lat is not None or self.lon is not None:
            ensure_coordinates(self.lat, self.lon)


@dataclass
class Obstacle:
    """A located hazard reported during a visit."""

    id: str
    visit_id: str
    kind: str
    lat: float
    lon: float
    status: ObstacleStatus = ObstacleStatus.PENDING
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    confirmed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.status = ObstacleStatus(self.status)
        ensure_coordinates(self.lat, self.lon)
