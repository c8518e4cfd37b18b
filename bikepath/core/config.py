"""BikePath configuration — scoring weights, freshness bands, matching, cache and storage settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the composite path score.

    Score = alpha·P + beta·S − gamma·O·100 − delta·L·100
    """

    alpha: float = 0.1    # user ratings
    beta: float = 0.3     # street condition
    gamma: float = 0.6    # per obstacle since last calculation
    delta: float = 0.15   # path deviation
    neutral_component: float = 50.0


@dataclass(frozen=True)
class FreshnessConfig:
    """Report age bands (upper bound in days, weight), newest first."""

    bands: tuple[tuple[float, float], ...] = ((7.0, 1.0), (14.0, 0.8), (30.0, 0.5))
    horizon_days: float = 30.0
    recency_bonus_max: float = 10.0


@dataclass(frozen=True)
class MatchingConfig:
    """Route matcher and ranker settings."""

    nearby_threshold_km: float = 2.0
    penalty_per_km: float = 15.0
    max_results: int = 5
    default_score: float = 50.0
    tie_epsilon: float = 1.0
    average_speed_kmh: float = 15.0
    fallback_distance_km: float = 5.0
    fallback_travel_minutes: int = 20


@dataclass(frozen=True)
class CacheConfig:
    """Route search cache settings."""

    max_size: int = 256
    ttl_seconds: int = 300


@dataclass(frozen=True)
class StorageConfig:
    """SQLite persistence settings."""

    db_path: Path = Path("bikepath.db")


@dataclass(frozen=True)
class BikePathConfig:
    """Top-level BikePath configuration."""

    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_env(cls) -> "BikePathConfig":
        """Build a config from ``BIKEPATH_*`` environment variables.

        Unset variables keep their defaults. Call ``dotenv.load_dotenv()``
        first to pick up a ``.env`` file.
        """
        matching = MatchingConfig(
            nearby_threshold_km=float(
                os.environ.get("BIKEPATH_NEARBY_THRESHOLD_KM", MatchingConfig.nearby_threshold_km)
            ),
            max_results=int(os.environ.get("BIKEPATH_MAX_RESULTS", MatchingConfig.max_results)),
        )
        cache = CacheConfig(
            max_size=int(os.environ.get("BIKEPATH_CACHE_SIZE", CacheConfig.max_size)),
            ttl_seconds=int(os.environ.get("BIKEPATH_CACHE_TTL", CacheConfig.ttl_seconds)),
        )
        storage = StorageConfig(
            db_path=Path(os.environ.get("BIKEPATH_DB_PATH", str(StorageConfig.db_path))),
        )
        return cls(matching=matching, cache=cache, storage=storage)


DEFAULT_CONFIG = BikePathConfig()
