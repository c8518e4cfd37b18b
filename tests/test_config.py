"""Tests for BikePath configuration."""

from pathlib import Path

import pytest

from bikepath.core.config import DEFAULT_CONFIG, BikePathConfig, ScoringWeights


class TestConfig:
    def test_default_weights(self):
        w = DEFAULT_CONFIG.scoring
        assert (w.alpha, w.beta, w.gamma, w.delta) == (0.1, 0.3, 0.6, 0.15)

    def test_weight_priority(self):
        w = ScoringWeights()
        assert w.gamma > w.beta > w.delta > w.alpha

    def test_freshness_bands(self):
        bands = DEFAULT_CONFIG.freshness.bands
        assert bands == ((7.0, 1.0), (14.0, 0.8), (30.0, 0.5))
        assert DEFAULT_CONFIG.freshness.horizon_days == 30

    def test_matching_defaults(self):
        m = DEFAULT_CONFIG.matching
        assert m.nearby_threshold_km == 2.0
        assert m.penalty_per_km == 15.0
        assert m.max_results == 5

    def test_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_CONFIG.scoring.alpha = 0.5

    def test_from_env_defaults(self, monkeypatch):
        for var in ("BIKEPATH_NEARBY_THRESHOLD_KM", "BIKEPATH_MAX_RESULTS",
                    "BIKEPATH_CACHE_SIZE", "BIKEPATH_CACHE_TTL", "BIKEPATH_DB_PATH"):
            monkeypatch.delenv(var, raising=False)
        cfg = BikePathConfig.from_env()
        assert cfg == DEFAULT_CONFIG

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BIKEPATH_NEARBY_THRESHOLD_KM", "3.5")
        monkeypatch.setenv("BIKEPATH_MAX_RESULTS", "10")
        monkeypatch.setenv("BIKEPATH_CACHE_TTL", "60")
        monkeypatch.setenv("BIKEPATH_DB_PATH", "/tmp/paths.db")
        cfg = BikePathConfig.from_env()
        assert cfg.matching.nearby_threshold_km == 3.5
        assert cfg.matching.max_results == 10
        assert cfg.matching.penalty_per_km == 15.0
        assert cfg.cache.ttl_seconds == 60
        assert cfg.storage.db_path == Path("/tmp/paths.db")
