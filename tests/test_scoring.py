"""Tests for the composite path score."""

import pytest

from bikepath.aggregation.scoring import (
    PathScoreInputs,
    calc_score,
    condition_component,
    normalize_rating,
    rating_component,
    score_path,
)
from bikepath.core.config import ScoringWeights
from bikepath.core.models import StreetStatus


class TestComponents:
    def test_normalize_rating(self):
        assert normalize_rating(1) == 0
        assert normalize_rating(3) == 50
        assert normalize_rating(5) == 100

    def test_rating_fallbacks(self):
        assert rating_component([4, 5]) == pytest.approx(87.5)
        assert rating_component([], fallback_rating=2) == 25
        assert rating_component([]) == 50

    def test_condition(self):
        statuses = [StreetStatus.OPTIMAL, StreetStatus.REQUIRES_MAINTENANCE, None]
        assert condition_component(statuses) == 60
        assert condition_component([None]) == 50
        assert condition_component([]) == 50


class TestCalcScore:
    def test_reference_values(self):
        assert calc_score(100, 100, 0, 0) == pytest.approx(40)
        assert calc_score(100, 100, 0, 1) == pytest.approx(25)
        assert calc_score(50, 50, 0) == pytest.approx(20)
        assert calc_score(100, 100, 1, 0) == 0
        assert calc_score(0, 0, 0, 0) == 0

    def test_clamped(self):
        assert calc_score(100, 100, 1) == 0
        assert calc_score(100, 100, 5, 1) == 0
        heavy = ScoringWeights(alpha=1.0, beta=1.0)
        assert calc_score(100, 100, 0, weights=heavy) == 100

    def test_monotonic(self):
        assert calc_score(80, 70, 0) > calc_score(60, 70, 0)
        assert calc_score(80, 70, 0) > calc_score(80, 50, 0)
        assert calc_score(100, 100, 0, 0.1) < calc_score(100, 100, 0, 0)

    def test_factor_priority(self):
        # equal 10-point swings in each input
        base = calc_score(50, 50, 0, 0.2)
        rating_gain = calc_score(60, 50, 0, 0.2) - base
        condition_gain = calc_score(50, 60, 0, 0.2) - base
        deviation_gain = calc_score(50, 50, 0, 0.1) - base
        obstacle_loss = base - calc_score(50, 50, 0.1, 0.2)
        assert obstacle_loss > condition_gain > deviation_gain > rating_gain

    def test_one_obstacle_dominates_condition(self):
        clean_bad_street = calc_score(100, 20, 0)
        blocked_good_street = calc_score(100, 100, 1)
        assert clean_bad_street > blocked_good_street


class TestScorePath:
    def test_from_inputs(self, now):
        inputs = PathScoreInputs(
            ratings=[5],
            statuses=[StreetStatus.OPTIMAL, StreetStatus.OPTIMAL],
            coordinates=[(0.0, 0.0), (0.0, 1.0)],
        )
        result = score_path(inputs, now)
        assert result.score == pytest.approx(40)
        assert result.status is StreetStatus.OPTIMAL
        assert result.components.deviation == pytest.approx(0)
        assert result.calculated_at == now

    def test_empty_inputs_are_neutral(self, now):
        result = score_path(PathScoreInputs(), now)
        assert result.components.rating == 50
        assert result.components.condition == 50
        assert result.score == pytest.approx(20)
        assert result.status is None

    def test_status_independent_of_score(self, now):
        inputs = PathScoreInputs(statuses=[StreetStatus.OPTIMAL], obstacle_count=2)
        result = score_path(inputs, now)
        assert result.score == 0
        assert result.status is StreetStatus.OPTIMAL
