"""Freshness and recency functions of report age."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from bikepath.core.config import DEFAULT_CONFIG, FreshnessConfig

SECONDS_PER_DAY = 86_400.0


def age_in_days(report_time: datetime, now: datetime) -> float:
    """Report age in fractional days (negative for future timestamps)."""
    return (now - report_time).total_seconds() / SECONDS_PER_DAY


def freshness_weight(
    report_time: datetime,
    now: datetime,
    config: FreshnessConfig = DEFAULT_CONFIG.freshness,
) -> float:
    """Step weight of a report: 1.0 under 7 days, 0.8 under 14, 0.5 under 30, else 0.

    A zero weight excludes the report from aggregation entirely.
    """
    age = age_in_days(report_time, now)
    for upper_days, weight in config.bands:
        if age < upper_days:
            return weight
    return 0.0


def recency_bonus(
    report_times: Iterable[datetime],
    now: datetime,
    config: FreshnessConfig = DEFAULT_CONFIG.freshness,
) -> float:
    """How fresh a body of evidence is overall, in [0, 10].

    ``max(0, 10 * (1 - mean_age / 30))``; 0 when there is no evidence.
    """
    ages = [age_in_days(t, now) for t in report_times]
    if not ages:
        return 0.0
    mean_age = sum(ages) / len(ages)
    bonus = config.recency_bonus_max * (1 - mean_age / config.horizon_days)
    return max(0.0, min(config.recency_bonus_max, bonus))
