"""Street status aggregation — freshness-weighted averaging of reports.

Each report contributes its status level (optimal=4 … requires_maintenance=1)
scaled by its freshness weight. The weighted mean is rounded half-up back
onto a level. This is averaging, not voting: one fresh ``optimal`` report
can outweigh several stale ``requires_maintenance`` ones.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Iterable, Optional

from bikepath.aggregation.freshness import freshness_weight
from bikepath.core.config import DEFAULT_CONFIG, FreshnessConfig
from bikepath.core.models import Report, StreetStatus

logger = logging.getLogger("bikepath.aggregation.status")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weighted_status(
    entries: Iterable[tuple[StreetStatus, float]],
) -> Optional[StreetStatus]:
    """Weighted-mean status of ``(status, weight)`` pairs.

    Entries with a non-positive weight are ignored. Returns ``None`` when
    the total weight is zero.
    """
    total_value = 0.0
    total_weight = 0.0
    for status, weight in entries:
        if weight <= 0:
            continue
        total_value += StreetStatus.parse(status).level * weight
        total_weight += weight

    if total_weight == 0:
        return None
    return StreetStatus.from_level(_round_half_up(total_value / total_weight))


def aggregate_status(
    reports: Iterable[Report],
    now: datetime,
    config: FreshnessConfig = DEFAULT_CONFIG.freshness,
) -> Optional[StreetStatus]:
    """Aggregate publishable reports into one street status.

    Returns ``None`` ("no aggregate") when no publishable report is younger
    than the freshness horizon; callers must then treat the street status
    as unset.
    """
    entries = [
        (r.status, freshness_weight(r.created_at, now, config))
        for r in reports
        if r.publishable
    ]
    result = weighted_status(entries)
    logger.debug(
        "Aggregated %d publishable reports → %s",
        len(entries),
        result.value if result else None,
    )
    return result


def status_from_segments(
    statuses: Iterable[Optional[StreetStatus]],
) -> Optional[StreetStatus]:
    """Path status: plain average of the known segment levels.

    Streets without a status are skipped; ``None`` if none is known.
    """
    levels = [s.level for s in statuses if s is not None]
    if not levels:
        return None
    return StreetStatus.from_level(_round_half_up(sum(levels) / len(levels)))
