"""Distance-based significance filter for raw fixes.

Greedy online simplification: each fix is compared only against the last
accepted point, so a stationary receiver does not accumulate jitter points.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..config import MIN_SIGNIFICANT_DISTANCE_M
from ..geo import distance_between
from ..models import GeoPoint, ensure_utc


def is_significant(
    last: Optional[GeoPoint],
    candidate: GeoPoint,
    threshold_m: float = MIN_SIGNIFICANT_DISTANCE_M,
) -> bool:
    """Return True when ``candidate`` should follow ``last`` in a track."""

    if last is None:
        return True
    if ensure_utc(candidate.timestamp) < ensure_utc(last.timestamp):
        return False
    return distance_between(last, candidate) >= threshold_m


def filter_significant(
    points: Iterable[GeoPoint],
    threshold_m: float = MIN_SIGNIFICANT_DISTANCE_M,
) -> List[GeoPoint]:
    """Apply the online filter to a whole sequence of fixes."""

    accepted: List[GeoPoint] = []
    for point in points:
        if is_significant(accepted[-1] if accepted else None, point, threshold_m):
            accepted.append(point)
    return accepted


__all__ = ["is_significant", "filter_significant"]
