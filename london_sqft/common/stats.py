"""Robust summary statistics for price-per-area observations."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence


def median(values: Sequence[float]) -> float | None:
    """Median of ``values``; ``None`` when there is no data.

    Even-length input averages the two central values.
    """
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_whole(value: float | None) -> int | None:
    if value is None:
        return None
    return int(round_half_up(value))


def percent_diff(value: float | None, baseline: float | None) -> float | None:
    if value is None or baseline is None or baseline == 0:
        return None
    return round_half_up((value - baseline) / baseline * 100, 1)
