"""
trend.py — Ordinary-least-squares trend over (timestamp, value) pairs.

Timestamps are shifted so the earliest one is 0 before fitting. The slope is
therefore "grade points per millisecond"; the direction threshold applies to
that unit.
"""

from typing import Iterable, List, Sequence, Tuple

from grade_analytics.models import TrendResult

# Denominators and total sums of squares below this count as zero.
DEGENERATE_DENOMINATOR = 1e-10
STABLE_SLOPE = 0.001

Point = Tuple[float, float]


def classify_direction(slope: float) -> str:
    if abs(slope) < STABLE_SLOPE:
        return "stable"
    return "improving" if slope > 0 else "declining"


def classify_strength(r_squared: float) -> str:
    if r_squared < 0.1:
        return "none"
    if r_squared < 0.3:
        return "weak"
    if r_squared < 0.6:
        return "moderate"
    return "strong"


def normalize_series(series: Iterable[Sequence[float]]) -> List[Point]:
    """(t, v) pairs with t shifted so the minimum timestamp is 0, input order kept."""
    points = [(float(p[0]), float(p[1])) for p in series]
    if not points:
        return []
    t0 = min(t for t, _ in points)
    return [(t - t0, v) for t, v in points]


def calculate_trend(series: Iterable[Sequence[float]]) -> TrendResult:
    """Fit a line through ``series``; fewer than two points gives a flat result."""
    normalized = normalize_series(series)
    n = len(normalized)
    if n < 2:
        return TrendResult()

    fit_points = sorted(normalized, key=lambda p: p[0])
    sum_x = sum(x for x, _ in fit_points)
    sum_y = sum(y for _, y in fit_points)
    sum_xy = sum(x * y for x, y in fit_points)
    sum_x2 = sum(x * x for x, _ in fit_points)
    mean_y = sum_y / n

    denominator = n * sum_x2 - sum_x * sum_x
    if abs(denominator) < DEGENERATE_DENOMINATOR:
        return TrendResult(
            slope=0.0,
            intercept=mean_y,
            r_squared=0.0,
            direction="stable",
            strength="none",
            predicted_values=tuple(mean_y for _ in normalized),
        )

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    ss_tot = sum((y - mean_y) ** 2 for _, y in fit_points)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in fit_points)
    r_squared = 1 - ss_res / ss_tot if ss_tot > DEGENERATE_DENOMINATOR else 0.0

    return TrendResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        direction=classify_direction(slope),
        strength=classify_strength(r_squared),
        predicted_values=tuple(slope * x + intercept for x, _ in normalized),
    )


def time_series(records) -> List[Point]:
    """(timestamp, value) pairs of ``records`` in chronological order."""
    ordered = sorted(records, key=lambda r: r.timestamp)
    return [(float(r.timestamp), r.value) for r in ordered]


def trend_slope(records) -> float:
    """Slope of the records' time series; 0 below two records."""
    if len(records) < 2:
        return 0.0
    return calculate_trend(time_series(records)).slope
