"""
stats.py — Descriptive statistics over a numeric sample (pure Python path).

Computes:
- count, sum, mean, median, mode
- sample variance / standard deviation (n - 1)
- linear-interpolation percentiles (25, 50, 75, 90) and IQR
- adjusted Fisher-Pearson skewness and sample excess kurtosis

Degenerate samples (empty, single value, zero spread) produce zeros rather
than errors so the dashboard can always render something.
"""

import math
from typing import Dict, List, Sequence

from grade_analytics.models import StatisticsSummary

# Standard deviations below this are rounding noise on a constant sample.
STD_EPSILON = 1e-12


# ── Helpers ─────────────────────────────────────────────────────────

def percentile_of_sorted(sorted_values: Sequence[float], p: float) -> float:
    """Percentile by linear interpolation at index (p / 100) * (n - 1)."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = (p / 100.0) * (n - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def _median_of_sorted(sorted_values: Sequence[float]) -> float:
    n = len(sorted_values)
    mid = n // 2
    if n % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def _mode(values: Sequence[float]) -> List[float]:
    """All values tied for the highest frequency; empty if nothing repeats."""
    frequency: Dict[float, int] = {}
    for v in values:
        frequency[v] = frequency.get(v, 0) + 1
    max_freq = max(frequency.values())
    if max_freq <= 1:
        return []
    return sorted(v for v, count in frequency.items() if count == max_freq)


def sample_std(values: Sequence[float]) -> float:
    n = len(values)
    if n <= 1:
        return 0.0
    mean = sum(values) / n
    return math.sqrt(sum((v - mean) ** 2 for v in values) / (n - 1))


# ── Statistics ──────────────────────────────────────────────────────

def calculate_statistics(data: Sequence[float]) -> StatisticsSummary:
    """Full descriptive summary of ``data``; all zeros for an empty sample."""
    values = [float(v) for v in data]
    n = len(values)
    if n == 0:
        return StatisticsSummary()

    ordered = sorted(values)
    total = sum(values)
    mean = total / n

    variance = sum((v - mean) ** 2 for v in values) / (n - 1) if n > 1 else 0.0
    std = math.sqrt(variance)

    p25 = percentile_of_sorted(ordered, 25)
    p50 = percentile_of_sorted(ordered, 50)
    p75 = percentile_of_sorted(ordered, 75)
    p90 = percentile_of_sorted(ordered, 90)

    skewness = 0.0
    if n >= 3 and std > STD_EPSILON:
        cubed = sum(((v - mean) / std) ** 3 for v in values)
        skewness = (n / ((n - 1) * (n - 2))) * cubed

    kurtosis = 0.0
    if n >= 4 and std > STD_EPSILON:
        fourth = sum(((v - mean) / std) ** 4 for v in values)
        kurtosis = (
            (n * (n + 1) / ((n - 1) * (n - 2) * (n - 3))) * fourth
            - (3 * (n - 1) ** 2) / ((n - 2) * (n - 3))
        )

    return StatisticsSummary(
        count=n,
        sum=total,
        mean=mean,
        median=_median_of_sorted(ordered),
        mode=tuple(_mode(values)),
        min=ordered[0],
        max=ordered[-1],
        range=ordered[-1] - ordered[0],
        variance=variance,
        std_deviation=std,
        percentile_25=p25,
        percentile_50=p50,
        percentile_75=p75,
        percentile_90=p90,
        iqr=p75 - p25,
        skewness=skewness,
        kurtosis=kurtosis,
    )


def calculate_percentile(data: Sequence[float], percentile: float) -> float:
    """Single percentile of ``data``; ``percentile`` is clamped to [0, 100]."""
    if not data:
        return 0.0
    p = max(0.0, min(100.0, float(percentile)))
    return percentile_of_sorted(sorted(float(v) for v in data), p)
