"""
models.py — Derived result types.

Every analytics operation returns one of these frozen dataclasses. They are
recomputed on demand from GradeRecord collections and never persisted;
sequences are tuples so a cached result cannot be mutated by a caller.
"""

import math
from dataclasses import dataclass, fields
from typing import Any, Dict, Tuple


def _plain(obj):
    """Recursively coerce results to JSON-safe Python types."""
    if hasattr(obj, "__dataclass_fields__"):
        return {f.name: _plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, float):
        return None if (math.isnan(obj) or math.isinf(obj)) else obj
    return obj


class _Result:
    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)


@dataclass(frozen=True)
class StatisticsSummary(_Result):
    count: int = 0
    sum: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    mode: Tuple[float, ...] = ()
    min: float = 0.0
    max: float = 0.0
    range: float = 0.0
    variance: float = 0.0
    std_deviation: float = 0.0
    percentile_25: float = 0.0
    percentile_50: float = 0.0
    percentile_75: float = 0.0
    percentile_90: float = 0.0
    iqr: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0


@dataclass(frozen=True)
class TrendResult(_Result):
    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0
    direction: str = "stable"
    strength: str = "none"
    predicted_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class SubjectSummary(_Result):
    subject: str
    average: float = 0.0
    weighted_average: float = 0.0
    grade_count: int = 0
    total_weight: float = 0.0
    highest: float = 0.0
    lowest: float = 0.0
    passing_count: int = 0
    failing_count: int = 0
    trend: float = 0.0
    predicted_next: float = 0.0


@dataclass(frozen=True)
class PredictionResult(_Result):
    predicted_value: float = 0.0
    confidence: float = 0.0
    lower_bound: float = 0.0
    upper_bound: float = 0.0
    method: str = "none"


@dataclass(frozen=True)
class GradeNeeded(_Result):
    target_average: float
    grade_needed: float
    weight: float
    achievable: bool


@dataclass(frozen=True)
class ImpactEntry(_Result):
    hypothetical_grade: float
    resulting_average: float
    impact: float


@dataclass(frozen=True)
class WhatIfResult(_Result):
    current_average: float = 0.0
    new_average: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    grades_needed_for_target: Tuple[GradeNeeded, ...] = ()
    impact_analysis: Tuple[ImpactEntry, ...] = ()


@dataclass(frozen=True)
class PassFailStats(_Result):
    total: int = 0
    passing: int = 0
    failing: int = 0
    pass_rate: float = 0.0
    fail_rate: float = 0.0
    average_passing: float = 0.0
    average_failing: float = 0.0


@dataclass(frozen=True)
class AnalyticsReport(_Result):
    overall_average: float = 0.0
    weighted_average: float = 0.0
    gpa: float = 0.0
    total_grades: int = 0
    passing_grades: int = 0
    failing_grades: int = 0
    pass_rate: float = 0.0
    subjects: Tuple[SubjectSummary, ...] = ()
    statistics: StatisticsSummary = StatisticsSummary()
    trend: TrendResult = TrendResult()
    predictions: Tuple[PredictionResult, ...] = ()
