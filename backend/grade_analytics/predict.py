"""
predict.py — Grade forecasting (pure Python path).

- predict_grade_needed: algebraic solve for the grade that reaches a target
- predict_next_grade: recency-weighted forecast of the next grade
- predict_final_grade: projected final average over remaining assessments
- pass_probability: chance of ending at or above the passing average

The next-grade forecast weighs the i-th oldest grade by (i + 1)^2.
"""

import math
from typing import List, Optional, Sequence

from grade_analytics.grading import BOUNDARY_TOLERANCE, MAX_GRADE, MIN_GRADE, PASSING_GRADE, within_scale
from grade_analytics.models import PredictionResult
from grade_analytics.records import GradeRecord
from grade_analytics.stats import sample_std


def clamp_grade(value: float) -> float:
    return max(MIN_GRADE, min(MAX_GRADE, value))


def recency_weights(n: int) -> List[float]:
    return [float((i + 1) ** 2) for i in range(n)]


def predict_grade_needed(
    current_average: float,
    current_weight: float,
    target_average: float,
    new_weight: float,
) -> float:
    """
    Grade x solving (current_average * current_weight + x * new_weight)
    / (current_weight + new_weight) == target_average.

    Returned raw (may fall outside 1–10); NaN when new_weight is not positive.
    """
    if new_weight <= 0:
        return math.nan
    total = current_weight + new_weight
    return (target_average * total - current_average * current_weight) / new_weight


def is_achievable(grade_needed: float) -> bool:
    return within_scale(grade_needed)


def predict_next_grade(records: Sequence[GradeRecord]) -> PredictionResult:
    if not records:
        return PredictionResult()

    ordered = sorted(records, key=lambda r: r.timestamp)
    values = [r.value for r in ordered]
    weights = recency_weights(len(values))
    predicted = sum(v * w for v, w in zip(values, weights)) / sum(weights)
    std = sample_std(values)

    return PredictionResult(
        predicted_value=clamp_grade(predicted),
        confidence=max(0.1, min(0.9, 1 - std / 5)),
        lower_bound=clamp_grade(predicted - 2 * std),
        upper_bound=clamp_grade(predicted + 2 * std),
        method="weighted_average",
    )


def predict_final_grade(
    records: Sequence[GradeRecord],
    remaining_assessments: int,
    typical_weight: float = 1.0,
    next_grade: Optional[PredictionResult] = None,
) -> PredictionResult:
    """Final weighted average if every remaining assessment scores the forecast grade."""
    if not records:
        return PredictionResult()

    forecast = next_grade if next_grade is not None else predict_next_grade(records)
    current_weight = sum(r.weight for r in records)
    current_sum = sum(r.value * r.weight for r in records)
    future_weight = max(0, remaining_assessments) * max(0.0, typical_weight)

    total = current_weight + future_weight
    if total <= 0:
        projected = sum(r.value for r in records) / len(records)
    else:
        projected = (current_sum + forecast.predicted_value * future_weight) / total

    return PredictionResult(
        predicted_value=clamp_grade(projected),
        confidence=forecast.confidence / (1 + max(0, remaining_assessments) * 0.1),
        lower_bound=max(MIN_GRADE, projected - 1),
        upper_bound=min(MAX_GRADE, projected + 1),
        method="final_projection",
    )


def pass_probability(records: Sequence[GradeRecord], remaining_weight: float) -> float:
    """
    Logistic estimate of finishing at or above the passing average, based on
    how far the required grade lies above the current average.
    """
    if not records:
        return 0.5

    current_weight = sum(r.weight for r in records)
    if current_weight <= 0 or remaining_weight <= 0:
        current = sum(r.value for r in records) / len(records)
        return 1.0 if current >= PASSING_GRADE else 0.0

    current_sum = sum(r.value * r.weight for r in records)
    current = current_sum / current_weight
    needed = predict_grade_needed(current, current_weight, PASSING_GRADE, remaining_weight)

    if needed <= MIN_GRADE + BOUNDARY_TOLERANCE:
        return 1.0
    if needed > MAX_GRADE + BOUNDARY_TOLERANCE:
        return 0.0
    return 1 / (1 + math.exp((needed - current) / 2))
