"""
accelerated.py — Vectorised analytics backend on numpy / scipy / pandas.

Computes the same operation set as PureBackend:
- Averages, GPA and pass/fail counts over numpy arrays
- Descriptive statistics (np.percentile, scipy.stats skew / kurtosis)
- Trend fitting with scipy.stats.linregress
- Per-subject summaries through a pandas groupby
- Recency-weighted predictions and what-if sweeps as array expressions

This module is imported lazily by the gateway; the import itself is the
"load" step and health_check() is the handshake.
"""

import logging
import math
from typing import Any, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd
import scipy
from scipy import stats as sp_stats

from grade_analytics.backends import PureBackend, build_report
from grade_analytics.grading import BOUNDARY_TOLERANCE, MAX_GRADE, MIN_GRADE, PASSING_GRADE, resolve_scale
from grade_analytics.models import (
    AnalyticsReport,
    GradeNeeded,
    ImpactEntry,
    PassFailStats,
    PredictionResult,
    StatisticsSummary,
    SubjectSummary,
    TrendResult,
    WhatIfResult,
)
from grade_analytics.records import GradeRecord
from grade_analytics.stats import STD_EPSILON
from grade_analytics.trend import DEGENERATE_DENOMINATOR, classify_direction, classify_strength
from grade_analytics.whatif import SWEEP_GRADES, TARGET_LADDER

logger = logging.getLogger(__name__)

TOLERANCE = 1e-9


class AcceleratorUnavailable(RuntimeError):
    """The accelerated backend could not be loaded or failed its handshake."""


# ── Helpers ─────────────────────────────────────────────────────────

def _arrays(records: Sequence[GradeRecord]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    values = np.fromiter((r.value for r in records), dtype=float, count=len(records))
    weights = np.fromiter((r.weight for r in records), dtype=float, count=len(records))
    stamps = np.fromiter((r.timestamp for r in records), dtype=np.int64, count=len(records))
    return values, weights, stamps


def _subject_mask(records: Sequence[GradeRecord], subject: str) -> np.ndarray:
    key = (subject or "").strip().lower()
    keys = np.array([r.subject_key for r in records], dtype=object)
    if not key:
        return np.zeros(len(records), dtype=bool)
    return keys == key


def _weighted_mean(values: np.ndarray, weights: np.ndarray) -> float:
    if values.size == 0:
        return 0.0
    total = float(weights.sum())
    if total == 0:
        return float(values.mean())
    return float(np.dot(values, weights) / total)


def _sample_std(values: np.ndarray) -> float:
    if values.size <= 1:
        return 0.0
    return float(values.std(ddof=1))


def _clamp(value: float) -> float:
    return float(np.clip(value, MIN_GRADE, MAX_GRADE))


def _fit(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, float]:
    """(slope, intercept, r_squared) for already-normalised x."""
    n = x.size
    denominator = n * float(np.sum(x * x)) - float(np.sum(x)) ** 2
    if abs(denominator) < DEGENERATE_DENOMINATOR:
        return 0.0, float(y.mean()), math.nan
    fit = sp_stats.linregress(x, y)
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r_squared = float(fit.rvalue) ** 2 if ss_tot > DEGENERATE_DENOMINATOR else 0.0
    return float(fit.slope), float(fit.intercept), r_squared


def _series_slope(stamps: np.ndarray, values: np.ndarray) -> float:
    if values.size < 2:
        return 0.0
    order = np.argsort(stamps, kind="stable")
    x = (stamps[order] - stamps.min()).astype(float)
    slope, _, _ = _fit(x, values[order])
    return slope


def _next_grade(stamps: np.ndarray, values: np.ndarray) -> PredictionResult:
    if values.size == 0:
        return PredictionResult()
    ordered = values[np.argsort(stamps, kind="stable")]
    weights = (np.arange(ordered.size, dtype=float) + 1) ** 2
    predicted = float(np.average(ordered, weights=weights))
    std = _sample_std(ordered)
    return PredictionResult(
        predicted_value=_clamp(predicted),
        confidence=float(np.clip(1 - std / 5, 0.1, 0.9)),
        lower_bound=_clamp(predicted - 2 * std),
        upper_bound=_clamp(predicted + 2 * std),
        method="weighted_average",
    )


def _sweep(average: float, weight: float, new_weight: float) -> Tuple[ImpactEntry, ...]:
    grades = np.array(SWEEP_GRADES, dtype=float)
    denominator = weight + new_weight
    if denominator == 0:
        resulting = grades
    else:
        resulting = (average * weight + grades * new_weight) / denominator
    return tuple(
        ImpactEntry(hypothetical_grade=float(g), resulting_average=float(r), impact=float(r - average))
        for g, r in zip(grades, resulting)
    )


def _needed(average: float, weight: float, targets: np.ndarray, new_weight: float) -> np.ndarray:
    if new_weight <= 0:
        return np.full(targets.shape, np.nan)
    return (targets * (weight + new_weight) - average * weight) / new_weight


def _grade_needed_rows(targets: np.ndarray, needed: np.ndarray, weight: float) -> Tuple[GradeNeeded, ...]:
    achievable = (needed >= MIN_GRADE - BOUNDARY_TOLERANCE) & (needed <= MAX_GRADE + BOUNDARY_TOLERANCE)
    return tuple(
        GradeNeeded(target_average=float(t), grade_needed=float(g), weight=weight, achievable=bool(a))
        for t, g, a in zip(targets, needed, achievable)
    )


# ── Backend ─────────────────────────────────────────────────────────

class NumpyBackend:
    """Array implementation of every AnalyticsBackend operation."""

    name = "numpy"

    def get_version(self) -> str:
        return f"numpy-{np.__version__}/scipy-{scipy.__version__}/pandas-{pd.__version__}"

    # Aggregation

    def average(self, records: Sequence[GradeRecord]) -> float:
        if not records:
            return 0.0
        values, _, _ = _arrays(records)
        return float(values.mean())

    def weighted_average(self, records: Sequence[GradeRecord]) -> float:
        values, weights, _ = _arrays(records)
        return _weighted_mean(values, weights)

    def gpa(self, records: Sequence[GradeRecord], scale=None) -> float:
        if not records:
            return 0.0
        resolved = resolve_scale(scale)
        normalized = (self.weighted_average(records) - 1) / (resolved.max_grade - 1)
        return float(np.clip(normalized * resolved.gpa_max, 0.0, resolved.gpa_max))

    def subject_average(self, records: Sequence[GradeRecord], subject: str) -> float:
        if not records:
            return 0.0
        values, weights, _ = _arrays(records)
        mask = _subject_mask(records, subject)
        return _weighted_mean(values[mask], weights[mask])

    def _frame(self, records: Sequence[GradeRecord]) -> pd.DataFrame:
        return pd.DataFrame({
            "key": [r.subject_key for r in records],
            "subject": [r.subject for r in records],
            "value": [r.value for r in records],
            "weight": [r.weight for r in records],
            "timestamp": [r.timestamp for r in records],
        })

    def get_subjects(self, records: Sequence[GradeRecord]) -> List[str]:
        if not records:
            return []
        first = self._frame(records).groupby("key", sort=True)["subject"].first()
        return [str(s) for s in first.tolist()]

    def _summary(self, subject: str, values: np.ndarray, weights: np.ndarray, stamps: np.ndarray) -> SubjectSummary:
        if values.size == 0:
            return SubjectSummary(subject=subject)
        passing = int((values >= PASSING_GRADE).sum())
        return SubjectSummary(
            subject=subject,
            average=float(values.mean()),
            weighted_average=_weighted_mean(values, weights),
            grade_count=int(values.size),
            total_weight=float(weights.sum()),
            highest=float(values.max()),
            lowest=float(values.min()),
            passing_count=passing,
            failing_count=int(values.size) - passing,
            trend=_series_slope(stamps, values),
            predicted_next=_next_grade(stamps, values).predicted_value,
        )

    def subject_summary(self, records: Sequence[GradeRecord], subject: str) -> SubjectSummary:
        if not records:
            return SubjectSummary(subject=subject)
        values, weights, stamps = _arrays(records)
        mask = _subject_mask(records, subject)
        return self._summary(subject, values[mask], weights[mask], stamps[mask])

    def all_subject_summaries(self, records: Sequence[GradeRecord]) -> List[SubjectSummary]:
        if not records:
            return []
        summaries = []
        for _, group in self._frame(records).groupby("key", sort=True):
            summaries.append(self._summary(
                str(group["subject"].iloc[0]),
                group["value"].to_numpy(dtype=float),
                group["weight"].to_numpy(dtype=float),
                group["timestamp"].to_numpy(dtype=np.int64),
            ))
        return summaries

    def pass_fail_stats(self, records: Sequence[GradeRecord]) -> PassFailStats:
        if not records:
            return PassFailStats()
        values, _, _ = _arrays(records)
        mask = values >= PASSING_GRADE
        passing = values[mask]
        failing = values[~mask]
        total = int(values.size)
        return PassFailStats(
            total=total,
            passing=int(passing.size),
            failing=int(failing.size),
            pass_rate=passing.size / total * 100,
            fail_rate=failing.size / total * 100,
            average_passing=float(passing.mean()) if passing.size else 0.0,
            average_failing=float(failing.mean()) if failing.size else 0.0,
        )

    # Statistics

    def calculate_statistics(self, data: Sequence[float]) -> StatisticsSummary:
        values = np.asarray(list(data), dtype=float)
        n = int(values.size)
        if n == 0:
            return StatisticsSummary()

        mean = float(values.mean())
        variance = float(values.var(ddof=1)) if n > 1 else 0.0
        std = math.sqrt(variance)
        p25, p50, p75, p90 = (float(p) for p in np.percentile(values, [25, 50, 75, 90]))

        unique, counts = np.unique(values, return_counts=True)
        mode: Tuple[float, ...] = ()
        if counts.max() > 1:
            mode = tuple(float(v) for v in unique[counts == counts.max()])

        skewness = 0.0
        if n >= 3 and std > STD_EPSILON:
            skewness = float(sp_stats.skew(values, bias=False))
        kurtosis = 0.0
        if n >= 4 and std > STD_EPSILON:
            kurtosis = float(sp_stats.kurtosis(values, fisher=True, bias=False))

        return StatisticsSummary(
            count=n,
            sum=float(values.sum()),
            mean=mean,
            median=float(np.median(values)),
            mode=mode,
            min=float(values.min()),
            max=float(values.max()),
            range=float(values.max() - values.min()),
            variance=variance,
            std_deviation=std,
            percentile_25=p25,
            percentile_50=p50,
            percentile_75=p75,
            percentile_90=p90,
            iqr=p75 - p25,
            skewness=0.0 if math.isnan(skewness) else skewness,
            kurtosis=0.0 if math.isnan(kurtosis) else kurtosis,
        )

    def calculate_percentile(self, data: Sequence[float], percentile: float) -> float:
        values = np.asarray(list(data), dtype=float)
        if values.size == 0:
            return 0.0
        p = float(np.clip(float(percentile), 0.0, 100.0))
        return float(np.percentile(values, p))

    # Trend

    def calculate_trend(self, series: Iterable[Sequence[float]]) -> TrendResult:
        points = np.asarray([(float(p[0]), float(p[1])) for p in series], dtype=float)
        if points.shape[0] < 2:
            return TrendResult()

        x = points[:, 0] - points[:, 0].min()
        y = points[:, 1]
        order = np.argsort(x, kind="stable")
        slope, intercept, r_squared = _fit(x[order], y[order])
        if math.isnan(r_squared):
            return TrendResult(
                slope=0.0,
                intercept=intercept,
                r_squared=0.0,
                direction="stable",
                strength="none",
                predicted_values=tuple(intercept for _ in range(y.size)),
            )

        return TrendResult(
            slope=slope,
            intercept=intercept,
            r_squared=r_squared,
            direction=classify_direction(slope),
            strength=classify_strength(r_squared),
            predicted_values=tuple(float(v) for v in slope * x + intercept),
        )

    def trend_slope(self, records: Sequence[GradeRecord]) -> float:
        values, _, stamps = _arrays(records)
        return _series_slope(stamps, values)

    # Prediction

    def predict_grade_needed(
        self, current_average: float, current_weight: float, target_average: float, new_weight: float
    ) -> float:
        needed = _needed(current_average, current_weight, np.array([target_average], dtype=float), new_weight)
        return float(needed[0])

    def predict_next_grade(self, records: Sequence[GradeRecord]) -> PredictionResult:
        values, _, stamps = _arrays(records)
        return _next_grade(stamps, values)

    def predict_final_grade(
        self, records: Sequence[GradeRecord], remaining_assessments: int, typical_weight: float = 1.0
    ) -> PredictionResult:
        if not records:
            return PredictionResult()
        values, weights, stamps = _arrays(records)
        forecast = _next_grade(stamps, values)
        remaining = max(0, remaining_assessments)
        future_weight = remaining * max(0.0, typical_weight)

        total = float(weights.sum()) + future_weight
        if total <= 0:
            projected = float(values.mean())
        else:
            projected = (float(np.dot(values, weights)) + forecast.predicted_value * future_weight) / total

        return PredictionResult(
            predicted_value=_clamp(projected),
            confidence=forecast.confidence / (1 + remaining * 0.1),
            lower_bound=max(MIN_GRADE, projected - 1),
            upper_bound=min(MAX_GRADE, projected + 1),
            method="final_projection",
        )

    def pass_probability(self, records: Sequence[GradeRecord], remaining_weight: float) -> float:
        if not records:
            return 0.5
        values, weights, _ = _arrays(records)
        current_weight = float(weights.sum())
        if current_weight <= 0 or remaining_weight <= 0:
            return 1.0 if float(values.mean()) >= PASSING_GRADE else 0.0

        current = float(np.dot(values, weights)) / current_weight
        needed = self.predict_grade_needed(current, current_weight, PASSING_GRADE, remaining_weight)
        if needed <= MIN_GRADE + BOUNDARY_TOLERANCE:
            return 1.0
        if needed > MAX_GRADE + BOUNDARY_TOLERANCE:
            return 0.0
        return float(1 / (1 + np.exp((needed - current) / 2)))

    # What-if

    def calculate_what_if(
        self, records: Sequence[GradeRecord], hypothetical: Sequence[GradeRecord]
    ) -> WhatIfResult:
        if not records and not hypothetical:
            return WhatIfResult()

        values, weights, _ = _arrays(records)
        extra_values, extra_weights, _ = _arrays(hypothetical)
        all_values = np.concatenate([values, extra_values])
        all_weights = np.concatenate([weights, extra_weights])

        current = _weighted_mean(values, weights)
        new = _weighted_mean(all_values, all_weights)
        new_weight = float(all_weights.sum())
        change = new - current
        next_weight = float(extra_weights[0]) if extra_weights.size else 1.0

        targets = np.array(TARGET_LADDER, dtype=float)
        return WhatIfResult(
            current_average=current,
            new_average=new,
            change=change,
            change_percent=change / current * 100 if current != 0 else 0.0,
            grades_needed_for_target=_grade_needed_rows(
                targets, _needed(new, new_weight, targets, next_weight), next_weight
            ),
            impact_analysis=_sweep(new, new_weight, next_weight),
        )

    def generate_impact_analysis(
        self, records: Sequence[GradeRecord], subject: str, weight: float = 1.0
    ) -> Tuple[ImpactEntry, ...]:
        values, weights, _ = _arrays(records)
        mask = _subject_mask(records, subject) if records else np.zeros(0, dtype=bool)
        if not mask.any():
            return tuple(
                ImpactEntry(hypothetical_grade=g, resulting_average=g, impact=0.0) for g in SWEEP_GRADES
            )
        return _sweep(_weighted_mean(values[mask], weights[mask]), float(weights[mask].sum()), weight)

    def grades_for_targets(
        self,
        records: Sequence[GradeRecord],
        subject: str,
        weight: float = 1.0,
        targets: Iterable[float] = TARGET_LADDER,
    ) -> Tuple[GradeNeeded, ...]:
        goal = np.asarray(list(targets), dtype=float)
        values, weights, _ = _arrays(records)
        mask = _subject_mask(records, subject) if records else np.zeros(0, dtype=bool)
        if not mask.any():
            return _grade_needed_rows(goal, goal, weight)
        needed = _needed(
            _weighted_mean(values[mask], weights[mask]), float(weights[mask].sum()), goal, weight
        )
        return _grade_needed_rows(goal, needed, weight)

    def analyze_all_grades(self, records: Sequence[GradeRecord], scale=None) -> AnalyticsReport:
        return build_report(self, records, scale)


# ── Handshake ───────────────────────────────────────────────────────

_SAMPLE = (
    GradeRecord(value=6.0, weight=1.0, subject="Math", timestamp=1_700_000_000_000),
    GradeRecord(value=8.0, weight=2.0, subject="Math", timestamp=1_700_086_400_000),
    GradeRecord(value=4.5, weight=1.0, subject="English", timestamp=1_700_172_800_000),
    GradeRecord(value=7.2, weight=3.0, subject="english", timestamp=1_700_259_200_000),
    GradeRecord(value=9.1, weight=1.0, subject="Biology", timestamp=1_700_345_600_000),
)


def results_close(left: Any, right: Any, tolerance: float = TOLERANCE) -> bool:
    """Compare two results (dataclasses, sequences or scalars) within ``tolerance``."""
    if hasattr(left, "to_dict") and hasattr(right, "to_dict"):
        return results_close(left.to_dict(), right.to_dict(), tolerance)
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            results_close(left[k], right[k], tolerance) for k in left
        )
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            results_close(a, b, tolerance) for a, b in zip(left, right)
        )
    if isinstance(left, bool) or isinstance(right, bool):
        return left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        if math.isnan(left) or math.isnan(right):
            return math.isnan(left) and math.isnan(right)
        return abs(left - right) <= tolerance
    return left == right


def health_check(backend: NumpyBackend, reference=None) -> None:
    """Run a fixed sample through both backends; raise if any result differs."""
    reference = reference or PureBackend()
    values = [r.value for r in _SAMPLE]
    checks = [
        ("weighted_average", (_SAMPLE,)),
        ("calculate_statistics", (values,)),
        ("calculate_trend", ([(r.timestamp, r.value) for r in _SAMPLE],)),
        ("predict_next_grade", (_SAMPLE,)),
        ("all_subject_summaries", (_SAMPLE,)),
        ("calculate_what_if", (_SAMPLE[:3], _SAMPLE[3:])),
    ]
    for name, args in checks:
        got = getattr(backend, name)(*args)
        expected = getattr(reference, name)(*args)
        if not results_close(got, expected):
            raise AcceleratorUnavailable(f"handshake mismatch in {name}")


def load_accelerated_backend() -> NumpyBackend:
    """Build the numpy backend and verify it against the pure backend."""
    backend = NumpyBackend()
    health_check(backend)
    logger.debug("Accelerated backend passed handshake (%s)", backend.get_version())
    return backend
