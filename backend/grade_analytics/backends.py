"""
backends.py — Computation backend interface and the pure Python backend.

Every analytics operation is reachable by name on a backend, so the gateway
can pick the accelerated implementation and fall back to PureBackend one
call at a time. Both backends must return the same result types.
"""

from typing import Iterable, List, Protocol, Sequence, Tuple

from grade_analytics import aggregate, predict, stats, trend, whatif
from grade_analytics.aggregate import filter_subject
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
from grade_analytics.trend import time_series

# Names the gateway dispatches on; every backend implements all of them.
OPERATIONS = (
    "average",
    "weighted_average",
    "gpa",
    "subject_average",
    "get_subjects",
    "subject_summary",
    "all_subject_summaries",
    "pass_fail_stats",
    "calculate_statistics",
    "calculate_percentile",
    "calculate_trend",
    "trend_slope",
    "predict_grade_needed",
    "predict_next_grade",
    "predict_final_grade",
    "pass_probability",
    "calculate_what_if",
    "generate_impact_analysis",
    "grades_for_targets",
    "analyze_all_grades",
)


class AnalyticsBackend(Protocol):
    name: str

    def get_version(self) -> str: ...

    def average(self, records: Sequence[GradeRecord]) -> float: ...

    def weighted_average(self, records: Sequence[GradeRecord]) -> float: ...

    def gpa(self, records: Sequence[GradeRecord], scale=None) -> float: ...

    def subject_average(self, records: Sequence[GradeRecord], subject: str) -> float: ...

    def get_subjects(self, records: Sequence[GradeRecord]) -> List[str]: ...

    def subject_summary(self, records: Sequence[GradeRecord], subject: str) -> SubjectSummary: ...

    def all_subject_summaries(self, records: Sequence[GradeRecord]) -> List[SubjectSummary]: ...

    def pass_fail_stats(self, records: Sequence[GradeRecord]) -> PassFailStats: ...

    def calculate_statistics(self, data: Sequence[float]) -> StatisticsSummary: ...

    def calculate_percentile(self, data: Sequence[float], percentile: float) -> float: ...

    def calculate_trend(self, series: Iterable[Sequence[float]]) -> TrendResult: ...

    def trend_slope(self, records: Sequence[GradeRecord]) -> float: ...

    def predict_grade_needed(
        self, current_average: float, current_weight: float, target_average: float, new_weight: float
    ) -> float: ...

    def predict_next_grade(self, records: Sequence[GradeRecord]) -> PredictionResult: ...

    def predict_final_grade(
        self, records: Sequence[GradeRecord], remaining_assessments: int, typical_weight: float = 1.0
    ) -> PredictionResult: ...

    def pass_probability(self, records: Sequence[GradeRecord], remaining_weight: float) -> float: ...

    def calculate_what_if(
        self, records: Sequence[GradeRecord], hypothetical: Sequence[GradeRecord]
    ) -> WhatIfResult: ...

    def generate_impact_analysis(
        self, records: Sequence[GradeRecord], subject: str, weight: float = 1.0
    ) -> Tuple[ImpactEntry, ...]: ...

    def grades_for_targets(
        self, records: Sequence[GradeRecord], subject: str, weight: float = 1.0,
        targets: Iterable[float] = whatif.TARGET_LADDER,
    ) -> Tuple[GradeNeeded, ...]: ...

    def analyze_all_grades(self, records: Sequence[GradeRecord], scale=None) -> AnalyticsReport: ...


def build_report(backend: AnalyticsBackend, records: Sequence[GradeRecord], scale=None) -> AnalyticsReport:
    """Full dashboard report assembled from a backend's own operations."""
    if not records:
        return AnalyticsReport()

    subjects = backend.all_subject_summaries(records)
    pass_fail = backend.pass_fail_stats(records)
    return AnalyticsReport(
        overall_average=backend.average(records),
        weighted_average=backend.weighted_average(records),
        gpa=backend.gpa(records, scale),
        total_grades=len(records),
        passing_grades=pass_fail.passing,
        failing_grades=pass_fail.failing,
        pass_rate=pass_fail.pass_rate,
        subjects=tuple(subjects),
        statistics=backend.calculate_statistics([r.value for r in records]),
        trend=backend.calculate_trend(time_series(records)),
        predictions=tuple(
            backend.predict_next_grade(filter_subject(records, s.subject)) for s in subjects
        ),
    )


class PureBackend:
    """Plain Python arithmetic over the record sequence. Always available."""

    name = "pure"

    def get_version(self) -> str:
        return "pure-python"

    average = staticmethod(aggregate.average)
    weighted_average = staticmethod(aggregate.weighted_average)
    gpa = staticmethod(aggregate.gpa)
    subject_average = staticmethod(aggregate.subject_average)
    get_subjects = staticmethod(aggregate.get_subjects)
    subject_summary = staticmethod(aggregate.subject_summary)
    all_subject_summaries = staticmethod(aggregate.all_subject_summaries)
    pass_fail_stats = staticmethod(aggregate.pass_fail_stats)

    calculate_statistics = staticmethod(stats.calculate_statistics)
    calculate_percentile = staticmethod(stats.calculate_percentile)

    calculate_trend = staticmethod(trend.calculate_trend)
    trend_slope = staticmethod(trend.trend_slope)

    predict_grade_needed = staticmethod(predict.predict_grade_needed)
    predict_next_grade = staticmethod(predict.predict_next_grade)
    pass_probability = staticmethod(predict.pass_probability)

    calculate_what_if = staticmethod(whatif.calculate_what_if)
    generate_impact_analysis = staticmethod(whatif.generate_impact_analysis)
    grades_for_targets = staticmethod(whatif.grades_for_targets)

    def predict_final_grade(
        self,
        records: Sequence[GradeRecord],
        remaining_assessments: int,
        typical_weight: float = 1.0,
    ) -> PredictionResult:
        return predict.predict_final_grade(records, remaining_assessments, typical_weight)

    def analyze_all_grades(self, records: Sequence[GradeRecord], scale=None) -> AnalyticsReport:
        return build_report(self, records, scale)


def operation(backend: AnalyticsBackend, name: str):
    """Look up an operation by name, refusing anything outside OPERATIONS."""
    if name not in OPERATIONS:
        raise AttributeError(f"unknown analytics operation '{name}'")
    return getattr(backend, name)
