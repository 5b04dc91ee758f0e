"""
engine.py — The analytics engine the API talks to.

AnalyticsEngine owns one ResultCache and one AcceleratedGateway. Every
operation:
  1. returns the neutral result straight away for empty input
  2. looks the call up in the cache
  3. otherwise runs it through the gateway (accelerated first, pure fallback)

Collections come back as tuples so cached results cannot be mutated.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from grade_analytics.cache import DEFAULT_TTL_MS, ResultCache
from grade_analytics.gateway import AcceleratedGateway, default_loader
from grade_analytics.grading import GpaScale, resolve_scale
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
from grade_analytics.whatif import SWEEP_GRADES, TARGET_LADDER

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    def __init__(
        self,
        gateway: Optional[AcceleratedGateway] = None,
        cache: Optional[ResultCache] = None,
        scale=None,
    ):
        self.gateway = gateway or AcceleratedGateway()
        self.cache = cache or ResultCache()
        self.scale: GpaScale = resolve_scale(scale)

    def _run(self, name: str, *args: Any) -> Any:
        def compute():
            result = self.gateway.call(name, *args)
            return tuple(result) if isinstance(result, list) else result

        return self.cache.get_or_compute(self.cache.make_key(name, *args), compute)

    # ── Lifecycle ───────────────────────────────────────────────────

    async def init(self) -> bool:
        return await self.gateway.init()

    def is_available(self) -> bool:
        return self.gateway.is_available()

    def get_version(self) -> str:
        return self.gateway.get_version()

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def info(self) -> Dict[str, Any]:
        return {
            "available": self.is_available(),
            "version": self.get_version(),
            "state": self.gateway.state.value,
            "backend": self.gateway.backend_name,
            "scale": self.scale.to_dict(),
            "cache": self.cache_stats(),
        }

    # ── Aggregation ─────────────────────────────────────────────────

    def average(self, records: Sequence[GradeRecord]) -> float:
        if not records:
            return 0.0
        return self._run("average", tuple(records))

    def weighted_average(self, records: Sequence[GradeRecord]) -> float:
        if not records:
            return 0.0
        return self._run("weighted_average", tuple(records))

    def gpa(self, records: Sequence[GradeRecord], scale=None) -> float:
        if not records:
            return 0.0
        resolved = self.scale if scale is None else resolve_scale(scale)
        return self._run("gpa", tuple(records), resolved)

    def subject_average(self, records: Sequence[GradeRecord], subject: str) -> float:
        if not records or not (subject or "").strip():
            return 0.0
        return self._run("subject_average", tuple(records), subject)

    def get_subjects(self, records: Sequence[GradeRecord]) -> Tuple[str, ...]:
        if not records:
            return ()
        return self._run("get_subjects", tuple(records))

    def subject_summary(self, records: Sequence[GradeRecord], subject: str) -> SubjectSummary:
        if not records:
            return SubjectSummary(subject=subject)
        return self._run("subject_summary", tuple(records), subject)

    def all_subject_summaries(self, records: Sequence[GradeRecord]) -> Tuple[SubjectSummary, ...]:
        if not records:
            return ()
        return self._run("all_subject_summaries", tuple(records))

    def pass_fail_stats(self, records: Sequence[GradeRecord]) -> PassFailStats:
        if not records:
            return PassFailStats()
        return self._run("pass_fail_stats", tuple(records))

    # ── Statistics / trend ──────────────────────────────────────────

    def calculate_statistics(self, data: Iterable[float]) -> StatisticsSummary:
        values = tuple(float(v) for v in data)
        if not values:
            return StatisticsSummary()
        return self._run("calculate_statistics", values)

    def calculate_percentile(self, data: Iterable[float], percentile: float) -> float:
        values = tuple(float(v) for v in data)
        if not values:
            return 0.0
        return self._run("calculate_percentile", values, float(percentile))

    def calculate_trend(self, series: Iterable[Sequence[float]]) -> TrendResult:
        points = tuple((float(p[0]), float(p[1])) for p in series)
        if len(points) < 2:
            return TrendResult()
        return self._run("calculate_trend", points)

    def trend_slope(self, records: Sequence[GradeRecord]) -> float:
        if len(records) < 2:
            return 0.0
        return self._run("trend_slope", tuple(records))

    # ── Prediction / what-if ────────────────────────────────────────

    def predict_grade_needed(
        self,
        current_average: float,
        current_weight: float,
        target_average: float,
        new_weight: float,
    ) -> float:
        return self._run(
            "predict_grade_needed",
            float(current_average), float(current_weight), float(target_average), float(new_weight),
        )

    def predict_next_grade(self, records: Sequence[GradeRecord]) -> PredictionResult:
        if not records:
            return PredictionResult()
        return self._run("predict_next_grade", tuple(records))

    def predict_final_grade(
        self,
        records: Sequence[GradeRecord],
        remaining_assessments: int,
        typical_weight: float = 1.0,
    ) -> PredictionResult:
        if not records:
            return PredictionResult()
        return self._run("predict_final_grade", tuple(records), int(remaining_assessments), float(typical_weight))

    def pass_probability(self, records: Sequence[GradeRecord], remaining_weight: float) -> float:
        if not records:
            return 0.5
        return self._run("pass_probability", tuple(records), float(remaining_weight))

    def calculate_what_if(
        self,
        records: Sequence[GradeRecord],
        hypothetical: Sequence[GradeRecord],
    ) -> WhatIfResult:
        if not records and not hypothetical:
            return WhatIfResult()
        return self._run("calculate_what_if", tuple(records), tuple(hypothetical))

    def generate_impact_analysis(
        self,
        records: Sequence[GradeRecord],
        subject: str,
        weight: float = 1.0,
    ) -> Tuple[ImpactEntry, ...]:
        if not records:
            return tuple(
                ImpactEntry(hypothetical_grade=g, resulting_average=g, impact=0.0) for g in SWEEP_GRADES
            )
        return self._run("generate_impact_analysis", tuple(records), subject, float(weight))

    def grades_for_targets(
        self,
        records: Sequence[GradeRecord],
        subject: str,
        weight: float = 1.0,
        targets: Iterable[float] = TARGET_LADDER,
    ) -> Tuple[GradeNeeded, ...]:
        goals = tuple(float(t) for t in targets)
        return self._run("grades_for_targets", tuple(records), subject, float(weight), goals)

    def analyze_all_grades(self, records: Sequence[GradeRecord]) -> AnalyticsReport:
        if not records:
            return AnalyticsReport()
        return self._run("analyze_all_grades", tuple(records), self.scale)


def build_engine(
    acceleration: bool = True,
    cache_enabled: bool = True,
    cache_ttl_ms: int = DEFAULT_TTL_MS,
    scale=None,
) -> AnalyticsEngine:
    """Default wiring: numpy gateway (unless disabled) plus a TTL cache."""
    gateway = AcceleratedGateway(loader=default_loader if acceleration else None)
    cache = ResultCache(ttl_ms=cache_ttl_ms, enabled=cache_enabled)
    logger.debug(
        "Building analytics engine (acceleration=%s, cache=%s, ttl=%sms)",
        acceleration, cache_enabled, cache_ttl_ms,
    )
    return AnalyticsEngine(gateway=gateway, cache=cache, scale=scale)
