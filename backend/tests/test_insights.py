"""
Tests for grade_analytics/insights.py — series helpers, priorities, rule-based insights.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from grade_analytics.cache import ResultCache
from grade_analytics.engine import AnalyticsEngine
from grade_analytics.gateway import AcceleratedGateway
from grade_analytics.insights import (
    attention_needed,
    autocorrelation,
    coefficient_of_variation,
    correlation,
    detect_outliers,
    ema,
    extreme_subjects,
    generate_all_insights,
    grade_distribution,
    histogram,
    improvement,
    kurtosis_label,
    moving_average,
    running_average,
    skewness_label,
    suggest_priorities,
    value_percentile,
    z_scores,
)
from grade_analytics.models import SubjectSummary
from grade_analytics.records import GradeRecord


@pytest.fixture
def engine():
    return AnalyticsEngine(gateway=AcceleratedGateway(loader=None), cache=ResultCache())


@pytest.fixture
def struggling():
    """A student failing English and doing well in Math."""
    return [
        GradeRecord(value=4.0, weight=1, subject="English", timestamp=100),
        GradeRecord(value=4.5, weight=2, subject="English", timestamp=200),
        GradeRecord(value=3.5, weight=1, subject="English", timestamp=300),
        GradeRecord(value=8.0, weight=1, subject="Math", timestamp=150),
        GradeRecord(value=8.5, weight=1, subject="Math", timestamp=250),
    ]


class TestSeriesHelpers:
    """Tests for numeric series helpers."""

    def test_running_average(self):
        records = [
            GradeRecord(value=8.0, weight=1, timestamp=2),
            GradeRecord(value=6.0, weight=1, timestamp=1),
        ]
        assert running_average(records) == [(1, 6.0), (2, 7.0)]

    def test_running_average_zero_weight(self):
        assert running_average([GradeRecord(value=5.0, weight=0)]) == [(0, 5.0)]

    def test_moving_average(self):
        assert moving_average([1, 2, 3, 4], 2) == pytest.approx([1.0, 1.5, 2.5, 3.5])
        assert moving_average([], 3) == []
        assert moving_average([1, 2], 0) == []

    def test_ema(self):
        assert ema([2, 4], 0.5) == pytest.approx([2.0, 3.0])
        assert ema([2, 4], 5) == pytest.approx([2.0, 4.0])

    def test_correlation(self):
        assert correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert correlation([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)
        assert correlation([1, 2], [1, 2, 3]) == 0.0
        assert correlation([1, 1, 1], [1, 2, 3]) == 0.0

    def test_autocorrelation(self):
        assert autocorrelation([1, 2], 5) == 0.0
        assert autocorrelation([3, 3, 3], 1) == 0.0
        assert autocorrelation([1, 5, 1, 5, 1, 5], 1) < 0

    def test_z_scores(self):
        assert z_scores([5, 5]) == [0.0, 0.0]
        assert z_scores([4, 6]) == pytest.approx([-0.70710678, 0.70710678])

    def test_coefficient_of_variation(self):
        assert coefficient_of_variation([0, 0]) == 0.0
        assert coefficient_of_variation([4, 6]) == pytest.approx(1.41421356 / 5 * 100)

    def test_detect_outliers(self):
        assert detect_outliers([6, 6.5, 7, 7.5, 1.0]) == [(4, 1.0)]
        assert detect_outliers([1, 2, 3]) == []

    def test_value_percentile(self):
        assert value_percentile([1, 2, 3, 4], 3) == pytest.approx(62.5)
        assert value_percentile([], 3) == 0.0

    def test_histogram(self):
        buckets = histogram([1, 2, 3, 3.5, 10], 3)
        assert [b["count"] for b in buckets] == [4, 0, 1]
        assert histogram([5, 5], 4) == [{"start": 5.0, "end": 5.0, "count": 2}]

    def test_labels(self):
        assert skewness_label(0.1) == "symmetric"
        assert skewness_label(1.2) == "right-skewed"
        assert skewness_label(-1.2) == "left-skewed"
        assert kurtosis_label(0.0) == "normal"
        assert kurtosis_label(1.0) == "heavy tails"


class TestGradeInsights:
    """Tests for grade-level insight helpers."""

    def test_distribution(self, struggling):
        dist = grade_distribution(struggling)
        assert dist["4"] == 2
        assert dist["3"] == 1
        assert dist["8"] == 2
        assert sum(dist.values()) == 5
        assert grade_distribution([GradeRecord(value=0.4), GradeRecord(value=10.0)])["1"] == 1

    def test_improvement(self):
        records = [GradeRecord(value=v, timestamp=i) for i, v in enumerate([5, 5, 6, 6, 7, 7, 8, 8])]
        assert improvement(records) == pytest.approx(3.0)
        assert improvement(records[:1]) == 0.0

    def test_attention_needed(self, engine, struggling):
        summaries = engine.all_subject_summaries(struggling)
        flagged = attention_needed(summaries)
        assert [s.subject for s in flagged] == ["English"]

    def test_extreme_subjects(self, engine, struggling):
        best, worst = extreme_subjects(engine.all_subject_summaries(struggling))
        assert best.subject == "Math"
        assert worst.subject == "English"
        assert extreme_subjects([]) == (None, None)

    def test_attention_for_declining_trend(self):
        summary = SubjectSummary(subject="Art", weighted_average=7.0, trend=-0.5)
        assert attention_needed([summary]) == [summary]

    def test_priorities(self, struggling):
        priorities = suggest_priorities(struggling)
        assert [p["subject"] for p in priorities] == ["English", "Math"]
        english = priorities[0]
        # (10 - 4) * 10 + 3 failing * 15 ; recent average equals the average
        assert english["score"] == pytest.approx(60 + 45)
        assert english["reason"] == "Failing average - immediate attention needed"
        assert priorities[1]["reason"] == "Maintain current performance"

    def test_priority_reasons(self):
        one_fail = [GradeRecord(value=5.0, subject="A"), GradeRecord(value=9.0, subject="A")]
        assert suggest_priorities(one_fail)[0]["reason"] == "1 failing grade(s) affecting average"
        low = [GradeRecord(value=6.0, subject="B"), GradeRecord(value=6.2, subject="B")]
        assert suggest_priorities(low)[0]["reason"] == "Below target average - room for improvement"
        decline = [GradeRecord(value=v, subject="C") for v in (9.5, 9.5, 9.5, 7.0, 7.0, 7.0)]
        assert suggest_priorities(decline)[0]["reason"] == "Recent decline detected"


class TestGenerateAllInsights:
    """Tests for generate_all_insights."""

    def test_empty(self, engine):
        result = generate_all_insights(engine, [])
        assert result["insights"] == []
        assert result["priorities"] == []

    def test_struggling_student(self, engine, struggling):
        result = generate_all_insights(engine, struggling, remaining_weight=1.0)
        ids = {i["id"] for i in result["insights"]}
        assert "attention_english" in ids
        assert "perf_subject_spread" in ids
        for insight in result["insights"]:
            assert set(insight) == {
                "id", "category", "severity", "title", "narrative", "supporting_data", "recommendation",
            }
        assert result["priorities"][0]["subject"] == "English"
        assert len(result["running_average"]) == 5
        assert 0.0 <= result["pass_probability"] <= 1.0

    def test_failing_average_flagged(self, engine):
        records = [GradeRecord(value=3.0, weight=1), GradeRecord(value=4.0, weight=1)]
        result = generate_all_insights(engine, records, remaining_weight=1.0)
        ids = {i["id"] for i in result["insights"]}
        assert "perf_failing_average" in ids
        assert "risk_pass_probability" in ids
