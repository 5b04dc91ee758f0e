"""
aggregate.py — Averages, GPA and per-subject summaries (pure Python path).

Computes:
- Simple and weighted averages
- GPA normalisation onto a configurable scale
- Per-subject weighted averages and full summaries (case-insensitive subjects)
- Pass/fail counts and rates
"""

from typing import Dict, List, Optional, Sequence

from grade_analytics.grading import resolve_scale
from grade_analytics.models import PassFailStats, SubjectSummary
from grade_analytics.predict import predict_next_grade
from grade_analytics.records import GradeRecord
from grade_analytics.trend import trend_slope


# ── Helpers ─────────────────────────────────────────────────────────

def _subject_key(subject: Optional[str]) -> str:
    return (subject or "").strip().lower()


def filter_subject(records: Sequence[GradeRecord], subject: Optional[str]) -> List[GradeRecord]:
    key = _subject_key(subject)
    if not key:
        return []
    return [r for r in records if r.subject_key == key]


def total_weight(records: Sequence[GradeRecord]) -> float:
    return sum(r.weight for r in records)


def group_by_subject(records: Sequence[GradeRecord]) -> Dict[str, List[GradeRecord]]:
    """Records grouped by lowercased subject, keys sorted, input order kept within a group."""
    groups: Dict[str, List[GradeRecord]] = {}
    for r in records:
        groups.setdefault(r.subject_key, []).append(r)
    return dict(sorted(groups.items()))


# ── Averages ────────────────────────────────────────────────────────

def average(records: Sequence[GradeRecord]) -> float:
    if not records:
        return 0.0
    return sum(r.value for r in records) / len(records)


def weighted_average(records: Sequence[GradeRecord]) -> float:
    if not records:
        return 0.0
    weight = total_weight(records)
    if weight == 0:
        return average(records)
    return sum(r.value * r.weight for r in records) / weight


def gpa(records: Sequence[GradeRecord], scale=None) -> float:
    """Weighted average mapped from [1, max_grade] onto [0, gpa_max]."""
    if not records:
        return 0.0
    resolved = resolve_scale(scale)
    normalized = (weighted_average(records) - 1) / (resolved.max_grade - 1)
    return max(0.0, min(resolved.gpa_max, normalized * resolved.gpa_max))


def subject_average(records: Sequence[GradeRecord], subject: str) -> float:
    return weighted_average(filter_subject(records, subject))


# ── Subjects ────────────────────────────────────────────────────────

def get_subjects(records: Sequence[GradeRecord]) -> List[str]:
    """Distinct subjects (case-insensitive), first-seen spelling, sorted."""
    return [group[0].subject for group in group_by_subject(records).values()]


def subject_summary(records: Sequence[GradeRecord], subject: str) -> SubjectSummary:
    matching = filter_subject(records, subject)
    if not matching:
        return SubjectSummary(subject=subject)

    values = [r.value for r in matching]
    passing = sum(1 for r in matching if r.is_passing)
    return SubjectSummary(
        subject=subject,
        average=average(matching),
        weighted_average=weighted_average(matching),
        grade_count=len(matching),
        total_weight=total_weight(matching),
        highest=max(values),
        lowest=min(values),
        passing_count=passing,
        failing_count=len(matching) - passing,
        trend=trend_slope(matching),
        predicted_next=predict_next_grade(matching).predicted_value,
    )


def all_subject_summaries(records: Sequence[GradeRecord]) -> List[SubjectSummary]:
    return [subject_summary(records, name) for name in get_subjects(records)]


def pass_fail_stats(records: Sequence[GradeRecord]) -> PassFailStats:
    if not records:
        return PassFailStats()
    passing = [r.value for r in records if r.is_passing]
    failing = [r.value for r in records if not r.is_passing]
    total = len(records)
    return PassFailStats(
        total=total,
        passing=len(passing),
        failing=len(failing),
        pass_rate=len(passing) / total * 100,
        fail_rate=len(failing) / total * 100,
        average_passing=sum(passing) / len(passing) if passing else 0.0,
        average_failing=sum(failing) / len(failing) if failing else 0.0,
    )
