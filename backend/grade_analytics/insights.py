"""
insights.py — Dashboard insights derived from a student's grades.

Series helpers (numpy):
- running weighted average, moving average, exponential moving average
- Pearson correlation, autocorrelation, z-scores, coefficient of variation
- IQR outlier detection, value percentile rank, equal-width histogram

Grade insights:
- distribution over whole-grade buckets 1–10
- improvement between the first and last quarter of the grades
- subjects needing attention, best and worst subject
- study priorities with a score and a reason per subject

generate_all_insights() turns these into structured insight objects with:
id, category, severity, title, narrative, supporting_data, recommendation.
Every insight is a deterministic threshold check.
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from grade_analytics.aggregate import group_by_subject
from grade_analytics.grading import MAX_GRADE, MIN_GRADE, PASSING_GRADE
from grade_analytics.models import SubjectSummary
from grade_analytics.records import GradeRecord, format_grade

ATTENTION_AVERAGE = 6.0
ATTENTION_TREND = -0.1
TARGET_AVERAGE = 6.5


# ── Series helpers ──────────────────────────────────────────────────

def running_average(records: Sequence[GradeRecord]) -> List[Tuple[int, float]]:
    """(timestamp, weighted average so far) after each grade, oldest first."""
    ordered = sorted(records, key=lambda r: r.timestamp)
    result: List[Tuple[int, float]] = []
    running_sum = 0.0
    running_weight = 0.0
    for r in ordered:
        running_sum += r.value * r.weight
        running_weight += r.weight
        result.append((r.timestamp, running_sum / running_weight if running_weight > 0 else r.value))
    return result


def moving_average(data: Sequence[float], window: int) -> List[float]:
    """Trailing mean over ``window`` values; the first values use what is available."""
    if not data or window <= 0:
        return []
    values = np.asarray(data, dtype=float)
    window = min(window, values.size)
    cumulative = np.concatenate([[0.0], np.cumsum(values)])
    result = []
    for i in range(values.size):
        start = max(0, i - window + 1)
        result.append(float((cumulative[i + 1] - cumulative[start]) / (i + 1 - start)))
    return result


def ema(data: Sequence[float], alpha: float) -> List[float]:
    if not data:
        return []
    alpha = min(1.0, max(0.0, alpha))
    result = [float(data[0])]
    for v in data[1:]:
        result.append(alpha * float(v) + (1 - alpha) * result[-1])
    return result


def correlation(first: Sequence[float], second: Sequence[float]) -> float:
    """Pearson r; 0 for mismatched lengths, fewer than 2 points or no spread."""
    if len(first) != len(second) or len(first) < 2:
        return 0.0
    a = np.asarray(first, dtype=float)
    b = np.asarray(second, dtype=float)
    da = a - a.mean()
    db = b - b.mean()
    denominator = math.sqrt(float(np.sum(da * da)) * float(np.sum(db * db)))
    if denominator < 1e-10:
        return 0.0
    return float(np.sum(da * db)) / denominator


def autocorrelation(data: Sequence[float], lag: int) -> float:
    if len(data) <= lag:
        return 0.0
    values = np.asarray(data, dtype=float)
    variance = float(values.var(ddof=1)) if values.size > 1 else 0.0
    if variance == 0:
        return 0.0
    centered = values - values.mean()
    n = values.size - lag
    return float(np.sum(centered[:n] * centered[lag:lag + n])) / (n * variance)


def z_scores(data: Sequence[float]) -> List[float]:
    if not data:
        return []
    values = np.asarray(data, dtype=float)
    std = float(values.std(ddof=1)) if values.size > 1 else 0.0
    if std == 0:
        return [0.0] * values.size
    return [float(z) for z in (values - values.mean()) / std]


def coefficient_of_variation(data: Sequence[float]) -> float:
    """Sample std as a percentage of |mean|; 0 when the mean is 0."""
    if not data:
        return 0.0
    values = np.asarray(data, dtype=float)
    mean = float(values.mean())
    if mean == 0:
        return 0.0
    std = float(values.std(ddof=1)) if values.size > 1 else 0.0
    return std / abs(mean) * 100


def detect_outliers(data: Sequence[float]) -> List[Tuple[int, float]]:
    """(index, value) of points beyond 1.5 IQR from the quartiles; needs 4 points."""
    if len(data) < 4:
        return []
    values = np.asarray(data, dtype=float)
    q25, q75 = np.percentile(values, [25, 75])
    iqr = q75 - q25
    lower, upper = q25 - 1.5 * iqr, q75 + 1.5 * iqr
    return [(i, float(v)) for i, v in enumerate(values) if v < lower or v > upper]


def value_percentile(data: Sequence[float], value: float) -> float:
    """Percentile rank of ``value``; ties (within 0.001) count half."""
    if not data:
        return 0.0
    values = np.asarray(data, dtype=float)
    below = int(np.sum(values < value))
    equal = int(np.sum(np.abs(values - value) < 0.001))
    return (below + 0.5 * equal) / values.size * 100


def histogram(data: Sequence[float], buckets: int = 10) -> List[Dict[str, float]]:
    """Equal-width buckets between min and max; the last bucket includes max."""
    if not data or buckets <= 0:
        return []
    values = np.asarray(data, dtype=float)
    lo, hi = float(values.min()), float(values.max())
    if abs(hi - lo) < 1e-10:
        return [{"start": lo, "end": hi, "count": int(values.size)}]

    size = (hi - lo) / buckets
    index = np.minimum(np.floor((values - lo) / size).astype(int), buckets - 1)
    counts = np.bincount(index, minlength=buckets)
    result = []
    for i in range(buckets):
        start = lo + i * size
        end = hi + 0.001 if i == buckets - 1 else start + size
        result.append({"start": start, "end": end, "count": int(counts[i])})
    return result


# ── Grade insights ──────────────────────────────────────────────────

def grade_distribution(records: Sequence[GradeRecord]) -> Dict[str, int]:
    """Count of grades per whole-grade bucket "1".."10" (values clamped into range)."""
    distribution = {str(i): 0 for i in range(1, 11)}
    for r in records:
        bucket = int(min(MAX_GRADE, max(MIN_GRADE, math.floor(r.value))))
        distribution[str(bucket)] += 1
    return distribution


def improvement(records: Sequence[GradeRecord]) -> float:
    """Average of the newest quarter minus average of the oldest quarter."""
    if len(records) < 2:
        return 0.0
    ordered = [r.value for r in sorted(records, key=lambda r: r.timestamp)]
    quarter = max(1, len(ordered) // 4)
    first = ordered[:quarter]
    last = ordered[-quarter:]
    return sum(last) / len(last) - sum(first) / len(first)


def attention_needed(summaries: Sequence[SubjectSummary]) -> List[SubjectSummary]:
    return [
        s for s in summaries
        if s.weighted_average < ATTENTION_AVERAGE or s.trend < ATTENTION_TREND
    ]


def extreme_subjects(
    summaries: Sequence[SubjectSummary],
) -> Tuple[Optional[SubjectSummary], Optional[SubjectSummary]]:
    """(best, worst) subject by weighted average."""
    if not summaries:
        return None, None
    best = max(summaries, key=lambda s: s.weighted_average)
    worst = min(summaries, key=lambda s: s.weighted_average)
    return best, worst


def _recent_average(grades: Sequence[GradeRecord]) -> Optional[float]:
    """Mean of the last three grades in input order, or None below three grades."""
    if len(grades) < 3:
        return None
    recent = [r.value for r in grades[-3:]]
    return sum(recent) / len(recent)


def _priority_score(avg: float, grades: Sequence[GradeRecord]) -> float:
    score = (10.0 - avg) * 10.0
    score += sum(1 for r in grades if not r.is_passing) * 15.0
    recent = _recent_average(grades)
    if recent is not None and recent < avg:
        score += 10.0
    return score


def _priority_reason(avg: float, grades: Sequence[GradeRecord]) -> str:
    if avg < PASSING_GRADE:
        return "Failing average - immediate attention needed"
    failing = sum(1 for r in grades if not r.is_passing)
    if failing > 0:
        return f"{failing} failing grade(s) affecting average"
    if avg < TARGET_AVERAGE:
        return "Below target average - room for improvement"
    recent = _recent_average(grades)
    if recent is not None and recent < avg - 0.5:
        return "Recent decline detected"
    return "Maintain current performance"


def suggest_priorities(records: Sequence[GradeRecord]) -> List[Dict[str, Any]]:
    """Per-subject study priority, highest score first (ties keep subject order)."""
    priorities = []
    for key, grades in group_by_subject(records).items():
        avg = sum(r.value for r in grades) / len(grades)
        priorities.append({
            "subject": grades[0].subject,
            "key": key,
            "score": _priority_score(avg, grades),
            "reason": _priority_reason(avg, grades),
        })
    priorities.sort(key=lambda p: -p["score"])
    return priorities


def skewness_label(skewness: float) -> str:
    if not skewness or abs(skewness) < 0.5:
        return "symmetric"
    return "right-skewed" if skewness > 0 else "left-skewed"


def kurtosis_label(kurtosis: float) -> str:
    if not kurtosis:
        return "normal"
    return "heavy tails" if kurtosis > 0 else "light tails"


# ── Insight objects ─────────────────────────────────────────────────

def _insight(
    insight_id: str,
    category: str,
    severity: str,
    title: str,
    narrative: str,
    supporting_data: Dict[str, Any],
    recommendation: str = "",
) -> Dict[str, Any]:
    return {
        "id": insight_id,
        "category": category,
        "severity": severity,
        "title": title,
        "narrative": narrative,
        "supporting_data": supporting_data,
        "recommendation": recommendation,
    }


def generate_all_insights(engine, records: Sequence[GradeRecord], remaining_weight: float = 1.0) -> Dict[str, Any]:
    """
    Rule-based insights over one student's grades, computed through
    ``engine`` so the cache and accelerated path apply.
    """
    if not records:
        return {"insights": [], "priorities": [], "distribution": grade_distribution([])}

    summaries = list(engine.all_subject_summaries(records))
    overall = engine.weighted_average(records)
    stats = engine.calculate_statistics([r.value for r in records])
    probability = engine.pass_probability(records, remaining_weight)
    insights: List[Dict[str, Any]] = []

    # Rule 1: failing overall average
    if overall < PASSING_GRADE:
        insights.append(_insight(
            "perf_failing_average", "performance", "critical",
            "Failing Average",
            f"The weighted average is {format_grade(overall, 2)}, below the passing grade "
            f"of {format_grade(PASSING_GRADE)}.",
            {"weighted_average": overall, "passing_grade": PASSING_GRADE},
            "Focus on the subjects listed under study priorities first.",
        ))

    # Rule 2: subjects needing attention
    for s in attention_needed(summaries):
        severity = "critical" if s.weighted_average < PASSING_GRADE else "warning"
        insights.append(_insight(
            f"attention_{s.subject.strip().lower()}", "at_risk", severity,
            f"{s.subject} Needs Attention",
            f"{s.subject} stands at {format_grade(s.weighted_average, 2)} over "
            f"{s.grade_count} grade(s) with {s.failing_count} failing.",
            s.to_dict(),
            "Plan extra practice for this subject before the next assessment.",
        ))

    # Rule 3: best and worst subject
    best, worst = extreme_subjects(summaries)
    if best is not None and worst is not None and best.subject != worst.subject:
        insights.append(_insight(
            "perf_subject_spread", "performance", "info",
            "Strongest and Weakest Subject",
            f"{best.subject} is strongest at {format_grade(best.weighted_average, 2)}; "
            f"{worst.subject} is weakest at {format_grade(worst.weighted_average, 2)}.",
            {"best": best.to_dict(), "worst": worst.to_dict()},
        ))

    # Rule 4: improvement over the period
    delta = improvement(records)
    if abs(delta) >= 0.5:
        improving = delta > 0
        insights.append(_insight(
            "trend_improvement" if improving else "trend_decline",
            "positive" if improving else "performance",
            "info" if improving else "warning",
            "Grades Improving" if improving else "Grades Declining",
            f"Recent grades average {format_grade(abs(delta), 2)} points "
            f"{'higher' if improving else 'lower'} than the earliest ones.",
            {"improvement": delta},
        ))

    # Rule 5: outliers
    outliers = detect_outliers([r.value for r in records])
    if outliers:
        insights.append(_insight(
            "stats_outliers", "statistics", "info",
            "Unusual Grades",
            f"{len(outliers)} grade(s) fall far outside the usual range "
            f"({skewness_label(stats.skewness)} distribution).",
            {"outliers": [{"index": i, "value": v} for i, v in outliers]},
        ))

    # Rule 6: pass probability
    if probability < 0.5:
        insights.append(_insight(
            "risk_pass_probability", "at_risk", "critical" if probability < 0.2 else "warning",
            "Passing At Risk",
            f"Estimated chance of finishing at or above {format_grade(PASSING_GRADE)} "
            f"is {probability * 100:.0f}%.",
            {"pass_probability": probability, "remaining_weight": remaining_weight},
            "Aim for the grades in the target calculator on the next assessments.",
        ))

    return {
        "insights": insights,
        "priorities": suggest_priorities(records),
        "distribution": grade_distribution(records),
        "running_average": running_average(records),
        "pass_probability": probability,
    }
