"""
whatif.py — What-if simulation over hypothetical grades (pure Python path).

- calculate_what_if: effect of adding hypothetical grades to the record set
- generate_impact_analysis: resulting subject average for every grade 1.0–10.0
- grades_for_targets: grade needed in one subject for each target average
"""

from typing import Iterable, List, Sequence, Tuple

from grade_analytics.aggregate import filter_subject, total_weight, weighted_average
from grade_analytics.models import GradeNeeded, ImpactEntry, WhatIfResult
from grade_analytics.predict import is_achievable, predict_grade_needed
from grade_analytics.records import GradeRecord

TARGET_LADDER = (5.5, 6.0, 6.5, 7.0, 7.5, 8.0)

# 1.0, 1.5, ... 10.0 without accumulating float error
SWEEP_GRADES = tuple(k / 10 for k in range(10, 101, 5))


def _grade_needed(average: float, weight: float, target: float, new_weight: float) -> GradeNeeded:
    needed = predict_grade_needed(average, weight, target, new_weight)
    return GradeNeeded(
        target_average=target,
        grade_needed=needed,
        weight=new_weight,
        achievable=is_achievable(needed),
    )


def _impact_sweep(average: float, weight: float, new_weight: float) -> Tuple[ImpactEntry, ...]:
    entries: List[ImpactEntry] = []
    for grade in SWEEP_GRADES:
        denominator = weight + new_weight
        if denominator == 0:
            resulting = grade
        else:
            resulting = (average * weight + grade * new_weight) / denominator
        entries.append(ImpactEntry(
            hypothetical_grade=grade,
            resulting_average=resulting,
            impact=resulting - average,
        ))
    return tuple(entries)


def calculate_what_if(
    records: Sequence[GradeRecord],
    hypothetical: Sequence[GradeRecord],
) -> WhatIfResult:
    """
    Compare the current weighted average with the one after ``hypothetical``
    grades are added, then solve the target ladder and sweep the grade scale
    against the new average.
    """
    if not records and not hypothetical:
        return WhatIfResult()

    combined = list(records) + list(hypothetical)
    current = weighted_average(records)
    new = weighted_average(combined)
    new_weight = total_weight(combined)
    change = new - current

    next_weight = hypothetical[0].weight if hypothetical else 1.0

    return WhatIfResult(
        current_average=current,
        new_average=new,
        change=change,
        change_percent=change / current * 100 if current != 0 else 0.0,
        grades_needed_for_target=tuple(
            _grade_needed(new, new_weight, target, next_weight) for target in TARGET_LADDER
        ),
        impact_analysis=_impact_sweep(new, new_weight, next_weight),
    )


def generate_impact_analysis(
    records: Sequence[GradeRecord],
    subject: str,
    weight: float = 1.0,
) -> Tuple[ImpactEntry, ...]:
    """Resulting subject average for each sweep grade at the given weight."""
    matching = filter_subject(records, subject)
    if not matching:
        return tuple(
            ImpactEntry(hypothetical_grade=g, resulting_average=g, impact=0.0)
            for g in SWEEP_GRADES
        )
    return _impact_sweep(weighted_average(matching), total_weight(matching), weight)


def grades_for_targets(
    records: Sequence[GradeRecord],
    subject: str,
    weight: float = 1.0,
    targets: Iterable[float] = TARGET_LADDER,
) -> Tuple[GradeNeeded, ...]:
    matching = filter_subject(records, subject)
    if not matching:
        return tuple(
            GradeNeeded(
                target_average=t,
                grade_needed=t,
                weight=weight,
                achievable=is_achievable(t),
            )
            for t in targets
        )
    average = weighted_average(matching)
    current_weight = total_weight(matching)
    return tuple(_grade_needed(average, current_weight, t, weight) for t in targets)
