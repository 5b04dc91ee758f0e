"""
grading.py — Grading scale constants and GPA scale configuration.

The gradebook uses the Dutch 1–10 scale:
  1.0 is the lowest possible grade, 10.0 the highest, 5.5 passes.

Also provides the status bands the dashboard colours grades with
(failing / passing / excellent) and the typed GPA scale used by the
aggregator.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional


MIN_GRADE = 1.0
MAX_GRADE = 10.0
PASSING_GRADE = 5.5
EXCELLENT_GRADE = 8.0

# Computed grades within this distance of a scale bound count as on the bound.
BOUNDARY_TOLERANCE = 1e-9

# Status bands (min_grade, status, description), ordered high to low.
GRADE_BANDS = [
    (EXCELLENT_GRADE, "excellent", "Excellent"),
    (PASSING_GRADE, "passing", "Sufficient"),
    (MIN_GRADE, "failing", "Insufficient"),
]


@dataclass(frozen=True)
class GpaScale:
    """Scale used to normalise a weighted average onto a GPA range."""

    max_grade: float = MAX_GRADE
    passing_grade: float = PASSING_GRADE
    gpa_max: float = 4.0

    def __post_init__(self) -> None:
        if self.max_grade <= MIN_GRADE:
            raise ValueError(f"max_grade must be greater than {MIN_GRADE}, got {self.max_grade}")
        if self.gpa_max <= 0:
            raise ValueError(f"gpa_max must be positive, got {self.gpa_max}")

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "GpaScale":
        """Merge recognised options over the defaults; unknown keys are ignored."""
        if not options:
            return cls()
        known = {f.name for f in fields(cls)}
        merged = {k: float(v) for k, v in options.items() if k in known and v is not None}
        return cls(**merged)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def resolve_scale(scale) -> GpaScale:
    """Accept a GpaScale, a mapping of options, or None."""
    if isinstance(scale, GpaScale):
        return scale
    return GpaScale.from_mapping(scale)


def is_passing(value: float) -> bool:
    return value >= PASSING_GRADE


def within_scale(value: float) -> bool:
    """True when a computed grade lies on the 1–10 scale, up to rounding noise. NaN is never on it."""
    return MIN_GRADE - BOUNDARY_TOLERANCE <= value <= MAX_GRADE + BOUNDARY_TOLERANCE


def grade_status(value: Optional[float]) -> str:
    """Return the status band for a grade, or "-" when there is no grade."""
    if value is None:
        return "-"
    for min_grade, status, _ in GRADE_BANDS:
        if value >= min_grade:
            return status
    return "failing"


def get_grade_bands() -> List[Dict[str, Any]]:
    """Return the status bands for legend/reference."""
    bands = []
    for idx, (min_grade, status, desc) in enumerate(GRADE_BANDS):
        max_grade = MAX_GRADE if idx == 0 else GRADE_BANDS[idx - 1][0] - 0.01
        bands.append({
            "min": min_grade,
            "max": round(max_grade, 2),
            "status": status,
            "description": desc,
        })
    return bands
