"""
records.py — Grade record model and raw-row ingestion.

Supports:
- The immutable GradeRecord value every computation consumes
- Grade string parsing with both "." and "," decimal separators
- Display formatting with "," as decimal separator
- Grade validation against the 1–10 scale
- Building records from raw extracted rows with fuzzy column mapping
"""

import math
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from grade_analytics.grading import MAX_GRADE, MIN_GRADE, is_passing

DEFAULT_SUBJECT = "Unknown"

# Column name variations seen in scraped gradebook rows
COLUMN_ALIASES = {
    "value": ["value", "grade", "cijfer", "score", "resultaat"],
    "weight": ["weight", "weging", "wegingsfactor", "factor"],
    "subject": ["subject", "vak", "titel", "course"],
    "description": ["description", "omschrijving", "subtitel", "title"],
    "timestamp": ["timestamp", "date", "datum", "time"],
}

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class GradeRecord:
    """A single grade as the analytics engine sees it."""

    value: float
    weight: float = 1.0
    subject: str = DEFAULT_SUBJECT
    description: str = ""
    timestamp: int = 0
    is_passing: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        if not isinstance(self.subject, str) or not self.subject.strip():
            raise ValueError("subject must be a non-empty string")
        if self.weight < 0:
            raise ValueError(f"weight must not be negative, got {self.weight}")
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "weight", float(self.weight))
        object.__setattr__(self, "timestamp", int(self.timestamp))
        object.__setattr__(self, "is_passing", is_passing(self.value))

    @property
    def subject_key(self) -> str:
        return self.subject.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GradeRecord":
        """Build a record from a JSON-style mapping. ``is_passing`` is always re-derived."""
        if "value" not in data:
            raise ValueError("grade is missing 'value'")
        weight = data.get("weight")
        return cls(
            value=float(data["value"]),
            weight=1.0 if weight is None else float(weight),
            subject=str(data.get("subject") or DEFAULT_SUBJECT),
            description=str(data.get("description") or ""),
            timestamp=int(data.get("timestamp") or 0),
        )


# ── Parsing / formatting ────────────────────────────────────────────

def parse_grade_value(raw: Any) -> float:
    """
    Parse a grade from display text. Accepts "7,5" as well as "7.5" and
    ignores trailing text ("8,0*"). Returns NaN when nothing parses.
    """
    if raw is None or isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace(",", ".", 1)
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return math.nan
    return float(match.group(1))


def format_grade(value: Optional[float], decimals: int = 1) -> str:
    """Render a grade with a fixed number of decimals and "," as separator."""
    if value is None:
        return "-"
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "-"
    if math.isnan(v):
        return "-"
    return f"{v:.{max(0, int(decimals))}f}".replace(".", ",")


def validate_grade(raw: Any) -> bool:
    """A grade is valid when it parses and lies within the 1–10 scale."""
    value = parse_grade_value(raw)
    return not math.isnan(value) and MIN_GRADE <= value <= MAX_GRADE


# ── Row ingestion ───────────────────────────────────────────────────

def _find_col(df: pd.DataFrame, aliases: List[str]) -> Optional[str]:
    """Find the first column matching any alias (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    for a in aliases:
        if a.lower() in cols_lower:
            return cols_lower[a.lower()]
    return None


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """Return { expected_field: actual_column_name_or_None }."""
    return {name: _find_col(df, aliases) for name, aliases in COLUMN_ALIASES.items()}


def _is_missing(raw: Any) -> bool:
    if raw is None:
        return True
    try:
        return bool(pd.isna(raw))
    except (TypeError, ValueError):
        return False


def _parse_weight(raw: Any) -> float:
    """Weights like "2x" or "0,5" are accepted; anything unusable becomes 1.0."""
    if _is_missing(raw):
        return 1.0
    weight = parse_grade_value(raw)
    if math.isnan(weight) or weight <= 0:
        return 1.0
    return weight


def _parse_timestamp(raw: Any, default: int) -> int:
    """Millisecond epoch from an int, numeric string, or date text."""
    if _is_missing(raw):
        return default
    numeric = pd.to_numeric(pd.Series([raw]), errors="coerce").iloc[0]
    if not pd.isna(numeric):
        return int(numeric)
    text = str(raw).strip()
    stamp = pd.to_datetime(text, errors="coerce", format="ISO8601")
    if pd.isna(stamp):
        stamp = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if pd.isna(stamp):
        return default
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    return int(stamp.value // 1_000_000)


def _text(raw: Any, default: str) -> str:
    if _is_missing(raw):
        return default
    text = str(raw).strip()
    return text or default


def extract_records(
    rows: Iterable[Mapping[str, Any]],
    default_timestamp: Optional[int] = None,
) -> Tuple[List[GradeRecord], Dict[str, Any]]:
    """
    Build GradeRecords from raw extracted rows.

    Rows whose grade does not parse are dropped; the returned report says
    how many. Rows without a date get ``default_timestamp`` (now, if unset).
    """
    df = pd.DataFrame(list(rows))
    report: Dict[str, Any] = {
        "total_rows": int(len(df)),
        "accepted": 0,
        "rejected": 0,
        "column_mapping": {},
    }
    if df.empty:
        return [], report

    mapping = suggest_column_mapping(df)
    report["column_mapping"] = mapping
    value_col = mapping["value"]
    if value_col is None:
        report["rejected"] = int(len(df))
        return [], report

    if default_timestamp is None:
        default_timestamp = int(time.time() * 1000)

    records: List[GradeRecord] = []
    for _, row in df.iterrows():
        value = parse_grade_value(None if _is_missing(row[value_col]) else row[value_col])
        if math.isnan(value):
            continue
        records.append(GradeRecord(
            value=value,
            weight=_parse_weight(row[mapping["weight"]]) if mapping["weight"] else 1.0,
            subject=_text(row[mapping["subject"]], DEFAULT_SUBJECT) if mapping["subject"] else DEFAULT_SUBJECT,
            description=_text(row[mapping["description"]], "") if mapping["description"] else "",
            timestamp=(
                _parse_timestamp(row[mapping["timestamp"]], default_timestamp)
                if mapping["timestamp"] else default_timestamp
            ),
        ))

    report["accepted"] = len(records)
    report["rejected"] = report["total_rows"] - len(records)
    return records, report


def records_from_rows(
    rows: Iterable[Mapping[str, Any]],
    default_timestamp: Optional[int] = None,
) -> List[GradeRecord]:
    """Build GradeRecords from raw rows, silently dropping unparsable grades."""
    records, _ = extract_records(rows, default_timestamp=default_timestamp)
    return records
