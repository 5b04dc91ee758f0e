"""
Analyze routes — grade analytics API endpoints.
"""

import math
from typing import List

from fastapi import APIRouter, HTTPException, Request

from grade_analytics.engine import AnalyticsEngine
from grade_analytics.insights import generate_all_insights
from grade_analytics.records import GradeRecord
from grade_analytics.whatif import TARGET_LADDER

router = APIRouter()


def _engine(request: Request) -> AnalyticsEngine:
    return request.app.state.engine


def _parse_grades(data, field: str) -> List[GradeRecord]:
    if not isinstance(data, list):
        raise HTTPException(400, f"'{field}' must be a list of grades.")
    try:
        return [GradeRecord.from_dict(g) for g in data]
    except (TypeError, ValueError, AttributeError) as exc:
        raise HTTPException(400, f"Invalid grade in '{field}': {exc}")


def _records_from_payload(payload: dict, field: str = "grades") -> List[GradeRecord]:
    """Extract grade records from request payload."""
    data = payload.get(field)
    if not data:
        raise HTTPException(400, "No grades provided.")
    return _parse_grades(data, field)


def _float_param(payload: dict, name: str, default: float) -> float:
    raw = payload.get(name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise HTTPException(400, f"'{name}' must be a number.")
    if not math.isfinite(value):
        raise HTTPException(400, f"'{name}' must be a finite number.")
    return value


@router.get("/engine")
async def engine_info(request: Request):
    """Accelerated-path availability, backend version and cache statistics."""
    return _engine(request).info()


@router.post("/overview")
async def overview(request: Request, payload: dict):
    """Averages, GPA, pass/fail counts, subject summaries, statistics, trend."""
    records = _records_from_payload(payload)
    return _engine(request).analyze_all_grades(records).to_dict()


@router.post("/subjects")
async def subjects(request: Request, payload: dict):
    """One summary per subject, sorted by subject name."""
    records = _records_from_payload(payload)
    summaries = _engine(request).all_subject_summaries(records)
    return {"subjects": [s.to_dict() for s in summaries]}


@router.post("/subject/{subject}")
async def subject_summary(subject: str, request: Request, payload: dict):
    records = _records_from_payload(payload)
    summary = _engine(request).subject_summary(records, subject)
    if summary.grade_count == 0:
        raise HTTPException(404, f"Subject '{subject}' not found.")
    return summary.to_dict()


@router.post("/statistics")
async def statistics(request: Request, payload: dict):
    """Descriptive statistics over a list of numbers."""
    data = payload.get("data")
    if not data or not isinstance(data, list):
        raise HTTPException(400, "No data provided.")
    try:
        values = [float(v) for v in data]
    except (TypeError, ValueError):
        raise HTTPException(400, "'data' must contain only numbers.")

    engine = _engine(request)
    result = engine.calculate_statistics(values).to_dict()
    if "percentile" in payload:
        p = _float_param(payload, "percentile", 50.0)
        result["requested_percentile"] = {"percentile": p, "value": engine.calculate_percentile(values, p)}
    return result


@router.post("/trend")
async def trend(request: Request, payload: dict):
    """Linear trend over [timestamp, value] pairs."""
    series = payload.get("series")
    if not series or not isinstance(series, list):
        raise HTTPException(400, "No series provided.")
    try:
        points = [(float(p[0]), float(p[1])) for p in series]
    except (TypeError, ValueError, IndexError):
        raise HTTPException(400, "'series' must contain [timestamp, value] pairs.")
    return _engine(request).calculate_trend(points).to_dict()


@router.post("/predict")
async def predict(request: Request, payload: dict):
    """Next-grade forecast, projected final average and pass probability."""
    records = _records_from_payload(payload)
    engine = _engine(request)
    remaining = int(_float_param(payload, "remaining_assessments", 1))
    typical_weight = _float_param(payload, "typical_weight", 1.0)
    remaining_weight = _float_param(payload, "remaining_weight", remaining * typical_weight)
    return {
        "next_grade": engine.predict_next_grade(records).to_dict(),
        "final_grade": engine.predict_final_grade(records, remaining, typical_weight).to_dict(),
        "pass_probability": engine.pass_probability(records, remaining_weight),
    }


@router.post("/what-if")
async def what_if(request: Request, payload: dict):
    """Effect of hypothetical grades on the weighted average."""
    grades = payload.get("grades") or []
    hypothetical = payload.get("hypothetical") or []
    if not grades and not hypothetical:
        raise HTTPException(400, "No grades provided.")
    records = _parse_grades(grades, "grades")
    extra = _parse_grades(hypothetical, "hypothetical")
    return _engine(request).calculate_what_if(records, extra).to_dict()


@router.post("/impact/{subject}")
async def impact(subject: str, request: Request, payload: dict):
    """Resulting subject average for each possible next grade."""
    records = _records_from_payload(payload)
    weight = _float_param(payload, "weight", 1.0)
    entries = _engine(request).generate_impact_analysis(records, subject, weight)
    return {
        "subject": subject,
        "weight": weight,
        "impact_analysis": [e.to_dict() for e in entries],
    }


@router.post("/targets/{subject}")
async def targets(subject: str, request: Request, payload: dict):
    """Grade needed on the next assessment for each target average."""
    records = _records_from_payload(payload)
    weight = _float_param(payload, "weight", 1.0)
    goals = payload.get("targets") or list(TARGET_LADDER)
    try:
        goals = [float(t) for t in goals]
    except (TypeError, ValueError):
        raise HTTPException(400, "'targets' must contain only numbers.")
    rows = _engine(request).grades_for_targets(records, subject, weight, goals)
    return {"subject": subject, "weight": weight, "targets": [r.to_dict() for r in rows]}


@router.post("/insights")
async def insights(request: Request, payload: dict):
    """Generate all rule-based insights."""
    records = _records_from_payload(payload)
    remaining_weight = _float_param(payload, "remaining_weight", 1.0)
    return generate_all_insights(_engine(request), records, remaining_weight)
