"""
Grade routes — parsing, validation and formatting of raw grade input.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException

from grade_analytics.grading import get_grade_bands, grade_status
from grade_analytics.records import extract_records, format_grade, parse_grade_value, validate_grade

router = APIRouter()


@router.post("/parse")
async def parse_rows(payload: dict):
    """
    Turn raw extracted gradebook rows into grade records.
    Column names are matched fuzzily; unparsable grades are dropped and counted.
    """
    rows = payload.get("rows")
    if not rows or not isinstance(rows, list):
        raise HTTPException(400, "No rows provided.")
    if not all(isinstance(r, dict) for r in rows):
        raise HTTPException(400, "Each row must be an object.")

    default_timestamp = payload.get("default_timestamp")
    records, report = extract_records(
        rows,
        default_timestamp=int(default_timestamp) if default_timestamp is not None else None,
    )
    return {"grades": [r.to_dict() for r in records], "report": report}


@router.post("/validate")
async def validate(payload: dict):
    """Check each raw value parses and lies within the 1–10 scale."""
    values = payload.get("values")
    if not isinstance(values, list) or not values:
        raise HTTPException(400, "No values provided.")

    results = []
    for raw in values:
        parsed = parse_grade_value(raw)
        valid = validate_grade(raw)
        results.append({
            "input": raw,
            "value": parsed if valid else None,
            "valid": valid,
            "status": grade_status(parsed) if valid else "-",
        })
    return {"results": results, "valid_count": sum(1 for r in results if r["valid"])}


@router.get("/format")
async def format_value(value: Optional[str] = None, decimals: int = 1):
    """Render a grade with "," as decimal separator."""
    parsed = parse_grade_value(value)
    return {"input": value, "formatted": format_grade(parsed, decimals)}


@router.get("/bands")
async def bands():
    """Grade status bands for the dashboard legend."""
    return {"bands": get_grade_bands()}
