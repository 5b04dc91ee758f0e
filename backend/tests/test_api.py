"""
Tests for main.py and routes/ — HTTP surface over the analytics engine.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app

GRADES = [
    {"value": 6.0, "weight": 1, "subject": "Math", "timestamp": 1000},
    {"value": 8.0, "weight": 2, "subject": "math", "timestamp": 2000},
    {"value": 4.0, "weight": 1, "subject": "English", "timestamp": 1500},
]


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


class TestMeta:
    """Health, config and engine endpoints."""

    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

    def test_config(self, client):
        body = client.get("/api/config").json()
        assert body["gpa_scale"] == {"max_grade": 10.0, "passing_grade": 5.5, "gpa_max": 4.0}
        assert "cache_ttl_ms" in body

    def test_engine_info(self, client):
        body = client.get("/api/analyze/engine").json()
        assert body["state"] in {"ready", "unavailable"}
        assert "cache" in body
        if body["available"]:
            assert body["version"].startswith("numpy-")
        else:
            assert body["version"] == "N/A"


class TestAnalyze:
    """Analytics endpoints."""

    def test_overview(self, client):
        r = client.post("/api/analyze/overview", json={"grades": GRADES})
        assert r.status_code == 200
        body = r.json()
        assert body["total_grades"] == 3
        assert body["weighted_average"] == pytest.approx(26 / 4)
        assert [s["subject"] for s in body["subjects"]] == ["English", "Math"]

    def test_missing_grades_is_400(self, client):
        assert client.post("/api/analyze/overview", json={}).status_code == 400
        assert client.post("/api/analyze/subjects", json={"grades": []}).status_code == 400

    def test_invalid_grade_is_400(self, client):
        r = client.post("/api/analyze/overview", json={"grades": [{"subject": "Math"}]})
        assert r.status_code == 400

    def test_subject(self, client):
        r = client.post("/api/analyze/subject/MATH", json={"grades": GRADES})
        assert r.status_code == 200
        assert r.json()["grade_count"] == 2

    def test_unknown_subject_is_404(self, client):
        r = client.post("/api/analyze/subject/Physics", json={"grades": GRADES})
        assert r.status_code == 404

    def test_statistics(self, client):
        r = client.post("/api/analyze/statistics", json={"data": [5, 6, 7, 8, 9], "percentile": 90})
        body = r.json()
        assert body["mean"] == pytest.approx(7.0)
        assert body["variance"] == pytest.approx(2.5)
        assert body["mode"] == []
        assert body["requested_percentile"]["value"] == pytest.approx(8.6)

    def test_statistics_requires_numbers(self, client):
        assert client.post("/api/analyze/statistics", json={"data": ["a"]}).status_code == 400
        assert client.post("/api/analyze/statistics", json={}).status_code == 400

    def test_trend(self, client):
        r = client.post("/api/analyze/trend", json={"series": [[0, 5], [1, 6], [2, 7], [3, 8]]})
        body = r.json()
        assert body["slope"] == pytest.approx(1.0)
        assert body["direction"] == "improving"
        assert body["predicted_values"] == pytest.approx([5, 6, 7, 8])

    def test_predict(self, client):
        r = client.post("/api/analyze/predict", json={"grades": GRADES, "remaining_assessments": 2})
        body = r.json()
        assert body["next_grade"]["method"] == "weighted_average"
        assert body["final_grade"]["method"] == "final_projection"
        assert 0.0 <= body["pass_probability"] <= 1.0

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "abc"])
    def test_predict_rejects_non_finite_counts(self, client, raw):
        r = client.post("/api/analyze/predict", json={"grades": GRADES, "remaining_assessments": raw})
        assert r.status_code == 400

    def test_impact_rejects_non_finite_weight(self, client):
        r = client.post("/api/analyze/impact/English", json={"grades": GRADES, "weight": "inf"})
        assert r.status_code == 400

    def test_what_if_without_history(self, client):
        r = client.post("/api/analyze/what-if", json={"grades": [], "hypothetical": [{"value": 8, "weight": 1}]})
        body = r.json()
        assert body["current_average"] == 0.0
        assert body["new_average"] == pytest.approx(8.0)
        assert body["change"] == pytest.approx(8.0)
        assert len(body["impact_analysis"]) == 19

    def test_what_if_empty_is_400(self, client):
        assert client.post("/api/analyze/what-if", json={"grades": []}).status_code == 400

    def test_impact(self, client):
        r = client.post("/api/analyze/impact/English", json={"grades": GRADES, "weight": 1})
        entries = r.json()["impact_analysis"]
        assert entries[-1]["resulting_average"] == pytest.approx(7.0)

    def test_targets(self, client):
        r = client.post("/api/analyze/targets/English", json={"grades": GRADES, "targets": [6.0, 9.0]})
        rows = r.json()["targets"]
        assert rows[0]["grade_needed"] == pytest.approx(8.0)
        assert rows[1]["achievable"] is False

    def test_insights(self, client):
        r = client.post("/api/analyze/insights", json={"grades": GRADES})
        body = r.json()
        assert r.status_code == 200
        assert "insights" in body
        assert body["priorities"][0]["subject"] == "English"


class TestGrades:
    """Grade parsing / validation endpoints."""

    def test_parse(self, client):
        rows = [
            {"Vak": "Math", "Cijfer": "7,5", "Weging": "2", "Datum": "2024-09-12"},
            {"Vak": "Math", "Cijfer": "inh", "Weging": "1", "Datum": "2024-09-13"},
        ]
        body = client.post("/api/grades/parse", json={"rows": rows}).json()
        assert body["report"]["accepted"] == 1
        assert body["report"]["rejected"] == 1
        assert body["grades"][0]["value"] == pytest.approx(7.5)
        assert body["grades"][0]["weight"] == 2.0

    def test_parse_requires_rows(self, client):
        assert client.post("/api/grades/parse", json={}).status_code == 400

    def test_validate(self, client):
        body = client.post("/api/grades/validate", json={"values": ["7,5", "11", "abc"]}).json()
        assert [r["valid"] for r in body["results"]] == [True, False, False]
        assert body["results"][0]["status"] == "passing"
        assert body["valid_count"] == 1

    def test_format(self, client):
        assert client.get("/api/grades/format", params={"value": "7.5"}).json()["formatted"] == "7,5"
        assert client.get("/api/grades/format").json()["formatted"] == "-"

    def test_bands(self, client):
        bands = client.get("/api/grades/bands").json()["bands"]
        assert len(bands) == 3
