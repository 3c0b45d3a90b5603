"""Tests for the HTTP endpoints."""

from io import BytesIO

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from academic_analytics.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _records(statuses):
    return [
        {"date": "2024-01-%02d" % (i + 1), "subjectId": "MATH", "status": status}
        for i, status in enumerate(statuses)
    ]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_settings_use_camel_case(client):
    data = client.get("/settings").json()
    assert "minAttendance" in data
    assert "weightage" in data


def test_validate_settings(client):
    response = client.post("/settings/validate", json={"minAttendance": 80})
    assert response.status_code == 200
    assert response.json()["config"]["minAttendance"] == 80.0

    response = client.post(
        "/settings/validate",
        json={"weightage": {"test1": 0.5, "test2": 0.5, "assignment": 0.5}},
    )
    assert response.status_code == 422
    assert response.json()["type"] == "InvalidConfiguration"


def test_validate_marks(client):
    payload = {"studentId": "S1", "subjectId": "MATH", "test1": 20, "test2": 25, "assignment": 35}
    response = client.post("/marks/validate", json=payload)
    assert response.status_code == 200
    assert response.json()["total"] == 27.5

    payload["test1"] = -1
    assert client.post("/marks/validate", json=payload).status_code == 422


def test_validate_marks_rejects_scores_above_maximum(client):
    """Scores over the configured maxima are rejected, not clamped."""
    payload = {"studentId": "S1", "subjectId": "MATH", "test1": 90, "test2": 90, "assignment": 90}
    response = client.post("/marks/validate", json=payload)

    assert response.status_code == 422
    assert response.json()["detail"][0] == "test1: 90 exceeds maximum 50"
    assert len(response.json()["detail"]) == 3

    payload.update({"test1": 50, "test2": 50, "assignment": 50})
    assert client.post("/marks/validate", json=payload).status_code == 200


def test_attendance_analytics(client):
    response = client.post("/analytics/attendance", json={"records": _records(["Present", "Absent"] * 10)})
    assert response.status_code == 200

    data = response.json()
    assert data["summary"]["percentage"] == 50.0
    assert data["classesNeeded"] == 20
    assert data["subjects"][0]["subjectId"] == "MATH"
    assert data["trend"]["trend"] == "Stable"


def test_marks_analytics(client):
    response = client.post(
        "/analytics/marks",
        json={"entries": [{"subjectId": "MATH", "test1": 20, "test2": 25, "assignment": 35}]},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["results"][0]["total"] == 27.5
    assert data["results"][0]["passed"] is True
    assert data["averageTotal"] == 27.5


def test_risk_analytics(client):
    payload = {
        "attendance": _records(["Absent", "Present"] * 5),
        "marks": [{"subjectId": "MATH", "test1": 5, "test2": 5, "assignment": 5}],
    }
    response = client.post("/analytics/risk", json=payload)
    assert response.status_code == 200

    data = response.json()
    assert data["riskLevel"] == "Critical"
    assert data["attendancePercentage"] == 50.0
    assert len(data["riskReasons"]) >= 2


def test_config_override_is_applied(client):
    payload = {
        "attendance": _records(["Present"] * 7 + ["Absent"] * 3),
        "config": {"minAttendance": 60},
    }
    data = client.post("/analytics/risk", json=payload).json()
    assert data["riskLevel"] == "Low"

    payload["config"] = {"minAttendance": 150}
    response = client.post("/analytics/risk", json=payload)
    assert response.status_code == 422

    payload["config"] = {"passMark": 25}
    response = client.post("/analytics/risk", json=payload)
    assert response.status_code == 422
    assert response.json()["type"] == "InvalidConfiguration"


def test_cohort_analytics(client):
    payload = {
        "students": [
            {"studentId": "S1", "attendance": _records(["Present"] * 8),
             "marks": [{"subjectId": "MATH", "test1": 40, "test2": 40, "assignment": 40}]},
            {"studentId": "S2", "attendance": _records(["Absent"] * 8),
             "marks": [{"subjectId": "MATH", "test1": 5, "test2": 5, "assignment": 5}]},
        ]
    }
    response = client.post("/analytics/cohort", json=payload)
    assert response.status_code == 200

    data = response.json()
    assert set(data["forecast"]) == {
        "currentPassRate", "predictedPassRate", "growth",
        "atRiskCount", "consistencyScore", "totalStudents",
    }
    assert data["forecast"]["atRiskCount"] == 1
    assert data["atRisk"][0]["studentId"] == "S2"


def _workbook_bytes():
    buffer = BytesIO()
    attendance = pd.DataFrame({
        "Student#": ["S1", "S1", "S2", "S2"],
        "Student Name": ["Asha", "Asha", "Ben", "Ben"],
        "Date": ["2024-01-01", "2024-01-02", "2024-01-01", "2024-01-02"],
        "Subject": ["MATH"] * 4,
        "Status": ["P", "P", "A", "A"],
    })
    marks = pd.DataFrame({
        "Student#": ["S1", "S2"],
        "Subject": ["MATH", "MATH"],
        "Test 1": [40, 5],
        "Test 2": [40, 5],
        "Assignment": [40, 5],
    })
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        attendance.to_excel(writer, sheet_name="Attendance", index=False)
        marks.to_excel(writer, sheet_name="Marks", index=False)
    return buffer.getvalue()


def test_upload(client):
    files = {"file": ("class.xlsx", _workbook_bytes(),
                      "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}
    response = client.post("/upload", files=files)
    assert response.status_code == 200

    data = response.json()
    assert [s["studentId"] for s in data["students"]] == ["S1", "S2"]
    assert data["students"][0]["name"] == "Asha"
    assert data["atRisk"][0]["studentId"] == "S2"
    assert data["forecast"]["currentPassRate"] == 50.0


def test_upload_rejects_bad_files(client):
    response = client.post("/upload", files={"file": ("class.csv", b"a,b\n1,2", "text/csv")})
    assert response.status_code == 400

    response = client.post("/upload", files={"file": ("class.xlsx", b"not a workbook", "application/octet-stream")})
    assert response.status_code == 400
    assert "Error loading Excel file" in response.json()["detail"]
