"""Unit tests for attendance aggregation."""

import pytest

from academic_analytics.attendance import (
    attendance_by_subject,
    attendance_percentage,
    classes_needed,
    is_present,
    summarize_attendance,
)
from academic_analytics.models import AttendanceRecord

from helpers import make_records


def test_summarize_attendance():
    """Test counts and percentage."""
    summary = summarize_attendance(make_records(["Present", "Present", "Absent", "Present"]))

    assert summary.total == 4
    assert summary.attended == 3
    assert summary.percentage == 75.0


def test_summarize_attendance_no_sessions():
    """No sessions gives a null percentage, not a division error."""
    summary = summarize_attendance([])

    assert summary.total == 0
    assert summary.attended == 0
    assert summary.percentage is None


def test_percentage_bounds():
    """Percentage stays within 0-100 and is null only without sessions."""
    sequences = [
        ["Present"],
        ["Absent"],
        ["Present", "Absent", "Absent"],
        ["Present"] * 40,
        ["Absent"] * 7 + ["Present"] * 2,
    ]
    for statuses in sequences:
        summary = summarize_attendance(make_records(statuses))
        assert summary.percentage is not None
        assert 0.0 <= summary.percentage <= 100.0

    assert attendance_percentage(0, 0) is None
    assert attendance_percentage(2, 3) == 66.67


def test_malformed_status_counts_as_absent():
    """Unknown or missing statuses are absences."""
    records = [
        AttendanceRecord(status="PRESENT"),
        AttendanceRecord(status=" present "),
        AttendanceRecord(status="late"),
        AttendanceRecord(status=None),
        AttendanceRecord(),
    ]
    assert [r.status for r in records] == ["Present", "Present", "Absent", "Absent", "Absent"]

    summary = summarize_attendance(records)
    assert summary.attended == 2
    assert summary.percentage == 40.0

    assert is_present("Present") == True
    assert is_present("Absent") == False
    assert is_present(None) == False


def test_classes_needed():
    """Test the closed-form classes-needed calculation."""
    assert classes_needed(10, 20, 0.75) == 20
    assert classes_needed(14, 20, 0.75) == 4
    assert classes_needed(0, 4, 0.75) == 12

    # Reaching the threshold after x consecutive classes
    x = classes_needed(14, 20, 0.75)
    assert (14 + x) / (20 + x) >= 0.75
    assert (14 + x - 1) / (20 + x - 1) < 0.75


def test_classes_needed_already_compliant():
    """Zero when the threshold is already met."""
    assert classes_needed(15, 20, 0.75) == 0
    assert classes_needed(20, 20, 0.75) == 0
    assert classes_needed(19, 20, 0.75) == 0


def test_classes_needed_edge_cases():
    """No sessions, float noise and an unreachable 100% threshold."""
    assert classes_needed(0, 0, 0.75) == 0

    # (0.8 * 10 - 7) / 0.2 is 5.000000000000001 in floating point
    assert classes_needed(7, 10, 0.8) == 5

    assert classes_needed(5, 5, 1.0) == 0
    assert classes_needed(4, 5, 1.0) is None


@pytest.mark.parametrize("attended,total", [(0, 1), (3, 10), (7, 12), (29, 40)])
def test_classes_needed_is_minimal(attended, total):
    """The figure is the smallest number of classes that reaches 75%."""
    x = classes_needed(attended, total, 0.75)
    assert (attended + x) / (total + x) >= 0.75
    if x > 0:
        assert (attended + x - 1) / (total + x - 1) < 0.75


def test_attendance_by_subject():
    """Per-subject table keeps first-appearance order."""
    records = (
        make_records(["Present", "Absent"], subject_id="PHY")
        + make_records(["Present", "Present", "Present", "Absent"], subject_id="MATH")
        + make_records(["Absent"], subject_id="PHY")
    )

    table = attendance_by_subject(records)

    assert [row.subject_id for row in table] == ["PHY", "MATH"]
    assert table[0].total == 3
    assert table[0].attended == 1
    assert table[0].percentage == 33.33
    assert table[1].percentage == 75.0
