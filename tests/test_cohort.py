"""Unit tests for class-level statistics."""

from academic_analytics.cohort import (
    class_insights,
    component_deviation,
    consistency_score,
    rank_at_risk,
    subject_health,
)
from academic_analytics.config import AnalyticsConfig
from academic_analytics.engine import compute_student_report
from academic_analytics.models import MarkEntry

from helpers import make_records

CONFIG = AnalyticsConfig()


def test_consistency_score():
    """Coefficient-of-variation based consistency."""
    assert consistency_score([]) == 100.0
    assert consistency_score([10]) == 100.0
    assert consistency_score([0, 0, 0]) == 100.0
    assert consistency_score([20, 20, 20]) == 100.0
    # mean 20, std 10
    assert consistency_score([10, 30]) == 50.0
    # CV above 1 bottoms out at 0
    assert consistency_score([0, 0, 0, 40]) == 0.0


def test_component_deviation():
    """Weakest component by percentage of its maximum."""
    entries = [
        MarkEntry(subject_id="MATH", test1=20, test2=25, assignment=35),
        MarkEntry(subject_id="PHY", test1=10, test2=15, assignment=25),
    ]

    result = component_deviation(entries, CONFIG)

    assert result.weak_component == "Test 1"
    assert result.averages.test1 == 15.0
    assert result.averages.assignment == 30.0
    assert result.percentages.test1 == 30.0
    assert result.percentages.test2 == 40.0
    assert result.percentages.assignment == 60.0


def test_component_deviation_empty():
    result = component_deviation([], CONFIG)

    assert result.weak_component == "None"
    assert result.averages.test1 == 0.0


def test_subject_health():
    """Average weighted total and pass rate per subject."""
    entries = [
        MarkEntry(subject_id="MATH", test1=20, test2=25, assignment=35),
        MarkEntry(subject_id="MATH", test1=10, test2=10, assignment=10),
        MarkEntry(subject_id="PHY", test1=40, test2=40, assignment=40),
        MarkEntry(subject_id="PHY"),
    ]

    health = subject_health(entries, CONFIG)

    assert [h.subject_id for h in health] == ["MATH", "PHY"]
    assert health[0].average_score == 18.8
    assert health[0].pass_rate == 50.0
    assert health[0].total_students == 2
    assert health[1].pass_rate == 100.0
    assert health[1].total_students == 1


def _report(student_id, statuses, marks):
    return compute_student_report(
        make_records(statuses),
        [MarkEntry(subject_id="MATH", test1=marks, test2=marks, assignment=marks)],
        CONFIG,
        student_id=student_id,
    )


def test_rank_at_risk():
    """Critical first, then High, ordered by attendance."""
    reports = [
        _report("safe", ["Present"] * 8, 40),
        _report("high-low-att", ["Absent"] * 6 + ["Present"] * 2, 40),
        _report("critical", ["Absent"] * 4 + ["Present"] * 4, 5),
        _report("high-mid-att", ["Absent"] * 3 + ["Present"] * 5, 40),
    ]

    ranked = rank_at_risk(reports)

    assert [r.student_id for r in ranked] == ["critical", "high-low-att", "high-mid-att"]
    assert ranked[0].risk_level == "Critical"
    assert " & " in ranked[0].reason


def test_class_insights():
    reports = [_report("c%s" % i, ["Absent"] * 4 + ["Present"] * 4, 5) for i in range(2)]

    insights = class_insights(reports)

    assert insights[0].startswith("2 students are in the Critical risk zone")
    assert class_insights([]) == []
