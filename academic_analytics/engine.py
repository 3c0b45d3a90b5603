"""Analytics engine: pure functions composing the calculators."""

import logging
from typing import Optional, Sequence

from academic_analytics.attendance import attendance_by_subject, classes_needed, summarize_attendance
from academic_analytics.cohort import class_insights, component_deviation, rank_at_risk, subject_health
from academic_analytics.config import AnalyticsConfig
from academic_analytics.marks import summarize_marks
from academic_analytics.models import (
    AttendanceRecord,
    CohortReport,
    CohortStudent,
    ForecastInput,
    MarkEntry,
    StudentReport,
)
from academic_analytics.recommendations import build_recommendations
from academic_analytics.risk import classify_risk, forecast_pass_rate
from academic_analytics.trend import analyze_trend

logger = logging.getLogger(__name__)


def compute_student_report(
    records: Sequence[AttendanceRecord],
    marks: Sequence[MarkEntry],
    config: AnalyticsConfig,
    student_id: Optional[str] = None,
    name: Optional[str] = None
) -> StudentReport:
    """
    Build every derived view for one student.

    Args:
        records: Attendance sessions across all subjects
        marks: Mark entries, one per subject
        config: Analytics configuration

    Returns:
        StudentReport; identical inputs always give an identical report
    """
    attendance = summarize_attendance(records)
    needed = classes_needed(attendance.attended, attendance.total, config.attendance_threshold)
    trend = analyze_trend(records)
    marks_summary = summarize_marks(marks, config)

    # Stability is only meaningful once a trend can be computed
    stability = trend.stability if trend.first_half_pct is not None else None
    risk = classify_risk(
        attendance.percentage,
        marks_summary.average_total,
        config,
        stability=stability,
        trend=trend.trend,
    )

    return StudentReport(
        student_id=student_id,
        name=name,
        attendance=attendance,
        classes_needed=needed,
        subject_attendance=attendance_by_subject(records),
        trend=trend,
        marks=marks_summary,
        risk=risk,
        recommendations=build_recommendations(attendance, needed, marks_summary, risk, config),
    )


def compute_cohort_report(students: Sequence[CohortStudent], config: AnalyticsConfig) -> CohortReport:
    """
    Build the class view: per-student reports, ranking and forecast.

    Students without any entered marks are left out of the pass rates.
    """
    reports = [
        compute_student_report(s.attendance, s.marks, config, student_id=s.student_id, name=s.name)
        for s in students
    ]

    forecast_inputs = [
        ForecastInput(
            total=r.marks.average_total,
            attendance_pct=r.attendance.percentage,
            risk_level=r.risk.risk_level,
        )
        for r in reports
    ]
    all_marks = [m for s in students for m in s.marks if m.is_entered]

    report = CohortReport(
        students=reports,
        at_risk=rank_at_risk(reports),
        forecast=forecast_pass_rate(forecast_inputs, config),
        component_deviation=component_deviation(all_marks, config),
        subject_health=subject_health(all_marks, config),
        insights=class_insights(reports),
    )
    logger.info(
        "Cohort analysed: %s students, %s at risk, predicted pass rate %.1f%%",
        len(reports), len(report.at_risk), report.forecast.predicted_pass_rate
    )
    return report
