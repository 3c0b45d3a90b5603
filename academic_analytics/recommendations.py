"""Advisory recommendations tailored to a student's attendance, marks and risk."""

from typing import List, Optional

from academic_analytics.config import AnalyticsConfig
from academic_analytics.models import AttendanceSummary, MarksSummary, Recommendation, RiskAssessment

RISK_FACTOR_TITLE = 'Risk Factor Detected'


def build_recommendations(
    attendance: AttendanceSummary,
    classes_needed: Optional[int],
    marks: MarksSummary,
    risk: RiskAssessment,
    config: AnalyticsConfig
) -> List[Recommendation]:
    """Attendance advice first, then marks, then the first risk reason."""
    recommendations: List[Recommendation] = []

    if attendance.percentage is not None:
        if attendance.percentage < config.min_attendance:
            recommendations.append(_improve_attendance(attendance.percentage, classes_needed, config))
        else:
            recommendations.append(_good_attendance(attendance.percentage, config))

    if marks.focus_subjects:
        recommendations.append(_focus_areas(marks.focus_subjects, config))
    elif marks.results:
        recommendations.append(_strong_performance())

    for reason in risk.risk_reasons:
        if any(r.title == RISK_FACTOR_TITLE for r in recommendations):
            break
        recommendations.append(_risk_factor(reason))

    return recommendations


def _improve_attendance(percentage: float, needed: Optional[int], config: AnalyticsConfig) -> Recommendation:
    threshold = f"{config.min_attendance:g}%"
    if needed is None:
        detail = f"The {threshold} minimum can no longer be reached this term. Please speak to your advisor."
    elif needed > 0:
        detail = (
            f"You need to attend the next {needed} consecutive class{'es' if needed != 1 else ''} "
            f"without any absence to reach the {threshold} threshold."
        )
    else:
        detail = "You are very close. Attend all upcoming classes to stay safe."
    return Recommendation(
        title='Improve Attendance',
        description=f"Your attendance is {percentage:.1f}%, which is below the {threshold} minimum.",
        detail=detail,
    )


def _good_attendance(percentage: float, config: AnalyticsConfig) -> Recommendation:
    return Recommendation(
        title='Good Attendance',
        description=f"Your attendance is {percentage:.1f}%, safely above the {config.min_attendance:g}% minimum.",
        detail='Keep attending regularly to stay eligible for exams and avoid last-minute stress.',
    )


def _focus_areas(subjects: List[str], config: AnalyticsConfig) -> Recommendation:
    return Recommendation(
        title='Focus Areas',
        description=f"You are scoring below {config.focus_threshold:g}% in: {', '.join(subjects)}.",
        detail='Prioritise these subjects for revision. Review past papers or ask your teacher for help.',
    )


def _strong_performance() -> Recommendation:
    return Recommendation(
        title='Strong Performance',
        description='You are performing well across all subjects.',
        detail='Challenge yourself with advanced problems and help your peers.',
    )


def _risk_factor(reason: str) -> Recommendation:
    return Recommendation(
        title=RISK_FACTOR_TITLE,
        description=reason,
        detail='Address this promptly to avoid academic consequences at the end of the semester.',
    )
