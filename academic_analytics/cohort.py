"""Class-level statistics: consistency, weakest component, subject health."""

import logging
from typing import Dict, List, Sequence

import numpy as np

from academic_analytics.config import AnalyticsConfig
from academic_analytics.marks import weighted_total
from academic_analytics.models import (
    RISK_LEVELS,
    AtRiskStudent,
    ComponentDeviation,
    ComponentScores,
    MarkEntry,
    StudentReport,
    SubjectHealth,
    clamp,
    clean_numeric_value,
    round_half_up,
)

logger = logging.getLogger(__name__)

COMPONENT_NAMES = {
    'test1': 'Test 1',
    'test2': 'Test 2',
    'assignment': 'Assignment',
}

# Most severe first
SEVERITY_ORDER = {level: rank for rank, level in enumerate(reversed(RISK_LEVELS))}


def consistency_score(points: Sequence[float]) -> float:
    """
    Score 0-100 from the coefficient of variation (100 = perfectly consistent).

    Scale-free, so it works for marks out of 50 or 100 alike. Fewer than two
    points, or a mean of ~0, leave nothing to be inconsistent about.
    """
    if points is None or len(points) < 2:
        return 100.0
    values = np.array([clean_numeric_value(p) or 0.0 for p in points])
    mean = float(values.mean())
    if mean < 0.01:
        return 100.0
    cv = float(values.std()) / mean
    return round_half_up(clamp(100.0 - cv * 100.0), 1)


def component_deviation(entries: Sequence[MarkEntry], config: AnalyticsConfig) -> ComponentDeviation:
    """
    Find the component the class is weakest in.

    Averages are normalized by the configured maximum of each component
    before comparison.
    """
    sums = {key: 0.0 for key in COMPONENT_NAMES}
    counts = {key: 0 for key in COMPONENT_NAMES}
    for entry in entries:
        for key in COMPONENT_NAMES:
            value = getattr(entry, key)
            if value is not None:
                sums[key] += value
                counts[key] += 1

    averages = {key: (sums[key] / counts[key] if counts[key] else 0.0) for key in COMPONENT_NAMES}
    percentages = {
        key: averages[key] / getattr(config.max_marks, key) * 100.0 for key in COMPONENT_NAMES
    }

    weak_component = 'None'
    lowest = None
    for key, name in COMPONENT_NAMES.items():
        if counts[key] and (lowest is None or percentages[key] < lowest):
            lowest = percentages[key]
            weak_component = name

    return ComponentDeviation(
        weak_component=weak_component,
        averages=ComponentScores(**{k: round_half_up(v, 1) for k, v in averages.items()}),
        percentages=ComponentScores(**{k: round_half_up(v, 1) for k, v in percentages.items()}),
    )


def subject_health(entries: Sequence[MarkEntry], config: AnalyticsConfig) -> List[SubjectHealth]:
    """Average internal mark and pass rate per subject."""
    totals: Dict[str, List[float]] = {}
    for entry in entries:
        if entry.is_entered:
            totals.setdefault(entry.subject_id, []).append(weighted_total(entry, config))

    health = []
    for subject_id, subject_totals in totals.items():
        passed = sum(1 for t in subject_totals if t >= config.pass_marks)
        health.append(SubjectHealth(
            subject_id=subject_id,
            average_score=round_half_up(sum(subject_totals) / len(subject_totals), 1),
            pass_rate=round_half_up(passed / len(subject_totals) * 100.0, 1),
            total_students=len(subject_totals),
        ))
    return health


def class_insights(reports: Sequence[StudentReport]) -> List[str]:
    """Plain-language observations about a class."""
    insights = []
    if not reports:
        return insights

    critical = sum(1 for r in reports if r.risk.risk_level == 'Critical')
    declining = sum(1 for r in reports if r.trend.trend == 'Declining')
    improving = sum(1 for r in reports if r.trend.trend == 'Improving')

    if critical > 0:
        insights.append(
            f"{critical} student{'s are' if critical != 1 else ' is'} in the Critical risk zone. "
            "Immediate intervention advised."
        )
    if declining > 3:
        insights.append(f"Attendance is declining for {declining} students.")
    if improving > 5:
        insights.append(f"{improving} students are showing consistent improvement.")
    return insights


def rank_at_risk(reports: Sequence[StudentReport]) -> List[AtRiskStudent]:
    """Students above Low risk, most severe first, then lowest attendance."""
    flagged = [r for r in reports if r.risk.risk_level != 'Low']

    def sort_key(report: StudentReport):
        attendance = report.risk.attendance_percentage
        return (
            SEVERITY_ORDER[report.risk.risk_level],
            attendance is None,
            attendance if attendance is not None else 0.0,
        )

    ranked = [
        AtRiskStudent(
            student_id=r.student_id,
            name=r.name,
            attendance_percentage=r.risk.attendance_percentage,
            marks=r.risk.marks,
            risk_level=r.risk.risk_level,
            reason=' & '.join(r.risk.risk_reasons),
        )
        for r in sorted(flagged, key=sort_key)
    ]
    logger.debug("%s of %s students flagged", len(ranked), len(reports))
    return ranked
