"""Risk scoring logic: heuristic risk tiers and pass-rate forecasts."""

import logging
from typing import List, Optional, Sequence

from academic_analytics.cohort import consistency_score
from academic_analytics.config import AnalyticsConfig
from academic_analytics.marks import max_weighted_total
from academic_analytics.models import (
    ForecastInput,
    ForecastResult,
    RiskAssessment,
    clamp,
    round_half_up,
)

logger = logging.getLogger(__name__)

AT_RISK_LEVELS = ('High', 'Critical')


def _deficit(value: Optional[float], threshold: float) -> float:
    """How far a metric sits below its threshold (0 when missing or passing)."""
    if value is None:
        return 0.0
    return max(0.0, threshold - value)


def _fmt(value: float) -> str:
    return f"{value:g}"


def get_risk_level(
    attendance_deficit: float,
    marks_deficit: float,
    config: AnalyticsConfig
) -> str:
    """
    Map deficits below threshold onto a risk tier.

    Args:
        attendance_deficit: Percentage points below minimum attendance
        marks_deficit: Marks below the pass mark
        config: Supplies the Moderate bands

    Returns:
        'Low', 'Moderate', 'High' or 'Critical'
    """
    if attendance_deficit > 0 and marks_deficit > 0:
        return 'Critical'
    if attendance_deficit > 0:
        return 'Moderate' if attendance_deficit <= config.attendance_moderate_band else 'High'
    if marks_deficit > 0:
        return 'Moderate' if marks_deficit <= config.marks_moderate_band else 'High'
    return 'Low'


def risk_probability(
    attendance_deficit: float,
    marks_deficit: float,
    config: AnalyticsConfig
) -> float:
    """
    Heuristic severity index in [0, 100].

    Zero at or above both thresholds, grows linearly with each point of
    deficit and saturates at 100. Not a calibrated probability.
    """
    score = (attendance_deficit * config.attendance_penalty
             + marks_deficit * config.marks_penalty)
    return round_half_up(clamp(score), 1)


def classify_risk(
    attendance_pct: Optional[float],
    marks: Optional[float],
    config: AnalyticsConfig,
    stability: Optional[int] = None,
    trend: Optional[str] = None
) -> RiskAssessment:
    """
    Classify a student's academic risk from attendance and internal marks.

    Args:
        attendance_pct: Overall attendance percentage, None without sessions
        marks: Average weighted internal mark, None without mark entries
        config: Thresholds, bands and penalties
        stability: Attendance stability score, adds a reason when irregular
        trend: Attendance trend, adds a reason when declining

    Returns:
        RiskAssessment with reasons ordered attendance, marks, consistency
    """
    if attendance_pct is not None:
        attendance_pct = clamp(attendance_pct)

    attendance_deficit = _deficit(attendance_pct, config.min_attendance)
    marks_deficit = _deficit(marks, config.pass_marks)

    reasons: List[str] = []
    if attendance_deficit > 0:
        reasons.append(
            f"Attendance below {_fmt(config.min_attendance)}% ({attendance_pct:.1f}%)"
        )
    if marks_deficit > 0:
        reasons.append(
            f"Marks below pass threshold ({marks:.1f} < {_fmt(config.pass_marks)})"
        )
    if trend == 'Declining':
        reasons.append("Declining attendance trend")
    if stability is not None and stability < config.irregular_stability:
        reasons.append(f"Irregular attendance (stability {stability}/100)")

    return RiskAssessment(
        attendance_percentage=attendance_pct,
        marks=marks,
        risk_level=get_risk_level(attendance_deficit, marks_deficit, config),
        probability=risk_probability(attendance_deficit, marks_deficit, config),
        risk_reasons=reasons,
    )


def project_total(total: float, attendance_pct: Optional[float], config: AnalyticsConfig) -> float:
    """Carry a student's internal mark forward using their attendance."""
    projected = total
    if attendance_pct is not None:
        if attendance_pct > config.boost_attendance:
            projected = total * config.boost_factor
        elif attendance_pct < config.penalty_attendance:
            projected = total * config.penalty_factor
    return clamp(projected, 0.0, max_weighted_total(config))


def forecast_pass_rate(
    students: Sequence[ForecastInput],
    config: AnalyticsConfig
) -> ForecastResult:
    """
    Project the cohort pass rate to the end of the term.

    The attendance-adjusted pass rate is discounted by up to
    ``forecast_uncertainty`` points as mark consistency falls, so erratic
    cohorts forecast conservatively.

    Args:
        students: One entry per student; pass rates only count students
            with a weighted internal mark, the at-risk count covers everyone
        config: Pass mark and forecast parameters

    Returns:
        ForecastResult; a cohort without marks gives zero rates
    """
    if not students:
        return ForecastResult()

    at_risk = sum(1 for s in students if s.risk_level in AT_RISK_LEVELS)
    graded = [s for s in students if s.total is not None]
    n = len(graded)
    if n == 0:
        return ForecastResult(at_risk_count=at_risk, total_students=len(students))

    totals = [s.total for s in graded]
    current_pass = sum(1 for t in totals if t >= config.pass_marks)
    projected_pass = sum(
        1 for s in graded
        if project_total(s.total, s.attendance_pct, config) >= config.pass_marks
    )

    current_rate = round_half_up(current_pass / n * 100.0, 1)
    consistency = consistency_score(totals)
    uncertainty = config.forecast_uncertainty * (1.0 - consistency / 100.0)
    predicted_rate = round_half_up(clamp(projected_pass / n * 100.0 - uncertainty), 1)

    result = ForecastResult(
        current_pass_rate=current_rate,
        predicted_pass_rate=predicted_rate,
        growth=round_half_up(predicted_rate - current_rate, 1),
        at_risk_count=at_risk,
        consistency_score=consistency,
        total_students=len(students),
    )
    logger.debug("Forecast for %s students: %.1f%% -> %.1f%%", n, current_rate, predicted_rate)
    return result
