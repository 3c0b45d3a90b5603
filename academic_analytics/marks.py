"""Weighted internal marks: totals, pass/fail and class statistics."""

import logging
from typing import Iterable, List, Optional, Sequence

from academic_analytics.config import AnalyticsConfig
from academic_analytics.models import (
    MarkEntry,
    MarkResult,
    MarksSummary,
    clamp,
    clean_numeric_value,
    round_half_up,
)
from academic_analytics.trend import calculate_slope, predict_next_value

logger = logging.getLogger(__name__)

SITTING_ORDER = ('test1', 'test2')


def clamp_component(value, maximum: float) -> float:
    """Coerce a raw component to a number within [0, maximum]."""
    number = clean_numeric_value(value)
    if number is None:
        return 0.0
    return clamp(number, 0.0, maximum)


def _clamped_components(entry: MarkEntry, config: AnalyticsConfig):
    limits = config.max_marks
    return (
        clamp_component(entry.test1, limits.test1),
        clamp_component(entry.test2, limits.test2),
        clamp_component(entry.assignment, limits.assignment),
    )


def weighted_total(entry: MarkEntry, config: AnalyticsConfig) -> float:
    """
    Internal mark: test1*w1 + test2*w2 + assignment*wa, one decimal.

    Components are clamped to their configured maxima before weighting.
    """
    w = config.weightage
    test1, test2, assignment = _clamped_components(entry, config)
    return round_half_up(test1 * w.test1 + test2 * w.test2 + assignment * w.assignment, 1)


def max_weighted_total(config: AnalyticsConfig) -> float:
    """Highest internal mark reachable under the configuration."""
    w = config.weightage
    limits = config.max_marks
    return limits.test1 * w.test1 + limits.test2 * w.test2 + limits.assignment * w.assignment


def score_entry(entry: MarkEntry, config: AnalyticsConfig) -> MarkResult:
    test1, test2, assignment = _clamped_components(entry, config)
    total = weighted_total(entry, config)
    maximum = max_weighted_total(config)
    percentage = clamp(round_half_up(total / maximum * 100.0, 1)) if maximum > 0 else 0.0

    return MarkResult(
        subject_id=entry.subject_id,
        test1=test1,
        test2=test2,
        assignment=assignment,
        total=total,
        percentage=percentage,
        passed=total >= config.pass_marks,
    )


def average_total(entries: Iterable[MarkEntry], config: AnalyticsConfig) -> Optional[float]:
    """Mean internal mark over entered rows; None when nothing was entered."""
    totals = [weighted_total(e, config) for e in entries if e.is_entered]
    if not totals:
        return None
    return round_half_up(sum(totals) / len(totals), 2)


def lowest_scoring_subjects(results: Iterable[MarkResult], threshold: float = 50.0) -> List[str]:
    """Subjects scoring below the threshold, as a percentage of the maximum."""
    return [r.subject_id for r in results if r.percentage < threshold]


def assessment_series(entries: Iterable[MarkEntry], config: AnalyticsConfig) -> List[float]:
    """
    Average score of each sitting test, in order, as a percentage of its maximum.

    Tests nobody has sat are left out of the series.
    """
    entries = list(entries)
    series = []
    for component in SITTING_ORDER:
        maximum = getattr(config.max_marks, component)
        scores = [
            clamp_component(getattr(e, component), maximum) / maximum * 100.0
            for e in entries
            if getattr(e, component) is not None
        ]
        if scores:
            series.append(sum(scores) / len(scores))
    return series


def performance_trend(series: Sequence[float]) -> str:
    slope = round_half_up(calculate_slope(series), 2)
    if slope > 0:
        return 'Improving'
    if slope < 0:
        return 'Declining'
    return 'Stable'


def projected_percentage(series: Sequence[float]) -> Optional[float]:
    """Next test score along the linear trend; None without any test."""
    if not series:
        return None
    return round_half_up(clamp(predict_next_value(series)), 1)


def summarize_marks(entries: Iterable[MarkEntry], config: AnalyticsConfig) -> MarksSummary:
    """
    Score every entered row and aggregate.

    Args:
        entries: Raw mark entries, possibly with missing components
        config: Analytics configuration (weights, maxima, pass mark)

    Returns:
        MarksSummary; average_total is None when no marks are entered
    """
    entered = [e for e in entries if e.is_entered]
    results = [score_entry(e, config) for e in entered]
    passed = sum(1 for r in results if r.passed)
    series = assessment_series(entered, config)

    summary = MarksSummary(
        results=results,
        average_total=average_total(entered, config),
        passed_count=passed,
        failed_count=len(results) - passed,
        focus_subjects=lowest_scoring_subjects(results, config.focus_threshold),
        performance_trend=performance_trend(series),
        projected_test_percentage=projected_percentage(series),
    )
    logger.debug("Scored %s mark entries (%s passed)", len(results), passed)
    return summary
