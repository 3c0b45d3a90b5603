"""Attendance trend and stability analysis, plus simple series trends."""

import datetime as dt
import logging
from typing import List, Sequence

import numpy as np

from academic_analytics.attendance import is_present
from academic_analytics.models import AttendanceRecord, TrendResult, clamp, round_half_up

logger = logging.getLogger(__name__)

MIN_RECORDS_FOR_TREND = 4
TREND_DEADBAND = 8.0


def _presence_rate(records: Sequence[AttendanceRecord]) -> float:
    if not records:
        return 0.0
    present = sum(1 for r in records if is_present(r.status))
    return present / len(records) * 100.0


def sort_by_date(records: Sequence[AttendanceRecord]) -> List[AttendanceRecord]:
    """Stable ascending sort; undated sessions sort first."""
    return sorted(records, key=lambda r: r.date or dt.date.min)


def stability_score(records: Sequence[AttendanceRecord]) -> int:
    """
    Consistency of attendance, not its quality.

    Each session maps to 100 (present) or 0 (absent); the score is
    100 - population standard deviation, rounded and clamped to 0-100.
    """
    if not records:
        return 100
    values = np.array([100.0 if is_present(r.status) else 0.0 for r in records])
    std_dev = float(np.sqrt(np.var(values)))
    return int(clamp(round_half_up(100.0 - std_dev)))


def analyze_trend(records: Sequence[AttendanceRecord]) -> TrendResult:
    """
    Compare presence in the earlier and later half of the history.

    Args:
        records: Attendance records in any order

    Returns:
        TrendResult; fewer than four records give Stable with stability 50
    """
    if len(records) < MIN_RECORDS_FOR_TREND:
        return TrendResult(trend='Stable', stability=50, stability_label=stability_label(50))

    ordered = sort_by_date(records)
    half = len(ordered) // 2
    first_half_pct = _presence_rate(ordered[:half])
    second_half_pct = _presence_rate(ordered[half:])
    diff = second_half_pct - first_half_pct

    if diff > TREND_DEADBAND:
        trend = 'Improving'
    elif diff < -TREND_DEADBAND:
        trend = 'Declining'
    else:
        trend = 'Stable'

    stability = stability_score(ordered)
    result = TrendResult(
        trend=trend,
        stability=stability,
        stability_label=stability_label(stability),
        first_half_pct=round_half_up(first_half_pct, 1),
        second_half_pct=round_half_up(second_half_pct, 1),
    )
    logger.debug("Trend %s (%.1f -> %.1f), stability %s",
                 trend, first_half_pct, second_half_pct, result.stability)
    return result


def stability_label(stability: float) -> str:
    if stability >= 70:
        return 'Highly consistent'
    if stability >= 40:
        return 'Moderately consistent'
    return 'Irregular attendance'


def calculate_slope(points: Sequence[float]) -> float:
    """
    Least-squares slope of a series against its index.

    Positive means improving. Series shorter than two points have slope 0.
    """
    if points is None or len(points) < 2:
        return 0.0
    y = np.array([float(p) if p is not None else 0.0 for p in points])
    x = np.arange(len(y), dtype=float)
    n = len(y)
    denom = n * np.sum(x * x) - np.sum(x) ** 2
    if denom == 0:
        return 0.0
    return float((n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denom)


def predict_next_value(points: Sequence[float]) -> float:
    """Extend a series one step along its linear trend."""
    if not points:
        return 0.0
    if len(points) < 2:
        return float(points[0] or 0.0)
    return float(points[-1] or 0.0) + calculate_slope(points)
