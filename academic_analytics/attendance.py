"""Attendance aggregation: counts, percentage and classes needed."""

import logging
import math
from typing import Dict, Iterable, List, Optional

from academic_analytics.models import (
    PRESENT,
    AttendanceRecord,
    AttendanceSummary,
    SubjectAttendance,
    clamp,
    round_half_up,
)

logger = logging.getLogger(__name__)


def is_present(status) -> bool:
    """Only an explicit 'Present' counts; anything else is an absence."""
    return isinstance(status, str) and status.strip().lower() == PRESENT.lower()


def attendance_percentage(attended: int, total: int) -> Optional[float]:
    """Percentage of sessions attended, or None when nothing was conducted."""
    if total <= 0:
        return None
    return clamp(round_half_up(attended / total * 100.0, 2))


def summarize_attendance(records: Iterable[AttendanceRecord]) -> AttendanceSummary:
    """
    Count sessions and attended sessions.

    Args:
        records: Attendance history for one subject, or flattened across subjects

    Returns:
        AttendanceSummary with percentage None when there are no sessions
    """
    total = 0
    attended = 0
    for record in records:
        total += 1
        if is_present(record.status):
            attended += 1

    return AttendanceSummary(
        total=total,
        attended=attended,
        percentage=attendance_percentage(attended, total),
    )


def classes_needed(attended: int, total: int, threshold: float = 0.75) -> Optional[int]:
    """
    Consecutive sessions that must be attended to reach the threshold.

    Smallest x >= 0 with (attended + x) / (total + x) >= threshold, i.e.
    ceil((threshold * total - attended) / (1 - threshold)).

    Args:
        attended: Sessions attended so far
        total: Sessions conducted so far
        threshold: Minimum attendance as a fraction (0.75 for 75%)

    Returns:
        Number of sessions, 0 when already compliant or no sessions yet,
        None when the threshold can no longer be reached (threshold of 100%
        with at least one absence)
    """
    if total <= 0:
        return 0
    if threshold >= 1.0:
        return 0 if attended >= total else None

    shortfall = (threshold * total - attended) / (1.0 - threshold)
    # Strip float noise such as 20.000000000000004 before the ceiling
    needed = math.ceil(round(shortfall, 9))
    return max(0, needed)


def attendance_by_subject(records: Iterable[AttendanceRecord]) -> List[SubjectAttendance]:
    """Per-subject attendance table, in order of first appearance."""
    grouped: Dict[str, List[AttendanceRecord]] = {}
    for record in records:
        grouped.setdefault(record.subject_id, []).append(record)

    table = []
    for subject_id, subject_records in grouped.items():
        summary = summarize_attendance(subject_records)
        table.append(SubjectAttendance(subject_id=subject_id, **summary.model_dump()))

    logger.debug("Attendance grouped into %s subjects", len(table))
    return table
