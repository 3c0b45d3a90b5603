"""Shared builders for test data."""

from datetime import date, timedelta

from academic_analytics.models import AttendanceRecord

START = date(2024, 1, 1)


def make_records(statuses, subject_id="MATH", start=START):
    """One record per status on consecutive days."""
    return [
        AttendanceRecord(date=start + timedelta(days=i), subject_id=subject_id, status=status)
        for i, status in enumerate(statuses)
    ]
