"""Data models for the Academic Analytics service."""

import math
import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from academic_analytics.config import AnalyticsConfig, CamelModel, MarkLimits

PRESENT = 'Present'
ABSENT = 'Absent'

RISK_LEVELS = ('Low', 'Moderate', 'High', 'Critical')


def clean_numeric_value(value) -> Optional[float]:
    """
    Coerce a raw score into a finite float.

    Returns None for missing, non-numeric, NaN and infinite values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        val = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(val) or math.isinf(val):
        return None
    return val


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a spreadsheet does (0.5 always away from zero)."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, value))


def parse_record_date(value) -> Optional[dt.date]:
    """Parse a session date; anything unreadable becomes None."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return dt.datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            pass
        try:
            return dt.date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(frozen=True)


# --- Inputs ---

class AttendanceRecord(FrozenCamelModel):
    """One recorded attendance session for one subject on one date."""
    date: Optional[dt.date] = None
    subject_id: str = ''
    status: Literal['Present', 'Absent'] = ABSENT

    @field_validator('date', mode='before')
    @classmethod
    def _coerce_date(cls, value):
        return parse_record_date(value)

    @field_validator('subject_id', mode='before')
    @classmethod
    def _coerce_subject(cls, value):
        return '' if value is None else str(value)

    @field_validator('status', mode='before')
    @classmethod
    def _coerce_status(cls, value):
        if isinstance(value, str) and value.strip().lower() == 'present':
            return PRESENT
        return ABSENT


class MarkEntry(FrozenCamelModel):
    """Raw internal marks for one subject. Missing components stay None."""
    subject_id: str = ''
    test1: Optional[float] = None
    test2: Optional[float] = None
    assignment: Optional[float] = None

    @field_validator('subject_id', mode='before')
    @classmethod
    def _coerce_subject(cls, value):
        return '' if value is None else str(value)

    @field_validator('test1', 'test2', 'assignment', mode='before')
    @classmethod
    def _coerce_score(cls, value):
        return clean_numeric_value(value)

    @property
    def is_entered(self) -> bool:
        return any(v is not None for v in (self.test1, self.test2, self.assignment))


class MarkSubmission(CamelModel):
    """Strictly validated marks as entered by a teacher."""
    student_id: str
    subject_id: str
    test1: float = Field(ge=0)
    test2: float = Field(ge=0)
    assignment: float = Field(ge=0)

    def components_over(self, limits: MarkLimits) -> List[str]:
        """Components scored above their configured maximum."""
        return [
            f"{name}: {getattr(self, name):g} exceeds maximum {getattr(limits, name):g}"
            for name in ('test1', 'test2', 'assignment')
            if getattr(self, name) > getattr(limits, name)
        ]


class CohortStudent(CamelModel):
    """All engine inputs for one student."""
    student_id: str
    name: Optional[str] = None
    attendance: List[AttendanceRecord] = []
    marks: List[MarkEntry] = []


class ForecastInput(CamelModel):
    """One student's contribution to a cohort forecast."""
    total: Optional[float] = None
    attendance_pct: Optional[float] = None
    risk_level: str = 'Low'


# --- Outputs ---

class AttendanceSummary(CamelModel):
    total: int
    attended: int
    percentage: Optional[float] = None


class SubjectAttendance(AttendanceSummary):
    subject_id: str


class TrendResult(CamelModel):
    trend: Literal['Improving', 'Stable', 'Declining']
    stability: int
    stability_label: str = ''
    first_half_pct: Optional[float] = None
    second_half_pct: Optional[float] = None


class MarkResult(CamelModel):
    subject_id: str
    test1: float
    test2: float
    assignment: float
    total: float
    percentage: float
    passed: bool


class MarksSummary(CamelModel):
    results: List[MarkResult]
    average_total: Optional[float] = None
    passed_count: int = 0
    failed_count: int = 0
    focus_subjects: List[str] = []
    performance_trend: Literal['Improving', 'Stable', 'Declining'] = 'Stable'
    projected_test_percentage: Optional[float] = None


class RiskAssessment(CamelModel):
    """Derived risk view for one student. Never stored."""
    attendance_percentage: Optional[float] = None
    marks: Optional[float] = None
    risk_level: Literal['Low', 'Moderate', 'High', 'Critical']
    probability: float
    risk_reasons: List[str] = []


class ForecastResult(CamelModel):
    current_pass_rate: float = 0.0
    predicted_pass_rate: float = 0.0
    growth: float = 0.0
    at_risk_count: int = 0
    consistency_score: float = 0.0
    total_students: int = 0


class Recommendation(CamelModel):
    title: str
    description: str
    detail: str


class ComponentScores(CamelModel):
    test1: float = 0.0
    test2: float = 0.0
    assignment: float = 0.0


class ComponentDeviation(CamelModel):
    weak_component: str
    averages: ComponentScores
    percentages: ComponentScores


class SubjectHealth(CamelModel):
    subject_id: str
    average_score: float
    pass_rate: float
    total_students: int


class StudentReport(CamelModel):
    student_id: Optional[str] = None
    name: Optional[str] = None
    attendance: AttendanceSummary
    classes_needed: Optional[int] = None
    subject_attendance: List[SubjectAttendance] = []
    trend: TrendResult
    marks: MarksSummary
    risk: RiskAssessment
    recommendations: List[Recommendation] = []


class AtRiskStudent(CamelModel):
    student_id: Optional[str] = None
    name: Optional[str] = None
    attendance_percentage: Optional[float] = None
    marks: Optional[float] = None
    risk_level: str
    reason: str


class CohortReport(CamelModel):
    students: List[StudentReport]
    at_risk: List[AtRiskStudent]
    forecast: ForecastResult
    component_deviation: ComponentDeviation
    subject_health: List[SubjectHealth]
    insights: List[str] = []


# --- Requests ---

class AttendanceRequest(CamelModel):
    records: List[AttendanceRecord] = []
    config: Optional[Dict[str, Any]] = None


class AttendanceResponse(CamelModel):
    summary: AttendanceSummary
    classes_needed: Optional[int] = None
    subjects: List[SubjectAttendance] = []
    trend: TrendResult


class MarksRequest(CamelModel):
    entries: List[MarkEntry] = []
    config: Optional[Dict[str, Any]] = None


class StudentRequest(CamelModel):
    student_id: Optional[str] = None
    name: Optional[str] = None
    attendance: List[AttendanceRecord] = []
    marks: List[MarkEntry] = []
    config: Optional[Dict[str, Any]] = None


class CohortRequest(CamelModel):
    students: List[CohortStudent] = []
    config: Optional[Dict[str, Any]] = None


class SettingsResponse(CamelModel):
    valid: bool
    config: AnalyticsConfig
