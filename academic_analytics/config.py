"""Analytics configuration: thresholds, weightage and heuristic bands.

One ``AnalyticsConfig`` value is built once (from the environment or from a
settings payload) and passed explicitly to every calculator.
"""

import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

WEIGHT_TOLERANCE = 0.01


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvalidConfigurationError(ValueError):
    """Raised when analytics settings would corrupt downstream scores."""


class WeightConfig(CamelModel):
    """Component weights for the internal-marks total."""
    model_config = ConfigDict(extra='forbid')

    test1: float = 0.3
    test2: float = 0.3
    assignment: float = 0.4

    @field_validator('test1', 'test2', 'assignment')
    @classmethod
    def _weight_in_unit_range(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError('weights must be between 0 and 1')
        return value

    @model_validator(mode='after')
    def _weights_sum_to_one(self):
        total = self.test1 + self.test2 + self.assignment
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f'weights must sum to 1.0 (got {total:.2f})')
        return self


class MarkLimits(CamelModel):
    """Raw maximum for each mark component."""
    model_config = ConfigDict(extra='forbid')

    test1: float = 50.0
    test2: float = 50.0
    assignment: float = 50.0

    @field_validator('test1', 'test2', 'assignment')
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError('maximum marks must be positive')
        return value


class AnalyticsConfig(CamelModel):
    """Every threshold the analytics engine reads."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    min_attendance: float = 75.0
    pass_marks: float = 20.0
    weightage: WeightConfig = WeightConfig()
    max_marks: MarkLimits = MarkLimits()

    # Risk tiers
    marks_moderate_band: float = 5.0
    attendance_moderate_band: float = 5.0
    attendance_penalty: float = 2.0
    marks_penalty: float = 3.0
    irregular_stability: float = 40.0

    # Forecast
    boost_attendance: float = 85.0
    boost_factor: float = 1.05
    penalty_attendance: float = 60.0
    penalty_factor: float = 0.90
    forecast_uncertainty: float = 10.0

    # Recommendations
    focus_threshold: float = 50.0

    @field_validator(
        'min_attendance', 'pass_marks', 'irregular_stability',
        'boost_attendance', 'penalty_attendance', 'forecast_uncertainty',
        'focus_threshold',
    )
    @classmethod
    def _percentage_range(cls, value: float) -> float:
        if not 0.0 <= value <= 100.0:
            raise ValueError('thresholds must be between 0 and 100')
        return value

    @field_validator(
        'marks_moderate_band', 'attendance_moderate_band',
        'attendance_penalty', 'marks_penalty', 'boost_factor', 'penalty_factor',
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError('must not be negative')
        return value

    @property
    def attendance_threshold(self) -> float:
        """Minimum attendance as a fraction."""
        return self.min_attendance / 100.0


def build_config(settings: Optional[Dict] = None) -> AnalyticsConfig:
    """
    Validate a settings payload into an AnalyticsConfig.

    Args:
        settings: Mapping using either camelCase or snake_case keys

    Returns:
        Validated configuration

    Raises:
        InvalidConfigurationError: if weights or thresholds are out of range
    """
    try:
        return AnalyticsConfig.model_validate(settings or {})
    except ValidationError as e:
        messages = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidConfigurationError('; '.join(messages)) from e


def validate_weights(weights: Dict[str, float]) -> WeightConfig:
    """Reject weightage that does not sum to 1.0 within tolerance."""
    try:
        return WeightConfig.model_validate(weights)
    except ValidationError as e:
        raise InvalidConfigurationError(e.errors()[0]['msg']) from e


def _parse_pairs(raw: str) -> Dict[str, float]:
    """Parse ``key:value,key:value`` environment strings."""
    pairs = {}
    for item in raw.split(','):
        if not item.strip():
            continue
        key, value = item.split(':')
        pairs[key.strip()] = float(value.strip())
    return pairs


def load_config() -> AnalyticsConfig:
    """Build the service configuration from environment variables."""
    load_dotenv()

    settings: Dict = {}
    try:
        if os.getenv('MIN_ATTENDANCE'):
            settings['min_attendance'] = float(os.getenv('MIN_ATTENDANCE'))
        if os.getenv('PASS_MARKS'):
            settings['pass_marks'] = float(os.getenv('PASS_MARKS'))
        if os.getenv('WEIGHTAGE'):
            settings['weightage'] = _parse_pairs(os.getenv('WEIGHTAGE'))
        if os.getenv('MAX_MARKS'):
            settings['max_marks'] = _parse_pairs(os.getenv('MAX_MARKS'))
        if os.getenv('MODERATE_BANDS'):
            bands = _parse_pairs(os.getenv('MODERATE_BANDS'))
            if 'marks' in bands:
                settings['marks_moderate_band'] = bands['marks']
            if 'attendance' in bands:
                settings['attendance_moderate_band'] = bands['attendance']
    except ValueError as e:
        raise InvalidConfigurationError(f'Malformed analytics environment setting: {e}') from e

    return build_config(settings)
