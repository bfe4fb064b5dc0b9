"""Core data models for glucose analytics."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

import pandas as pd
from zoneinfo import ZoneInfo

PHYSIOLOGICAL_MIN = 40.0
PHYSIOLOGICAL_MAX = 400.0

FRAME_COLUMNS = ["timestamp", "local_time", "glucose_mg_dL"]

IOBFunction = Callable[[datetime], float]


class TrendDirection(str, Enum):
    """Device-reported direction of travel for a reading."""

    RISING_FAST = "rising_fast"
    RISING = "rising"
    FLAT = "flat"
    FALLING = "falling"
    FALLING_FAST = "falling_fast"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, label: Optional[str]) -> "TrendDirection":
        """Map a provider trend label (Dexcom style or our own) to a direction."""

        if not label:
            return cls.UNKNOWN
        normalized = label.strip()
        mapped = _PROVIDER_TRENDS.get(normalized) or _PROVIDER_TRENDS.get(normalized.lower())
        if mapped is not None:
            return mapped
        try:
            return cls(normalized.lower())
        except ValueError:
            return cls.UNKNOWN


_PROVIDER_TRENDS: dict[str, TrendDirection] = {
    "doubleUp": TrendDirection.RISING_FAST,
    "singleUp": TrendDirection.RISING,
    "fortyFiveUp": TrendDirection.RISING,
    "flat": TrendDirection.FLAT,
    "fortyFiveDown": TrendDirection.FALLING,
    "singleDown": TrendDirection.FALLING,
    "doubleDown": TrendDirection.FALLING_FAST,
    "risingFast": TrendDirection.RISING_FAST,
    "fallingFast": TrendDirection.FALLING_FAST,
}


class ReadingSource(str, Enum):
    """Provenance of a reading. Display only."""

    DEVICE = "device"
    MANUAL = "manual"


class DoseKind(str, Enum):
    BOLUS = "bolus"
    BASAL = "basal"


@dataclass(frozen=True)
class GlucoseReading:
    """A single timestamped glucose value in mg/dL."""

    timestamp: datetime
    value: float
    trend_direction: TrendDirection = TrendDirection.UNKNOWN
    source: ReadingSource = ReadingSource.DEVICE

    @property
    def is_outlier(self) -> bool:
        return not (PHYSIOLOGICAL_MIN <= self.value <= PHYSIOLOGICAL_MAX)


@dataclass(frozen=True)
class InsulinDoseEvent:
    """Insulin delivered at a point in time."""

    timestamp: datetime
    units: float
    kind: DoseKind = DoseKind.BOLUS
    duration_hours: Optional[float] = None

    def __post_init__(self) -> None:
        if self.units <= 0:
            raise ValueError("Insulin dose units must be positive")


@dataclass(frozen=True)
class GlucoseSeries:
    """Readings for one user over a query window.

    Readings are kept in the order the caller supplied them; analyzers that
    depend on chronology go through ``sorted()`` or ``to_frame()``.
    """

    readings: tuple[GlucoseReading, ...] = ()
    user_id: Optional[str] = None
    local_timezone: Optional[str] = None

    @classmethod
    def from_readings(
        cls,
        readings: Sequence[GlucoseReading],
        *,
        user_id: Optional[str] = None,
        local_timezone: Optional[str] = None,
    ) -> "GlucoseSeries":
        return cls(readings=tuple(readings), user_id=user_id, local_timezone=local_timezone)

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self) -> Iterator[GlucoseReading]:
        return iter(self.readings)

    def values(self) -> list[float]:
        return [float(reading.value) for reading in self.readings]

    def sorted(self) -> "GlucoseSeries":
        """Return a copy ordered by timestamp. Ties keep their input order."""

        ordered = sorted(self.readings, key=lambda reading: reading.timestamp)
        return GlucoseSeries(tuple(ordered), self.user_id, self.local_timezone)

    def between(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> "GlucoseSeries":
        """Return readings with ``start <= timestamp <= end`` (open bounds when None)."""

        kept = tuple(
            reading
            for reading in self.readings
            if (start is None or reading.timestamp >= start) and (end is None or reading.timestamp <= end)
        )
        return GlucoseSeries(kept, self.user_id, self.local_timezone)

    def latest(self) -> Optional[GlucoseReading]:
        if not self.readings:
            return None
        return max(self.readings, key=lambda reading: reading.timestamp)

    def to_frame(self) -> pd.DataFrame:
        """Return a chronologically sorted dataframe with a local-time column."""

        if not self.readings:
            return pd.DataFrame(columns=FRAME_COLUMNS)

        frame = pd.DataFrame(
            {
                "timestamp": [reading.timestamp for reading in self.readings],
                "glucose_mg_dL": [float(reading.value) for reading in self.readings],
            }
        )
        aware = any(reading.timestamp.tzinfo is not None for reading in self.readings)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=aware or self.local_timezone is not None)
        frame = frame.sort_values("timestamp", kind="mergesort").reset_index(drop=True)

        if self.local_timezone:
            frame["local_time"] = frame["timestamp"].dt.tz_convert(ZoneInfo(self.local_timezone))
        else:
            frame["local_time"] = frame["timestamp"]
        return frame[FRAME_COLUMNS]


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class RangeBucket:
    """Readings falling into one glycemic band."""

    count: int
    percentage: float
    threshold: str


@dataclass(frozen=True)
class TimeInRangeBreakdown:
    very_low: RangeBucket
    low: RangeBucket
    in_range: RangeBucket
    high: RangeBucket
    very_high: RangeBucket

    @property
    def below_range_percent(self) -> float:
        return self.very_low.percentage + self.low.percentage

    @property
    def above_range_percent(self) -> float:
        return self.high.percentage + self.very_high.percentage


@dataclass(frozen=True)
class RangeAssessment:
    tir_rating: str
    below_range_rating: str
    above_range_rating: str
    overall_rating: str
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class StatisticsReport:
    average: float
    minimum: float
    maximum: float
    standard_deviation: float
    coefficient_of_variation: float
    time_in_range_percent: float
    reading_count: int
    date_range: DateRange
    gmi: float
    ranges: TimeInRangeBreakdown
    assessment: RangeAssessment


@dataclass(frozen=True)
class TimeInRangeTrend:
    period: str
    in_range_percent: float
    below_range_percent: float
    above_range_percent: float
    average_glucose: float
    reading_count: int


@dataclass(frozen=True)
class HourlyPattern:
    """Aggregate for one local hour of day. Empty hours report zeros."""

    hour: int
    average: float
    count: int
    in_range_percent: float


@dataclass(frozen=True)
class GlucoseExcursion:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class WeeklyComparison:
    this_week_tir: float
    last_week_tir: float
    change: float


@dataclass(frozen=True)
class VariabilityReport:
    mag: Optional[float]
    j_index: float
    adrr: float
    hourly_patterns: tuple[HourlyPattern, ...]
    peaks: tuple[GlucoseExcursion, ...] = ()
    valleys: tuple[GlucoseExcursion, ...] = ()
    weekly_comparison: Optional[WeeklyComparison] = None


class DawnSeverity(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class RecentTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


@dataclass(frozen=True)
class DawnDayReading:
    """Window averages for one local calendar day."""

    service_date: date
    bedtime_glucose: Optional[float]
    midnight_glucose: Optional[float]
    early_morning_glucose: Optional[float]
    waking_glucose: Optional[float]
    dawn_rise: Optional[float]
    has_dawn_phenomenon: Optional[bool]

    @property
    def is_valid(self) -> bool:
        return self.has_dawn_phenomenon is not None


@dataclass(frozen=True)
class WeekdayDawnPattern:
    day: str
    day_index: int
    days: int
    percentage: float
    average_rise: float


@dataclass(frozen=True)
class DawnPhenomenonReport:
    analysis_date: Optional[date]
    days_analyzed: int
    dawn_phenomenon_days: int
    dawn_phenomenon_percentage: float
    average_dawn_rise: float
    max_dawn_rise: float
    severity: DawnSeverity
    weekly_pattern: tuple[WeekdayDawnPattern, ...]
    recent_trend: RecentTrend
    recommendations: tuple[str, ...]
    days: tuple[DawnDayReading, ...] = ()


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class PredictionFactors:
    current_trend: float
    iob_impact: float
    pattern_influence: float
    uncertainty: float


@dataclass(frozen=True)
class PredictionAlert:
    kind: str
    level: RiskLevel
    message: str
    estimated_minutes: int
    recommended_action: Optional[str] = None


@dataclass(frozen=True)
class PredictionReport:
    predicted_glucose: float
    time_horizon_minutes: int
    confidence: float
    factors: PredictionFactors
    alerts: tuple[PredictionAlert, ...]
    predictions: tuple[float, ...]
    slope: float
    trend: str
    risk_level: RiskLevel
    current_glucose: float
    iob_units: float = 0.0


class A1CCategory(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very-poor"


@dataclass(frozen=True)
class A1CPeriodTrend:
    period: str
    estimated_a1c: float
    average_glucose: float
    reading_count: int
    change: Optional[float]
    change_percentage: Optional[float]


@dataclass(frozen=True)
class A1CReport:
    estimated_a1c: float
    average_glucose: float
    category: A1CCategory
    recommendation: str
    trend_series: tuple[A1CPeriodTrend, ...]
    reading_count: int
    date_range: DateRange


@dataclass(frozen=True)
class AnalyzerDescriptor:
    """Static metadata describing an analyzer."""

    analyzer_id: str
    name: str
    description: str
    version: str = "1.0.0"
    inputs: tuple[str, ...] = ("glucose",)


class AnalysisStatus(str, Enum):
    """Outcome status of one analyzer run."""

    COMPLETED = "completed"
    INSUFFICIENT_DATA = "insufficient_data"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Standardized output for a single analyzer evaluation."""

    analyzer_id: str
    effective_date: date
    status: AnalysisStatus
    report: Any = None
    detail: Mapping[str, Any] = field(default_factory=dict)
    version: Optional[str] = None


@dataclass(frozen=True)
class AnalysisInput:
    """Everything fetched for one analysis request, shared by all analyzers."""

    series: GlucoseSeries
    insulin_doses: Sequence[InsulinDoseEvent] = ()
    iob_at: Optional[IOBFunction] = None


@dataclass(frozen=True)
class AnalysisContext:
    """Auxiliary context passed to each analyzer."""

    user_id: str
    analysis_date: date
    thresholds: Mapping[str, Any] = field(default_factory=dict)
    analyzer_settings: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def analyzer_threshold(self, analyzer_id: str, key: str, default: Any) -> Any:
        """Return analyzer-specific override, falling back to global thresholds"""

        specific = self.analyzer_settings.get(analyzer_id, {})
        if key in specific:
            return specific[key]
        return self.thresholds.get(key, default)
