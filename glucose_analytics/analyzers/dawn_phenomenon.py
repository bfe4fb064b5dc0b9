"""Detect dawn phenomenon across nights (overnight low to waking rise)."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

import pandas as pd

from ..analyzer_base import Analyzer
from ..models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    DawnDayReading,
    DawnPhenomenonReport,
    DawnSeverity,
    GlucoseSeries,
    RecentTrend,
    WeekdayDawnPattern,
)
from ..registry import register_analyzer
from .utils import WEEKDAY_NAMES, ensure_readings, filter_hour_window, prepare_series, sunday_first_weekday

MIN_READINGS = 50
DAWN_RISE_THRESHOLD = 30.0
DEFAULT_DAYS_TO_ANALYZE = 14
TREND_WINDOW_DAYS = 7
TREND_CHANGE_POINTS = 10.0

# (start_hour, end_hour), inclusive local hours
BEDTIME_WINDOW = (22, 23)
MIDNIGHT_WINDOW = (0, 2)
EARLY_MORNING_WINDOW = (4, 6)
WAKING_WINDOW = (6, 8)

_SEVERITY_RECOMMENDATIONS: dict[DawnSeverity, tuple[str, ...]] = {
    DawnSeverity.MILD: (
        "Try eating a small protein snack before bed to help stabilize overnight glucose.",
        "Consider adjusting your evening meal timing or composition.",
    ),
    DawnSeverity.MODERATE: (
        "Your basal insulin may need adjustment for overnight coverage.",
        "Consider using an insulin pump or long-acting insulin with different timing.",
        "Track your sleep quality - poor sleep can worsen dawn phenomenon.",
    ),
    DawnSeverity.SEVERE: (
        "Urgent: Discuss immediate basal insulin adjustments with your endocrinologist.",
        "Consider continuous glucose monitoring if not already using one.",
        "Your dawn phenomenon is significant and needs medical attention.",
    ),
}


def _window_average(day_frame: pd.DataFrame, window: tuple[int, int]) -> Optional[float]:
    selected = filter_hour_window(day_frame, *window)
    if selected.empty:
        return None
    return float(selected["glucose_mg_dL"].astype(float).mean())


def classify_day(
    service_date: date,
    bedtime: Optional[float],
    midnight: Optional[float],
    early_morning: Optional[float],
    waking: Optional[float],
    rise_threshold: float = DAWN_RISE_THRESHOLD,
) -> DawnDayReading:
    """Build one day's evidence; the classification is None when not computable."""

    overnight = [value for value in (midnight, early_morning) if value is not None]
    dawn_rise: Optional[float] = None
    has_dawn: Optional[bool] = None
    if overnight and waking is not None:
        dawn_rise = waking - min(overnight)
        has_dawn = dawn_rise >= rise_threshold

    return DawnDayReading(
        service_date=service_date,
        bedtime_glucose=bedtime,
        midnight_glucose=midnight,
        early_morning_glucose=early_morning,
        waking_glucose=waking,
        dawn_rise=dawn_rise,
        has_dawn_phenomenon=has_dawn,
    )


def daily_dawn_readings(
    series: GlucoseSeries,
    rise_threshold: float = DAWN_RISE_THRESHOLD,
) -> list[DawnDayReading]:
    """Window averages per local calendar day, oldest first."""

    return _dawn_days(prepare_series(series), rise_threshold)


def _dawn_days(frame: pd.DataFrame, rise_threshold: float) -> list[DawnDayReading]:
    if frame.empty:
        return []

    readings: list[DawnDayReading] = []
    for service_date, day_frame in frame.groupby("local_date", sort=True):
        readings.append(
            classify_day(
                service_date,
                bedtime=_window_average(day_frame, BEDTIME_WINDOW),
                midnight=_window_average(day_frame, MIDNIGHT_WINDOW),
                early_morning=_window_average(day_frame, EARLY_MORNING_WINDOW),
                waking=_window_average(day_frame, WAKING_WINDOW),
                rise_threshold=rise_threshold,
            )
        )
    return readings


def classify_severity(percentage: float, average_rise: float) -> DawnSeverity:
    if percentage < 20 or average_rise < 30:
        return DawnSeverity.NONE
    if percentage < 40 or average_rise < 50:
        return DawnSeverity.MILD
    if percentage < 70 or average_rise < 80:
        return DawnSeverity.MODERATE
    return DawnSeverity.SEVERE


def dawn_recommendations(severity: DawnSeverity, average_rise: float, percentage: float) -> tuple[str, ...]:
    if severity is DawnSeverity.NONE:
        return ("Your morning glucose patterns look good! Continue your current routine.",)

    recommendations = ["Consider discussing dawn phenomenon with your healthcare provider."]
    recommendations.extend(_SEVERITY_RECOMMENDATIONS[severity])
    if average_rise > 100:
        recommendations.append(
            "Your glucose rises are quite large - this may indicate insufficient overnight insulin."
        )
    if percentage > 80:
        recommendations.append("Dawn phenomenon occurs most days - consistent treatment approach needed.")
    return tuple(recommendations)


def _percentage(days: list[DawnDayReading]) -> float:
    if not days:
        return 0.0
    return sum(1 for day in days if day.has_dawn_phenomenon) / len(days) * 100.0


def _average_positive_rise(days: list[DawnDayReading]) -> tuple[float, float]:
    rises = [day.dawn_rise for day in days if day.dawn_rise is not None and day.dawn_rise > 0]
    if not rises:
        return 0.0, 0.0
    return sum(rises) / len(rises), max(rises)


def weekly_dawn_pattern(valid_days: list[DawnDayReading]) -> tuple[WeekdayDawnPattern, ...]:
    buckets: dict[int, list[DawnDayReading]] = {index: [] for index in range(7)}
    for day in valid_days:
        buckets[sunday_first_weekday(day.service_date)].append(day)

    pattern = []
    for index, name in enumerate(WEEKDAY_NAMES):
        days = buckets[index]
        average_rise, _ = _average_positive_rise(days)
        pattern.append(
            WeekdayDawnPattern(
                day=name,
                day_index=index,
                days=len(days),
                percentage=_percentage(days),
                average_rise=average_rise,
            )
        )
    return tuple(pattern)


def recent_dawn_trend(valid_days: list[DawnDayReading]) -> RecentTrend:
    """Last seven valid days against the seven before them."""

    if len(valid_days) < 2 * TREND_WINDOW_DAYS:
        return RecentTrend.STABLE

    recent = valid_days[-TREND_WINDOW_DAYS:]
    previous = valid_days[-2 * TREND_WINDOW_DAYS : -TREND_WINDOW_DAYS]
    difference = _percentage(recent) - _percentage(previous)
    if difference <= -TREND_CHANGE_POINTS:
        return RecentTrend.IMPROVING
    if difference >= TREND_CHANGE_POINTS:
        return RecentTrend.WORSENING
    return RecentTrend.STABLE


def analyze_dawn_phenomenon(
    series: GlucoseSeries,
    days_to_analyze: int = DEFAULT_DAYS_TO_ANALYZE,
    *,
    min_readings: int = MIN_READINGS,
    rise_threshold: float = DAWN_RISE_THRESHOLD,
) -> DawnPhenomenonReport:
    """Aggregate nightly dawn rises over the most recent ``days_to_analyze`` days."""

    if days_to_analyze <= 0:
        raise ValueError("days_to_analyze must be positive")

    frame = prepare_series(series)
    if not frame.empty:
        # whole local calendar days ending on the latest reading's day
        first_day = frame["local_date"].iloc[-1] - timedelta(days=days_to_analyze - 1)
        frame = frame.loc[frame["local_date"] >= first_day]
    ensure_readings(frame, min_readings, "dawn phenomenon analysis")

    days = _dawn_days(frame, rise_threshold)
    valid_days = [day for day in days if day.is_valid]

    dawn_days = sum(1 for day in valid_days if day.has_dawn_phenomenon)
    percentage = _percentage(valid_days)
    average_rise, max_rise = _average_positive_rise(valid_days)
    severity = classify_severity(percentage, average_rise)

    return DawnPhenomenonReport(
        analysis_date=days[-1].service_date if days else None,
        days_analyzed=len(valid_days),
        dawn_phenomenon_days=dawn_days,
        dawn_phenomenon_percentage=percentage,
        average_dawn_rise=average_rise,
        max_dawn_rise=max_rise,
        severity=severity,
        weekly_pattern=weekly_dawn_pattern(valid_days),
        recent_trend=recent_dawn_trend(valid_days),
        recommendations=dawn_recommendations(severity, average_rise, percentage),
        days=tuple(days),
    )


@register_analyzer
class DawnPhenomenonAnalyzer(Analyzer):
    id = "dawn_phenomenon"
    description = "Waking glucose rise of 30 mg/dL or more over the overnight low"
    version = "1.0.0"

    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        days_to_analyze = int(self.resolved_threshold(context, "days_to_analyze", DEFAULT_DAYS_TO_ANALYZE))
        min_readings = int(self.resolved_threshold(context, "min_readings", MIN_READINGS))
        rise_threshold = float(self.resolved_threshold(context, "dawn_rise_threshold", DAWN_RISE_THRESHOLD))
        return self.evaluate(
            context,
            lambda: analyze_dawn_phenomenon(
                inputs.series,
                days_to_analyze,
                min_readings=min_readings,
                rise_threshold=rise_threshold,
            ),
        )
