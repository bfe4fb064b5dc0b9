"""Descriptive statistics and time-in-range over a glucose series."""
from __future__ import annotations

from typing import Literal

import numpy as np

from ..analyzer_base import Analyzer
from ..models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    DateRange,
    GlucoseSeries,
    RangeAssessment,
    RangeBucket,
    StatisticsReport,
    TimeInRangeBreakdown,
    TimeInRangeTrend,
)
from ..registry import register_analyzer
from .utils import (
    TARGET_HIGH,
    TARGET_LOW,
    coefficient_of_variation,
    ensure_readings,
    percent_in_range,
    prepare_series,
    week_start,
)

VERY_LOW_MAX = 54.0
HIGH_MAX = 250.0

# ADA/ATTD consensus goals, in percent of readings
TIR_TARGETS = {
    "in_range": {"target": 70.0, "good": 70.0, "fair": 50.0},
    "below_range": {"target": 4.0, "good": 4.0, "fair": 10.0},
    "very_low": {"target": 1.0, "good": 1.0, "fair": 5.0},
    "above_range": {"target": 25.0, "good": 25.0, "fair": 40.0},
    "very_high": {"target": 5.0, "good": 5.0, "fair": 15.0},
}

HIGH_VARIABILITY_CV = 36.0
MIN_TREND_PERIOD_READINGS = 10

_RATING_ORDER = ("excellent", "good", "fair", "poor")


def compute_statistics(series: GlucoseSeries) -> StatisticsReport:
    """Aggregate a series into mean, spread, extremes and time-in-range."""

    ensure_readings(series, 1, "glucose statistics")

    frame = prepare_series(series)
    glucose = frame["glucose_mg_dL"].astype(float)
    values = glucose.to_numpy()

    average = float(glucose.mean())
    std = float(glucose.std(ddof=0))
    cv_ratio = coefficient_of_variation(glucose)
    cv = cv_ratio * 100.0 if cv_ratio is not None else 0.0

    ranges = _range_breakdown(values)
    assessment = assess_time_in_range(
        ranges.in_range.percentage,
        ranges.below_range_percent,
        ranges.above_range_percent,
        ranges.very_low.percentage,
        cv,
    )

    return StatisticsReport(
        average=average,
        minimum=float(values.min()),
        maximum=float(values.max()),
        standard_deviation=std,
        coefficient_of_variation=cv,
        time_in_range_percent=percent_in_range(values),
        reading_count=int(values.size),
        date_range=DateRange(
            start=frame["timestamp"].iloc[0].to_pydatetime(),
            end=frame["timestamp"].iloc[-1].to_pydatetime(),
        ),
        gmi=glucose_management_indicator(average),
        ranges=ranges,
        assessment=assessment,
    )


def glucose_management_indicator(average_glucose: float) -> float:
    return 3.31 + 0.02392 * average_glucose


def _range_breakdown(values: np.ndarray) -> TimeInRangeBreakdown:
    total = values.size
    very_low = int((values < VERY_LOW_MAX).sum())
    low = int(((values >= VERY_LOW_MAX) & (values < TARGET_LOW)).sum())
    in_range = int(((values >= TARGET_LOW) & (values <= TARGET_HIGH)).sum())
    high = int(((values > TARGET_HIGH) & (values <= HIGH_MAX)).sum())
    very_high = total - very_low - low - in_range - high

    def bucket(count: int, threshold: str) -> RangeBucket:
        return RangeBucket(count=count, percentage=count / total * 100.0 if total else 0.0, threshold=threshold)

    return TimeInRangeBreakdown(
        very_low=bucket(very_low, f"< {VERY_LOW_MAX:g} mg/dL"),
        low=bucket(low, f"{VERY_LOW_MAX:g}-{TARGET_LOW:g} mg/dL"),
        in_range=bucket(in_range, f"{TARGET_LOW:g}-{TARGET_HIGH:g} mg/dL"),
        high=bucket(high, f"{TARGET_HIGH:g}-{HIGH_MAX:g} mg/dL"),
        very_high=bucket(very_high, f"> {HIGH_MAX:g} mg/dL"),
    )


def _rate_at_least(value: float, goals: dict[str, float]) -> str:
    if value >= goals["target"]:
        return "excellent"
    if value >= goals["good"]:
        return "good"
    if value >= goals["fair"]:
        return "fair"
    return "poor"


def _rate_at_most(value: float, goals: dict[str, float]) -> str:
    if value <= goals["target"]:
        return "excellent"
    if value <= goals["good"]:
        return "good"
    if value <= goals["fair"]:
        return "fair"
    return "poor"


def assess_time_in_range(
    in_range_percent: float,
    below_range_percent: float,
    above_range_percent: float,
    very_low_percent: float,
    cv_percent: float,
) -> RangeAssessment:
    """Rate each band against consensus goals; overall is the worst rating."""

    tir_rating = _rate_at_least(in_range_percent, TIR_TARGETS["in_range"])
    below_rating = _rate_at_most(below_range_percent, TIR_TARGETS["below_range"])
    above_rating = _rate_at_most(above_range_percent, TIR_TARGETS["above_range"])
    overall = max((tir_rating, below_rating, above_rating), key=_RATING_ORDER.index)

    recommendations: list[str] = []
    if tir_rating == "excellent":
        recommendations.append("Excellent glucose control! Keep up the great work.")
    elif tir_rating == "poor":
        recommendations.append(
            "Time-in-range is below target. Work with your healthcare team to adjust your diabetes management plan."
        )
    if below_range_percent > TIR_TARGETS["below_range"]["target"]:
        recommendations.append(
            "Reduce time below range by adjusting insulin doses or eating more carbs before lows."
        )
    if very_low_percent > TIR_TARGETS["very_low"]["target"]:
        recommendations.append(
            "Urgent: Too much time in very low range. Discuss with your healthcare provider immediately."
        )
    if above_range_percent > TIR_TARGETS["above_range"]["target"]:
        recommendations.append(
            "Reduce time above range by adjusting insulin doses, meal timing, or carb intake."
        )
    if cv_percent > HIGH_VARIABILITY_CV:
        recommendations.append(
            "High glucose variability detected. Focus on consistent meal timing and insulin dosing."
        )
    if not recommendations:
        recommendations.append("Your glucose control is on track. Continue your current management plan.")

    return RangeAssessment(
        tir_rating=tir_rating,
        below_range_rating=below_rating,
        above_range_rating=above_rating,
        overall_rating=overall,
        recommendations=tuple(recommendations),
    )


def compute_time_in_range_trends(
    series: GlucoseSeries,
    period: Literal["daily", "weekly"] = "daily",
) -> list[TimeInRangeTrend]:
    """Time-in-range per local day or per Sunday-started week."""

    if period not in ("daily", "weekly"):
        raise ValueError(f"Unsupported trend period: {period!r}")

    frame = prepare_series(series)
    if frame.empty:
        return []

    if period == "daily":
        keys = frame["local_date"].map(lambda day: day.isoformat())
    else:
        keys = frame["local_date"].map(lambda day: week_start(day).isoformat())

    trends: list[TimeInRangeTrend] = []
    for period_key, group in frame.groupby(keys, sort=True):
        values = group["glucose_mg_dL"].astype(float).to_numpy()
        if values.size < MIN_TREND_PERIOD_READINGS:
            continue
        trends.append(
            TimeInRangeTrend(
                period=str(period_key),
                in_range_percent=percent_in_range(values),
                below_range_percent=float((values < TARGET_LOW).sum()) / values.size * 100.0,
                above_range_percent=float((values > TARGET_HIGH).sum()) / values.size * 100.0,
                average_glucose=float(values.mean()),
                reading_count=int(values.size),
            )
        )
    return trends


@register_analyzer
class StatisticsAnalyzer(Analyzer):
    id = "statistics"
    description = "Mean, spread, extremes and time-in-range"
    version = "1.0.0"

    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        return self.evaluate(context, lambda: compute_statistics(inputs.series))
