"""Estimated A1C from average glucose (ADA/NGSP formula)."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from ..analyzer_base import Analyzer
from ..models import (
    A1CCategory,
    A1CPeriodTrend,
    A1CReport,
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    DateRange,
    GlucoseSeries,
)
from ..registry import register_analyzer
from .utils import ensure_readings, prepare_series, week_start

MIN_READINGS = 50
MIN_PERIOD_READINGS = 10

_RECOMMENDATIONS = {
    A1CCategory.EXCELLENT: "Excellent control! Your A1C is in the non-diabetic range. Keep up the great work!",
    A1CCategory.GOOD: "Good control. Your A1C is in the prediabetic range. Continue your current management plan.",
    A1CCategory.FAIR: (
        "Fair control. Your A1C is at the ADA target for many adults with diabetes. "
        "Discuss with your healthcare provider if tighter control is appropriate."
    ),
    A1CCategory.POOR: (
        "Your A1C is above the recommended target. "
        "Work with your healthcare team to adjust your diabetes management plan."
    ),
    A1CCategory.VERY_POOR: (
        "Your A1C is significantly elevated. "
        "Please consult with your healthcare provider urgently to adjust your treatment plan."
    ),
}


def calculate_a1c(average_glucose: float) -> float:
    if average_glucose < 0 or average_glucose > 600:
        raise ValueError(f"Average glucose out of range: {average_glucose}")
    return (average_glucose + 46.7) / 28.7


def glucose_from_a1c(a1c: float) -> float:
    """Inverse of ``calculate_a1c``."""

    if a1c < 4 or a1c > 15:
        raise ValueError(f"A1C out of range: {a1c}")
    return a1c * 28.7 - 46.7


def categorize_a1c(a1c: float) -> A1CCategory:
    if a1c < 6.0:
        return A1CCategory.EXCELLENT
    if a1c < 6.5:
        return A1CCategory.GOOD
    if a1c < 7.5:
        return A1CCategory.FAIR
    if a1c < 9.0:
        return A1CCategory.POOR
    return A1CCategory.VERY_POOR


def a1c_recommendation(category: A1CCategory) -> str:
    return _RECOMMENDATIONS[category]


def calculate_a1c_trends(
    series: GlucoseSeries,
    period: Literal["weekly", "monthly"] = "monthly",
) -> list[A1CPeriodTrend]:
    """Per-period A1C with change from the previous reported period.

    Weekly periods are keyed by their Sunday start date, monthly periods by
    ``YYYY-MM``. Periods with fewer than ten readings are skipped.
    """

    if period not in ("weekly", "monthly"):
        raise ValueError(f"Unsupported trend period: {period!r}")

    frame = prepare_series(series)
    if frame.empty:
        return []

    if period == "weekly":
        keys = frame["local_date"].map(lambda day: week_start(day).isoformat())
    else:
        keys = frame["local_date"].map(lambda day: f"{day.year:04d}-{day.month:02d}")

    trends: list[A1CPeriodTrend] = []
    previous: Optional[float] = None
    for period_key, group in frame.groupby(keys, sort=True):
        if len(group) < MIN_PERIOD_READINGS:
            continue
        average = float(group["glucose_mg_dL"].astype(float).mean())
        estimate = calculate_a1c(average)
        change = estimate - previous if previous is not None else None
        change_pct = change / previous * 100.0 if previous is not None else None
        trends.append(
            A1CPeriodTrend(
                period=str(period_key),
                estimated_a1c=estimate,
                average_glucose=average,
                reading_count=int(len(group)),
                change=change,
                change_percentage=change_pct,
            )
        )
        previous = estimate
    return trends


def estimate_a1c(
    series: GlucoseSeries,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    period: Literal["weekly", "monthly"] = "monthly",
    min_readings: int = MIN_READINGS,
) -> A1CReport:
    if start is not None or end is not None:
        series = series.between(start, end)
    ensure_readings(series, min_readings, "A1C estimation")

    frame = prepare_series(series)
    average = float(frame["glucose_mg_dL"].astype(float).mean())
    estimate = calculate_a1c(average)
    category = categorize_a1c(estimate)

    return A1CReport(
        estimated_a1c=estimate,
        average_glucose=average,
        category=category,
        recommendation=a1c_recommendation(category),
        trend_series=tuple(calculate_a1c_trends(series, period)),
        reading_count=int(len(frame)),
        date_range=DateRange(
            start=frame["timestamp"].iloc[0].to_pydatetime(),
            end=frame["timestamp"].iloc[-1].to_pydatetime(),
        ),
    )


@register_analyzer
class A1CAnalyzer(Analyzer):
    id = "a1c_estimate"
    description = "Estimated A1C with category and period trend"
    version = "1.0.0"

    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        period = str(self.resolved_threshold(context, "a1c_trend_period", "monthly"))
        min_readings = int(self.resolved_threshold(context, "min_readings", MIN_READINGS))
        return self.evaluate(
            context,
            lambda: estimate_a1c(inputs.series, period=period, min_readings=min_readings),
        )
