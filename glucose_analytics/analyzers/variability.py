"""Clinical variability indices and hourly glucose patterns."""
from __future__ import annotations

from datetime import timedelta

import numpy as np
import pandas as pd

from ..analyzer_base import Analyzer
from ..models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    GlucoseExcursion,
    GlucoseSeries,
    HourlyPattern,
    VariabilityReport,
    WeeklyComparison,
)
from ..registry import register_analyzer
from .utils import ensure_readings, percent_in_range, prepare_series

ADRR_REFERENCE = 112.5
ADRR_EXPONENT = 1.084
PEAK_THRESHOLD = 200.0
VALLEY_THRESHOLD = 80.0
EXCURSIONS_REPORTED = 5


def mean_absolute_glucose(values: np.ndarray) -> float | None:
    """Mean absolute change between consecutive readings, None below two readings."""

    if values.size < 2:
        return None
    return float(np.abs(np.diff(values)).mean())


def j_index(values: np.ndarray) -> float:
    return 0.001 * (float(values.mean()) + float(values.std(ddof=0))) ** 2


def adrr_score(values: np.ndarray) -> float:
    # readings at or below the reference point carry no risk
    ratio = np.maximum(values / ADRR_REFERENCE, 1.0)
    risk = 10.0 * np.log(ratio) ** ADRR_EXPONENT
    return float(risk.mean())


def hourly_patterns(frame: pd.DataFrame) -> tuple[HourlyPattern, ...]:
    """Twenty-four local-hour buckets; hours without readings report zeros."""

    patterns: list[HourlyPattern] = []
    grouped = {int(hour): group for hour, group in frame.groupby("hour")} if not frame.empty else {}
    for hour in range(24):
        group = grouped.get(hour)
        if group is None or group.empty:
            patterns.append(HourlyPattern(hour=hour, average=0.0, count=0, in_range_percent=0.0))
            continue
        values = group["glucose_mg_dL"].astype(float).to_numpy()
        patterns.append(
            HourlyPattern(
                hour=hour,
                average=float(values.mean()),
                count=int(values.size),
                in_range_percent=percent_in_range(values),
            )
        )
    return tuple(patterns)


def find_excursions(frame: pd.DataFrame) -> tuple[tuple[GlucoseExcursion, ...], tuple[GlucoseExcursion, ...]]:
    """Local maxima above 200 and local minima below 80, most recent five of each."""

    values = frame["glucose_mg_dL"].astype(float).to_numpy()
    timestamps = frame["timestamp"]
    peaks: list[GlucoseExcursion] = []
    valleys: list[GlucoseExcursion] = []
    for idx in range(1, values.size - 1):
        prev_value, value, next_value = values[idx - 1], values[idx], values[idx + 1]
        if value > prev_value and value > next_value and value > PEAK_THRESHOLD:
            peaks.append(GlucoseExcursion(timestamp=timestamps.iloc[idx].to_pydatetime(), value=float(value)))
        elif value < prev_value and value < next_value and value < VALLEY_THRESHOLD:
            valleys.append(GlucoseExcursion(timestamp=timestamps.iloc[idx].to_pydatetime(), value=float(value)))
    return tuple(peaks[-EXCURSIONS_REPORTED:]), tuple(valleys[-EXCURSIONS_REPORTED:])


def weekly_comparison(frame: pd.DataFrame) -> WeeklyComparison:
    """Time-in-range over the last seven days against the seven days before."""

    latest = frame["timestamp"].iloc[-1]
    week = pd.Timedelta(timedelta(days=7))
    this_week = frame.loc[frame["timestamp"] > latest - week, "glucose_mg_dL"]
    last_week = frame.loc[
        (frame["timestamp"] <= latest - week) & (frame["timestamp"] > latest - 2 * week),
        "glucose_mg_dL",
    ]
    this_tir = percent_in_range(this_week)
    last_tir = percent_in_range(last_week)
    return WeeklyComparison(this_week_tir=this_tir, last_week_tir=last_tir, change=this_tir - last_tir)


def compute_variability(series: GlucoseSeries) -> VariabilityReport:
    ensure_readings(series, 1, "variability analysis")

    frame = prepare_series(series)
    values = frame["glucose_mg_dL"].astype(float).to_numpy()
    peaks, valleys = find_excursions(frame)

    return VariabilityReport(
        mag=mean_absolute_glucose(values),
        j_index=j_index(values),
        adrr=adrr_score(values),
        hourly_patterns=hourly_patterns(frame),
        peaks=peaks,
        valleys=valleys,
        weekly_comparison=weekly_comparison(frame),
    )


@register_analyzer
class VariabilityAnalyzer(Analyzer):
    id = "variability"
    description = "MAG, J-Index, ADRR and hourly patterns"
    version = "1.0.0"

    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        return self.evaluate(context, lambda: compute_variability(inputs.series))
