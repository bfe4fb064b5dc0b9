"""Shared utilities for analyzer implementations."""
from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Sequence, Sized

import numpy as np
import pandas as pd

from ..errors import InsufficientDataError
from ..models import GlucoseSeries

TARGET_LOW = 70.0
TARGET_HIGH = 180.0

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def ensure_readings(series: Sized, minimum: int, purpose: str) -> None:
    """Raise ``InsufficientDataError`` when the series or frame is shorter than ``minimum``."""

    if len(series) < minimum:
        raise InsufficientDataError(
            f"Insufficient glucose data for {purpose} (need at least {minimum} readings, got {len(series)})",
            required=minimum,
            actual=len(series),
        )


def prepare_series(series: GlucoseSeries) -> pd.DataFrame:
    """Return a sorted dataframe with local hour and local date columns."""

    frame = series.to_frame()
    frame = frame.dropna(subset=["timestamp", "glucose_mg_dL"])
    if frame.empty:
        return frame.reindex(columns=[*frame.columns, "hour", "local_date"])

    frame = frame.copy()
    frame["hour"] = frame["local_time"].dt.hour
    frame["local_date"] = frame["local_time"].dt.date
    return frame.reset_index(drop=True)


def filter_hour_window(frame: pd.DataFrame, start_hour: int, end_hour: int) -> pd.DataFrame:
    """Slice the prepared dataframe to whole local hours.

    Both bounds are inclusive hours of day, so ``(0, 2)`` keeps 00:00-02:59.
    When ``start_hour > end_hour`` the window wraps past midnight.
    """

    if frame.empty:
        return frame

    hours = frame["hour"]
    if start_hour <= end_hour:
        mask = (hours >= start_hour) & (hours <= end_hour)
    else:
        mask = (hours >= start_hour) | (hours <= end_hour)
    return frame.loc[mask]


def percent_in_range(values: pd.Series | np.ndarray, low: float = TARGET_LOW, high: float = TARGET_HIGH) -> float:
    """Percentage of values within ``[low, high]`` inclusive. Zero for no values."""

    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return 0.0
    return float(((array >= low) & (array <= high)).sum()) / array.size * 100.0


def coefficient_of_variation(series: pd.Series) -> float | None:
    if series.empty:
        return None
    mean_val = float(series.mean())
    if math.isnan(mean_val) or mean_val == 0:
        return None
    std_val = float(series.std(ddof=0))
    if math.isnan(std_val):
        return None
    return std_val / mean_val


def sunday_first_weekday(day: date) -> int:
    """Day-of-week index with Sunday as 0."""

    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""

    return day - timedelta(days=sunday_first_weekday(day))


def linear_fit(values: Sequence[float]) -> tuple[float, float]:
    """Ordinary least squares of value against index; returns ``(slope, intercept)``."""

    y = np.asarray(values, dtype=float)
    n = y.size
    if n == 0:
        raise ValueError("Cannot fit an empty sequence")
    if n == 1:
        return 0.0, float(y[0])

    x = np.arange(n, dtype=float)
    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float((x * y).sum())
    sum_xx = float((x * x).sum())
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
