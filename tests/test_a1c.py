from __future__ import annotations

from datetime import datetime, timezone

import pandas as pd
import pytest

from glucose_analytics.analyzers.a1c import (
    a1c_recommendation,
    calculate_a1c,
    calculate_a1c_trends,
    categorize_a1c,
    estimate_a1c,
    glucose_from_a1c,
)
from glucose_analytics.errors import InsufficientDataError
from glucose_analytics.models import A1CCategory, GlucoseReading, GlucoseSeries


def _series(values, start: str = "2024-01-01", freq: str = "5min") -> GlucoseSeries:
    timestamps = pd.date_range(start=pd.Timestamp(start), periods=len(values), freq=freq, tz="UTC")
    return GlucoseSeries.from_readings(
        [GlucoseReading(timestamp=ts.to_pydatetime(), value=float(v)) for ts, v in zip(timestamps, values)]
    )


def test_average_154_is_about_seven_percent():
    report = estimate_a1c(_series([154.0] * 50))
    assert report.estimated_a1c == pytest.approx((154 + 46.7) / 28.7)
    assert report.estimated_a1c == pytest.approx(7.0, abs=0.01)
    assert report.category is A1CCategory.FAIR
    assert report.recommendation == a1c_recommendation(A1CCategory.FAIR)
    assert report.reading_count == 50
    assert len(report.trend_series) == 1
    assert report.trend_series[0].change is None


@pytest.mark.parametrize(
    ("a1c", "category"),
    [
        (5.99, A1CCategory.EXCELLENT),
        (6.0, A1CCategory.GOOD),
        (6.49, A1CCategory.GOOD),
        (6.5, A1CCategory.FAIR),
        (7.49, A1CCategory.FAIR),
        (7.5, A1CCategory.POOR),
        (8.99, A1CCategory.POOR),
        (9.0, A1CCategory.VERY_POOR),
    ],
)
def test_category_cut_points(a1c, category):
    assert categorize_a1c(a1c) is category


def test_minimum_reading_boundary():
    with pytest.raises(InsufficientDataError) as exc_info:
        estimate_a1c(_series([150.0] * 49))
    assert exc_info.value.required == 50
    assert exc_info.value.actual == 49

    estimate_a1c(_series([150.0] * 50))


def test_date_window_applies_before_minimum_check():
    series = _series([150.0] * 100)
    with pytest.raises(InsufficientDataError):
        estimate_a1c(series, end=datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc))


def test_formula_bounds_and_inverse():
    with pytest.raises(ValueError):
        calculate_a1c(601)
    with pytest.raises(ValueError):
        calculate_a1c(-1)
    with pytest.raises(ValueError):
        glucose_from_a1c(3.9)
    with pytest.raises(ValueError):
        glucose_from_a1c(15.1)
    assert glucose_from_a1c(calculate_a1c(154.0)) == pytest.approx(154.0)


def test_monthly_trends_report_change():
    january = _series([126.0] * 20, start="2024-01-10", freq="1h")
    february = _series([154.0] * 20, start="2024-02-10", freq="1h")
    sparse = _series([300.0] * 5, start="2024-03-10", freq="1h")
    series = GlucoseSeries.from_readings(january.readings + february.readings + sparse.readings)

    trends = calculate_a1c_trends(series, "monthly")

    assert [trend.period for trend in trends] == ["2024-01", "2024-02"]
    previous = calculate_a1c(126.0)
    current = calculate_a1c(154.0)
    assert trends[0].change is None
    assert trends[1].change == pytest.approx(current - previous)
    assert trends[1].change_percentage == pytest.approx((current - previous) / previous * 100)


def test_weekly_trends_keyed_by_sunday():
    # 2024-01-01 is a Monday
    trends = calculate_a1c_trends(_series([140.0] * 12, freq="1h"), "weekly")
    assert [trend.period for trend in trends] == ["2023-12-31"]


def test_trends_of_empty_series():
    assert calculate_a1c_trends(GlucoseSeries()) == []
