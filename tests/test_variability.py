from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from glucose_analytics.analyzers.variability import adrr_score, compute_variability
from glucose_analytics.errors import InsufficientDataError
from glucose_analytics.models import GlucoseReading, GlucoseSeries


def _series(values, start: str = "2024-01-01", freq: str = "5min") -> GlucoseSeries:
    timestamps = pd.date_range(start=pd.Timestamp(start), periods=len(values), freq=freq, tz="UTC")
    return GlucoseSeries.from_readings(
        [GlucoseReading(timestamp=ts.to_pydatetime(), value=float(v)) for ts, v in zip(timestamps, values)]
    )


def test_constant_series_variability():
    report = compute_variability(_series(np.full(60, 120.0)))
    assert report.mag == 0
    # 0.001 * (120 + 0) ** 2
    assert report.j_index == pytest.approx(14.4)
    assert report.adrr == pytest.approx(10 * math.log(120 / 112.5) ** 1.084)


def test_mag_uses_chronological_order():
    series = _series([100, 150, 100, 150])
    readings = series.readings
    shuffled = GlucoseSeries.from_readings([readings[0], readings[2], readings[1], readings[3]])

    naive_mag = float(np.abs(np.diff(shuffled.values())).mean())
    report = compute_variability(shuffled)

    assert report.mag == pytest.approx(50.0)
    assert naive_mag != pytest.approx(50.0)
    assert report.mag == compute_variability(series).mag


def test_single_reading_has_no_mag():
    report = compute_variability(_series([150]))
    assert report.mag is None
    assert report.j_index == pytest.approx(0.001 * 150.0**2)


def test_empty_series_raises():
    with pytest.raises(InsufficientDataError):
        compute_variability(GlucoseSeries())


def test_adrr_scores_only_readings_above_reference():
    assert adrr_score(np.array([112.5])) == 0
    assert adrr_score(np.array([60.0, 80.0, 112.5])) == 0
    high = 10 * math.log(200 / 112.5) ** 1.084
    assert adrr_score(np.array([200.0])) == pytest.approx(high)
    # lows dilute the mean without adding risk
    assert adrr_score(np.array([60.0, 200.0])) == pytest.approx(high / 2)


def test_hourly_patterns_zero_sentinel_for_empty_hours():
    report = compute_variability(_series(np.full(60, 120.0)))
    patterns = report.hourly_patterns
    assert len(patterns) == 24
    assert [pattern.hour for pattern in patterns] == list(range(24))
    assert patterns[0].count == 12
    assert patterns[0].average == 120
    assert patterns[0].in_range_percent == 100
    assert patterns[10].count == 0
    assert patterns[10].average == 0
    assert patterns[10].in_range_percent == 0


def test_peaks_and_valleys():
    report = compute_variability(_series([150, 210, 150, 70, 150, 190, 150]))
    assert [peak.value for peak in report.peaks] == [210]
    assert [valley.value for valley in report.valleys] == [70]


def test_weekly_comparison_relative_to_latest_reading():
    base = pd.Timestamp("2024-01-15T00:00:00Z")
    points = [
        (base - pd.Timedelta(days=10), 250.0),
        (base - pd.Timedelta(days=9), 100.0),
        (base - pd.Timedelta(days=1), 100.0),
        (base, 100.0),
    ]
    series = GlucoseSeries.from_readings(
        [GlucoseReading(timestamp=ts.to_pydatetime(), value=value) for ts, value in points]
    )
    comparison = compute_variability(series).weekly_comparison
    assert comparison.this_week_tir == 100
    assert comparison.last_week_tir == 50
    assert comparison.change == 50
