import asyncio
from datetime import date
import json
from pathlib import Path

import pandas as pd
import pytest

from glucose_analytics.analyzers.statistics import compute_statistics
from glucose_analytics.models import (
    AnalysisOutcome,
    AnalysisStatus,
    DoseKind,
    GlucoseReading,
    GlucoseSeries,
    ReadingSource,
    TrendDirection,
)
from glucose_analytics.run_batch import (
    CallableSource,
    JsonDirectorySource,
    outcome_to_dict,
    record_to_dose,
    record_to_reading,
    run,
)


def _reading_records(count: int, value: float = 120.0) -> list[dict]:
    timestamps = pd.date_range(start=pd.Timestamp("2024-01-01"), periods=count, freq="5min", tz="UTC")
    return [{"timestamp": ts.isoformat(), "value": value, "trend": "flat"} for ts in timestamps]


def test_json_directory_source_reads_readings_and_doses(tmp_path: Path):
    data = {
        "readings": _reading_records(3),
        "insulin_doses": [{"timestamp": "2024-01-01T00:05:00Z", "units": 2, "kind": "basal"}],
    }
    (tmp_path / "user-1.json").write_text(json.dumps(data))

    source = JsonDirectorySource(tmp_path, local_timezone="Europe/Berlin")
    series = asyncio.run(source.fetch_glucose_series("user-1", None, None))
    doses = asyncio.run(source.fetch_insulin_doses("user-1", None, None))

    assert len(series) == 3
    assert series.user_id == "user-1"
    assert series.local_timezone == "Europe/Berlin"
    assert series.readings[0].trend_direction is TrendDirection.FLAT
    assert len(doses) == 1
    assert doses[0].kind is DoseKind.BASAL


def test_json_directory_source_accepts_bare_list(tmp_path: Path):
    (tmp_path / "user-2.json").write_text(json.dumps(_reading_records(4)))
    source = JsonDirectorySource(tmp_path)
    assert len(asyncio.run(source.fetch_glucose_series("user-2", None, None))) == 4
    assert asyncio.run(source.fetch_insulin_doses("user-2", None, None)) == []


def test_json_directory_source_requires_directory(tmp_path: Path):
    with pytest.raises(ValueError):
        JsonDirectorySource(tmp_path / "missing")
    source = JsonDirectorySource(tmp_path)
    with pytest.raises(FileNotFoundError):
        asyncio.run(source.fetch_glucose_series("nobody", None, None))


def test_callable_source_filters_window():
    def fetcher(user_id: str):
        return {"readings": _reading_records(5)}

    source = CallableSource(fetcher)
    start = pd.Timestamp("2024-01-01T00:05:00Z").to_pydatetime()
    end = pd.Timestamp("2024-01-01T00:15:00Z").to_pydatetime()
    series = asyncio.run(source.fetch_glucose_series("user-3", start, end))
    assert len(series) == 3


def test_record_conversion_validates_fields():
    reading = record_to_reading({"timestamp": "2024-01-01T00:00:00Z", "value": 98, "source": "manual"})
    assert reading.value == 98
    assert reading.source is ReadingSource.MANUAL
    assert reading.trend_direction is TrendDirection.UNKNOWN
    with pytest.raises(ValueError):
        record_to_reading({"timestamp": "2024-01-01T00:00:00Z"})
    with pytest.raises(ValueError):
        record_to_dose({"timestamp": "2024-01-01T00:00:00Z", "units": 0})


def test_outcome_to_dict_serializes_nested_reports():
    readings = [
        GlucoseReading(timestamp=ts.to_pydatetime(), value=110.0)
        for ts in pd.date_range(start=pd.Timestamp("2024-01-01"), periods=3, freq="5min", tz="UTC")
    ]
    outcome = AnalysisOutcome(
        analyzer_id="statistics",
        effective_date=date(2024, 1, 1),
        status=AnalysisStatus.COMPLETED,
        report=compute_statistics(GlucoseSeries.from_readings(readings)),
        version="1.0.0",
    )
    payload = outcome_to_dict(outcome)

    assert payload["status"] == "completed"
    assert payload["effective_date"] == "2024-01-01"
    assert payload["report"]["average"] == 110
    assert payload["report"]["ranges"]["in_range"]["count"] == 3
    assert payload["report"]["date_range"]["start"].startswith("2024-01-01T00:00:00")
    json.dumps(payload)


def test_run_processes_users_with_filter(tmp_path: Path):
    (tmp_path / "u1.json").write_text(json.dumps({"readings": _reading_records(12)}))

    results = run(["u1"], JsonDirectorySource(tmp_path), analyzers=["statistics", "trend_prediction"])

    assert [item["analyzer_id"] for item in results["u1"]] == ["statistics", "trend_prediction"]
    assert all(item["status"] == "completed" for item in results["u1"])
    assert results["u1"][1]["report"]["risk_level"] == "low"
    json.dumps(results)
