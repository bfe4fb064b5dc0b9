"""Command-line utility for running glucose analytics across users.

The tool expects per-user JSON files named ``<user_id>.json`` inside a data
directory::

    {
        "readings": [
            {"timestamp": "2025-01-01T00:00:00Z", "value": 110, "trend": "flat"},
            ...
        ],
        "insulin_doses": [
            {"timestamp": "2025-01-01T07:30:00Z", "units": 4, "kind": "bolus"},
            ...
        ]
    }

A bare list is treated as the readings. Use ``--user`` repeatedly or provide a
newline-delimited ``--user-file`` listing the user IDs to process. Results are
written as JSON to stdout or to ``--output`` if provided.
"""
from __future__ import annotations

import argparse
import asyncio
import csv
import dataclasses
import json
import logging
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

import pandas as pd

import glucose_analytics.analyzers  # noqa: F401 - ensure analyzer registration side-effects
from glucose_analytics.config import AnalyticsSettings
from glucose_analytics.engine import AnalysisEngine
from glucose_analytics.models import (
    AnalysisOutcome,
    DoseKind,
    GlucoseReading,
    GlucoseSeries,
    InsulinDoseEvent,
    ReadingSource,
    TrendDirection,
)
from glucose_analytics.registry import registry

logger = logging.getLogger(__name__)


def _load_user_ids(args: argparse.Namespace) -> list[str]:
    user_ids: list[str] = []
    if args.user:
        user_ids.extend(args.user)
    if args.user_file:
        for path in args.user_file:
            file_path = Path(path)
            if file_path.suffix.lower() == ".csv":
                with file_path.open(newline="") as handle:
                    reader = csv.reader(handle)
                    for idx, row in enumerate(reader):
                        if not row:
                            continue
                        value = row[0].strip()
                        if not value:
                            continue
                        if idx == 0 and value.lower() in {"user_id", "id"}:
                            continue
                        user_ids.append(value)
            else:
                with file_path.open() as handle:
                    for line in handle:
                        line = line.strip()
                        if line:
                            user_ids.append(line)
    if not user_ids:
        raise SystemExit("No user IDs provided. Use --user or --user-file.")
    return user_ids


def _parse_timestamp(value: Any) -> datetime:
    return pd.Timestamp(value).to_pydatetime()


def record_to_reading(record: Mapping[str, Any]) -> GlucoseReading:
    """Convert a JSON reading record into a ``GlucoseReading``."""

    if "timestamp" not in record or "value" not in record:
        raise ValueError("Glucose readings must include 'timestamp' and 'value'")
    source = record.get("source")
    return GlucoseReading(
        timestamp=_parse_timestamp(record["timestamp"]),
        value=float(record["value"]),
        trend_direction=TrendDirection.from_provider(record.get("trend")),
        source=ReadingSource(source) if source in {item.value for item in ReadingSource} else ReadingSource.DEVICE,
    )


def record_to_dose(record: Mapping[str, Any]) -> InsulinDoseEvent:
    if "timestamp" not in record or "units" not in record:
        raise ValueError("Insulin doses must include 'timestamp' and 'units'")
    duration = record.get("duration_hours")
    return InsulinDoseEvent(
        timestamp=_parse_timestamp(record["timestamp"]),
        units=float(record["units"]),
        kind=DoseKind(record.get("kind", DoseKind.BOLUS.value)),
        duration_hours=float(duration) if duration is not None else None,
    )


def _split_payload(payload: Any) -> tuple[Sequence[Any], Sequence[Any]]:
    if isinstance(payload, Mapping):
        return payload.get("readings") or [], payload.get("insulin_doses") or []
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes, bytearray)):
        return payload, []
    raise TypeError("Unsupported payload type returned by glucose fetcher")


class _PayloadSource:
    """Shared conversion from raw payloads to series and doses."""

    def __init__(self, local_timezone: Optional[str] = None) -> None:
        self._local_timezone = local_timezone

    def _load(self, user_id: str) -> Any:
        raise NotImplementedError

    async def fetch_glucose_series(
        self, user_id: str, start: Optional[datetime], end: Optional[datetime]
    ) -> GlucoseSeries:
        readings, _ = _split_payload(self._load(user_id))
        series = GlucoseSeries.from_readings(
            [record_to_reading(record) for record in readings],
            user_id=user_id,
            local_timezone=self._local_timezone,
        )
        return series.between(start, end)

    async def fetch_insulin_doses(
        self, user_id: str, start: Optional[datetime], end: Optional[datetime]
    ) -> list[InsulinDoseEvent]:
        _, doses = _split_payload(self._load(user_id))
        events = [record_to_dose(record) for record in doses]
        return [
            event
            for event in events
            if (start is None or event.timestamp >= start) and (end is None or event.timestamp <= end)
        ]


class JsonDirectorySource(_PayloadSource):
    """Reads per-user JSON files from a directory."""

    def __init__(self, root: Path, local_timezone: Optional[str] = None) -> None:
        super().__init__(local_timezone)
        if not root.is_dir():
            raise ValueError(f"Glucose data directory not found: {root}")
        self._root = root

    def _load(self, user_id: str) -> Any:
        file_path = self._root / f"{user_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Missing glucose data file for user {user_id}: {file_path}")
        with file_path.open() as handle:
            return json.load(handle)


class CallableSource(_PayloadSource):
    """Wraps a Python callable that returns a user's payload on demand."""

    def __init__(self, fetcher: Callable[[str], Any], local_timezone: Optional[str] = None) -> None:
        super().__init__(local_timezone)
        self._fetcher = fetcher

    def _load(self, user_id: str) -> Any:
        return self._fetcher(user_id)


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {item.name: _to_jsonable(getattr(value, item.name)) for item in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


def outcome_to_dict(outcome: AnalysisOutcome) -> dict:
    return {
        "analyzer_id": outcome.analyzer_id,
        "effective_date": outcome.effective_date.isoformat(),
        "status": outcome.status.value,
        "report": _to_jsonable(outcome.report),
        "detail": _to_jsonable(dict(outcome.detail)),
        "version": outcome.version,
    }


def build_analyzer_filter(allowed: Optional[Sequence[str]]):
    if not allowed:
        return None
    allowed_ids = {analyzer_id.lower() for analyzer_id in allowed}

    def _filter(analyzer):
        return analyzer.id.lower() in allowed_ids

    return _filter


def run(
    user_ids: list[str],
    source,  # GlucoseDataSource-like object
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    analyzers: Optional[Sequence[str]] = None,
    settings: AnalyticsSettings | None = None,
) -> dict[str, list[dict]]:
    engine = AnalysisEngine(source, registry, settings=settings)
    analyzer_filter = build_analyzer_filter(analyzers)

    async def _run_all() -> dict[str, list[dict]]:
        results: dict[str, list[dict]] = {}
        for user_id in user_ids:
            outcomes = await engine.analyze_user(user_id, start, end, analyzer_filter=analyzer_filter)
            results[user_id] = [outcome_to_dict(outcome) for outcome in outcomes]
        return results

    return asyncio.run(_run_all())


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run glucose analytics in batch")
    parser.add_argument("--data-dir", type=Path, help="Directory containing <user_id>.json files")
    parser.add_argument("--user", action="append", help="User ID to process (may be repeated)")
    parser.add_argument("--user-file", action="append", help="Path to file with newline-delimited user IDs")
    parser.add_argument("--start", type=_parse_timestamp, help="ISO start of the analysis window")
    parser.add_argument("--end", type=_parse_timestamp, help="ISO end of the analysis window")
    parser.add_argument("--timezone", help="IANA timezone for local-hour analysis (e.g. America/Chicago)")
    parser.add_argument("--analyzer", action="append", help="Analyzer ID to run (may be repeated)")
    parser.add_argument("--output", type=Path, help="Optional output JSON file")
    parser.add_argument("--indent", type=int, default=None, help="Pretty-print JSON with the given indent")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    user_ids = _load_user_ids(args)
    if not args.data_dir:
        raise SystemExit("--data-dir must be provided")
    source = JsonDirectorySource(args.data_dir, local_timezone=args.timezone)
    results = run(
        user_ids,
        source,
        start=args.start,
        end=args.end,
        analyzers=args.analyzer,
        settings=AnalyticsSettings.from_env(),
    )

    output_text = json.dumps(results, indent=args.indent)
    if args.output:
        args.output.write_text(output_text)
    else:
        print(output_text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
