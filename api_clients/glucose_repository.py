"""
Glucose repository reading Supabase tables and normalizing rows into
analytics value objects.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

import pandas as pd
from pydantic import ValidationError

from api_clients.supabase_client import SupabaseRestClient
from glucose_analytics.iob import INSULIN_TYPE_DURATIONS
from glucose_analytics.models import (
    PHYSIOLOGICAL_MAX,
    PHYSIOLOGICAL_MIN,
    DoseKind,
    GlucoseReading,
    GlucoseSeries,
    InsulinDoseEvent,
    ReadingSource,
    TrendDirection,
)
from models.supabase_models import GlucoseReadingRow, InsulinDeliveryRow

GLUCOSE_READINGS_TABLE = "glucose_readings"
INSULIN_DELIVERY_TABLE = "all_insulin_delivery"


def _parse_time(value: str) -> datetime:
    return pd.Timestamp(value).to_pydatetime()


def _time_filters(column: str, start: Optional[datetime], end: Optional[datetime]) -> list[tuple[str, str]]:
    filters: list[tuple[str, str]] = []
    if start is not None:
        filters.append((column, f"gte.{start.isoformat()}"))
    if end is not None:
        filters.append((column, f"lte.{end.isoformat()}"))
    return filters


def convert_glucose_rows(rows: Iterable[Any]) -> list[GlucoseReading]:
    """Validate raw rows and drop values outside the physiological range."""

    readings: list[GlucoseReading] = []
    for raw in rows:
        try:
            row = raw if isinstance(raw, GlucoseReadingRow) else GlucoseReadingRow.model_validate(raw)
        except ValidationError as e:
            logging.warning(f"Skipping malformed glucose row: {e}")
            continue
        if row.value is None or not (PHYSIOLOGICAL_MIN <= row.value <= PHYSIOLOGICAL_MAX):
            logging.warning(f"Dropping glucose row {row.id} with out-of-range value {row.value!r}")
            continue
        readings.append(
            GlucoseReading(
                timestamp=_parse_time(row.system_time),
                value=float(row.value),
                trend_direction=TrendDirection.from_provider(row.trend),
                source=ReadingSource.MANUAL if row.source == "manual" else ReadingSource.DEVICE,
            )
        )
    return readings


def convert_insulin_rows(rows: Iterable[Any]) -> list[InsulinDoseEvent]:
    """Validate raw rows and drop non-positive deliveries."""

    doses: list[InsulinDoseEvent] = []
    for raw in rows:
        try:
            row = raw if isinstance(raw, InsulinDeliveryRow) else InsulinDeliveryRow.model_validate(raw)
        except ValidationError as e:
            logging.warning(f"Skipping malformed insulin row: {e}")
            continue
        if row.units is None or row.units <= 0:
            logging.warning(f"Dropping insulin row {row.id} with non-positive units {row.units!r}")
            continue
        insulin_type = (row.insulin_type or "").lower()
        is_basal = (row.delivery_type or "").lower() == "basal" or insulin_type == "long"
        doses.append(
            InsulinDoseEvent(
                timestamp=_parse_time(row.taken_at),
                units=float(row.units),
                kind=DoseKind.BASAL if is_basal else DoseKind.BOLUS,
                duration_hours=INSULIN_TYPE_DURATIONS.get(insulin_type),
            )
        )
    return doses


class SupabaseGlucoseRepository:
    """
    Storage collaborator for the analysis engine backed by Supabase tables.
    """

    def __init__(self, client: Optional[SupabaseRestClient] = None, local_timezone: Optional[str] = None):
        self.client = client or SupabaseRestClient()
        self.local_timezone = local_timezone

    async def _select_all(self, table: str, filters: list[tuple[str, str]], order: str) -> list[Any]:
        page_size = self.client.settings.page_size
        rows: list[Any] = []
        offset = 0
        while True:
            data = await self.client.select(table, filters=filters, order=order, limit=page_size, offset=offset)
            if not isinstance(data, list):
                logging.error(f"Unexpected response from {table}: {data!r}")
                raise RuntimeError(f"Unexpected non-list response from {table}")
            rows.extend(data)
            if len(data) < page_size:
                return rows
            offset += page_size

    async def fetch_glucose_series(
        self, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> GlucoseSeries:
        filters = [("user_id", f"eq.{user_id}")] + _time_filters("system_time", start, end)
        rows = await self._select_all(GLUCOSE_READINGS_TABLE, filters, "system_time.asc")
        logging.info(f"Fetched {len(rows)} glucose rows for user {user_id}")
        return GlucoseSeries.from_readings(
            convert_glucose_rows(rows), user_id=user_id, local_timezone=self.local_timezone
        )

    async def fetch_insulin_doses(
        self, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[InsulinDoseEvent]:
        filters = [("user_id", f"eq.{user_id}")] + _time_filters("taken_at", start, end)
        rows = await self._select_all(INSULIN_DELIVERY_TABLE, filters, "taken_at.asc")
        logging.info(f"Fetched {len(rows)} insulin rows for user {user_id}")
        return convert_insulin_rows(rows)
