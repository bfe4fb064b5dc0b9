"""Analysis engine: fetch once per request, fan analyzers out, join outcomes."""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Callable, Optional, Protocol, Sequence

from .analyzer_base import Analyzer
from .config import AnalyticsSettings
from .iob import iob_function
from .models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    GlucoseSeries,
    InsulinDoseEvent,
)
from .registry import AnalyzerRegistry

logger = logging.getLogger(__name__)


class GlucoseDataSource(Protocol):
    """Storage collaborator providing a user's readings and insulin doses."""

    async def fetch_glucose_series(
        self, user_id: str, start: Optional[datetime], end: Optional[datetime]
    ) -> GlucoseSeries:
        ...

    async def fetch_insulin_doses(
        self, user_id: str, start: Optional[datetime], end: Optional[datetime]
    ) -> Sequence[InsulinDoseEvent]:
        ...


class AnalysisEngine:
    """Runs every registered analyzer over one fetched series."""

    def __init__(
        self,
        data_source: GlucoseDataSource,
        registry: AnalyzerRegistry,
        *,
        settings: AnalyticsSettings | None = None,
        context_builder: Callable[[str, date], AnalysisContext] | None = None,
    ) -> None:
        self._source = data_source
        self._registry = registry
        self._settings = settings or AnalyticsSettings()
        self._context_builder = context_builder

    async def analyze_user(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        analyzer_filter: Callable[[Analyzer], bool] | None = None,
    ) -> list[AnalysisOutcome]:
        """Fetch a user's data once and return one outcome per analyzer."""

        series, doses = await asyncio.gather(
            self._source.fetch_glucose_series(user_id, start, end),
            self._source.fetch_insulin_doses(user_id, start, end),
        )
        if series.local_timezone is None and self._settings.local_timezone:
            series = GlucoseSeries(series.readings, series.user_id or user_id, self._settings.local_timezone)

        logger.info(
            "Analyzing user %s: %d readings, %d insulin doses", user_id, len(series), len(doses)
        )
        inputs = self.build_inputs(series, doses)
        context = self._build_context(user_id, self._analysis_date(series, end))
        return await asyncio.to_thread(self.run, inputs, context, analyzer_filter)

    @staticmethod
    def build_inputs(series: GlucoseSeries, doses: Sequence[InsulinDoseEvent] = ()) -> AnalysisInput:
        doses = tuple(doses)
        return AnalysisInput(series=series, insulin_doses=doses, iob_at=iob_function(doses) if doses else None)

    def run(
        self,
        inputs: AnalysisInput,
        context: AnalysisContext,
        analyzer_filter: Callable[[Analyzer], bool] | None = None,
    ) -> list[AnalysisOutcome]:
        """Synchronous fan-out over the registered analyzers."""

        if len(self._registry) == 0:
            raise RuntimeError("No analyzers are registered. Ensure analyzer modules are imported.")

        with ThreadPoolExecutor(max_workers=self._settings.max_workers) as executor:
            outcomes = self._registry.run_all(inputs, context, predicate=analyzer_filter, executor=executor)

        for outcome in outcomes:
            logger.info("Analyzer %s finished with status %s", outcome.analyzer_id, outcome.status.value)
        return outcomes

    def _analysis_date(self, series: GlucoseSeries, end: Optional[datetime]) -> date:
        latest = series.latest()
        if latest is not None:
            return latest.timestamp.date()
        if end is not None:
            return end.date()
        return date.today()

    def _build_context(self, user_id: str, analysis_date: date) -> AnalysisContext:
        if self._context_builder is not None:
            return self._context_builder(user_id, analysis_date)
        return AnalysisContext(
            user_id=user_id,
            analysis_date=analysis_date,
            thresholds=self._settings.thresholds,
            analyzer_settings=self._settings.analyzer_settings,
        )
