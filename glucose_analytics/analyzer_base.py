"""Base class and utilities for analyzers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from .errors import InsufficientDataError
from .models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    AnalysisStatus,
    AnalyzerDescriptor,
)


class Analyzer(ABC):
    """Abstract analyzer wrapping one pure report function."""

    id: str = ""
    description: str = ""
    version: str = "1.0.0"
    inputs: tuple[str, ...] = ("glucose",)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not cls.id:
            raise ValueError(f"Analyzer {cls.__name__} must define a non-empty id")

    @property
    def descriptor(self) -> AnalyzerDescriptor:
        """Return static metadata describing this analyzer."""

        return AnalyzerDescriptor(
            analyzer_id=self.id,
            name=self.description or self.id,
            description=self.description or self.id,
            version=self.version,
            inputs=self.inputs,
        )

    @abstractmethod
    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        """Run the analyzer on the fetched inputs."""

    def resolved_threshold(self, context: AnalysisContext, key: str, default: Any) -> Any:
        """Helper to fetch analyzer-specific threshold overrides."""

        return context.analyzer_threshold(self.id, key, default)

    def evaluate(self, context: AnalysisContext, compute: Callable[[], Any]) -> AnalysisOutcome:
        """Run ``compute`` and wrap its report in an outcome.

        ``InsufficientDataError`` becomes an insufficient-data outcome and a
        ``None`` report becomes an unavailable outcome. Anything else raised
        by ``compute`` propagates.
        """

        try:
            report = compute()
        except InsufficientDataError as exc:
            return AnalysisOutcome(
                analyzer_id=self.id,
                effective_date=context.analysis_date,
                status=AnalysisStatus.INSUFFICIENT_DATA,
                detail={
                    "message": str(exc),
                    "required_readings": exc.required,
                    "actual_readings": exc.actual,
                },
                version=self.version,
            )

        if report is None:
            return AnalysisOutcome(
                analyzer_id=self.id,
                effective_date=context.analysis_date,
                status=AnalysisStatus.UNAVAILABLE,
                version=self.version,
            )

        return AnalysisOutcome(
            analyzer_id=self.id,
            effective_date=context.analysis_date,
            status=AnalysisStatus.COMPLETED,
            report=report,
            version=self.version,
        )

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"<{self.__class__.__name__} id={self.id!r} version={self.version!r}>"
