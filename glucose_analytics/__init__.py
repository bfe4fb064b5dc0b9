"""Glucose analytics and short-horizon prediction library."""

from .errors import InsufficientDataError
from .models import (
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    AnalysisStatus,
    DoseKind,
    GlucoseReading,
    GlucoseSeries,
    InsulinDoseEvent,
    ReadingSource,
    TrendDirection,
)
from .registry import register_analyzer, registry
from .analyzer_base import Analyzer
from .analyzers.a1c import estimate_a1c
from .analyzers.dawn_phenomenon import analyze_dawn_phenomenon
from .analyzers.statistics import compute_statistics
from .analyzers.trend_predictor import predict
from .analyzers.variability import compute_variability

__all__ = [
    "AnalysisContext",
    "AnalysisInput",
    "AnalysisOutcome",
    "AnalysisStatus",
    "Analyzer",
    "DoseKind",
    "GlucoseReading",
    "GlucoseSeries",
    "InsufficientDataError",
    "InsulinDoseEvent",
    "ReadingSource",
    "TrendDirection",
    "analyze_dawn_phenomenon",
    "compute_statistics",
    "compute_variability",
    "estimate_a1c",
    "predict",
    "register_analyzer",
    "registry",
]
