from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from glucose_analytics.analyzer_base import Analyzer
from glucose_analytics.errors import InsufficientDataError
from glucose_analytics.models import AnalysisContext, AnalysisInput, AnalysisStatus, GlucoseSeries
from glucose_analytics.registry import AnalyzerRegistry

_CONTEXT = AnalysisContext(user_id="u", analysis_date=date(2024, 1, 1))
_INPUTS = AnalysisInput(series=GlucoseSeries())


class _StubAnalyzer(Analyzer):
    id = "stub"
    description = "Stub Analyzer"
    version = "2.0.0"
    inputs = ("glucose", "insulin")

    def analyze(self, inputs, context):
        return self.evaluate(context, lambda: {"readings": len(inputs.series)})


class _ShortAnalyzer(Analyzer):
    id = "short"

    def analyze(self, inputs, context):
        def compute():
            raise InsufficientDataError("need more", required=50, actual=0)

        return self.evaluate(context, compute)


class _NoneAnalyzer(Analyzer):
    id = "none"

    def analyze(self, inputs, context):
        return self.evaluate(context, lambda: None)


class _BrokenAnalyzer(Analyzer):
    id = "broken"

    def analyze(self, inputs, context):
        def compute():
            raise KeyError("boom")

        return self.evaluate(context, compute)


def test_descriptor_exposes_metadata():
    descriptor = _StubAnalyzer().descriptor
    assert descriptor.analyzer_id == "stub"
    assert descriptor.name == "Stub Analyzer"
    assert descriptor.version == "2.0.0"
    assert descriptor.inputs == ("glucose", "insulin")


def test_analyzer_requires_id():
    with pytest.raises(ValueError):

        class _Anonymous(Analyzer):  # noqa: F841 - definition raises
            def analyze(self, inputs, context):  # pragma: no cover - never instantiated
                raise NotImplementedError


def test_evaluate_translates_outcomes():
    completed = _StubAnalyzer().analyze(_INPUTS, _CONTEXT)
    assert completed.status is AnalysisStatus.COMPLETED
    assert completed.report == {"readings": 0}
    assert completed.version == "2.0.0"

    short = _ShortAnalyzer().analyze(_INPUTS, _CONTEXT)
    assert short.status is AnalysisStatus.INSUFFICIENT_DATA
    assert short.report is None
    assert short.detail["required_readings"] == 50
    assert short.detail["actual_readings"] == 0

    unavailable = _NoneAnalyzer().analyze(_INPUTS, _CONTEXT)
    assert unavailable.status is AnalysisStatus.UNAVAILABLE


def test_unexpected_errors_propagate():
    with pytest.raises(KeyError):
        _BrokenAnalyzer().analyze(_INPUTS, _CONTEXT)


def test_resolved_threshold_uses_context_overrides():
    context = AnalysisContext(
        user_id="u",
        analysis_date=date(2024, 1, 1),
        analyzer_settings={"stub": {"window_size": 12}},
    )
    analyzer = _StubAnalyzer()
    assert analyzer.resolved_threshold(context, "window_size", 20) == 12
    assert analyzer.resolved_threshold(context, "pattern_weight", 0.25) == 0.25


def test_registry_rejects_duplicate_ids():
    registry = AnalyzerRegistry()
    registry.register(_StubAnalyzer)
    with pytest.raises(ValueError):
        registry.register(_StubAnalyzer)
    assert len(registry) == 1
    registry.clear()
    assert len(registry) == 0


def test_registry_runs_in_registration_order_with_executor():
    registry = AnalyzerRegistry()
    for analyzer_cls in (_NoneAnalyzer, _StubAnalyzer, _ShortAnalyzer):
        registry.register(analyzer_cls)

    with ThreadPoolExecutor(max_workers=3) as executor:
        outcomes = registry.run_all(_INPUTS, _CONTEXT, executor=executor)

    assert [outcome.analyzer_id for outcome in outcomes] == ["none", "stub", "short"]
    assert outcomes == registry.run_all(_INPUTS, _CONTEXT)


def test_registry_predicate_filters_analyzers():
    registry = AnalyzerRegistry()
    registry.register(_StubAnalyzer)
    registry.register(_NoneAnalyzer)
    outcomes = registry.run_all(_INPUTS, _CONTEXT, predicate=lambda analyzer: analyzer.id == "stub")
    assert [outcome.analyzer_id for outcome in outcomes] == ["stub"]
