"""Registry for discovering and executing analyzers."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from typing import Dict, Type

from .analyzer_base import Analyzer
from .models import AnalysisContext, AnalysisInput, AnalysisOutcome


class AnalyzerRegistry:
    """Keeps track of available analyzers by id."""

    def __init__(self) -> None:
        self._analyzers: Dict[str, Analyzer] = {}

    def register(self, analyzer_cls: Type[Analyzer]) -> Type[Analyzer]:
        if analyzer_cls.id in self._analyzers:
            raise ValueError(f"Analyzer '{analyzer_cls.id}' already registered")
        self._analyzers[analyzer_cls.id] = analyzer_cls()
        return analyzer_cls

    def clear(self) -> None:
        """Remove all registered analyzers."""

        self._analyzers.clear()

    def get(self, analyzer_id: str) -> Analyzer:
        return self._analyzers[analyzer_id]

    def items(self) -> Iterable[tuple[str, Analyzer]]:
        return self._analyzers.items()

    def values(self) -> Iterable[Analyzer]:
        return self._analyzers.values()

    def __len__(self) -> int:
        return len(self._analyzers)

    def run_all(
        self,
        inputs: AnalysisInput,
        context: AnalysisContext,
        predicate: Callable[[Analyzer], bool] | None = None,
        executor: Executor | None = None,
    ) -> list[AnalysisOutcome]:
        """Run every registered analyzer, optionally filtering.

        With an executor the analyzers are submitted together and joined in
        registration order.
        """

        selected = [
            analyzer
            for analyzer in self._analyzers.values()
            if predicate is None or predicate(analyzer)
        ]
        if executor is None:
            return [analyzer.analyze(inputs, context) for analyzer in selected]

        futures = [executor.submit(analyzer.analyze, inputs, context) for analyzer in selected]
        return [future.result() for future in futures]


registry = AnalyzerRegistry()


def register_analyzer(analyzer_cls: Type[Analyzer]) -> Type[Analyzer]:
    """Decorator for registering an analyzer at definition time."""

    return registry.register(analyzer_cls)


def clear_registry() -> None:
    """Remove all analyzer registrations."""

    registry.clear()
