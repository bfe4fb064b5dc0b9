"""Analyzer package that ensures registration on import."""
from __future__ import annotations

from importlib import import_module

_MODULES = [
    "statistics",
    "variability",
    "dawn_phenomenon",
    "trend_predictor",
    "a1c",
]

# Import analyzers to trigger registration side-effects.
for _module in _MODULES:
    import_module(f"{__name__}.{_module}")

__all__ = list(_MODULES)
