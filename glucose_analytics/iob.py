"""Insulin-on-board model with exponential decay."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from .models import DoseKind, InsulinDoseEvent, IOBFunction

# Hours until a dose is treated as fully absorbed
INSULIN_DURATIONS: dict[DoseKind, float] = {
    DoseKind.BOLUS: 4.0,
    DoseKind.BASAL: 24.0,
}

INSULIN_TYPE_DURATIONS: dict[str, float] = {
    "rapid": 4.0,
    "short": 6.0,
    "intermediate": 16.0,
    "long": 24.0,
}


@dataclass(frozen=True)
class DoseIOB:
    """Remaining insulin for one dose at the evaluation time."""

    timestamp: datetime
    units: float
    kind: DoseKind
    hours_elapsed: float
    decay_factor: float
    remaining: float

    @property
    def is_active(self) -> bool:
        return self.remaining > 0


@dataclass(frozen=True)
class IOBResult:
    total_iob: float
    active_iob: float
    expired_iob: float
    doses: tuple[DoseIOB, ...] = ()


def dose_duration(dose: InsulinDoseEvent) -> float:
    if dose.duration_hours is not None:
        return float(dose.duration_hours)
    return INSULIN_DURATIONS[dose.kind]


def calculate_decay_factor(hours_elapsed: float, duration: float) -> float:
    """Fraction of a dose still active after ``hours_elapsed``.

    Exactly 1 at zero and 0 once ``duration`` has passed; exponential in between.
    """

    if hours_elapsed < 0:
        raise ValueError("Hours elapsed cannot be negative")
    if duration <= 0:
        raise ValueError("Duration must be positive")
    if hours_elapsed == 0:
        return 1.0
    if hours_elapsed >= duration:
        return 0.0
    factor = math.exp(-(4.0 / duration) * hours_elapsed)
    return max(0.0, min(1.0, factor))


def _as_utc(moment: datetime) -> datetime:
    # naive timestamps are read as UTC, matching GlucoseSeries.to_frame
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment

def calculate_iob(doses: Iterable[InsulinDoseEvent], at: datetime) -> IOBResult:
    """Sum remaining insulin across ``doses`` at time ``at``.

    Doses recorded after ``at`` count in full.
    """

    breakdown: list[DoseIOB] = []
    total = 0.0
    expired = 0.0
    for dose in doses:
        hours_elapsed = max(0.0, (_as_utc(at) - _as_utc(dose.timestamp)).total_seconds() / 3600.0)
        factor = calculate_decay_factor(hours_elapsed, dose_duration(dose))
        remaining = dose.units * factor
        total += remaining
        if remaining == 0:
            expired += dose.units
        breakdown.append(
            DoseIOB(
                timestamp=dose.timestamp,
                units=dose.units,
                kind=dose.kind,
                hours_elapsed=hours_elapsed,
                decay_factor=factor,
                remaining=remaining,
            )
        )
    return IOBResult(total_iob=total, active_iob=total, expired_iob=expired, doses=tuple(breakdown))


def iob_function(doses: Sequence[InsulinDoseEvent]) -> IOBFunction:
    """Bind ``doses`` into an ``iob_at(time)`` callable."""

    captured = tuple(doses)

    def iob_at(at: datetime) -> float:
        return calculate_iob(captured, at).total_iob

    return iob_at
