from datetime import datetime, timedelta, timezone

import pytest

from glucose_analytics.iob import (
    INSULIN_DURATIONS,
    calculate_decay_factor,
    calculate_iob,
    iob_function,
)
from glucose_analytics.models import DoseKind, InsulinDoseEvent

_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _dose(hours_ago: float, units: float, kind: DoseKind = DoseKind.BOLUS, duration=None) -> InsulinDoseEvent:
    return InsulinDoseEvent(
        timestamp=_NOW - timedelta(hours=hours_ago), units=units, kind=kind, duration_hours=duration
    )


def test_decay_factor_bounds():
    assert calculate_decay_factor(0, 4) == 1.0
    assert calculate_decay_factor(4, 4) == 0.0
    assert calculate_decay_factor(5, 4) == 0.0
    partial = calculate_decay_factor(2, 4)
    assert 0 < partial < 1


def test_decay_factor_rejects_bad_input():
    with pytest.raises(ValueError, match="Hours elapsed cannot be negative"):
        calculate_decay_factor(-1, 4)
    with pytest.raises(ValueError, match="Duration must be positive"):
        calculate_decay_factor(1, 0)
    with pytest.raises(ValueError, match="Duration must be positive"):
        calculate_decay_factor(1, -1)


def test_default_durations():
    assert INSULIN_DURATIONS[DoseKind.BOLUS] == 4
    assert INSULIN_DURATIONS[DoseKind.BASAL] == 24


def test_single_active_dose():
    result = calculate_iob([_dose(2, 10)], _NOW)
    assert 0 < result.total_iob < 10
    assert result.active_iob == result.total_iob
    assert result.expired_iob == 0
    assert result.doses[0].is_active


def test_expired_dose():
    result = calculate_iob([_dose(5, 10)], _NOW)
    assert result.total_iob == 0
    assert result.active_iob == 0
    assert result.expired_iob == 10
    assert not result.doses[0].is_active


def test_empty_doses():
    result = calculate_iob([], _NOW)
    assert result.total_iob == 0
    assert result.expired_iob == 0
    assert result.doses == ()


def test_basal_decays_over_a_day():
    result = calculate_iob([_dose(1, 5), _dose(1, 10, DoseKind.BASAL)], _NOW)
    bolus, basal = result.doses
    assert basal.decay_factor > bolus.decay_factor
    assert result.total_iob == pytest.approx(bolus.remaining + basal.remaining)


def test_explicit_duration_overrides_kind():
    result = calculate_iob([_dose(5, 4, duration=6)], _NOW)
    assert result.total_iob > 0


def test_iob_never_exceeds_units_given():
    result = calculate_iob([_dose(0, 10), _dose(-1, 3)], _NOW)
    assert result.total_iob == pytest.approx(13)


def test_iob_function_matches_calculation():
    doses = [_dose(1, 3), _dose(3, 2)]
    iob_at = iob_function(doses)
    assert iob_at(_NOW) == pytest.approx(calculate_iob(doses, _NOW).total_iob)
    assert iob_at(_NOW + timedelta(hours=1)) < iob_at(_NOW)


def test_naive_and_aware_timestamps_mix():
    naive_dose = InsulinDoseEvent(timestamp=datetime(2024, 3, 1, 10, 0), units=10)
    aware = calculate_iob([naive_dose], _NOW)
    naive = calculate_iob([_dose(2, 10)], _NOW.replace(tzinfo=None))
    assert aware.doses[0].hours_elapsed == pytest.approx(2.0)
    assert naive.total_iob == pytest.approx(aware.total_iob)
