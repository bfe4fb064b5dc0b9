"""Short-horizon glucose forecasting with IOB-aware risk alerts."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

import pandas as pd

from ..analyzer_base import Analyzer
from ..models import (
    PHYSIOLOGICAL_MAX,
    PHYSIOLOGICAL_MIN,
    AnalysisContext,
    AnalysisInput,
    AnalysisOutcome,
    GlucoseSeries,
    IOBFunction,
    PredictionAlert,
    PredictionFactors,
    PredictionReport,
    RiskLevel,
)
from ..registry import register_analyzer
from .utils import clamp, linear_fit, prepare_series

MIN_READINGS = 3
DEFAULT_WINDOW_SIZE = 20
STEP_MINUTES = 5
PREDICTION_STEPS = 6
INSULIN_SENSITIVITY = 40.0
PATTERN_WEIGHT = 0.25
TREND_SLOPE = 0.5

# (kind, level, current glucose test, slope test, recommended action), first match wins
_RISK_RULES = (
    ("hypoglycemia", RiskLevel.HIGH, lambda g: g < 80, lambda s: s < -1.0, "Take 15g fast-acting carbs"),
    ("hypoglycemia", RiskLevel.MODERATE, lambda g: g < 100, lambda s: s < -0.5, "Consider 10g fast-acting carbs"),
    ("hyperglycemia", RiskLevel.HIGH, lambda g: g > 200, lambda s: s > 1.0, "Consider correction insulin if no IOB"),
    ("hyperglycemia", RiskLevel.MODERATE, lambda g: g > 160, lambda s: s > 0.5, "Monitor closely and be prepared to act"),
)


def classify_trend(slope: float) -> str:
    if slope > TREND_SLOPE:
        return "rising"
    if slope < -TREND_SLOPE:
        return "falling"
    return "stable"


def prediction_confidence(slope: float) -> float:
    return clamp(100.0 - abs(slope) * 10.0, 60.0, 95.0)


def assess_risk(current: float, slope: float, horizon_minutes: int) -> Optional[PredictionAlert]:
    """Return the first matching risk rule as an alert, or None."""

    for kind, level, glucose_test, slope_test, action in _RISK_RULES:
        if glucose_test(current) and slope_test(slope):
            direction = "falling" if kind == "hypoglycemia" else "rising"
            return PredictionAlert(
                kind=f"{kind}_risk",
                level=level,
                message=(
                    f"Glucose {current:.0f} mg/dL and {direction} {abs(slope):.1f} mg/dL per reading; "
                    f"{kind} risk within {horizon_minutes} minutes"
                ),
                estimated_minutes=horizon_minutes,
                recommended_action=action,
            )
    return None


def _pattern_average(frame: pd.DataFrame, hour: int) -> Optional[float]:
    history = frame.loc[frame["hour"] == hour, "glucose_mg_dL"]
    if history.empty:
        return None
    return float(history.astype(float).mean())


def predict(
    series: GlucoseSeries,
    iob_at: Optional[IOBFunction] = None,
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    step_minutes: int = STEP_MINUTES,
    steps: int = PREDICTION_STEPS,
    insulin_sensitivity: float = INSULIN_SENSITIVITY,
    pattern_weight: float = PATTERN_WEIGHT,
) -> Optional[PredictionReport]:
    """Forecast glucose ``steps`` readings ahead from the latest ``window_size`` readings.

    Returns None when fewer than three readings are available. The regression
    runs against reading index, so evenly spaced readings are assumed.
    """

    if len(series) < MIN_READINGS:
        return None

    frame = prepare_series(series)
    recent = frame.tail(window_size)
    values = recent["glucose_mg_dL"].astype(float).tolist()
    n = len(values)
    slope, intercept = linear_fit(values)

    raw = [intercept + slope * (n - 1 + step) for step in range(1, steps + 1)]
    predictions = tuple(clamp(value, PHYSIOLOGICAL_MIN, PHYSIOLOGICAL_MAX) for value in raw)

    current = values[-1]
    horizon_minutes = steps * step_minutes
    horizon_value = raw[-1]

    now = frame["timestamp"].iloc[-1].to_pydatetime()
    horizon = timedelta(minutes=horizon_minutes)

    iob_units = 0.0
    iob_impact = 0.0
    if iob_at is not None:
        iob_units = float(iob_at(now))
        absorbed = iob_units - float(iob_at(now + horizon))
        iob_impact = -absorbed * insulin_sensitivity

    horizon_hour = (frame["local_time"].iloc[-1] + horizon).hour
    pattern_average = _pattern_average(frame, horizon_hour)
    pattern_influence = 0.0
    if pattern_average is not None:
        pattern_influence = pattern_weight * (pattern_average - horizon_value)

    current_trend = horizon_value - current
    factors = PredictionFactors(
        current_trend=current_trend,
        iob_impact=iob_impact,
        pattern_influence=pattern_influence,
        uncertainty=max(10.0, 0.2 * abs(current_trend) + 0.1 * abs(iob_impact)),
    )

    alert = assess_risk(current, slope, horizon_minutes)
    return PredictionReport(
        predicted_glucose=clamp(
            horizon_value + iob_impact + pattern_influence, PHYSIOLOGICAL_MIN, PHYSIOLOGICAL_MAX
        ),
        time_horizon_minutes=horizon_minutes,
        confidence=prediction_confidence(slope),
        factors=factors,
        alerts=(alert,) if alert is not None else (),
        predictions=predictions,
        slope=slope,
        trend=classify_trend(slope),
        risk_level=alert.level if alert is not None else RiskLevel.LOW,
        current_glucose=current,
        iob_units=iob_units,
    )


@register_analyzer
class TrendPredictorAnalyzer(Analyzer):
    id = "trend_prediction"
    description = "Linear-regression forecast over the most recent readings"
    version = "1.0.0"
    inputs = ("glucose", "insulin")

    def analyze(self, inputs: AnalysisInput, context: AnalysisContext) -> AnalysisOutcome:
        window_size = int(self.resolved_threshold(context, "window_size", DEFAULT_WINDOW_SIZE))
        insulin_sensitivity = float(
            self.resolved_threshold(context, "insulin_sensitivity", INSULIN_SENSITIVITY)
        )
        pattern_weight = float(self.resolved_threshold(context, "pattern_weight", PATTERN_WEIGHT))
        return self.evaluate(
            context,
            lambda: predict(
                inputs.series,
                inputs.iob_at,
                window_size=window_size,
                insulin_sensitivity=insulin_sensitivity,
                pattern_weight=pattern_weight,
            ),
        )
