"""Render glucose analytics for one user as Plotly HTML figures.

Reads the same ``<user_id>.json`` files as ``glucose_analytics.run_batch`` and
writes, per user:

- ``<user_id>_hourly.html``: average glucose and time-in-range per local hour
- ``<user_id>_dawn_weekly.html``: dawn phenomenon percentage per weekday
- ``<user_id>_a1c_trend.html``: estimated A1C per period

Usage example:

```
python scripts/analytics_report.py data/ user-123 /tmp/report --timezone America/Chicago
```
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go

repo_root = Path(__file__).resolve().parents[1]
if repo_root.as_posix() not in sys.path:
    sys.path.insert(0, repo_root.as_posix())

from glucose_analytics.analyzers.a1c import calculate_a1c_trends  # noqa: E402
from glucose_analytics.analyzers.dawn_phenomenon import analyze_dawn_phenomenon  # noqa: E402
from glucose_analytics.analyzers.variability import compute_variability  # noqa: E402
from glucose_analytics.errors import InsufficientDataError  # noqa: E402
from glucose_analytics.models import GlucoseSeries  # noqa: E402
from glucose_analytics.run_batch import record_to_reading  # noqa: E402


def load_series(data_dir: Path, user_id: str, timezone: str | None) -> GlucoseSeries:
    with (data_dir / f"{user_id}.json").open() as handle:
        payload = json.load(handle)
    records = payload.get("readings", []) if isinstance(payload, dict) else payload
    return GlucoseSeries.from_readings(
        [record_to_reading(record) for record in records],
        user_id=user_id,
        local_timezone=timezone,
    )


def plot_hourly(series: GlucoseSeries, user_id: str, output_dir: Path) -> None:
    report = compute_variability(series)
    hourly = pd.DataFrame(
        [
            {"hour": item.hour, "average": item.average, "in_range": item.in_range_percent, "count": item.count}
            for item in report.hourly_patterns
        ]
    )

    fig = go.Figure()
    fig.add_trace(go.Bar(x=hourly["hour"], y=hourly["average"], name="Average glucose", marker_color="rgba(0,0,255,0.5)"))
    fig.add_trace(
        go.Scatter(x=hourly["hour"], y=hourly["in_range"], name="Time in range (%)", mode="lines+markers", yaxis="y2")
    )
    fig.update_layout(
        title=f"Hourly pattern | user={user_id} | MAG={report.mag or 0:.1f} J={report.j_index:.1f} ADRR={report.adrr:.1f}",
        xaxis_title="Local hour",
        yaxis_title="Glucose (mg/dL)",
        yaxis2=dict(title="Time in range (%)", overlaying="y", side="right", range=[0, 100]),
    )
    fig.write_html(output_dir / f"{user_id}_hourly.html")


def plot_dawn_weekly(series: GlucoseSeries, user_id: str, output_dir: Path, days: int) -> None:
    try:
        report = analyze_dawn_phenomenon(series, days)
    except InsufficientDataError as exc:
        print(f"Skipping dawn phenomenon chart: {exc}")
        return

    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=[item.day for item in report.weekly_pattern],
            y=[item.percentage for item in report.weekly_pattern],
            text=[f"{item.average_rise:.0f} mg/dL" for item in report.weekly_pattern],
            marker_color="rgba(255,140,0,0.6)",
        )
    )
    fig.update_layout(
        title=f"Dawn phenomenon by weekday | user={user_id} | severity={report.severity.value}",
        xaxis_title="Day of week",
        yaxis_title="Nights with dawn phenomenon (%)",
        yaxis=dict(range=[0, 100]),
    )
    fig.write_html(output_dir / f"{user_id}_dawn_weekly.html")


def plot_a1c_trend(series: GlucoseSeries, user_id: str, output_dir: Path, period: str) -> None:
    trends = calculate_a1c_trends(series, period)
    if not trends:
        print("Skipping A1C trend chart: no period has enough readings")
        return

    fig = go.Figure(
        data=go.Scatter(
            x=[item.period for item in trends],
            y=[item.estimated_a1c for item in trends],
            mode="lines+markers",
            text=[f"{item.reading_count} readings" for item in trends],
        )
    )
    fig.update_layout(
        title=f"Estimated A1C ({period}) | user={user_id}",
        xaxis_title="Period",
        yaxis_title="Estimated A1C (%)",
    )
    fig.write_html(output_dir / f"{user_id}_a1c_trend.html")


def main() -> None:
    parser = argparse.ArgumentParser(description="Render glucose analytics charts for one user.")
    parser.add_argument("data_dir", help="Directory containing <user_id>.json files.")
    parser.add_argument("user_id", help="User to report on.")
    parser.add_argument("output", help="Directory to write HTML charts.")
    parser.add_argument("--timezone", help="IANA timezone for local-hour analysis.")
    parser.add_argument("--dawn-days", type=int, default=14)
    parser.add_argument("--a1c-period", choices=("weekly", "monthly"), default="monthly")
    args = parser.parse_args()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    series = load_series(Path(args.data_dir), args.user_id, args.timezone)
    if len(series) == 0:
        print("No readings found.")
        return

    plot_hourly(series, args.user_id, output_dir)
    plot_dawn_weekly(series, args.user_id, output_dir, args.dawn_days)
    plot_a1c_trend(series, args.user_id, output_dir, args.a1c_period)
    print(f"Wrote charts to {output_dir}")


if __name__ == "__main__":
    main()
