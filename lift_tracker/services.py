from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from .models import (
    ChartResult,
    ChartSeries,
    EmptyChart,
    LiftType,
    Timeframe,
    TrendLine,
    ValidationError,
    WorkoutRecord,
    as_utc,
    coerce_number,
    parse_timestamp,
)
from .progression import compute, estimated_one_rep_max, window_start


@dataclass(frozen=True)
class LogResult:
    """Structured outcome of parsing log arguments."""

    record: WorkoutRecord
    weight_unit: str = "lbs"

    @property
    def confirmation(self) -> str:
        return (
            f"[{self.record.lift_type.value}] Logged {self.record.date.date().isoformat()} "
            f"{self.record.weight:g} {self.weight_unit} x {self.record.reps} x {self.record.sets}."
        )

    @property
    def verbose_tokens(self) -> list[str]:
        tokens = [f"id={self.record.id}", f"lift={self.record.lift_type.label}"]
        tokens.append(f"e1rm={_epley_text(self.record)} {self.weight_unit}")
        if self.record.notes:
            tokens.append("notes recorded")
        return tokens


@dataclass(frozen=True)
class ProgressReport:
    lift_type: LiftType
    timeframe: Timeframe
    start_date: datetime | None
    end_date: datetime
    result: ChartResult

    @property
    def is_empty(self) -> bool:
        return isinstance(self.result, EmptyChart)


def build_record_from_inputs(
    *,
    date_text: str | None,
    lift: str,
    weight: float | None,
    reps: int | None,
    sets: int | None,
    notes: str | None,
    weight_unit: str = "lbs",
) -> LogResult:
    """Convert CLI inputs into a validated workout record."""
    logged_at = parse_timestamp(date_text, field="date") if date_text else datetime.now(timezone.utc)
    record = WorkoutRecord(
        id=uuid.uuid4().hex,
        date=logged_at,
        lift_type=LiftType.parse(lift, field="lift"),
        weight=coerce_number(weight, field="weight", minimum=0.0, exclusive_minimum=True),
        reps=int(coerce_number(reps, field="reps", minimum=1, allow_float=False)),
        sets=int(coerce_number(sets if sets is not None else 1, field="sets", minimum=1, allow_float=False)),
        notes=notes.strip() if notes and notes.strip() else None,
    )
    return LogResult(record=record, weight_unit=weight_unit)


def records_from_payload(payload: Sequence[Mapping[str, Any]]) -> list[WorkoutRecord]:
    """Validate raw stored rows into records, naming the offending row on failure."""
    records: list[WorkoutRecord] = []
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, Mapping):
            raise ValidationError(f"workouts[{index}] must be an object; received {item!r}.")
        try:
            records.append(WorkoutRecord.from_mapping(item))
        except ValidationError as exc:
            raise ValidationError(f"workouts[{index}]: {exc}") from exc
    return records


def build_progress_report(
    records: Sequence[WorkoutRecord],
    *,
    lift_type: LiftType,
    timeframe: Timeframe,
    now: datetime,
) -> ProgressReport:
    """Run the progression engine and attach the window it was evaluated over."""
    return ProgressReport(
        lift_type=lift_type,
        timeframe=timeframe,
        start_date=window_start(timeframe, now),
        end_date=now,
        result=compute(records, lift_type, timeframe, now),
    )


def render_progress_table(series: ChartSeries, *, weight_unit: str = "lbs") -> str:
    """Render a fixed-width table of chart points with the fitted trend value."""
    headers = ("date", "weight", "e1rm", "trend")
    rows = [
        {
            "date": point.date.date().isoformat(),
            "weight": f"{point.weight:.1f}",
            "e1rm": f"{point.estimated_one_rep_max:.1f}",
            "trend": f"{series.trend.value_at(point.date):.1f}" if series.trend else "n/a",
        }
        for point in series.points
    ]
    widths = {key: len(key) for key in headers}
    for row in rows:
        for key in headers:
            widths[key] = max(widths[key], len(row[key]))

    def _format_line(values: Mapping[str, str]) -> str:
        return "  ".join(values[key].rjust(widths[key]) for key in headers)

    header_line = "  ".join(key.upper().rjust(widths[key]) for key in headers)
    body = "\n".join(_format_line(row) for row in rows)
    title = f"Weights in {weight_unit}; e1RM via Epley."
    return "\n".join(filter(None, [title, header_line, body]))


def describe_trend(trend: TrendLine | None, *, weight_unit: str = "lbs") -> str:
    if trend is None:
        return "Trend: not enough data (need two or more workouts on different days)."
    weekly = trend.slope_per_week
    if abs(weekly) < 0.05:
        direction = "flat"
    else:
        direction = "up" if weekly > 0 else "down"
    return f"Trend: {direction}, {weekly:+.1f} {weight_unit}/week estimated 1RM."


def generate_progress_plot(
    report: ProgressReport,
    *,
    output_dir: Path,
    weight_unit: str = "lbs",
) -> Path:
    """Plot weight and estimated 1RM over time with the trend overlay."""

    try:
        import matplotlib.pyplot as plt  # type: ignore
    except ImportError as exc:  # pragma: no cover - exercised via CLI
        raise RuntimeError("matplotlib is required to generate plots.") from exc

    if not isinstance(report.result, ChartSeries):
        raise ValueError(report.result.message)

    series = report.result
    dates = [point.date for point in series.points]
    weights = [point.weight for point in series.points]
    estimates = [point.estimated_one_rep_max for point in series.points]
    color = report.lift_type.color

    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    path = output_dir / f"{report.lift_type.value.lower()}_{report.timeframe.value.lower()}_{timestamp}.png"

    fig, ax = plt.subplots()
    ax.plot(dates, weights, marker="o", linewidth=2, color=color, label=f"{report.lift_type.label} weight")
    ax.plot(dates, estimates, linestyle="--", marker=".", color=color, alpha=0.6, label="Estimated 1RM")
    if series.trend is not None:
        fitted = [series.trend.value_at(when) for when in (dates[0], dates[-1])]
        ax.plot([dates[0], dates[-1]], fitted, color="#333333", linewidth=1, label="1RM trend")
    ax.set_title(f"{report.lift_type.value} Progression - {report.timeframe.value}")
    ax.set_xlabel("Date")
    ax.set_ylabel(f"Weight ({weight_unit})")
    ax.set_ylim(0, max(weights + estimates) * 1.1)
    ax.legend(loc="upper left")
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def build_export_dataframe(report: ProgressReport) -> pd.DataFrame:
    """Prepare the charted series as a DataFrame ready for CSV/JSON export."""
    columns = ["lift_type", "timeframe", "date", "weight", "estimated_one_rep_max", "trend_value"]
    if not isinstance(report.result, ChartSeries):
        return pd.DataFrame(columns=columns)

    series = report.result
    df = pd.DataFrame(
        {
            "date": [as_utc(point.date) for point in series.points],
            "weight": [point.weight for point in series.points],
            "estimated_one_rep_max": [point.estimated_one_rep_max for point in series.points],
        }
    )
    df["lift_type"] = report.lift_type.value
    df["timeframe"] = report.timeframe.value
    if series.trend is not None:
        df["trend_value"] = df["date"].map(series.trend.value_at).round(2)
    else:
        df["trend_value"] = pd.NA
    df["estimated_one_rep_max"] = df["estimated_one_rep_max"].round(2)
    df["date"] = pd.to_datetime(df["date"], utc=True).dt.date
    return df[columns]


def load_import_payload(source: Path) -> list[dict[str, Any]]:
    """Load workout rows from a JSON list or a `{"workouts": [...]}` API response."""
    if not source.exists():
        raise FileNotFoundError(f"Import file not found: {source}")

    raw_text = source.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ValueError("Import file is not valid JSON.") from exc

    if isinstance(payload, Mapping) and isinstance(payload.get("workouts"), list):
        payload = payload["workouts"]
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise ValueError("Import data must be a JSON list of workout objects.")
    return payload


def stored_max_for(lift_type: LiftType, maxes: Mapping[str, Any]) -> float | None:
    """Look up a lift's recorded one-rep max; None when it was never set."""
    raw = maxes.get(lift_type.value)
    if raw is None:
        return None
    return coerce_number(raw, field=f"stored max for {lift_type.value}", minimum=0.0, exclusive_minimum=True)


def render_maxes(maxes: Mapping[str, Any], *, weight_unit: str = "lbs") -> str:
    lines = []
    for lift in LiftType:
        value = maxes.get(lift.value)
        shown = f"{float(value):g} {weight_unit}" if isinstance(value, (int, float)) else "not set"
        lines.append(f"{lift.label:<15} {lift.value:<9} {shown}")
    return "\n".join(lines)


def _epley_text(record: WorkoutRecord) -> str:
    return f"{estimated_one_rep_max(record.weight, record.reps):.1f}"
