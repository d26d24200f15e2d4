from __future__ import annotations

import json
import logging
import platform
from datetime import datetime, timezone
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Optional

import typer

from .config import as_dict as config_as_dict, get_config
from .env import get_env
from .models import LiftType, Timeframe, ValidationError, WorkoutRecord, coerce_number, parse_timestamp
from .progression import working_weight
from .services import (
    LogResult,
    ProgressReport,
    build_export_dataframe,
    build_progress_report,
    build_record_from_inputs,
    describe_trend,
    generate_progress_plot,
    load_import_payload,
    records_from_payload,
    render_maxes,
    render_progress_table,
    stored_max_for,
)
from .storage import append_workout, load_maxes, load_workouts, save_max, save_workouts

app = typer.Typer(help="Log lifts and chart strength progression over time.")


@app.callback()
def _configure(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LIFT_TRACKER_LOG_LEVEL or WARNING).",
    ),
) -> None:
    name = (log_level or get_env("LOG_LEVEL") or "WARNING").strip().upper()
    level = getattr(logging, name, None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level {name!r}.", param_hint="log_level")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@app.command()
def log(
    lift: str = typer.Option(
        ...,
        "--lift",
        "-l",
        help="Lift type: BENCH, OHP, SQUAT, or DEADLIFT.",
    ),
    weight: float = typer.Option(
        ...,
        "--weight",
        "-w",
        help="Load lifted for each rep.",
    ),
    reps: int = typer.Option(
        ...,
        "--reps",
        "-r",
        help="Repetitions per set.",
    ),
    sets: int = typer.Option(
        1,
        "--sets",
        "-s",
        help="Number of sets performed at this weight and rep count.",
    ),
    date: Optional[str] = typer.Option(
        None,
        "--date",
        "-d",
        help="Workout date or timestamp in ISO format (defaults to now).",
    ),
    notes: Optional[str] = typer.Option(
        None,
        "--notes",
        help="Free-form notes about the workout.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show extra detail about the stored workout.",
    ),
) -> None:
    """
    Log a new workout.

    Examples:
        python -m lift_tracker log --lift BENCH --weight 205 --reps 5 --sets 3
        python -m lift_tracker log --lift squat --weight 315 --reps 3 --date 2024-03-01
    """
    try:
        result: LogResult = build_record_from_inputs(
            date_text=date,
            lift=lift,
            weight=weight,
            reps=reps,
            sets=sets,
            notes=notes,
            weight_unit=get_config().weight_unit,
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        append_workout(result.record.to_dict())
    except ValueError as exc:
        _fail(f"Could not store workout: {exc}")

    typer.echo(result.confirmation)
    if verbose and result.verbose_tokens:
        typer.echo(" • " + "; ".join(result.verbose_tokens))


@app.command()
def progress(
    lift: str = typer.Option(
        "BENCH",
        "--lift",
        "-l",
        help="Lift to chart: BENCH, OHP, SQUAT, or DEADLIFT.",
    ),
    timeframe: Optional[str] = typer.Option(
        None,
        "--timeframe",
        "-t",
        help="Lookback window: 1M, 3M, 6M, 1Y, or ALL (defaults to config).",
    ),
    now: Optional[str] = typer.Option(
        None,
        "--now",
        help="Evaluate the window as of this ISO timestamp instead of the current time.",
    ),
) -> None:
    """
    Show the progression series and trend for one lift.

    Examples:
        python -m lift_tracker progress --lift BENCH --timeframe 3M
        python -m lift_tracker progress --lift DEADLIFT --timeframe ALL
    """
    report = _load_report(lift, timeframe, now)
    unit = get_config().weight_unit
    _echo_window(report)
    if report.is_empty:
        typer.echo(report.result.message)
        raise typer.Exit(code=0)

    typer.echo(render_progress_table(report.result, weight_unit=unit))
    typer.echo(describe_trend(report.result.trend, weight_unit=unit))


@app.command()
def plot(
    lift: str = typer.Option(
        "BENCH",
        "--lift",
        "-l",
        help="Lift to chart: BENCH, OHP, SQUAT, or DEADLIFT.",
    ),
    timeframe: Optional[str] = typer.Option(
        None,
        "--timeframe",
        "-t",
        help="Lookback window: 1M, 3M, 6M, 1Y, or ALL (defaults to config).",
    ),
    now: Optional[str] = typer.Option(
        None,
        "--now",
        help="Evaluate the window as of this ISO timestamp instead of the current time.",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for generated PNG files (defaults to config plot_dir).",
    ),
) -> None:
    """
    Render the progression chart to a PNG file.

    Examples:
        python -m lift_tracker plot --lift SQUAT --timeframe 6M
    """
    report = _load_report(lift, timeframe, now)
    if report.is_empty:
        typer.echo(report.result.message)
        raise typer.Exit(code=0)

    config = get_config()
    target_dir = (output_dir or Path(config.plot_dir)).expanduser()
    try:
        path = generate_progress_plot(report, output_dir=target_dir, weight_unit=config.weight_unit)
    except RuntimeError as exc:
        _fail(str(exc))
    typer.echo(f"Saved plot to {path}")


@app.command()
def export(
    to: Path = typer.Option(
        Path("export"),
        "--to",
        help="Destination directory or base file name (default: export/).",
    ),
    lift: str = typer.Option(
        "BENCH",
        "--lift",
        "-l",
        help="Lift to export: BENCH, OHP, SQUAT, or DEADLIFT.",
    ),
    timeframe: Optional[str] = typer.Option(
        None,
        "--timeframe",
        "-t",
        help="Lookback window: 1M, 3M, 6M, 1Y, or ALL (defaults to config).",
    ),
    now: Optional[str] = typer.Option(
        None,
        "--now",
        help="Evaluate the window as of this ISO timestamp instead of the current time.",
    ),
) -> None:
    """
    Export the progression series to CSV and JSON with a metadata sidecar.

    Examples:
        python -m lift_tracker export --lift BENCH --timeframe 1Y --to export/bench
    """
    report = _load_report(lift, timeframe, now)
    if report.is_empty:
        typer.echo(report.result.message)
        raise typer.Exit(code=0)

    df = build_export_dataframe(report)
    generated_at = datetime.now(timezone.utc).isoformat()
    paths = _resolve_export_paths(to, report)
    paths["csv"].parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(paths["csv"], index=False)
    json_ready = df.copy()
    json_ready["date"] = json_ready["date"].astype(str)
    json_ready = json_ready.astype(object).where(json_ready.notna(), None)
    paths["json"].write_text(
        json.dumps(json_ready.to_dict(orient="records"), indent=2) + "\n",
        encoding="utf-8",
    )

    trend = report.result.trend
    metadata_payload = {
        "application": "lift-progress-tracker",
        "version": _app_version(),
        "generated_at": generated_at,
        "rows": len(df),
        "columns": list(df.columns),
        "lift_type": report.lift_type.value,
        "timeframe": report.timeframe.value,
        "start_date": report.start_date.isoformat() if report.start_date else None,
        "end_date": report.end_date.isoformat(),
        "trend": (
            {"slope_per_day": trend.slope, "intercept": trend.intercept, "origin": trend.origin.isoformat()}
            if trend
            else None
        ),
        "environment": {
            "python_version": platform.python_version(),
            "lift_tracker_data_dir": get_env("DATA_DIR"),
            "lift_tracker_workouts_file": get_env("WORKOUTS_FILE"),
        },
    }
    paths["metadata"].write_text(json.dumps(metadata_payload, indent=2) + "\n", encoding="utf-8")

    typer.echo(f"Exported {len(df)} points to:")
    typer.echo(f" • CSV: {paths['csv']}")
    typer.echo(f" • JSON: {paths['json']}")
    typer.echo(f" • Metadata: {paths['metadata']}")


@app.command("import")
def import_workouts(
    source: Path = typer.Option(
        ...,
        "--source",
        "-s",
        help="JSON file holding a list of workouts or a {\"workouts\": [...]} response.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate the file without writing to storage.",
    ),
) -> None:
    """
    Import workouts exported from the web application or another tracker.

    Examples:
        python -m lift_tracker import --source progression.json
    """
    source_path = source.expanduser()
    try:
        payload = load_import_payload(source_path)
        records = records_from_payload(payload)
    except FileNotFoundError as exc:
        _fail(str(exc))
    except ValueError as exc:
        _fail(f"Could not import {source_path}: {exc}")

    if not records:
        typer.echo("No rows found to import.")
        raise typer.Exit(code=0)
    if dry_run:
        typer.echo(f"Validated {len(records)} workouts from {source_path} (dry-run).")
        raise typer.Exit(code=0)

    try:
        existing = load_workouts()
    except ValueError as exc:
        _fail(f"Could not read workout log: {exc}")
    known_ids = {str(item.get("id")) for item in existing if isinstance(item, dict)}
    fresh = [record.to_dict() for record in records if record.id not in known_ids]
    existing.extend(fresh)
    save_workouts(existing)
    skipped = len(records) - len(fresh)
    typer.echo(f"Imported {len(fresh)} workouts from {source_path} (total now {len(existing)}).")
    if skipped:
        typer.echo(f"Skipped {skipped} workouts already present.")


@app.command("max")
def record_max(
    lift: Optional[str] = typer.Option(
        None,
        "--lift",
        "-l",
        help="Lift whose one-rep max to record: BENCH, OHP, SQUAT, or DEADLIFT.",
    ),
    weight: Optional[float] = typer.Option(
        None,
        "--weight",
        "-w",
        help="Tested or estimated one-rep max.",
    ),
) -> None:
    """
    Record a one-rep max per lift, or list the stored maxes when no options are given.

    Examples:
        python -m lift_tracker max --lift BENCH --weight 225
        python -m lift_tracker max
    """
    unit = get_config().weight_unit
    if lift is None and weight is None:
        try:
            maxes = load_maxes()
        except ValueError as exc:
            _fail(f"Could not read stored maxes: {exc}")
        typer.echo(render_maxes(maxes, weight_unit=unit))
        return

    if lift is None or weight is None:
        raise typer.BadParameter("Provide both --lift and --weight to record a max.")
    try:
        lift_type = LiftType.parse(lift, field="lift")
        value = coerce_number(weight, field="weight", minimum=0.0, exclusive_minimum=True)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        save_max(lift_type.value, value)
    except ValueError as exc:
        _fail(f"Could not store max: {exc}")
    typer.echo(f"[{lift_type.value}] Max set to {value:g} {unit}.")


@app.command("calc")
def calc_weight(
    max_weight: Optional[float] = typer.Option(
        None,
        "--max",
        "-m",
        help="One-rep max to work from (defaults to the stored max for --lift).",
    ),
    percentage: float = typer.Option(
        ...,
        "--percentage",
        "-p",
        help="Percentage of the max to load (e.g. 75).",
    ),
    lift: Optional[str] = typer.Option(
        None,
        "--lift",
        "-l",
        help="Lift to calculate for; required when --max is omitted.",
    ),
) -> None:
    """
    Calculate a training weight as a percentage of a max, rounded to the plate increment.

    Examples:
        python -m lift_tracker calc --lift BENCH --percentage 75
        python -m lift_tracker calc --max 315 --percentage 80
    """
    config = get_config()
    try:
        lift_type = LiftType.parse(lift, field="lift") if lift else None
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="lift") from exc

    if max_weight is None:
        if lift_type is None:
            raise typer.BadParameter("Provide --max, or --lift to use a stored max.")
        try:
            max_weight = stored_max_for(lift_type, load_maxes())
        except ValueError as exc:
            _fail(f"Could not read stored maxes: {exc}")

    try:
        weight = working_weight(max_weight, percentage, increment=config.plate_increment, lift_type=lift_type)
    except ValidationError as exc:
        message = str(exc)
        if lift_type is not None and not max_weight:
            message += f" Record one with `max --lift {lift_type.value} --weight <1RM>`."
        raise typer.BadParameter(message) from exc
    prefix = f"[{lift_type.value}] " if lift_type else ""
    typer.echo(f"{prefix}{percentage:g}% of {max_weight:g} {config.weight_unit} = {weight:g} {config.weight_unit}")


@app.command("config")
def config_show() -> None:
    """
    Show the effective configuration.
    """
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    typer.echo(f"Default timeframe: {config.get('default_timeframe')}")
    typer.echo(f"Weight unit: {config.get('weight_unit')}")
    typer.echo(f"Plate increment: {config.get('plate_increment')}")
    typer.echo(f"Plot directory: {config.get('plot_dir')}")


def _load_report(lift: str, timeframe: Optional[str], now: Optional[str]) -> ProgressReport:
    try:
        lift_type = LiftType.parse(lift, field="lift")
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="lift") from exc
    try:
        window = Timeframe.parse(timeframe or get_config().default_timeframe)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="timeframe") from exc
    try:
        evaluated_at = parse_timestamp(now, field="now") if now else datetime.now(timezone.utc)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="now") from exc

    records = _load_records()
    return build_progress_report(records, lift_type=lift_type, timeframe=window, now=evaluated_at)


def _load_records() -> list[WorkoutRecord]:
    try:
        payload = load_workouts()
    except ValueError as exc:
        _fail(f"Could not read workout log: {exc}")
    try:
        return records_from_payload(payload)
    except ValidationError as exc:
        _fail(f"Workout log contains an invalid row: {exc}")


def _echo_window(report: ProgressReport) -> None:
    start = report.start_date.date().isoformat() if report.start_date else "beginning"
    typer.echo(
        f"{report.lift_type.label} ({report.lift_type.value}) - {report.timeframe.label}: "
        f"{start} – {report.end_date.date().isoformat()}"
    )


def _resolve_export_paths(target: Path, report: ProgressReport) -> dict[str, Path]:
    target = target.expanduser()
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")

    if target.suffix:
        directory = target.parent
        stem = target.stem
    else:
        directory = target
        stem = f"{report.lift_type.value.lower()}_{report.timeframe.value.lower()}_{timestamp}"

    return {
        "csv": directory / f"{stem}.csv",
        "json": directory / f"{stem}.json",
        "metadata": directory / f"{stem}_metadata.json",
    }


@lru_cache(maxsize=1)
def _app_version() -> str:
    try:
        return metadata.version("lift-progress-tracker")
    except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
        return "0.0.0"


def main() -> None:
    app()


if __name__ == "__main__":
    main()
