"""Lift progression analytics: filter, order, and trend workout records for charting."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .models import (
    EMPTY,
    ChartPoint,
    ChartResult,
    ChartSeries,
    LiftType,
    Timeframe,
    TrendLine,
    ValidationError,
    WorkoutRecord,
    as_utc,
)

LOGGER = logging.getLogger(__name__)


def estimated_one_rep_max(weight: float, reps: int) -> float:
    """Epley estimate of the heaviest single from a submaximal set."""
    return float(weight) * (1.0 + float(reps) / 30.0)


def window_start(timeframe: Timeframe, now: datetime) -> Optional[datetime]:
    """Inclusive lower bound of the lookback window, or None for ALL."""
    months = timeframe.months
    if months is None:
        return None
    start = pd.Timestamp(as_utc(now)) - pd.DateOffset(months=months)
    return start.to_pydatetime()


def compute(
    records: Iterable[WorkoutRecord],
    lift_type: LiftType,
    timeframe: Timeframe,
    now: datetime,
) -> ChartResult:
    """
    Turn raw workout records into a chartable series for one lift.

    Records are filtered by lift and by the `[now - window, now]` window
    (skipped for ALL), stably sorted by date, and mapped to chart points with
    an Epley estimated one-rep max. A least-squares trend is attached once the
    series holds two or more points. Returns `EMPTY` when nothing matches.
    """
    now_utc = as_utc(now)
    start = window_start(timeframe, now_utc)

    selected = [record for record in records if record.lift_type == lift_type]
    if start is not None:
        selected = [record for record in selected if start <= as_utc(record.date) <= now_utc]

    if not selected:
        LOGGER.debug("No %s records within %s of %s", lift_type.value, timeframe.value, now_utc.isoformat())
        return EMPTY

    ordered = sorted(selected, key=lambda record: as_utc(record.date))
    points = tuple(
        ChartPoint(
            date=record.date,
            weight=record.weight,
            estimated_one_rep_max=estimated_one_rep_max(record.weight, record.reps),
        )
        for record in ordered
    )
    return ChartSeries(points=points, trend=fit_trend(points))


def fit_trend(points: Sequence[ChartPoint]) -> Optional[TrendLine]:
    """
    Ordinary least-squares fit of estimated 1RM against days since the first point.

    Returns None for fewer than two points or when every point shares the same
    instant (the slope is undefined).
    """
    if len(points) < 2:
        return None
    origin = as_utc(points[0].date)
    xs = np.array([(as_utc(point.date) - origin) / timedelta(days=1) for point in points], dtype=float)
    ys = np.array([point.estimated_one_rep_max for point in points], dtype=float)

    x_bar = float(np.mean(xs))
    y_bar = float(np.mean(ys))
    denom = float(np.sum((xs - x_bar) ** 2))
    if denom == 0.0:
        return None
    slope = float(np.sum((xs - x_bar) * (ys - y_bar)) / denom)
    intercept = y_bar - slope * x_bar
    return TrendLine(slope=slope, intercept=intercept, origin=origin)


def working_weight(
    one_rep_max: float | None,
    percentage: float,
    *,
    increment: float = 0.5,
    lift_type: LiftType | None = None,
) -> float:
    """Training load at `percentage` of a max, rounded to the nearest plate increment."""
    if not one_rep_max or one_rep_max <= 0:
        subject = f"Max weight for {lift_type.value}" if lift_type else "Max weight"
        raise ValidationError(f"{subject} not set.")
    if percentage <= 0:
        raise ValidationError(f"percentage must be > 0; received {percentage:g}.")
    if increment <= 0:
        raise ValidationError(f"increment must be > 0; received {increment:g}.")
    raw = float(one_rep_max) * (float(percentage) / 100.0)
    return math.floor(raw / increment + 0.5) * increment
