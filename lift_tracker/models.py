from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

CURRENT_SCHEMA_VERSION = 1
NO_DATA_MESSAGE = "No workout data available for the selected period."

__all__ = [
    "parse_timestamp",
    "coerce_number",
    "LiftType",
    "Timeframe",
    "WorkoutRecord",
    "ChartPoint",
    "TrendLine",
    "ChartSeries",
    "EmptyChart",
    "ChartResult",
    "EMPTY",
    "ValidationError",
    "as_utc",
    "derive_workout_id",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


class LiftType(str, Enum):
    BENCH = "BENCH"
    OHP = "OHP"
    SQUAT = "SQUAT"
    DEADLIFT = "DEADLIFT"

    @property
    def label(self) -> str:
        return _LIFT_LABELS[self]

    @property
    def color(self) -> str:
        return _LIFT_COLORS[self]

    @classmethod
    def parse(cls, value: Any, *, field: str = "lift_type") -> "LiftType":
        """Resolve a lift from its code, alias, or display label (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required.")
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        lift = _LIFT_ALIASES.get(key)
        if lift is None:
            choices = ", ".join(member.value for member in cls)
            raise ValidationError(f"{field} must be one of {choices}; received {value!r}.")
        return lift


_LIFT_LABELS = {
    LiftType.BENCH: "Bench Press",
    LiftType.OHP: "Overhead Press",
    LiftType.SQUAT: "Back Squat",
    LiftType.DEADLIFT: "Deadlift",
}

_LIFT_COLORS = {
    LiftType.BENCH: "#36A2EB",
    LiftType.OHP: "#FF6384",
    LiftType.SQUAT: "#4BC0C0",
    LiftType.DEADLIFT: "#FF9F40",
}

_LIFT_ALIASES = {member.value: member for member in LiftType}
_LIFT_ALIASES.update(
    {
        "BENCH_PRESS": LiftType.BENCH,
        "OVERHEAD_PRESS": LiftType.OHP,
        "PRESS": LiftType.OHP,
        "BACK_SQUAT": LiftType.SQUAT,
    }
)


class Timeframe(str, Enum):
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"

    @property
    def months(self) -> Optional[int]:
        """Length of the lookback window in calendar months; None when unbounded."""
        return _TIMEFRAME_MONTHS[self]

    @property
    def label(self) -> str:
        return _TIMEFRAME_LABELS[self]

    @classmethod
    def parse(cls, value: Any, *, field: str = "timeframe") -> "Timeframe":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required.")
        candidate = value.strip().upper()
        for member in cls:
            if member.value == candidate or member.name == candidate:
                return member
        choices = ", ".join(member.value for member in cls)
        raise ValidationError(f"{field} must be one of {choices}; received {value!r}.")


_TIMEFRAME_MONTHS = {
    Timeframe.ONE_MONTH: 1,
    Timeframe.THREE_MONTHS: 3,
    Timeframe.SIX_MONTHS: 6,
    Timeframe.ONE_YEAR: 12,
    Timeframe.ALL: None,
}

_TIMEFRAME_LABELS = {
    Timeframe.ONE_MONTH: "Last Month",
    Timeframe.THREE_MONTHS: "Last 3 Months",
    Timeframe.SIX_MONTHS: "Last 6 Months",
    Timeframe.ONE_YEAR: "Last Year",
    Timeframe.ALL: "All Time",
}


def parse_timestamp(value: Any, *, field: str = "date") -> datetime:
    """
    Parse user-supplied ISO-8601 timestamps into timezone-aware UTC datetimes.

    Accepts `datetime.datetime`, `datetime.date`, or strings (a trailing `Z` is
    understood). Naive values are interpreted as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            raise ValidationError(f"{field} cannot be empty.")
        if candidate.endswith(("Z", "z")):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValidationError(
                f"{field} must be a valid ISO timestamp (YYYY-MM-DD[THH:MM]); received {value!r}."
            ) from exc
    else:
        raise ValidationError(f"{field} must be provided as ISO-8601 text; received {value!r}.")

    return as_utc(parsed)


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime to UTC, reading naive values as UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    allow_float: bool = True,
    exclusive_minimum: bool = False,
) -> float:
    """
    Convert arbitrary input into a float with guardrails.

    `minimum` is inclusive unless `exclusive_minimum` is set. When `allow_float`
    is False, the coerced number must be whole.
    """
    if value is None:
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a finite number; received {value!r}.")

    if not allow_float and number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")

    if minimum is not None:
        if exclusive_minimum and number <= minimum:
            raise ValidationError(f"{field} must be > {minimum:g}; received {number:g}.")
        if not exclusive_minimum and number < minimum:
            raise ValidationError(f"{field} must be >= {minimum:g}; received {number:g}.")

    return number


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def derive_workout_id(logged_at: datetime, lift_type: LiftType, weight: float, reps: int, sets: int) -> str:
    key = f"{as_utc(logged_at).isoformat()}|{lift_type.value}|{weight:g}|{reps}|{sets}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class WorkoutRecord:
    """One logged lift: a weight moved for `reps` repetitions across `sets` sets."""

    id: str
    date: datetime
    lift_type: LiftType
    weight: float
    reps: int
    sets: int
    notes: Optional[str] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "WorkoutRecord":
        """
        Validate a raw mapping (snake_case or the web API's camelCase keys).

        Rows without an `id` get one derived from their content, so the same
        row imported twice resolves to the same record.
        """
        raw_lift = payload.get("lift_type", payload.get("liftType"))
        logged_at = parse_timestamp(payload.get("date"), field="date")
        lift_type = LiftType.parse(raw_lift)
        weight = coerce_number(payload.get("weight"), field="weight", minimum=0.0, exclusive_minimum=True)
        reps = int(coerce_number(payload.get("reps"), field="reps", minimum=1, allow_float=False))
        sets = int(coerce_number(payload.get("sets", 1), field="sets", minimum=1, allow_float=False))
        record_id = str(payload.get("id") or "").strip()
        return cls(
            id=record_id or derive_workout_id(logged_at, lift_type, weight, reps, sets),
            date=logged_at,
            lift_type=lift_type,
            weight=weight,
            reps=reps,
            sets=sets,
            notes=_optional_text(payload.get("notes")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Make the record JSON serialisable."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "date": self.date.isoformat(),
            "lift_type": self.lift_type.value,
            "weight": self.weight,
            "reps": self.reps,
            "sets": self.sets,
            "schema_version": CURRENT_SCHEMA_VERSION,
        }
        if self.notes:
            payload["notes"] = self.notes
        return payload


@dataclass(frozen=True)
class ChartPoint:
    date: datetime
    weight: float
    estimated_one_rep_max: float


@dataclass(frozen=True)
class TrendLine:
    """
    Least-squares line of estimated one-rep max against elapsed days.

    `slope` is expressed per day and `intercept` is the fitted value at `origin`
    (the first point of the series).
    """

    slope: float
    intercept: float
    origin: datetime

    def value_at(self, when: datetime) -> float:
        elapsed = (as_utc(when) - as_utc(self.origin)) / timedelta(days=1)
        return self.intercept + self.slope * elapsed

    @property
    def slope_per_week(self) -> float:
        return self.slope * 7.0


@dataclass(frozen=True)
class ChartSeries:
    points: Tuple[ChartPoint, ...]
    trend: Optional[TrendLine] = None


@dataclass(frozen=True)
class EmptyChart:
    """Nothing matched the lift/timeframe filter; render `message` instead of a chart."""

    message: str = NO_DATA_MESSAGE


EMPTY = EmptyChart()

ChartResult = Union[EmptyChart, ChartSeries]
