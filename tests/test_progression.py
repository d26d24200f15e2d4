from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lift_tracker.models import (
    EMPTY,
    ChartSeries,
    EmptyChart,
    LiftType,
    Timeframe,
    ValidationError,
    WorkoutRecord,
)
from lift_tracker.progression import (
    compute,
    estimated_one_rep_max,
    fit_trend,
    window_start,
    working_weight,
)
from lift_tracker.services import build_export_dataframe, build_progress_report, render_progress_table


def _at(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _record(
    record_id: str,
    when: datetime,
    weight: float,
    *,
    lift: LiftType = LiftType.BENCH,
    reps: int = 5,
    sets: int = 3,
) -> WorkoutRecord:
    return WorkoutRecord(id=record_id, date=when, lift_type=lift, weight=weight, reps=reps, sets=sets)


def _bench_block() -> list[WorkoutRecord]:
    return [
        _record("b3", _at(2023, 1, 15), 210.0),
        _record("b1", _at(2023, 1, 1), 200.0),
        _record("s1", _at(2023, 1, 2), 300.0, lift=LiftType.SQUAT),
        _record("b2", _at(2023, 1, 8), 205.0),
    ]


def test_epley_estimate_for_five_rep_set() -> None:
    assert estimated_one_rep_max(200, 5) == pytest.approx(233.3333, rel=1e-6)


def test_epley_single_rep_adds_one_thirtieth() -> None:
    assert estimated_one_rep_max(300, 1) == pytest.approx(310.0)


def test_bench_block_produces_ordered_series_with_rising_trend() -> None:
    result = compute(_bench_block(), LiftType.BENCH, Timeframe.THREE_MONTHS, _at(2023, 1, 20))

    assert isinstance(result, ChartSeries)
    assert [point.date for point in result.points] == [_at(2023, 1, 1), _at(2023, 1, 8), _at(2023, 1, 15)]
    assert [point.weight for point in result.points] == [200.0, 205.0, 210.0]
    assert result.trend is not None
    assert result.trend.slope > 0
    # e1RM climbs by 5 * 35/30 every 7 days.
    assert result.trend.slope == pytest.approx((5 * 35 / 30) / 7)
    assert result.trend.intercept == pytest.approx(233.3333, rel=1e-6)
    assert result.trend.origin == _at(2023, 1, 1)


def test_sets_do_not_change_the_estimate() -> None:
    records = [
        _record("a", _at(2023, 1, 1), 200.0, sets=1),
        _record("b", _at(2023, 1, 2), 200.0, sets=8),
    ]
    result = compute(records, LiftType.BENCH, Timeframe.ALL, _at(2023, 1, 3))

    assert isinstance(result, ChartSeries)
    first, second = result.points
    assert first.estimated_one_rep_max == pytest.approx(second.estimated_one_rep_max)


def test_empty_records_return_empty_sentinel() -> None:
    for timeframe in Timeframe:
        assert compute([], LiftType.DEADLIFT, timeframe, _at(2023, 1, 20)) == EMPTY


def test_other_lifts_only_return_empty() -> None:
    records = [_record("s", _at(2023, 1, 10), 300.0, lift=LiftType.SQUAT)]
    result = compute(records, LiftType.OHP, Timeframe.ALL, _at(2023, 1, 20))

    assert isinstance(result, EmptyChart)
    assert result.message.startswith("No workout data available")


def test_records_older_than_window_return_empty() -> None:
    records = [_record("old", _at(2022, 6, 1), 185.0)]
    assert compute(records, LiftType.BENCH, Timeframe.ONE_MONTH, _at(2023, 1, 20)) is EMPTY


def test_window_bounds_are_inclusive() -> None:
    now = _at(2023, 4, 15, 12)
    records = [
        _record("edge", _at(2023, 1, 15, 12), 200.0),
        _record("now", now, 205.0),
        _record("outside", _at(2023, 1, 15, 11), 195.0),
        _record("future", now + timedelta(seconds=1), 210.0),
    ]
    result = compute(records, LiftType.BENCH, Timeframe.THREE_MONTHS, now)

    assert isinstance(result, ChartSeries)
    assert [point.weight for point in result.points] == [200.0, 205.0]


def test_all_timeframe_ignores_the_window() -> None:
    records = [_record("ancient", _at(2015, 3, 1), 135.0), _record("recent", _at(2023, 1, 1), 200.0)]
    result = compute(records, LiftType.BENCH, Timeframe.ALL, _at(2023, 1, 20))

    assert isinstance(result, ChartSeries)
    assert len(result.points) == 2


def test_single_point_has_no_trend() -> None:
    result = compute([_record("solo", _at(2023, 1, 10), 200.0)], LiftType.BENCH, Timeframe.ONE_MONTH, _at(2023, 1, 20))

    assert isinstance(result, ChartSeries)
    assert len(result.points) == 1
    assert result.trend is None


def test_same_instant_points_keep_input_order_and_skip_trend() -> None:
    when = _at(2023, 1, 10, 9)
    records = [
        _record("first", when, 190.0),
        _record("second", when, 210.0),
        _record("third", when, 200.0),
    ]
    result = compute(records, LiftType.BENCH, Timeframe.ONE_MONTH, _at(2023, 1, 20))

    assert isinstance(result, ChartSeries)
    assert [point.weight for point in result.points] == [190.0, 210.0, 200.0]
    assert result.trend is None


def test_compute_is_repeatable_and_leaves_input_untouched() -> None:
    records = _bench_block()
    snapshot = list(records)
    now = _at(2023, 1, 20)

    first = compute(records, LiftType.BENCH, Timeframe.THREE_MONTHS, now)
    second = compute(records, LiftType.BENCH, Timeframe.THREE_MONTHS, now)

    assert first == second
    assert records == snapshot


def test_compute_accepts_generators() -> None:
    result = compute(iter(_bench_block()), LiftType.BENCH, Timeframe.ALL, _at(2023, 1, 20))
    assert isinstance(result, ChartSeries)
    assert len(result.points) == 3


def test_naive_now_is_treated_as_utc() -> None:
    result = compute(_bench_block(), LiftType.BENCH, Timeframe.ONE_MONTH, datetime(2023, 1, 20))
    assert isinstance(result, ChartSeries)
    assert len(result.points) == 3


def test_trend_evaluates_beyond_series() -> None:
    result = compute(_bench_block(), LiftType.BENCH, Timeframe.ALL, _at(2023, 1, 20))
    assert isinstance(result, ChartSeries) and result.trend is not None

    last = result.points[-1]
    assert result.trend.value_at(last.date) == pytest.approx(last.estimated_one_rep_max)
    assert result.trend.value_at(_at(2023, 1, 22)) > last.estimated_one_rep_max


def test_fit_trend_declines_for_fewer_than_two_points() -> None:
    assert fit_trend([]) is None


@pytest.mark.parametrize(
    "timeframe, expected",
    [
        (Timeframe.ONE_MONTH, _at(2023, 2, 28)),
        (Timeframe.THREE_MONTHS, _at(2022, 12, 31)),
        (Timeframe.SIX_MONTHS, _at(2022, 9, 30)),
        (Timeframe.ONE_YEAR, _at(2022, 3, 31)),
        (Timeframe.ALL, None),
    ],
)
def test_window_start_uses_calendar_months(timeframe, expected) -> None:
    assert window_start(timeframe, _at(2023, 3, 31)) == expected


@pytest.mark.parametrize(
    "one_rep_max, percentage, expected",
    [
        (225, 70, 157.5),
        (135, 65, 88.0),
        (405, 80, 324.0),
        (315, 72.5, 228.5),
    ],
)
def test_working_weight_rounds_to_half_plate(one_rep_max, percentage, expected) -> None:
    assert working_weight(one_rep_max, percentage) == pytest.approx(expected)


def test_working_weight_honours_custom_increment() -> None:
    assert working_weight(300, 77, increment=5) == pytest.approx(230.0)


@pytest.mark.parametrize("one_rep_max", [None, 0, -10])
def test_working_weight_requires_a_max(one_rep_max) -> None:
    with pytest.raises(ValidationError):
        working_weight(one_rep_max, 80)


def test_working_weight_names_the_lift_without_a_max() -> None:
    with pytest.raises(ValidationError, match="Max weight for SQUAT not set"):
        working_weight(None, 80, lift_type=LiftType.SQUAT)


def test_trend_evaluates_on_naive_record_dates() -> None:
    records = [
        _record("n1", datetime(2023, 1, 1), 200.0),
        _record("n2", datetime(2023, 1, 8), 205.0),
        _record("n3", datetime(2023, 1, 15), 210.0),
    ]
    now = datetime(2023, 1, 20)
    result = compute(records, LiftType.BENCH, Timeframe.THREE_MONTHS, now)

    assert isinstance(result, ChartSeries) and result.trend is not None
    first = result.points[0]
    assert first.date == datetime(2023, 1, 1)
    assert result.trend.value_at(first.date) == pytest.approx(first.estimated_one_rep_max)

    table = render_progress_table(result)
    assert table.splitlines()[-1].split()[-1] == "245.0"

    report = build_progress_report(records, lift_type=LiftType.BENCH, timeframe=Timeframe.THREE_MONTHS, now=now)
    df = build_export_dataframe(report)
    assert list(df["trend_value"]) == pytest.approx([233.33, 239.17, 245.0])
