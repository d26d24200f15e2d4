from __future__ import annotations

import json
from datetime import date
from pathlib import Path


def test_demo_workouts_are_reproducible_and_valid(tmp_path: Path) -> None:
    import scripts.generate_demo_data as gd
    from lift_tracker.services import records_from_payload

    first = gd._build_workouts(weeks=4, start=date(2023, 1, 2), seed=7, lifts=["BENCH", "SQUAT"])
    second = gd._build_workouts(weeks=4, start=date(2023, 1, 2), seed=7, lifts=["BENCH", "SQUAT"])
    assert first == second
    assert {row["lift_type"] for row in first} == {"BENCH", "SQUAT"}
    assert [row["date"] for row in first] == sorted(row["date"] for row in first)
    assert len({row["id"] for row in first}) == len(first)

    records = records_from_payload(first)
    assert all(record.weight > 0 for record in records)

    target = tmp_path / "demo" / "workouts.json"
    gd._write_json(target, first)
    assert json.loads(target.read_text(encoding="utf-8")) == first
