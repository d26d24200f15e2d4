from __future__ import annotations

import argparse
import hashlib
import json
import random
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Iterable, Sequence

ROOT = Path(__file__).resolve().parents[1]
DEFAULT_JSON = ROOT / "demo" / "demo_workouts.json"
DEFAULT_LIFTS = ["BENCH", "OHP", "SQUAT", "DEADLIFT"]
BASE_WEIGHTS = {"BENCH": 185, "OHP": 115, "SQUAT": 255, "DEADLIFT": 315}
WEEKLY_PROGRESSION = {"BENCH": 1.2, "OHP": 0.8, "SQUAT": 1.5, "DEADLIFT": 2.0}


def _build_workouts(weeks: int, start: date, seed: int, lifts: Sequence[str]) -> list[dict[str, object]]:
    rng = random.Random(seed)
    workouts: list[dict[str, object]] = []

    for lift in lifts:
        current = float(BASE_WEIGHTS.get(lift, 135))
        step = WEEKLY_PROGRESSION.get(lift, 1.0)
        for week in range(weeks):
            for slot in range(rng.randint(2, 3)):
                day = start + timedelta(days=week * 7 + slot * 2)
                variation = (rng.random() - 0.5) * 20
                weight = round(max(current + variation, current * 0.8))
                workout_id = hashlib.sha256(f"{lift}:{seed}:{week}:{slot}".encode("utf-8")).hexdigest()[:16]
                workouts.append(
                    {
                        "id": workout_id,
                        "date": datetime.combine(day, time(17, 0), timezone.utc).isoformat(),
                        "lift_type": lift,
                        "weight": weight,
                        "reps": rng.randint(3, 10),
                        "sets": rng.randint(3, 5),
                        "notes": f"Week {week + 1} training",
                    }
                )
            current += step

    workouts.sort(key=lambda item: str(item["date"]))
    return workouts


def _write_json(path: Path, workouts: Iterable[dict[str, object]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(workouts), indent=2) + "\n", encoding="utf-8")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic workout history for demos.")
    parser.add_argument("--weeks", type=int, default=24, help="Number of training weeks to generate.")
    parser.add_argument(
        "--start-date",
        type=date.fromisoformat,
        default=(date.today() - timedelta(weeks=24)).isoformat(),
        help="Start date (YYYY-MM-DD). Defaults to 24 weeks before today.",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility.")
    parser.add_argument("--json", type=Path, default=DEFAULT_JSON, help="Destination .json file.")
    parser.add_argument(
        "--lifts",
        nargs="+",
        default=DEFAULT_LIFTS,
        help="Space-separated lift codes (default: %(default)s).",
    )
    args = parser.parse_args()

    if isinstance(args.start_date, str):
        start = date.fromisoformat(args.start_date)
    else:
        start = args.start_date

    workouts = _build_workouts(weeks=args.weeks, start=start, seed=args.seed, lifts=args.lifts)
    _write_json(args.json, workouts)

    print(f"Wrote {len(workouts)} demo workouts to {args.json}")


if __name__ == "__main__":
    main()
