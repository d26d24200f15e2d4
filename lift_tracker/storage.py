from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Iterable, List, Tuple

from .env import get_env
from .models import CURRENT_SCHEMA_VERSION

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
LOGGER = logging.getLogger(__name__)


def _data_dir() -> Path:
    override = get_env("DATA_DIR")
    return Path(override).expanduser() if override else DEFAULT_DATA_DIR


def _workouts_file() -> Path:
    override = get_env("WORKOUTS_FILE")
    return Path(override).expanduser() if override else _data_dir() / "workouts.json"


def _maxes_file() -> Path:
    override = get_env("MAXES_FILE")
    return Path(override).expanduser() if override else _data_dir() / "maxes.json"


def _write_json_atomic(target: Path, payload: Any) -> None:
    """Replace `target` in one step so readers never observe a half-written file."""
    target.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, sort_keys=True) + "\n"

    with NamedTemporaryFile("w", dir=target.parent, delete=False, encoding="utf-8") as tmp:
        tmp.write(text)
        temp_path = Path(tmp.name)
    temp_path.replace(target)


def _read_json(source: Path, default: Any) -> Any:
    # A missing store reads as empty; the file appears on first write.
    if not source.exists():
        return default
    raw = source.read_text(encoding="utf-8").strip()
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not parse {source}: {exc}") from exc


def _load_workouts_from_file(workouts_file: Path) -> List[Any]:
    workouts = _read_json(workouts_file, [])
    if not isinstance(workouts, list):
        raise ValueError(f"{workouts_file} must contain a JSON list")

    upgraded, changed = _migrate_workouts(workouts)
    if changed:
        LOGGER.info("Migrated workout records in %s to schema v%s", workouts_file, CURRENT_SCHEMA_VERSION)
        _write_json_atomic(workouts_file, upgraded)
    return upgraded


def load_workouts() -> List[Any]:
    return _load_workouts_from_file(_workouts_file())


def save_workouts(workouts: Iterable[Any]) -> None:
    _write_json_atomic(_workouts_file(), list(workouts))


def append_workout(workout: Any) -> List[Any]:
    workouts = load_workouts()
    workouts.append(workout)
    save_workouts(workouts)
    return workouts


def load_maxes() -> Dict[str, Any]:
    """Stored one-rep maxes keyed by lift code, as written by `save_max`."""
    maxes_file = _maxes_file()
    maxes = _read_json(maxes_file, {})
    if not isinstance(maxes, dict):
        raise ValueError(f"{maxes_file} must contain a JSON object keyed by lift")
    return maxes


def save_max(lift: str, weight: float) -> Dict[str, Any]:
    maxes = load_maxes()
    maxes[lift] = weight
    _write_json_atomic(_maxes_file(), maxes)
    LOGGER.info("Stored %s max of %s", lift, weight)
    return maxes


def _migrate_workouts(workouts: list[Any]) -> Tuple[list[Any], bool]:
    """Upgrade legacy or imported workout rows when the schema evolves."""
    upgraded: list[Any] = []
    changed = False
    for record in workouts:
        if isinstance(record, dict):
            migrated, mutated = _migrate_record(record)
            upgraded.append(migrated)
            changed = changed or mutated
        else:
            upgraded.append(record)
    return upgraded, changed


def _migrate_record(record: dict[str, Any]) -> Tuple[dict[str, Any], bool]:
    mutated = False
    upgraded = dict(record)

    # Rows exported from the web API use camelCase.
    if "liftType" in upgraded:
        legacy = upgraded.pop("liftType")
        upgraded.setdefault("lift_type", legacy)
        mutated = True

    raw_lift = upgraded.get("lift_type")
    if isinstance(raw_lift, str):
        lift = raw_lift.strip().upper()
        if lift != raw_lift:
            upgraded["lift_type"] = lift
            mutated = True

    if not str(upgraded.get("id") or "").strip():
        upgraded["id"] = uuid.uuid4().hex
        mutated = True
    elif not isinstance(upgraded["id"], str):
        upgraded["id"] = str(upgraded["id"])
        mutated = True

    for key in ("userId", "createdAt", "updatedAt"):
        if key in upgraded:
            upgraded.pop(key)
            mutated = True

    schema_raw = upgraded.get("schema_version")
    if isinstance(schema_raw, int) and schema_raw > CURRENT_SCHEMA_VERSION:
        schema_value = schema_raw
    else:
        schema_value = CURRENT_SCHEMA_VERSION
    if schema_raw != schema_value:
        upgraded["schema_version"] = schema_value
        mutated = True

    return upgraded, mutated
