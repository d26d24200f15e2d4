from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from .env import get_env

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError:
        tomllib = None  # type: ignore

DEFAULT_TIMEFRAME = "3M"
DEFAULT_WEIGHT_UNIT = "lbs"
DEFAULT_PLATE_INCREMENT = 0.5
DEFAULT_PLOT_DIR = "data/plots"
VALID_TIMEFRAMES: tuple[str, ...] = ("1M", "3M", "6M", "1Y", "ALL")
VALID_WEIGHT_UNITS: tuple[str, ...] = ("lbs", "kg")


@dataclass(frozen=True)
class AppConfig:
    default_timeframe: str = DEFAULT_TIMEFRAME
    weight_unit: str = DEFAULT_WEIGHT_UNIT
    plate_increment: float = DEFAULT_PLATE_INCREMENT
    plot_dir: str = DEFAULT_PLOT_DIR


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/lift_tracker.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    if tomllib is None:
        raise RuntimeError("TOML configuration requires Python 3.11+ or the 'tomli' package.")
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_choice(raw: Any, choices: tuple[str, ...], default: str, *, upper: bool) -> str:
    if not isinstance(raw, str):
        return default
    candidate = raw.strip().upper() if upper else raw.strip().lower()
    return candidate if candidate in choices else default


def _coerce_increment(raw: Any) -> float:
    if raw is None or isinstance(raw, bool):
        return DEFAULT_PLATE_INCREMENT
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_PLATE_INCREMENT
    return value if value > 0 else DEFAULT_PLATE_INCREMENT


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    plot_dir = raw.get("plot_dir")
    return AppConfig(
        default_timeframe=_coerce_choice(
            raw.get("default_timeframe"), VALID_TIMEFRAMES, DEFAULT_TIMEFRAME, upper=True
        ),
        weight_unit=_coerce_choice(raw.get("weight_unit"), VALID_WEIGHT_UNITS, DEFAULT_WEIGHT_UNIT, upper=False),
        plate_increment=_coerce_increment(raw.get("plate_increment")),
        plot_dir=plot_dir.strip() if isinstance(plot_dir, str) and plot_dir.strip() else DEFAULT_PLOT_DIR,
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return AppConfig()
    data = _load_toml(path)
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for CLI display."""
    config = get_config()
    return {
        "default_timeframe": config.default_timeframe,
        "weight_unit": config.weight_unit,
        "plate_increment": config.plate_increment,
        "plot_dir": config.plot_dir,
        "source": str(_config_path() or "defaults"),
    }
