from __future__ import annotations

import os

PREFIX = "LIFT_TRACKER_"


def get_env(name: str, default: str | None = None) -> str | None:
    """Resolve a `LIFT_TRACKER_`-prefixed environment variable."""
    value = os.getenv(f"{PREFIX}{name}")
    if value is not None:
        return value
    return default
