"""Runtime settings resolved once from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    seed_demo_data: bool
    sqlite_busy_timeout_seconds: float

    # Operational status thresholds, as utilization ratios.
    capacity_near_capacity_ratio: float
    capacity_at_capacity_ratio: float

    # Urgency score weights for the recommendation engine.
    urgency_priority_weight: float
    urgency_utilization_weight: float
    urgency_utilization_cap: float
    urgency_scarcity_weight: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the environment; cached for the process lifetime."""
    return Settings(
        app_name=_env_str("RELIEF_APP_NAME", "Shelter Relief Coordination"),
        app_version=_env_str("RELIEF_APP_VERSION", "0.1.0"),
        database_path=Path(_env_str("RELIEF_DATABASE_PATH", "data/relief.db")),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        seed_demo_data=_env_bool("RELIEF_SEED_DEMO_DATA", True),
        sqlite_busy_timeout_seconds=_env_float("RELIEF_SQLITE_BUSY_TIMEOUT_SECONDS", 5.0),
        capacity_near_capacity_ratio=_env_float("RELIEF_NEAR_CAPACITY_RATIO", 0.8),
        capacity_at_capacity_ratio=_env_float("RELIEF_AT_CAPACITY_RATIO", 1.0),
        urgency_priority_weight=_env_float("RELIEF_URGENCY_PRIORITY_WEIGHT", 20.0),
        urgency_utilization_weight=_env_float("RELIEF_URGENCY_UTILIZATION_WEIGHT", 10.0),
        urgency_utilization_cap=_env_float("RELIEF_URGENCY_UTILIZATION_CAP", 1.5),
        urgency_scarcity_weight=_env_float("RELIEF_URGENCY_SCARCITY_WEIGHT", 15.0),
    )
