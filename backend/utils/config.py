"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    database_timeout_seconds: float
    admin_token: str | None
    facility_timezone: str
    default_max_reservation_count: int
    ticket_paid_tier_upper_bound: int
    seed_demo_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; tests derive copies with `replace`."""
    return Settings(
        app_name=os.getenv("APP_NAME", "Facility Reservation API"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("DATABASE_PATH", str(PROJECT_ROOT / "data" / "reservations.db"))
        ),
        database_timeout_seconds=float(os.getenv("DATABASE_TIMEOUT_SECONDS", "5.0")),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        facility_timezone=os.getenv("FACILITY_TIMEZONE", "Asia/Tokyo"),
        default_max_reservation_count=int(os.getenv("DEFAULT_MAX_RESERVATION_COUNT", "1")),
        ticket_paid_tier_upper_bound=int(os.getenv("TICKET_PAID_TIER_UPPER_BOUND", "3000")),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
    )
