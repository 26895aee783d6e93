#!/usr/bin/env python3
"""Check that this machine can run the reservation API and its tests.

Each check returns a (passed, message) pair; the script prints a report and
exits non-zero when any check fails. Database checks run against a scratch
SQLite file that is removed afterwards.
"""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import EntranceFeeType, UsageSelection
from backend.repository.data_repository import DataRepository
from backend.services.reservation_service import ReservationService, UsageRequest
from backend.utils.config import Settings, get_settings

REPORT_WIDTH = 48
MIN_PYTHON = (3, 10)
EXPECTED_ROOM_COUNT = 3
EXPECTED_MORNING_QUOTE = 15000

# (import name, distribution name)
REQUIRED_PACKAGES = (
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("pydantic", "pydantic"),
    ("tzdata", "tzdata"),
    ("httpx", "httpx"),
    ("pytest", "pytest"),
)

CheckResult = tuple[bool, str]


def check_python_version() -> CheckResult:
    current = sys.version.split()[0]
    if sys.version_info >= MIN_PYTHON:
        return True, f"Python {current}"
    required = ".".join(str(part) for part in MIN_PYTHON)
    return False, f"Python >= {required} required, found {current}"


def check_packages() -> CheckResult:
    missing: list[str] = []
    for module_name, dist_name in REQUIRED_PACKAGES:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            missing.append(f"{dist_name} ({exc})")
    if missing:
        return False, "Packages missing: " + "; ".join(missing)
    return True, f"Packages importable ({len(REQUIRED_PACKAGES)})"


def check_schema(repository: DataRepository) -> CheckResult:
    try:
        repository.initialize_database()
    except RuntimeError as exc:
        return False, f"Schema initialization failed: {exc}"
    return True, f"Schema initialized at {repository.database_path.name}"


def check_demo_catalogue(repository: DataRepository) -> CheckResult:
    try:
        repository.seed_demo_data()
    except RuntimeError as exc:
        return False, f"Demo seeding failed: {exc}"
    room_count = len(repository.list_rooms())
    if room_count != EXPECTED_ROOM_COUNT:
        return False, f"Demo catalogue has {room_count} rooms, expected {EXPECTED_ROOM_COUNT}"
    return True, f"Demo catalogue seeded ({room_count} rooms)"


def check_quote(repository: DataRepository, settings: Settings) -> CheckResult:
    service = ReservationService(repository=repository, settings=settings)
    # 2025-01-15 is a Wednesday with no registered holiday.
    usage = UsageRequest(UsageSelection(room_id=1, date=date(2025, 1, 15), use_morning=True))
    try:
        quote = service.quote(EntranceFeeType.FREE, 0, [usage])
    except Exception as exc:
        return False, f"Quote failed: {exc}"
    if quote.total_amount != EXPECTED_MORNING_QUOTE:
        return False, f"Quote returned {quote.total_amount}, expected {EXPECTED_MORNING_QUOTE}"
    return True, f"Weekday morning quote = {quote.total_amount}"


def _run_database_checks(scratch_dir: Path) -> list[CheckResult]:
    settings = replace(get_settings(), database_path=scratch_dir / "environment_check.db")
    repository = DataRepository(settings)
    checks: list[Callable[[], CheckResult]] = [
        lambda: check_schema(repository),
        lambda: check_demo_catalogue(repository),
        lambda: check_quote(repository, settings),
    ]
    results: list[CheckResult] = []
    for check in checks:
        result = check()
        results.append(result)
        if not result[0]:
            # Later database checks depend on earlier ones.
            break
    return results


def main() -> int:
    results = [check_python_version(), check_packages()]
    scratch_dir = Path(tempfile.mkdtemp(prefix="reservation-env-"))
    try:
        results.extend(_run_database_checks(scratch_dir))
    finally:
        shutil.rmtree(scratch_dir, ignore_errors=True)

    print("-" * REPORT_WIDTH)
    print(" Facility reservation: environment report")
    print("-" * REPORT_WIDTH)
    for passed, message in results:
        print(f" {'ok  ' if passed else 'FAIL'} {message}")
    print("-" * REPORT_WIDTH)

    failures = sum(1 for passed, _ in results if not passed)
    if failures:
        print(f" {failures} check(s) failed.")
        return 1
    print(" Ready.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
