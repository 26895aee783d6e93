from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from backend.domain.calendar import (
    autumnal_equinox_day,
    generate_japanese_holidays,
    is_weekend,
    nth_monday,
    vernal_equinox_day,
)
from backend.repository.data_repository import DataRepository
from backend.services.holiday_service import HolidayService, HolidayValidationError
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    return replace(get_settings(), database_path=tmp_path / filename)


def _build_service(tmp_path, filename: str) -> HolidayService:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    return HolidayService(repository=repository, settings=settings)


def test_weekend_detection():
    assert is_weekend(date(2025, 1, 18))
    assert is_weekend(date(2025, 1, 19))
    assert not is_weekend(date(2025, 1, 15))


def test_happy_monday_dates():
    assert nth_monday(2025, 1, 2) == date(2025, 1, 13)
    assert nth_monday(2025, 7, 3) == date(2025, 7, 21)
    assert nth_monday(2025, 9, 3) == date(2025, 9, 15)
    assert nth_monday(2025, 10, 2) == date(2025, 10, 13)


def test_equinox_days():
    assert vernal_equinox_day(2024) == date(2024, 3, 20)
    assert vernal_equinox_day(2025) == date(2025, 3, 20)
    assert autumnal_equinox_day(2024) == date(2024, 9, 22)
    assert autumnal_equinox_day(2025) == date(2025, 9, 23)


def test_generated_year_is_sorted_and_unique():
    holidays = generate_japanese_holidays(2025)
    dates = [holiday.date for holiday in holidays]
    assert len(holidays) == 16
    assert dates == sorted(dates)
    assert len(set(dates)) == 16
    assert date(2025, 1, 1) in dates
    assert date(2025, 11, 23) in dates


def test_bulk_registration_is_idempotent(tmp_path):
    service = _build_service(tmp_path, "holidays.db")

    first = service.bulk_register_year(2025)
    assert first.created == 16
    assert first.skipped == 0
    assert first.errors == []

    second = service.bulk_register_year(2025)
    assert second.created == 0
    assert second.skipped == 16
    assert len(service.list_holidays(2025)) == 16


def test_registration_skips_manually_added_dates(tmp_path):
    service = _build_service(tmp_path, "manual_holiday.db")
    repository = DataRepository(_build_test_settings(tmp_path, "manual_holiday.db"))
    repository.add_holiday(date(2025, 1, 1), "New Year (manual)")

    result = service.bulk_register_year(2025)
    assert result.created == 15
    assert result.skipped == 1
    assert result.to_dict() == {"created": 15, "skipped": 1, "errors": []}


def test_registration_rejects_out_of_range_year(tmp_path):
    service = _build_service(tmp_path, "bad_year.db")
    with pytest.raises(HolidayValidationError):
        service.bulk_register_year(1899)
    with pytest.raises(HolidayValidationError):
        service.bulk_register_year(2101)


def test_registered_holiday_counts_as_weekend_rate_day(tmp_path):
    service = _build_service(tmp_path, "holiday_rate.db")
    coming_of_age_day = date(2025, 1, 13)

    assert not service.is_weekend_or_holiday(coming_of_age_day)
    service.bulk_register_year(2025)
    assert service.is_holiday(coming_of_age_day)
    assert service.is_weekend_or_holiday(coming_of_age_day)
    assert service.is_weekend_or_holiday(date(2025, 1, 18))
    assert not service.is_weekend_or_holiday(date(2025, 1, 15))
