"""Weekend/holiday resolution and yearly holiday registration."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from backend.domain.calendar import generate_japanese_holidays, is_weekend
from backend.domain.models import Holiday
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

MIN_REGISTRATION_YEAR = 1900
MAX_REGISTRATION_YEAR = 2100


class HolidayError(Exception):
    """Base exception for holiday calendar failures."""


class HolidayValidationError(HolidayError):
    """Raised when a registration request is out of range."""


@dataclass
class HolidayRegistrationResult:
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int | list[str]]:
        return {"created": self.created, "skipped": self.skipped, "errors": list(self.errors)}


class HolidayService:
    """Answers the weekend-or-holiday question the pricing engine needs."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def is_holiday(self, target: date) -> bool:
        return self._repository.get_holiday(target) is not None

    def is_weekend_or_holiday(self, target: date) -> bool:
        if is_weekend(target):
            return True
        return self.is_holiday(target)

    def list_holidays(self, year: int) -> list[Holiday]:
        return self._repository.list_holidays(year)

    def bulk_register_year(self, year: int) -> HolidayRegistrationResult:
        """Insert the generated public holidays of `year`, skipping existing dates."""
        if not MIN_REGISTRATION_YEAR <= year <= MAX_REGISTRATION_YEAR:
            raise HolidayValidationError(
                f"Invalid year (must be between {MIN_REGISTRATION_YEAR} and {MAX_REGISTRATION_YEAR})"
            )

        result = HolidayRegistrationResult()
        for holiday in generate_japanese_holidays(year):
            if self._repository.get_holiday(holiday.date) is not None:
                result.skipped += 1
                continue
            try:
                self._repository.add_holiday(holiday.date, holiday.name)
            except sqlite3.Error as exc:
                result.errors.append(f"{holiday.date.isoformat()} ({holiday.name}): {exc}")
                continue
            result.created += 1

        logger.info(
            "Holiday registration for %s: created=%s skipped=%s errors=%s",
            year,
            result.created,
            result.skipped,
            len(result.errors),
        )
        return result
