"""Calendar helpers for weekend detection and public holiday generation."""

from __future__ import annotations

import math
from datetime import date, timedelta

from backend.domain.models import Holiday


SATURDAY = 5
SUNDAY = 6
MONDAY = 0

FIXED_HOLIDAYS: tuple[tuple[int, int, str], ...] = (
    (1, 1, "New Year's Day"),
    (2, 11, "National Foundation Day"),
    (2, 23, "Emperor's Birthday"),
    (4, 29, "Showa Day"),
    (5, 3, "Constitution Memorial Day"),
    (5, 4, "Greenery Day"),
    (5, 5, "Children's Day"),
    (8, 11, "Mountain Day"),
    (11, 3, "Culture Day"),
    (11, 23, "Labour Thanksgiving Day"),
)

# (month, nth Monday, name)
HAPPY_MONDAY_HOLIDAYS: tuple[tuple[int, int, str], ...] = (
    (1, 2, "Coming of Age Day"),
    (7, 3, "Marine Day"),
    (9, 3, "Respect for the Aged Day"),
    (10, 2, "Sports Day"),
)


def is_weekend(target: date) -> bool:
    return target.weekday() in (SATURDAY, SUNDAY)


def nth_monday(year: int, month: int, nth: int) -> date:
    first = date(year, month, 1)
    offset = (MONDAY - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (nth - 1))


def vernal_equinox_day(year: int) -> date:
    """Approximate equinox day; valid for 1900-2099, March 20 otherwise."""
    if 2000 <= year <= 2099:
        day = math.floor(20.8431 + 0.242194 * (year - 1980) - math.floor((year - 1980) / 4))
    elif 1900 <= year <= 1999:
        day = math.floor(20.8357 + 0.242194 * (year - 1980) - math.floor((year - 1980) / 4))
    else:
        day = 20
    return date(year, 3, day)


def autumnal_equinox_day(year: int) -> date:
    if 2000 <= year <= 2099:
        day = math.floor(23.2488 + 0.242194 * (year - 1980) - math.floor((year - 1980) / 4))
    elif 1900 <= year <= 1999:
        day = math.floor(23.2588 + 0.242194 * (year - 1980) - math.floor((year - 1980) / 4))
    else:
        day = 23
    return date(year, 9, day)


def generate_japanese_holidays(year: int) -> list[Holiday]:
    holidays = [Holiday(date=date(year, month, day), name=name) for month, day, name in FIXED_HOLIDAYS]
    holidays.extend(
        Holiday(date=nth_monday(year, month, nth), name=name)
        for month, nth, name in HAPPY_MONDAY_HOLIDAYS
    )
    holidays.append(Holiday(date=vernal_equinox_day(year), name="Vernal Equinox Day"))
    holidays.append(Holiday(date=autumnal_equinox_day(year), name="Autumnal Equinox Day"))
    return sorted(holidays, key=lambda holiday: holiday.date)
