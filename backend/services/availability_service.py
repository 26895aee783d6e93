"""Repository-backed availability queries for room inventory."""

from __future__ import annotations

import calendar
from datetime import date
from typing import Optional, Sequence

from backend.domain.availability import UNAVAILABLE, evaluate_availability
from backend.domain.models import MAIN_SLOTS, AvailabilityCount, DayAvailability, TimeSlot
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings


class AvailabilityService:
    """Counts current bookings and applies the per-slot capacity rule.

    Results reflect a single consistent read at call time. The booking insert
    path recounts inside its own write transaction, so a positive answer here
    is advisory, not a reservation.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def get_available_count(
        self,
        room_id: int,
        usage_date: date,
        slots: Sequence[TimeSlot],
        exclude_application_id: Optional[int] = None,
    ) -> AvailabilityCount:
        rate_table = self._repository.get_room_rate_table(room_id)
        if rate_table is None or not rate_table.is_active:
            return UNAVAILABLE
        if self._repository.is_closed_date(usage_date):
            return AvailabilityCount(
                available=0,
                max=rate_table.max_reservation_count or self._settings.default_max_reservation_count,
            )

        counts = self._repository.count_bookings_by_slot(
            room_id=room_id,
            usage_date=usage_date,
            slots=slots,
            exclude_application_id=exclude_application_id,
        )
        return evaluate_availability(
            rate_table,
            slots,
            counts,
            default_max=self._settings.default_max_reservation_count,
        )

    def check_availability(
        self,
        room_id: int,
        usage_date: date,
        slots: Sequence[TimeSlot],
        exclude_application_id: Optional[int] = None,
    ) -> bool:
        return self.get_available_count(
            room_id,
            usage_date,
            slots,
            exclude_application_id=exclude_application_id,
        ).is_available

    def get_month_availability(self, room_id: int, year: int, month: int) -> list[DayAvailability]:
        days_in_month = calendar.monthrange(year, month)[1]
        start = date(year, month, 1)
        end = date(year, month, days_in_month)

        rate_table = self._repository.get_room_rate_table(room_id)
        closed_dates = self._repository.list_closed_dates(start, end)
        counts_by_date = self._repository.count_bookings_for_range(room_id, start, end)

        rows: list[DayAvailability] = []
        for day in range(1, days_in_month + 1):
            current = date(year, month, day)
            is_closed = current in closed_dates
            counts = counts_by_date.get(current, {})
            slot_open = {
                slot: (
                    not is_closed
                    and evaluate_availability(
                        rate_table,
                        (slot,),
                        counts,
                        default_max=self._settings.default_max_reservation_count,
                    ).is_available
                )
                for slot in MAIN_SLOTS
            }
            rows.append(
                DayAvailability(
                    date=current,
                    is_closed=is_closed,
                    morning_available=slot_open[TimeSlot.MORNING],
                    afternoon_available=slot_open[TimeSlot.AFTERNOON],
                    evening_available=slot_open[TimeSlot.EVENING],
                )
            )
        return rows
