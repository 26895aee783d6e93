"""Capacity rule for per-slot room inventory."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from backend.domain.models import AvailabilityCount, RoomRateTable, TimeSlot


UNAVAILABLE = AvailabilityCount(available=0, max=0)


def resolve_max_reservations(rate_table: RoomRateTable, default: int = 1) -> int:
    return rate_table.max_reservation_count or default


def evaluate_availability(
    rate_table: Optional[RoomRateTable],
    requested_slots: Sequence[TimeSlot],
    booked_counts: Mapping[TimeSlot, int],
    default_max: int = 1,
) -> AvailabilityCount:
    """Return the binding remaining capacity across the requested slots.

    Each slot is checked independently against the room maximum and the
    smallest remainder is reported, so a request is admitted only when every
    slot it spans still has room. Missing or inactive rooms have no capacity.
    """
    if rate_table is None or not rate_table.is_active:
        return UNAVAILABLE

    max_count = resolve_max_reservations(rate_table, default_max)
    available = max_count
    for slot in requested_slots:
        remaining = max_count - booked_counts.get(slot, 0)
        available = min(available, remaining)
    return AvailabilityCount(available=max(available, 0), max=max_count)
