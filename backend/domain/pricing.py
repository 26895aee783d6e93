"""Pure pricing rules for room usage, equipment, air conditioning and cancellation.

Nothing in this module performs I/O or reads the clock. Rate tables and the
weekend-or-holiday flag are resolved by the caller and passed in, so every
function returns the same result for the same arguments and is safe to call
from concurrent booking flows.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from backend.domain.models import (
    CancellationRecord,
    CancellationSummary,
    ChargeBreakdown,
    EntranceFeeType,
    EquipmentLine,
    PriceType,
    RoomRateTable,
    UsageSelection,
)


PAID_TIER_UPPER_BOUND = 3000

FREE_MULTIPLIER = 1.0
PAID_LOW_MULTIPLIER = 1.5
PAID_HIGH_MULTIPLIER = 2.0


def round_half_up(value: float) -> int:
    """Round to the nearest unit with halves going up."""
    return int(math.floor(value + 0.5))


def resolve_ticket_multiplier(
    entrance_fee_type: EntranceFeeType | str,
    entrance_fee_amount: int,
    paid_tier_upper_bound: int = PAID_TIER_UPPER_BOUND,
) -> float:
    """Map the event's entrance fee to the multiplier applied to room charges.

    Free events, and paid events charging nothing, use 1.0. Fees from 1 up to
    `paid_tier_upper_bound` use 1.5; anything above uses 2.0.
    """
    if EntranceFeeType(entrance_fee_type) is EntranceFeeType.FREE or entrance_fee_amount == 0:
        return FREE_MULTIPLIER
    if 1 <= entrance_fee_amount <= paid_tier_upper_bound:
        return PAID_LOW_MULTIPLIER
    if entrance_fee_amount > paid_tier_upper_bound:
        return PAID_HIGH_MULTIPLIER
    return FREE_MULTIPLIER


def count_main_slots(usage: UsageSelection) -> int:
    return sum(1 for flag in (usage.use_morning, usage.use_afternoon, usage.use_evening) if flag)


def calculate_room_base_charge(
    rate_table: RoomRateTable,
    usage: UsageSelection,
    is_weekend_or_holiday: bool,
) -> int:
    """Sum main-slot prices plus any extension block that is not bundled.

    An extension block sits between two main slots and is free only when both
    neighbours are booked. With a single neighbour it is charged.
    """
    prices = rate_table.prices_for(is_weekend_or_holiday)
    charge = 0

    if usage.use_morning:
        charge += prices.morning
    if usage.use_afternoon:
        charge += prices.afternoon
    if usage.use_evening:
        charge += prices.evening

    if usage.use_midday_extension and not (usage.use_morning and usage.use_afternoon):
        charge += prices.midday_extension
    if usage.use_evening_extension and not (usage.use_afternoon and usage.use_evening):
        charge += prices.evening_extension

    return charge


def calculate_equipment_line_amount(line: EquipmentLine) -> int:
    price_type = PriceType(line.price_type)
    if price_type is PriceType.PER_SLOT:
        return line.unit_price * line.quantity * line.slot_count
    if price_type is PriceType.FLAT:
        # Flat items are charged once regardless of quantity or slots.
        return line.unit_price
    return 0


def calculate_equipment_charge(lines: Iterable[EquipmentLine]) -> int:
    return sum(calculate_equipment_line_amount(line) for line in lines)


def calculate_ac_charge(ac_price_per_hour: int, usage: UsageSelection) -> int:
    if not usage.ac_requested or usage.ac_hours is None or usage.ac_hours <= 0:
        return 0
    return round_half_up(usage.ac_hours * ac_price_per_hour)


def calculate_usage_charges(
    rate_table: RoomRateTable,
    usage: UsageSelection,
    equipment_lines: Sequence[EquipmentLine],
    ticket_multiplier: float,
    is_weekend_or_holiday: bool,
) -> ChargeBreakdown:
    """Itemize one usage. Only the room charge is scaled by the multiplier."""
    room_before = calculate_room_base_charge(rate_table, usage, is_weekend_or_holiday)
    room_after = round_half_up(room_before * ticket_multiplier)
    equipment_charge = calculate_equipment_charge(equipment_lines)
    ac_charge = calculate_ac_charge(rate_table.ac_price_per_hour, usage)
    return ChargeBreakdown(
        room_charge_before_multiplier=room_before,
        room_charge_after_multiplier=room_after,
        equipment_charge=equipment_charge,
        ac_charge=ac_charge,
        subtotal=room_after + equipment_charge + ac_charge,
    )


def calculate_application_total(breakdowns: Iterable[ChargeBreakdown]) -> int:
    return sum(breakdown.subtotal for breakdown in breakdowns)


def calculate_cancellation_fee(
    usage_date: date,
    cancelled_at: Optional[datetime],
    subtotal: int,
) -> int:
    """Charge the full subtotal when cancelled on or after the usage day.

    Only calendar dates are compared; `cancelled_at` must already be expressed
    in the facility's local time.
    """
    if cancelled_at is None:
        return 0
    if cancelled_at.date() < usage_date:
        return 0
    return subtotal


def summarize_cancellation(
    records: Sequence[CancellationRecord],
    total_amount: int,
) -> CancellationSummary:
    fee = sum(
        calculate_cancellation_fee(record.usage_date, record.cancelled_at, record.subtotal)
        for record in records
    )
    return CancellationSummary(
        total_amount=total_amount,
        cancellation_fee=fee,
        refund_amount=max(total_amount - fee, 0),
        records=list(records),
    )
