"""Domain models for facility pricing, availability and cancellation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


MAIN_SLOTS: tuple[TimeSlot, ...] = (TimeSlot.MORNING, TimeSlot.AFTERNOON, TimeSlot.EVENING)


class PriceType(str, Enum):
    PER_SLOT = "per_slot"
    FLAT = "flat"
    FREE = "free"


class EntranceFeeType(str, Enum):
    FREE = "free"
    PAID = "paid"


class CancelStatus(str, Enum):
    NONE = "none"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class SlotPrices:
    """One complete price set; amounts are in the smallest currency unit."""

    morning: int
    afternoon: int
    evening: int
    midday_extension: int
    evening_extension: int


@dataclass(frozen=True)
class RoomRateTable:
    room_id: int
    name: str
    weekday: SlotPrices
    weekend: Optional[SlotPrices]
    ac_price_per_hour: int
    max_reservation_count: int = 1
    is_active: bool = True

    def prices_for(self, is_weekend_or_holiday: bool) -> SlotPrices:
        """Weekend prices replace weekday prices entirely when configured."""
        if is_weekend_or_holiday and self.weekend is not None:
            return self.weekend
        return self.weekday


@dataclass(frozen=True)
class UsageSelection:
    room_id: int
    date: date
    use_morning: bool = False
    use_afternoon: bool = False
    use_evening: bool = False
    use_midday_extension: bool = False
    use_evening_extension: bool = False
    ac_requested: bool = False
    ac_hours: Optional[float] = None

    def requested_slots(self) -> tuple[TimeSlot, ...]:
        flags = {
            TimeSlot.MORNING: self.use_morning,
            TimeSlot.AFTERNOON: self.use_afternoon,
            TimeSlot.EVENING: self.use_evening,
        }
        return tuple(slot for slot in MAIN_SLOTS if flags[slot])


@dataclass(frozen=True)
class EquipmentLine:
    equipment_id: int
    price_type: PriceType
    unit_price: int
    quantity: int
    slot_count: int


@dataclass(frozen=True)
class ChargeBreakdown:
    room_charge_before_multiplier: int
    room_charge_after_multiplier: int
    equipment_charge: int
    ac_charge: int
    subtotal: int


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class CancellationRecord:
    usage_date: date
    cancelled_at: Optional[datetime]
    subtotal: int


@dataclass(frozen=True)
class CancellationSummary:
    total_amount: int
    cancellation_fee: int
    refund_amount: int
    records: list[CancellationRecord] = field(default_factory=list)


@dataclass(frozen=True)
class AvailabilityCount:
    available: int
    max: int

    @property
    def is_available(self) -> bool:
        return self.available > 0


@dataclass(frozen=True)
class DayAvailability:
    date: date
    is_closed: bool
    morning_available: bool
    afternoon_available: bool
    evening_available: bool


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
