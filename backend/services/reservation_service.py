"""Booking orchestration: validate, check capacity, price, persist, cancel."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from backend.domain.constraints import (
    validate_ac_hours,
    validate_equipment_quantity,
    validate_usage_selection,
)
from backend.domain.models import (
    CancellationRecord,
    CancellationSummary,
    CancelStatus,
    ChargeBreakdown,
    EntranceFeeType,
    EquipmentLine,
    PaymentStatus,
    RoomRateTable,
    UsageSelection,
)
from backend.domain.pricing import (
    calculate_application_total,
    calculate_equipment_line_amount,
    calculate_usage_charges,
    count_main_slots,
    resolve_ticket_multiplier,
    summarize_cancellation,
)
from backend.repository.data_repository import (
    ApplicationRecord,
    DataRepository,
    NewApplication,
    NewUsage,
    SlotCapacityExceeded,
    UsageRecord,
)
from backend.services.availability_service import AvailabilityService
from backend.services.holiday_service import HolidayService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ReservationError(Exception):
    """Base exception for reservation workflow failures."""


class ReservationValidationError(ReservationError):
    """Raised when a request breaks a user-correctable rule."""


class RoomNotFoundError(ReservationError):
    """Raised when a usage references an unknown room."""


class EquipmentNotFoundError(ReservationError):
    """Raised when a usage references unknown or disabled equipment."""


class ReservationNotFoundError(ReservationError):
    """Raised when an application id does not exist."""


class UsageNotFoundError(ReservationError):
    """Raised when a usage id does not exist."""


class CapacityExhaustedError(ReservationError):
    """Raised when a requested slot has no remaining capacity."""


class CapacityConflictError(CapacityExhaustedError):
    """Raised when a concurrent booking took the capacity after the pre-check."""


class ReservationStateError(ReservationError):
    """Raised when the application is not in a state that allows the operation."""


@dataclass(frozen=True)
class EquipmentRequest:
    equipment_id: int
    quantity: int


@dataclass(frozen=True)
class UsageRequest:
    selection: UsageSelection
    equipment: Sequence[EquipmentRequest] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReservationRequest:
    applicant_representative: str
    applicant_email: str
    event_name: str
    entrance_fee_type: EntranceFeeType
    entrance_fee_amount: int
    usages: Sequence[UsageRequest]


@dataclass(frozen=True)
class PricedUsage:
    selection: UsageSelection
    room_name: str
    is_weekend_or_holiday: bool
    equipment_lines: tuple[EquipmentLine, ...]
    charges: ChargeBreakdown


@dataclass(frozen=True)
class ReservationQuote:
    ticket_multiplier: float
    usages: list[PricedUsage]
    total_amount: int


@dataclass(frozen=True)
class ReservationDetails:
    application: ApplicationRecord
    usages: list[UsageRecord]


class ReservationService:
    """Composes validation, availability and pricing around the repository."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
        holiday_service: Optional[HolidayService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._availability_service = availability_service or AvailabilityService(
            repository=self._repository,
            settings=self._settings,
        )
        self._holiday_service = holiday_service or HolidayService(
            repository=self._repository,
            settings=self._settings,
        )
        self._facility_tz = ZoneInfo(self._settings.facility_timezone)

    # -- pricing -----------------------------------------------------------

    def _resolve_multiplier(self, fee_type: EntranceFeeType, amount: int) -> float:
        if amount < 0:
            raise ReservationValidationError("Entrance fee amount must be non-negative")
        return resolve_ticket_multiplier(
            fee_type,
            amount,
            paid_tier_upper_bound=self._settings.ticket_paid_tier_upper_bound,
        )

    def _require_room(self, room_id: int) -> RoomRateTable:
        rate_table = self._repository.get_room_rate_table(room_id)
        if rate_table is None:
            raise RoomNotFoundError(f"Room ID {room_id} not found")
        return rate_table

    def _build_equipment_lines(
        self,
        selection: UsageSelection,
        requests: Sequence[EquipmentRequest],
    ) -> tuple[EquipmentLine, ...]:
        if not requests:
            return ()
        catalogue = self._repository.get_equipment_by_ids([item.equipment_id for item in requests])
        slot_count = count_main_slots(selection)

        lines: list[EquipmentLine] = []
        for item in requests:
            equipment = catalogue.get(item.equipment_id)
            if equipment is None or not equipment.enabled:
                raise EquipmentNotFoundError(f"Equipment ID {item.equipment_id} not found")
            check = validate_equipment_quantity(equipment.name, item.quantity, equipment.max_quantity)
            if not check.valid:
                raise ReservationValidationError(check.reason)
            lines.append(
                EquipmentLine(
                    equipment_id=equipment.equipment_id,
                    price_type=equipment.price_type,
                    unit_price=equipment.unit_price,
                    quantity=item.quantity,
                    slot_count=slot_count,
                )
            )
        return tuple(lines)

    def _price_usage(
        self,
        index: int,
        usage: UsageRequest,
        ticket_multiplier: float,
    ) -> PricedUsage:
        selection = usage.selection
        validation = validate_usage_selection(selection)
        if not validation.valid:
            raise ReservationValidationError(f"Usage {index}: {validation.reason}")
        ac_check = validate_ac_hours(selection.ac_requested, selection.ac_hours)
        if not ac_check.valid:
            raise ReservationValidationError(f"Usage {index}: {ac_check.reason}")

        rate_table = self._require_room(selection.room_id)
        equipment_lines = self._build_equipment_lines(selection, usage.equipment)
        is_weekend_or_holiday = self._holiday_service.is_weekend_or_holiday(selection.date)
        charges = calculate_usage_charges(
            rate_table,
            selection,
            equipment_lines,
            ticket_multiplier,
            is_weekend_or_holiday,
        )
        return PricedUsage(
            selection=selection,
            room_name=rate_table.name,
            is_weekend_or_holiday=is_weekend_or_holiday,
            equipment_lines=equipment_lines,
            charges=charges,
        )

    def quote(
        self,
        entrance_fee_type: EntranceFeeType,
        entrance_fee_amount: int,
        usages: Sequence[UsageRequest],
    ) -> ReservationQuote:
        """Price a draft reservation without touching inventory."""
        if not usages:
            raise ReservationValidationError("At least one usage is required")
        multiplier = self._resolve_multiplier(entrance_fee_type, entrance_fee_amount)
        priced = [
            self._price_usage(index, usage, multiplier)
            for index, usage in enumerate(usages, start=1)
        ]
        return ReservationQuote(
            ticket_multiplier=multiplier,
            usages=priced,
            total_amount=calculate_application_total(item.charges for item in priced),
        )

    # -- booking -----------------------------------------------------------

    def create_reservation(self, request: ReservationRequest) -> ReservationDetails:
        # AC hours are recorded by staff after the event.
        usages = [
            replace(usage, selection=replace(usage.selection, ac_hours=None))
            for usage in request.usages
        ]
        quote = self.quote(request.entrance_fee_type, request.entrance_fee_amount, usages)

        for priced in quote.usages:
            selection = priced.selection
            if not self._availability_service.check_availability(
                selection.room_id,
                selection.date,
                selection.requested_slots(),
            ):
                raise CapacityExhaustedError(
                    f'Room "{priced.room_name}" is not available on {selection.date.isoformat()}'
                )

        new_usages = [
            NewUsage(
                selection=priced.selection,
                charges=priced.charges,
                equipment=[
                    (line, calculate_equipment_line_amount(line))
                    for line in priced.equipment_lines
                ],
            )
            for priced in quote.usages
        ]
        try:
            application_id = self._repository.create_application_with_usages(
                NewApplication(
                    applicant_representative=request.applicant_representative,
                    applicant_email=request.applicant_email,
                    event_name=request.event_name,
                    entrance_fee_type=request.entrance_fee_type,
                    entrance_fee_amount=request.entrance_fee_amount,
                    ticket_multiplier=quote.ticket_multiplier,
                    total_amount=quote.total_amount,
                ),
                new_usages,
                default_max_reservation_count=self._settings.default_max_reservation_count,
            )
        except SlotCapacityExceeded as exc:
            logger.warning("Capacity conflict while booking: %s", exc)
            raise CapacityConflictError(
                "The requested slot was booked by another request; check availability again"
            ) from exc

        logger.info(
            "Reservation %s created with %s usage(s), total=%s",
            application_id,
            len(new_usages),
            quote.total_amount,
        )
        return self.get_reservation(application_id)

    def get_reservation(self, application_id: int) -> ReservationDetails:
        application = self._repository.get_application(application_id)
        if application is None:
            raise ReservationNotFoundError(f"Reservation {application_id} not found")
        return ReservationDetails(
            application=application,
            usages=self._repository.list_usages(application_id),
        )

    # -- post-event adjustments -------------------------------------------

    def _reprice_usages(
        self,
        application: ApplicationRecord,
        ac_hours_override: Optional[tuple[int, Optional[float]]] = None,
    ) -> tuple[dict[int, ChargeBreakdown], int]:
        charges_by_usage: dict[int, ChargeBreakdown] = {}
        for usage in self._repository.list_usages(application.application_id):
            selection = usage.selection
            if ac_hours_override is not None and ac_hours_override[0] == usage.usage_id:
                selection = replace(selection, ac_hours=ac_hours_override[1])
            rate_table = self._require_room(selection.room_id)
            lines = [record.to_line() for record in self._repository.list_usage_equipment(usage.usage_id)]
            charges_by_usage[usage.usage_id] = calculate_usage_charges(
                rate_table,
                selection,
                lines,
                application.ticket_multiplier,
                self._holiday_service.is_weekend_or_holiday(selection.date),
            )
        return charges_by_usage, calculate_application_total(charges_by_usage.values())

    def update_ac_hours(self, usage_id: int, ac_hours: Optional[float]) -> ReservationDetails:
        usage = self._repository.get_usage(usage_id)
        if usage is None:
            raise UsageNotFoundError("Usage record not found")
        check = validate_ac_hours(usage.selection.ac_requested, ac_hours)
        if not check.valid:
            raise ReservationValidationError(check.reason)

        application = self._repository.get_application(usage.application_id)
        if application is None:
            raise ReservationNotFoundError(f"Reservation {usage.application_id} not found")
        if application.cancel_status is CancelStatus.CANCELLED:
            raise ReservationStateError("Cannot update AC hours on a cancelled reservation")

        charges_by_usage, total = self._reprice_usages(application, (usage_id, ac_hours))
        self._repository.update_usage_ac_hours(
            usage_id,
            ac_hours,
            application_id=application.application_id,
            charges_by_usage=charges_by_usage,
            total_amount=total,
        )
        logger.info(
            "AC hours for usage %s updated to %s, reservation %s total=%s",
            usage_id,
            ac_hours,
            application.application_id,
            total,
        )
        return self.get_reservation(application.application_id)

    def recalculate_total(self, application_id: int) -> int:
        """Reprice every usage from stored inputs and persist the new total."""
        application = self._repository.get_application(application_id)
        if application is None:
            raise ReservationNotFoundError(f"Reservation {application_id} not found")

        charges_by_usage, total = self._reprice_usages(application)
        self._repository.save_recalculated_charges(application_id, charges_by_usage, total)
        logger.info("Total for reservation %s recalculated: %s", application_id, total)
        return total

    def update_payment_status(
        self,
        application_id: int,
        payment_status: PaymentStatus,
    ) -> ReservationDetails:
        """Record a payment transition entered by staff."""
        application = self._repository.get_application(application_id)
        if application is None:
            raise ReservationNotFoundError(f"Reservation {application_id} not found")
        self._repository.update_payment_status(application_id, payment_status)
        logger.info(
            "Payment status for reservation %s changed from %s to %s",
            application_id,
            application.payment_status.value,
            payment_status.value,
        )
        return self.get_reservation(application_id)

    # -- cancellation ------------------------------------------------------

    def _to_facility_time(self, moment: Optional[datetime]) -> datetime:
        if moment is None:
            return datetime.now(self._facility_tz)
        if moment.tzinfo is None:
            return moment
        return moment.astimezone(self._facility_tz)

    def cancel_reservation(
        self,
        application_id: int,
        cancelled_at: Optional[datetime] = None,
        actor: str = "member",
    ) -> CancellationSummary:
        """Cancel an application, charging each usage per the calendar-day rule."""
        application = self._repository.get_application(application_id)
        if application is None:
            raise ReservationNotFoundError(f"Reservation {application_id} not found")
        if application.cancel_status is CancelStatus.CANCELLED:
            raise ReservationStateError("Reservation is already cancelled")

        moment = self._to_facility_time(cancelled_at)
        records = [
            CancellationRecord(
                usage_date=usage.selection.date,
                cancelled_at=moment,
                subtotal=usage.charges.subtotal,
            )
            for usage in self._repository.list_usages(application_id)
        ]
        summary = summarize_cancellation(records, application.total_amount)

        payment_status = application.payment_status
        if summary.refund_amount > 0 and payment_status is PaymentStatus.PAID:
            payment_status = PaymentStatus.REFUNDED

        if not self._repository.mark_application_cancelled(
            application_id,
            cancelled_at=moment,
            cancellation_fee=summary.cancellation_fee,
            payment_status=payment_status,
        ):
            raise ReservationStateError("Reservation is already cancelled")

        logger.info(
            "Reservation %s cancelled by %s: fee=%s refund=%s",
            application_id,
            actor,
            summary.cancellation_fee,
            summary.refund_amount,
        )
        return summary
