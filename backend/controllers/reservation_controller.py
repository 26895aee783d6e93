"""HTTP controller layer for quotes, availability and member reservations."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator

from backend.controllers.dependencies import (
    get_availability_service,
    get_holiday_service,
    get_reservation_service,
)
from backend.domain.models import (
    CancellationSummary,
    ChargeBreakdown,
    EntranceFeeType,
    UsageSelection,
)
from backend.services.availability_service import AvailabilityService
from backend.services.holiday_service import HolidayService
from backend.services.reservation_service import (
    CapacityExhaustedError,
    EquipmentNotFoundError,
    EquipmentRequest,
    ReservationDetails,
    ReservationError,
    ReservationNotFoundError,
    ReservationRequest,
    ReservationService,
    ReservationStateError,
    ReservationValidationError,
    RoomNotFoundError,
    UsageNotFoundError,
    UsageRequest,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["reservations"])


class EquipmentPayload(BaseModel):
    equipment_id: int = Field(gt=0)
    quantity: int = Field(ge=1)


class UsagePayload(BaseModel):
    room_id: int = Field(gt=0)
    date: date
    use_morning: bool = False
    use_afternoon: bool = False
    use_evening: bool = False
    use_midday_extension: bool = False
    use_evening_extension: bool = False
    ac_requested: bool = False
    ac_hours: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    equipment: list[EquipmentPayload] = Field(default_factory=list)

    def to_request(self) -> UsageRequest:
        return UsageRequest(
            selection=UsageSelection(
                room_id=self.room_id,
                date=self.date,
                use_morning=self.use_morning,
                use_afternoon=self.use_afternoon,
                use_evening=self.use_evening,
                use_midday_extension=self.use_midday_extension,
                use_evening_extension=self.use_evening_extension,
                ac_requested=self.ac_requested,
                ac_hours=self.ac_hours,
            ),
            equipment=tuple(
                EquipmentRequest(equipment_id=item.equipment_id, quantity=item.quantity)
                for item in self.equipment
            ),
        )


class QuoteRequest(BaseModel):
    entrance_fee_type: EntranceFeeType
    entrance_fee_amount: int = Field(ge=0)
    usages: list[UsagePayload] = Field(min_length=1)


class CreateReservationRequest(QuoteRequest):
    applicant_representative: str = Field(min_length=1)
    applicant_email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    event_name: str = Field(min_length=1)


class ChargeResponse(BaseModel):
    room_charge_before_multiplier: int = Field(ge=0)
    room_charge_after_multiplier: int = Field(ge=0)
    equipment_charge: int = Field(ge=0)
    ac_charge: int = Field(ge=0)
    subtotal: int = Field(ge=0)

    @classmethod
    def from_domain(cls, charges: ChargeBreakdown) -> "ChargeResponse":
        return cls(
            room_charge_before_multiplier=charges.room_charge_before_multiplier,
            room_charge_after_multiplier=charges.room_charge_after_multiplier,
            equipment_charge=charges.equipment_charge,
            ac_charge=charges.ac_charge,
            subtotal=charges.subtotal,
        )


class QuotedUsageResponse(BaseModel):
    room_id: int
    room_name: str
    date: date
    is_weekend_or_holiday: bool
    charges: ChargeResponse


class QuoteResponse(BaseModel):
    ticket_multiplier: float
    usages: list[QuotedUsageResponse]
    total_amount: int = Field(ge=0)


class AvailabilityRequest(BaseModel):
    room_id: int = Field(gt=0)
    date: date
    use_morning: bool = False
    use_afternoon: bool = False
    use_evening: bool = False
    exclude_application_id: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def require_a_slot(self) -> "AvailabilityRequest":
        if not (self.use_morning or self.use_afternoon or self.use_evening):
            raise ValueError("at least one of use_morning, use_afternoon, use_evening is required")
        return self

    def to_selection(self) -> UsageSelection:
        return UsageSelection(
            room_id=self.room_id,
            date=self.date,
            use_morning=self.use_morning,
            use_afternoon=self.use_afternoon,
            use_evening=self.use_evening,
        )


class AvailabilityResponse(BaseModel):
    available: int = Field(ge=0)
    max: int = Field(ge=0)
    is_available: bool


class DayAvailabilityResponse(BaseModel):
    date: date
    is_closed: bool
    morning_available: bool
    afternoon_available: bool
    evening_available: bool


class MonthAvailabilityResponse(BaseModel):
    room_id: int
    days: list[DayAvailabilityResponse]


class UsageResponse(BaseModel):
    usage_id: int
    room_id: int
    date: date
    use_morning: bool
    use_afternoon: bool
    use_evening: bool
    use_midday_extension: bool
    use_evening_extension: bool
    ac_requested: bool
    ac_hours: Optional[float]
    charges: ChargeResponse


class ReservationResponse(BaseModel):
    application_id: int
    event_name: str
    entrance_fee_type: EntranceFeeType
    entrance_fee_amount: int
    ticket_multiplier: float
    total_amount: int
    payment_status: str
    cancel_status: str
    cancellation_fee: int
    usages: list[UsageResponse]

    @classmethod
    def from_domain(cls, details: ReservationDetails) -> "ReservationResponse":
        application = details.application
        return cls(
            application_id=application.application_id,
            event_name=application.event_name,
            entrance_fee_type=application.entrance_fee_type,
            entrance_fee_amount=application.entrance_fee_amount,
            ticket_multiplier=application.ticket_multiplier,
            total_amount=application.total_amount,
            payment_status=application.payment_status.value,
            cancel_status=application.cancel_status.value,
            cancellation_fee=application.cancellation_fee,
            usages=[
                UsageResponse(
                    usage_id=usage.usage_id,
                    room_id=usage.selection.room_id,
                    date=usage.selection.date,
                    use_morning=usage.selection.use_morning,
                    use_afternoon=usage.selection.use_afternoon,
                    use_evening=usage.selection.use_evening,
                    use_midday_extension=usage.selection.use_midday_extension,
                    use_evening_extension=usage.selection.use_evening_extension,
                    ac_requested=usage.selection.ac_requested,
                    ac_hours=usage.selection.ac_hours,
                    charges=ChargeResponse.from_domain(usage.charges),
                )
                for usage in details.usages
            ],
        )


class CancellationResponse(BaseModel):
    application_id: int
    total_amount: int = Field(ge=0)
    cancellation_fee: int = Field(ge=0)
    refund_amount: int = Field(ge=0)

    @classmethod
    def from_domain(cls, application_id: int, summary: CancellationSummary) -> "CancellationResponse":
        return cls(
            application_id=application_id,
            total_amount=summary.total_amount,
            cancellation_fee=summary.cancellation_fee,
            refund_amount=summary.refund_amount,
        )


class HolidayCheckResponse(BaseModel):
    date: date
    is_weekend_or_holiday: bool


def to_http_error(exc: ReservationError) -> HTTPException:
    """Map reservation failures to status codes shared by member and staff routes."""
    if isinstance(exc, ReservationValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(
        exc,
        (RoomNotFoundError, EquipmentNotFoundError, ReservationNotFoundError, UsageNotFoundError),
    ):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (CapacityExhaustedError, ReservationStateError)):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=str(exc))


@router.post("/quote", response_model=QuoteResponse, status_code=status.HTTP_200_OK)
async def quote_reservation(
    payload: QuoteRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> QuoteResponse:
    """Price a draft reservation; nothing is reserved."""
    try:
        result = service.quote(
            entrance_fee_type=payload.entrance_fee_type,
            entrance_fee_amount=payload.entrance_fee_amount,
            usages=[usage.to_request() for usage in payload.usages],
        )
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected quote failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to price reservation",
        ) from exc
    return QuoteResponse(
        ticket_multiplier=result.ticket_multiplier,
        usages=[
            QuotedUsageResponse(
                room_id=item.selection.room_id,
                room_name=item.room_name,
                date=item.selection.date,
                is_weekend_or_holiday=item.is_weekend_or_holiday,
                charges=ChargeResponse.from_domain(item.charges),
            )
            for item in result.usages
        ],
        total_amount=result.total_amount,
    )


@router.post("/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
async def check_availability(
    payload: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    selection = payload.to_selection()
    count = service.get_available_count(
        room_id=payload.room_id,
        usage_date=payload.date,
        slots=selection.requested_slots(),
        exclude_application_id=payload.exclude_application_id,
    )
    return AvailabilityResponse(
        available=count.available,
        max=count.max,
        is_available=count.is_available,
    )


@router.get(
    "/rooms/{room_id}/availability",
    response_model=MonthAvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def month_availability(
    room_id: int,
    year: int = Query(ge=1900, le=2100),
    month: int = Query(ge=1, le=12),
    service: AvailabilityService = Depends(get_availability_service),
) -> MonthAvailabilityResponse:
    days = service.get_month_availability(room_id, year, month)
    return MonthAvailabilityResponse(
        room_id=room_id,
        days=[
            DayAvailabilityResponse(
                date=day.date,
                is_closed=day.is_closed,
                morning_available=day.morning_available,
                afternoon_available=day.afternoon_available,
                evening_available=day.evening_available,
            )
            for day in days
        ],
    )


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        details = service.create_reservation(
            ReservationRequest(
                applicant_representative=payload.applicant_representative,
                applicant_email=payload.applicant_email,
                event_name=payload.event_name,
                entrance_fee_type=payload.entrance_fee_type,
                entrance_fee_amount=payload.entrance_fee_amount,
                usages=[usage.to_request() for usage in payload.usages],
            )
        )
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reservation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create reservation",
        ) from exc
    return ReservationResponse.from_domain(details)


@router.get(
    "/reservations/{application_id}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def get_reservation(
    application_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        details = service.get_reservation(application_id)
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    return ReservationResponse.from_domain(details)


@router.post(
    "/reservations/{application_id}/cancel",
    response_model=CancellationResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_reservation(
    application_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> CancellationResponse:
    """Cancel as of now in the facility's timezone."""
    try:
        summary = service.cancel_reservation(application_id)
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel reservation",
        ) from exc
    return CancellationResponse.from_domain(application_id, summary)


@router.get("/holidays/check", response_model=HolidayCheckResponse, status_code=status.HTTP_200_OK)
async def check_holiday(
    target_date: date = Query(alias="date"),
    service: HolidayService = Depends(get_holiday_service),
) -> HolidayCheckResponse:
    return HolidayCheckResponse(
        date=target_date,
        is_weekend_or_holiday=service.is_weekend_or_holiday(target_date),
    )
