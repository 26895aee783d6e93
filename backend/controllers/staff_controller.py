"""Controller layer for staff back-office endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    bearer_scheme,
    get_auth_service,
    get_holiday_service,
    get_reservation_service,
    require_staff,
)
from backend.controllers.reservation_controller import (
    CancellationResponse,
    ReservationResponse,
    to_http_error,
)
from backend.domain.models import PaymentStatus
from backend.services.auth_service import (
    AuthService,
    InvalidStaffTokenError,
    StaffTokenNotConfiguredError,
)
from backend.services.holiday_service import HolidayService, HolidayValidationError
from backend.services.reservation_service import ReservationError, ReservationService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["staff"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AcHoursRequest(BaseModel):
    ac_hours: Optional[float] = Field(default=None, allow_inf_nan=False)


class PaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus
    note: Optional[str] = Field(default=None, max_length=500)


class StaffCancelRequest(BaseModel):
    cancelled_at: Optional[datetime] = None
    reason: Optional[str] = Field(default=None, max_length=500)


class HolidayRegistrationResponse(BaseModel):
    year: int
    created: int = Field(ge=0)
    skipped: int = Field(ge=0)
    errors: list[str]


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        token = auth_service.login(payload.admin_token)
    except StaffTokenNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except InvalidStaffTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    return LoginResponse(access_token=token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_staff)],
)
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if credentials is not None:
        auth_service.logout(credentials.credentials)


@router.put(
    "/staff/usages/{usage_id}/ac_hours",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_staff)],
)
async def update_ac_hours(
    usage_id: int,
    payload: AcHoursRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    """Record actual AC usage and reprice the owning reservation."""
    try:
        details = service.update_ac_hours(usage_id, payload.ac_hours)
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected AC hours update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update AC hours",
        ) from exc
    return ReservationResponse.from_domain(details)


@router.put(
    "/staff/reservations/{application_id}/payment_status",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_staff)],
)
async def update_payment_status(
    application_id: int,
    payload: PaymentStatusRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        details = service.update_payment_status(application_id, payload.payment_status)
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected payment status update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update payment status",
        ) from exc
    if payload.note:
        logger.info("Reservation %s payment note: %s", application_id, payload.note)
    return ReservationResponse.from_domain(details)


@router.post(
    "/staff/reservations/{application_id}/cancel",
    response_model=CancellationResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_staff)],
)
async def staff_cancel_reservation(
    application_id: int,
    payload: StaffCancelRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> CancellationResponse:
    try:
        summary = service.cancel_reservation(
            application_id,
            cancelled_at=payload.cancelled_at,
            actor="staff",
        )
    except ReservationError as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected staff cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel reservation",
        ) from exc
    if payload.reason:
        logger.info("Reservation %s cancellation reason: %s", application_id, payload.reason)
    return CancellationResponse.from_domain(application_id, summary)


@router.post(
    "/staff/holidays/{year}/register",
    response_model=HolidayRegistrationResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_staff)],
)
async def register_holidays(
    year: int,
    service: HolidayService = Depends(get_holiday_service),
) -> HolidayRegistrationResponse:
    try:
        result = service.bulk_register_year(year)
    except HolidayValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return HolidayRegistrationResponse(year=year, **result.to_dict())
