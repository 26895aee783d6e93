"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.services.auth_service import (
    AuthService,
    InvalidStaffTokenError,
    StaffTokenNotConfiguredError,
)
from backend.services.availability_service import AvailabilityService
from backend.services.holiday_service import HolidayService
from backend.services.reservation_service import ReservationService
from backend.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _require_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_reservation_service(request: Request) -> ReservationService:
    return _require_state(request, "reservation_service", "Reservation service")


def get_availability_service(request: Request) -> AvailabilityService:
    return _require_state(request, "availability_service", "Availability service")


def get_holiday_service(request: Request) -> HolidayService:
    return _require_state(request, "holiday_service", "Holiday service")


async def require_staff(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (StaffTokenNotConfiguredError, InvalidStaffTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
