"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI

from backend.controllers.reservation_controller import router as reservation_router
from backend.controllers.staff_controller import router as staff_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.availability_service import AvailabilityService
from backend.services.holiday_service import HolidayService
from backend.services.reservation_service import ReservationService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives its collaborators explicitly and is exposed on
    app.state for the dependency providers in backend.controllers.dependencies.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services ---
    holiday_service = HolidayService(repository=repository, settings=settings)
    availability_service = AvailabilityService(repository=repository, settings=settings)
    reservation_service = ReservationService(
        repository=repository,
        availability_service=availability_service,
        holiday_service=holiday_service,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(reservation_router)
    app.include_router(staff_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.holiday_service = holiday_service
    app.state.availability_service = availability_service
    app.state.reservation_service = reservation_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. Rooms and equipment are seeded only into an empty database.
      3. This year's public holidays are registered so weekend/holiday
         pricing resolves correctly from the first request.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository
    holiday_service: HolidayService = app.state.holiday_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo rooms and equipment")
        repository.seed_demo_data()

    logger.info("Startup: registering public holidays")
    holiday_service.bulk_register_year(date.today().year)

    logger.info("Startup complete; system ready")


# Module-level app object for uvicorn
app = create_app()
