from __future__ import annotations

from dataclasses import replace
from datetime import date

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import create_app
from backend.controllers.reservation_controller import router as reservation_router
from backend.controllers.staff_controller import router as staff_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.availability_service import AvailabilityService
from backend.services.holiday_service import HolidayService
from backend.services.reservation_service import ReservationService
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, admin_token: str | None):
    return replace(
        get_settings(),
        database_path=tmp_path / filename,
        admin_token=admin_token,
        seed_demo_data=True,
    )


def _build_test_app(tmp_path, filename: str, admin_token: str | None = "secret-admin-token"):
    settings = _build_test_settings(tmp_path, filename, admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_data()

    holiday_service = HolidayService(repository=repository, settings=settings)
    availability_service = AvailabilityService(repository=repository, settings=settings)
    reservation_service = ReservationService(
        repository=repository,
        availability_service=availability_service,
        holiday_service=holiday_service,
        settings=settings,
    )

    app = FastAPI()
    app.include_router(reservation_router)
    app.include_router(staff_router)
    app.state.settings = settings
    app.state.repository = repository
    app.state.holiday_service = holiday_service
    app.state.availability_service = availability_service
    app.state.reservation_service = reservation_service
    app.state.auth_service = AuthService(settings=settings)
    return app, repository


def _reservation_payload(**overrides):
    usage = {
        "room_id": 1,
        "date": "2025-01-15",
        "use_morning": True,
        "ac_requested": True,
        "equipment": [{"equipment_id": 2, "quantity": 1}],
    }
    usage.update(overrides.pop("usage", {}))
    payload = {
        "applicant_representative": "Aiko Tanaka",
        "applicant_email": "aiko@example.com",
        "event_name": "Spring concert",
        "entrance_fee_type": "paid",
        "entrance_fee_amount": 5000,
        "usages": [usage],
    }
    payload.update(overrides)
    return payload


def _login(client: TestClient, admin_token: str = "secret-admin-token") -> dict[str, str]:
    response = client.post("/login", json={"admin_token": admin_token})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_quote_endpoint_returns_breakdown(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_quote.db")
    client = TestClient(app)

    response = client.post(
        "/quote",
        json={
            "entrance_fee_type": "paid",
            "entrance_fee_amount": 5000,
            "usages": [
                {
                    "room_id": 1,
                    "date": "2025-01-15",
                    "use_morning": True,
                    "equipment": [{"equipment_id": 2, "quantity": 1}],
                }
            ],
        },
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["ticket_multiplier"] == 2.0
    assert body["total_amount"] == 30500
    charges = body["usages"][0]["charges"]
    assert charges["room_charge_before_multiplier"] == 15000
    assert charges["room_charge_after_multiplier"] == 30000
    assert charges["equipment_charge"] == 500
    assert body["usages"][0]["room_name"] == "Multipurpose Hall"


def test_quote_endpoint_maps_errors(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_quote_errors.db")
    client = TestClient(app)
    base = {"entrance_fee_type": "free", "entrance_fee_amount": 0}

    no_slot = client.post("/quote", json={**base, "usages": [{"room_id": 1, "date": "2025-01-15"}]})
    assert no_slot.status_code == 400
    assert "Usage 1" in no_slot.json()["detail"]

    unknown_room = client.post(
        "/quote",
        json={**base, "usages": [{"room_id": 77, "date": "2025-01-15", "use_morning": True}]},
    )
    assert unknown_room.status_code == 404

    empty = client.post("/quote", json={**base, "usages": []})
    assert empty.status_code == 422

    negative_fee = client.post(
        "/quote",
        json={
            "entrance_fee_type": "paid",
            "entrance_fee_amount": -10,
            "usages": [{"room_id": 1, "date": "2025-01-15", "use_morning": True}],
        },
    )
    assert negative_fee.status_code == 422


def test_reservation_lifecycle_over_http(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_lifecycle.db")
    client = TestClient(app)

    created = client.post("/reservations", json=_reservation_payload())
    assert created.status_code == 201, created.text
    reservation = created.json()
    application_id = reservation["application_id"]
    usage_id = reservation["usages"][0]["usage_id"]
    assert reservation["total_amount"] == 30500
    assert reservation["usages"][0]["ac_hours"] is None

    availability = client.post(
        "/availability",
        json={"room_id": 1, "date": "2025-01-15", "use_morning": True},
    )
    assert availability.status_code == 200
    assert availability.json() == {"available": 0, "max": 1, "is_available": False}

    own = client.post(
        "/availability",
        json={
            "room_id": 1,
            "date": "2025-01-15",
            "use_morning": True,
            "exclude_application_id": application_id,
        },
    )
    assert own.json()["is_available"] is True

    conflict = client.post("/reservations", json=_reservation_payload())
    assert conflict.status_code == 409

    fetched = client.get(f"/reservations/{application_id}")
    assert fetched.status_code == 200
    assert fetched.json()["cancel_status"] == "none"

    # Staff route requires a bearer token.
    unauthorized = client.put(f"/staff/usages/{usage_id}/ac_hours", json={"ac_hours": 2.5})
    assert unauthorized.status_code == 401

    headers = _login(client)
    updated = client.put(
        f"/staff/usages/{usage_id}/ac_hours",
        json={"ac_hours": 2.5},
        headers=headers,
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["usages"][0]["charges"]["ac_charge"] == 2500
    assert updated.json()["total_amount"] == 33000

    negative = client.put(
        f"/staff/usages/{usage_id}/ac_hours",
        json={"ac_hours": -1},
        headers=headers,
    )
    assert negative.status_code == 400

    cancelled = client.post(
        f"/staff/reservations/{application_id}/cancel",
        json={"cancelled_at": "2025-01-15T09:00:00", "reason": "Event postponed"},
        headers=headers,
    )
    assert cancelled.status_code == 200, cancelled.text
    assert cancelled.json() == {
        "application_id": application_id,
        "total_amount": 33000,
        "cancellation_fee": 33000,
        "refund_amount": 0,
    }

    again = client.post(f"/reservations/{application_id}/cancel")
    assert again.status_code == 409

    reopened = client.post(
        "/availability",
        json={"room_id": 1, "date": "2025-01-15", "use_morning": True},
    )
    assert reopened.json()["is_available"] is True


def test_non_finite_ac_hours_are_rejected_at_the_boundary(tmp_path):
    app, repository = _build_test_app(tmp_path, "api_non_finite.db")
    client = TestClient(app)
    json_headers = {"Content-Type": "application/json"}

    # 1e400 overflows to infinity when decoded.
    quote = client.post(
        "/quote",
        content=(
            '{"entrance_fee_type": "free", "entrance_fee_amount": 0, "usages": '
            '[{"room_id": 1, "date": "2025-01-15", "use_morning": true, '
            '"ac_requested": true, "ac_hours": 1e400}]}'
        ),
        headers=json_headers,
    )
    assert quote.status_code == 422

    created = client.post("/reservations", json=_reservation_payload())
    application_id = created.json()["application_id"]
    usage_id = created.json()["usages"][0]["usage_id"]
    headers = {**_login(client), **json_headers}

    for body in ('{"ac_hours": 1e400}', '{"ac_hours": NaN}'):
        response = client.put(f"/staff/usages/{usage_id}/ac_hours", content=body, headers=headers)
        assert response.status_code == 422

    stored = repository.get_usage(usage_id)
    assert stored.selection.ac_hours is None
    assert repository.get_application(application_id).total_amount == 30500


def test_payment_status_flows_into_refund_over_http(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_payment_status.db")
    client = TestClient(app)

    created = client.post("/reservations", json=_reservation_payload())
    application_id = created.json()["application_id"]
    assert created.json()["payment_status"] == "unpaid"

    unauthorized = client.put(
        f"/staff/reservations/{application_id}/payment_status",
        json={"payment_status": "paid"},
    )
    assert unauthorized.status_code == 401

    headers = _login(client)
    paid = client.put(
        f"/staff/reservations/{application_id}/payment_status",
        json={"payment_status": "paid", "note": "Bank transfer received"},
        headers=headers,
    )
    assert paid.status_code == 200, paid.text
    assert paid.json()["payment_status"] == "paid"

    unknown_status = client.put(
        f"/staff/reservations/{application_id}/payment_status",
        json={"payment_status": "settled"},
        headers=headers,
    )
    assert unknown_status.status_code == 422

    missing = client.put(
        "/staff/reservations/999/payment_status",
        json={"payment_status": "paid"},
        headers=headers,
    )
    assert missing.status_code == 404

    cancelled = client.post(
        f"/staff/reservations/{application_id}/cancel",
        json={"cancelled_at": "2025-01-14T09:00:00"},
        headers=headers,
    )
    assert cancelled.status_code == 200, cancelled.text
    assert cancelled.json()["refund_amount"] == 30500

    fetched = client.get(f"/reservations/{application_id}")
    assert fetched.json()["payment_status"] == "refunded"
    assert fetched.json()["cancel_status"] == "cancelled"

    # Cancelled reservations no longer accept AC hours.
    usage_id = fetched.json()["usages"][0]["usage_id"]
    late_hours = client.put(
        f"/staff/usages/{usage_id}/ac_hours",
        json={"ac_hours": 1.0},
        headers=headers,
    )
    assert late_hours.status_code == 409


def test_create_reservation_validates_payload(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_payload.db")
    client = TestClient(app)

    bad_email = client.post("/reservations", json=_reservation_payload(applicant_email="not-an-email"))
    assert bad_email.status_code == 422

    orphan_extension = client.post(
        "/reservations",
        json=_reservation_payload(usage={"use_morning": False, "use_evening": True, "use_midday_extension": True}),
    )
    assert orphan_extension.status_code == 400
    assert "Midday extension" in orphan_extension.json()["detail"]

    missing = client.get("/reservations/999")
    assert missing.status_code == 404


def test_availability_requires_a_main_slot(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_availability.db")
    client = TestClient(app)

    response = client.post("/availability", json={"room_id": 1, "date": "2025-01-15"})
    assert response.status_code == 422


def test_month_availability_endpoint(tmp_path):
    app, repository = _build_test_app(tmp_path, "api_month.db")
    repository.add_closed_date(date(2025, 4, 29), "Inspection")
    client = TestClient(app)

    response = client.get("/rooms/2/availability", params={"year": 2025, "month": 4})
    assert response.status_code == 200
    days = response.json()["days"]
    assert len(days) == 30
    closed = next(day for day in days if day["date"] == "2025-04-29")
    assert closed["is_closed"] is True
    assert closed["morning_available"] is False
    assert days[0]["morning_available"] is True

    invalid = client.get("/rooms/2/availability", params={"year": 2025, "month": 13})
    assert invalid.status_code == 422


def test_login_and_staff_guards(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_auth.db")
    client = TestClient(app)

    wrong = client.post("/login", json={"admin_token": "nope"})
    assert wrong.status_code == 401

    forged = client.post(
        "/staff/holidays/2025/register",
        headers={"Authorization": "Bearer forged-token"},
    )
    assert forged.status_code == 401

    headers = _login(client)
    registered = client.post("/staff/holidays/2025/register", headers=headers)
    assert registered.status_code == 200
    assert registered.json() == {"year": 2025, "created": 16, "skipped": 0, "errors": []}

    repeated = client.post("/staff/holidays/2025/register", headers=headers)
    assert repeated.json()["skipped"] == 16

    out_of_range = client.post("/staff/holidays/1800/register", headers=headers)
    assert out_of_range.status_code == 400

    holiday = client.get("/holidays/check", params={"date": "2025-01-13"})
    assert holiday.json() == {"date": "2025-01-13", "is_weekend_or_holiday": True}
    weekday = client.get("/holidays/check", params={"date": "2025-01-15"})
    assert weekday.json()["is_weekend_or_holiday"] is False

    logged_out = client.post("/logout", headers=headers)
    assert logged_out.status_code == 204
    expired = client.post("/staff/holidays/2025/register", headers=headers)
    assert expired.status_code == 401


def test_login_without_configured_token_is_unavailable(tmp_path):
    app, _ = _build_test_app(tmp_path, "api_no_token.db", admin_token=None)
    client = TestClient(app)

    response = client.post("/login", json={"admin_token": "anything"})
    assert response.status_code == 503

    # Staff routes are open when no token is configured.
    registered = client.post("/staff/holidays/2026/register")
    assert registered.status_code == 200


def test_application_factory_runs_startup(tmp_path):
    settings = _build_test_settings(tmp_path, "api_factory.db", admin_token=None)
    app = create_app(settings)

    with TestClient(app) as client:
        response = client.post(
            "/quote",
            json={
                "entrance_fee_type": "free",
                "entrance_fee_amount": 0,
                "usages": [{"room_id": 3, "date": "2025-01-15", "use_evening": True}],
            },
        )
        assert response.status_code == 200
        assert response.json()["total_amount"] == 3500

    assert len(app.state.repository.list_rooms()) == 3
    assert len(app.state.holiday_service.list_holidays(date.today().year)) == 16
