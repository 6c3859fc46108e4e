from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI, HTTPException

from src.crud.bookingService import BookingService
from src.crud.providerService import ProviderService
from src.crud.userService import current_active_user
from src.routes import bookingRoute

from factories import booking_doc, user


@pytest.fixture
def caller():
    return user()


@pytest.fixture
async def client(caller):
    app = FastAPI()
    app.include_router(bookingRoute.router, prefix="/api/v1")
    app.dependency_overrides[current_active_user] = lambda: caller
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as client:
        yield client


async def test_update_status_accepts_camel_case(client, caller, monkeypatch):
    booking = booking_doc("canceled_customer", customer_id=caller.id, customer_cancel_reason="Plans changed")
    update = AsyncMock(return_value=booking)
    monkeypatch.setattr(BookingService, "update_status", update)

    response = await client.patch("/bookings/update-status", json={
        "bookingId": str(booking.id), "action": "cancel", "reason": "Plans changed",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["booking"]["id"] == str(booking.id)
    assert body["booking"]["status"] == "canceled_customer"
    assert body["booking"]["priceAtBooking"] == 5000
    request = update.await_args.args[1]
    assert request.reason == "Plans changed"


async def test_update_status_rejects_unknown_action(client, monkeypatch):
    update = AsyncMock()
    monkeypatch.setattr(BookingService, "update_status", update)

    response = await client.patch("/bookings/update-status", json={"bookingId": "x", "action": "teleport"})

    assert response.status_code == 422
    update.assert_not_awaited()


async def test_update_status_passes_service_errors_through(client, monkeypatch):
    monkeypatch.setattr(BookingService, "update_status", AsyncMock(
        side_effect=HTTPException(status_code=409, detail="Booking status changed. Please refresh and try again.")
    ))

    response = await client.patch("/bookings/update-status", json={
        "bookingId": "665f1c2b9d3e4a0012345678", "action": "confirm_completion",
    })

    assert response.status_code == 409
    assert response.json()["detail"].startswith("Booking status changed")


async def test_provider_bookings_need_provider_account(client, monkeypatch):
    monkeypatch.setattr(ProviderService, "get_for_user", AsyncMock(return_value=None))

    response = await client.get("/provider/bookings")

    assert response.status_code == 403
