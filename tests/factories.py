from datetime import datetime
from types import SimpleNamespace

import httpx
from bson import ObjectId


def oid() -> str:
    return str(ObjectId())


def booking_payload(booking_id=None, status="pending", **overrides) -> dict:
    """A booking as the API returns it (camelCase, string ids)"""
    payload = {
        "id": booking_id or oid(),
        "status": status,
        "customerId": oid(),
        "providerId": oid(),
        "serviceId": oid(),
        "serviceTitle": "Gutter cleaning",
        "createdAt": "2024-05-01T09:00:00",
        "priceAtBooking": 5000,
        "hasReview": False,
    }
    payload.update(overrides)
    return payload


def booking_doc(status="pending", **overrides):
    """Stand-in for a stored Booking document"""
    now = datetime(2024, 5, 1, 9, 0)
    fields = dict(
        id=ObjectId(),
        status=status,
        customer_id=ObjectId(),
        provider_id=ObjectId(),
        service_id=ObjectId(),
        service_title="Gutter cleaning",
        created_at=now,
        updated_at=now,
        scheduled_date=None,
        paid_at=None,
        price_at_booking=5000,
        provider_quoted_price=None,
        payment_intent_id=None,
        checkout_session_id=None,
        has_review=False,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def user(roles=("customer",), is_superuser=False, **overrides):
    fields = dict(
        id=ObjectId(),
        email="someone@example.com",
        full_name="Sam Someone",
        roles=list(roles),
        is_superuser=is_superuser,
        is_active=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class Recorder:
    """httpx.MockTransport handler that records requests and replays canned responses"""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, text="Not found")
        if callable(handler):
            return handler(request)
        return handler

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]
