import asyncio
import json

import httpx
import pytest

from src.client.bookingViews import REVIEW_SUBMITTED, CustomerBookingsView, ProviderBookingsView
from src.commonUtils.enumUtils import BookingAction

from factories import booking_payload, oid

BOOKINGS = "/api/v1/bookings"
PROVIDER_BOOKINGS = "/api/v1/provider/bookings"
UPDATE_STATUS = "/api/v1/bookings/update-status"


def review_payload(booking_id):
    return {
        "id": oid(),
        "bookingId": booking_id,
        "customerId": oid(),
        "providerId": oid(),
        "rating": 5,
        "comment": "Great job",
        "createdAt": "2024-05-02T10:00:00",
    }


# ==========================================================
# CUSTOMER
# ==========================================================

class TestCustomerRows:

    async def test_accepted_booking_row(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="accepted", priceAtBooking=5000)]
        )
        view = CustomerBookingsView(api)

        assert await view.refresh() is True

        row = view.rows()[0]
        assert row.price_display == "NZD $50.00"
        assert row.label == "Accepted"
        assert row.variant == "secondary"
        assert row.actions == [BookingAction.PAY, BookingAction.CANCEL]
        assert view.loading is False

    async def test_quote_wins_over_booking_price(self, api, recorder):
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(status="accepted", priceAtBooking=5000, providerQuotedPrice=7250)]
        )
        view = CustomerBookingsView(api)
        await view.refresh()
        assert view.rows()[0].price_display == "NZD $72.50"

    async def test_unknown_status_renders_without_actions(self, api, recorder):
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(status="on_hold")])
        view = CustomerBookingsView(api)
        await view.refresh()

        row = view.rows()[0]
        assert row.label == "Other"
        assert row.actions == []

    async def test_refresh_failure_keeps_previous_list(self, api, recorder):
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(status="pending")])
        view = CustomerBookingsView(api)
        await view.refresh()

        recorder.routes[("GET", BOOKINGS)] = httpx.Response(503, text="Service unavailable")
        assert await view.refresh() is False

        assert len(view.bookings) == 1
        assert view.error == "Service unavailable"
        assert view.loading is False

    async def test_silent_refresh_leaves_spinner_fetch_running(self, api, recorder):
        release_first = asyncio.Event()
        payload = [booking_payload(status="pending")]

        async def bookings(request):
            if len(recorder.calls("GET", BOOKINGS)) == 1:
                await release_first.wait()
            return httpx.Response(200, json=payload)

        recorder.routes[("GET", BOOKINGS)] = bookings
        view = CustomerBookingsView(api)

        spinner = asyncio.create_task(view.refresh())
        while not recorder.requests:
            await asyncio.sleep(0)
        assert await view.refresh(show_spinner=False) is True
        assert view.loading is True

        release_first.set()
        assert await spinner is True
        assert view.loading is False


class TestPay:

    async def test_pay_navigates_to_checkout(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="accepted", priceAtBooking=5000)]
        )
        pay_path = f"{BOOKINGS}/{booking_id}/pay"
        recorder.routes[("POST", pay_path)] = httpx.Response(
            200, json={"url": "https://checkout.stripe.com/c/pay/cs_test_1", "sessionId": "cs_test_1",
                       "amount": 5000, "serviceFee": 250, "total": 5250}
        )
        visited = []
        view = CustomerBookingsView(api, navigate=visited.append)
        await view.refresh()

        assert await view.pay(booking_id) is True

        assert len(recorder.calls("POST")) == 1
        assert recorder.calls("POST")[0].url.path == pay_path
        assert recorder.calls("POST")[0].headers["Authorization"] == "Bearer t0k3n"
        assert visited == ["https://checkout.stripe.com/c/pay/cs_test_1"]
        assert booking_id not in view.row_loading

    async def test_missing_url_is_an_error(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="accepted")]
        )
        recorder.routes[("POST", f"{BOOKINGS}/{booking_id}/pay")] = httpx.Response(200, json={})
        visited = []
        view = CustomerBookingsView(api, navigate=visited.append)
        await view.refresh()

        assert await view.pay(booking_id) is False
        assert visited == []
        assert "no checkout URL" in view.error

    async def test_pay_not_offered_while_pending(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        view = CustomerBookingsView(api, navigate=lambda url: None)
        await view.refresh()

        assert await view.pay(booking_id) is False
        assert recorder.calls("POST") == []
        assert view.error


class TestCancel:

    async def test_cancel_without_reason_sends_nothing(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        view = CustomerBookingsView(api)
        await view.refresh()
        before = len(recorder.requests)

        assert await view.cancel(booking_id, "   ") is False

        assert len(recorder.requests) == before
        assert view.error == "Please provide a reason to cancel"

    async def test_cancel_with_reason(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        recorder.routes[("PATCH", UPDATE_STATUS)] = httpx.Response(
            200, json={"ok": True, "booking": booking_payload(booking_id, status="canceled_customer")}
        )
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.cancel(booking_id, "  Plans changed ") is True

        patch = recorder.calls("PATCH")
        assert len(patch) == 1
        assert json.loads(patch[0].content) == {
            "bookingId": booking_id, "action": "cancel", "reason": "Plans changed",
        }
        # list refetched afterwards
        assert len(recorder.calls("GET", BOOKINGS)) == 2

    async def test_server_error_is_surfaced(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        recorder.routes[("PATCH", UPDATE_STATUS)] = httpx.Response(
            409, text='{"detail":"Booking status changed. Please refresh and try again."}'
        )
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.cancel(booking_id, "Plans changed") is False

        assert "Booking status changed" in view.error
        assert view.row_loading == set()
        assert view.loading is False

    async def test_network_error_is_surfaced(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])

        def explode(request):
            raise httpx.ConnectError("connection refused", request=request)

        recorder.routes[("PATCH", UPDATE_STATUS)] = explode
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.cancel(booking_id, "Plans changed") is False
        assert view.error.startswith("Network error")


class TestReview:

    async def test_review_is_optimistic_then_refetched(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="completed")]
        )
        seen_during_request = []

        def accept_review(request):
            seen_during_request.append(view.get(booking_id).has_review)
            return httpx.Response(201, json=review_payload(booking_id))

        recorder.routes[("POST", f"{BOOKINGS}/{booking_id}/review")] = accept_review
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.submit_review(booking_id, 5, "Great job") is True

        assert seen_during_request == [True]
        assert view.notice == REVIEW_SUBMITTED
        assert view.rows()[0].review_label == REVIEW_SUBMITTED
        assert BookingAction.REVIEW not in view.rows()[0].actions

        await view.wait_background()
        assert len(recorder.calls("GET", BOOKINGS)) == 2

    async def test_review_rolls_back_on_failure(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="completed")]
        )
        recorder.routes[("POST", f"{BOOKINGS}/{booking_id}/review")] = httpx.Response(
            409, text="Booking already reviewed"
        )
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.submit_review(booking_id, 4) is False

        assert view.get(booking_id).has_review is False
        assert view.error == "Booking already reviewed"
        assert view.notice is None

    async def test_review_accepted_with_empty_body(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="completed")]
        )
        recorder.routes[("POST", f"{BOOKINGS}/{booking_id}/review")] = httpx.Response(204)
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.submit_review(booking_id, 5) is True

        assert view.get(booking_id).has_review is True
        assert view.error is None
        await view.wait_background()

    async def test_rating_out_of_range(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="completed")]
        )
        view = CustomerBookingsView(api)
        await view.refresh()

        assert await view.submit_review(booking_id, 6) is False
        assert recorder.calls("POST") == []


# ==========================================================
# PROVIDER
# ==========================================================

class TestProviderActions:

    async def test_accept_sends_quote(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", PROVIDER_BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        recorder.routes[("PATCH", UPDATE_STATUS)] = httpx.Response(
            200, json={"ok": True, "booking": booking_payload(booking_id, status="accepted")}
        )
        view = ProviderBookingsView(api)
        await view.refresh()
        assert view.rows()[0].actions == [BookingAction.ACCEPT, BookingAction.DECLINE]

        assert await view.accept(booking_id, final_price_in_cents=12000, provider_message="See you Monday")

        body = json.loads(recorder.calls("PATCH")[0].content)
        assert body == {
            "bookingId": booking_id,
            "action": "accept",
            "finalPriceInCents": 12000,
            "providerMessage": "See you Monday",
        }

    async def test_decline_requires_reason(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", PROVIDER_BOOKINGS)] = httpx.Response(200, json=[booking_payload(booking_id)])
        view = ProviderBookingsView(api)
        await view.refresh()

        assert await view.decline(booking_id, None) is False
        assert recorder.calls("PATCH") == []
        assert view.error == "Please provide a reason to decline"

    async def test_mark_completed_only_when_paid(self, api, recorder):
        booking_id = oid()
        recorder.routes[("GET", PROVIDER_BOOKINGS)] = httpx.Response(
            200, json=[booking_payload(booking_id, status="accepted")]
        )
        view = ProviderBookingsView(api)
        await view.refresh()

        assert await view.mark_completed(booking_id) is False
        assert recorder.calls("PATCH") == []
        assert "Cannot mark completed" in view.error
