from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi import HTTPException

from src.commonUtils.enumUtils import EarningStatus
from src.crud.bookingService import STATUS_CHANGED_MESSAGE, BookingService
from src.crud.earningService import EarningService, compute_earning_amounts
from src.crud.providerService import ProviderService
from src.models.bookingModel import Booking
from src.models.serviceModel import Service
from src.schemas.bookingSchema import UpdateStatusRequest

from factories import booking_doc, user


def provider_for(booking, **overrides):
    fields = dict(
        id=booking.provider_id,
        user_id=ObjectId(),
        status="approved",
        kyc_status="verified",
        stripe_connect_id="acct_123",
        business_name="Ace Plumbing",
        is_currently_suspended=lambda now=None: False,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def request(booking, action, **kw):
    return UpdateStatusRequest(booking_id=str(booking.id), action=action, **kw)


@pytest.fixture
def patched(monkeypatch):
    """Patch persistence and side effects around BookingService.update_status"""
    mocks = SimpleNamespace(
        cas=AsyncMock(return_value=True),
        notify=AsyncMock(return_value=True),
        set_earning=AsyncMock(return_value=True),
        conflicts=AsyncMock(return_value=None),
    )
    monkeypatch.setattr(BookingService, "compare_and_set", mocks.cas)
    monkeypatch.setattr(BookingService, "notify_status_change", mocks.notify)
    monkeypatch.setattr(BookingService, "check_schedule_conflicts", mocks.conflicts)
    monkeypatch.setattr(EarningService, "set_status", mocks.set_earning)
    monkeypatch.setattr(Service, "get", AsyncMock(return_value=SimpleNamespace(pricing_type="fixed")))

    def stored(booking, provider=None):
        monkeypatch.setattr(BookingService, "get_or_404", AsyncMock(return_value=booking))
        monkeypatch.setattr(ProviderService, "get_for_user", AsyncMock(return_value=provider))

    mocks.stored = stored
    return mocks


class TestUpdateStatus:

    async def test_provider_accepts(self, patched):
        booking = booking_doc("pending")
        provider = provider_for(booking)
        patched.stored(booking, provider)
        caller = user(roles=("customer", "provider"), id=provider.user_id)

        result = await BookingService.update_status(caller, request(booking, "accept", provider_message="On my way"))

        assert result.status == "accepted"
        booking_id, expected, updates = patched.cas.await_args.args
        assert booking_id == booking.id
        assert expected == "pending"
        assert updates["status"] == "accepted"
        assert updates["provider_message"] == "On my way"
        patched.notify.assert_awaited_once()

    async def test_quote_required_for_quote_services(self, patched, monkeypatch):
        booking = booking_doc("pending")
        provider = provider_for(booking)
        patched.stored(booking, provider)
        monkeypatch.setattr(Service, "get", AsyncMock(return_value=SimpleNamespace(pricing_type="quote")))
        caller = user(roles=("provider",), id=provider.user_id)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(caller, request(booking, "accept"))
        assert exc.value.status_code == 400
        patched.cas.assert_not_awaited()

        await BookingService.update_status(caller, request(booking, "accept", final_price_in_cents=12000))
        assert patched.cas.await_args.args[2]["provider_quoted_price"] == 12000

    async def test_unverified_provider_cannot_accept(self, patched):
        booking = booking_doc("pending")
        provider = provider_for(booking, kyc_status="pending_review")
        patched.stored(booking, provider)
        caller = user(roles=("provider",), id=provider.user_id)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(caller, request(booking, "accept"))
        assert exc.value.status_code == 403
        assert "Identity verification" in exc.value.detail

    async def test_customer_cancel_records_reason(self, patched):
        booking = booking_doc("accepted")
        patched.stored(booking)
        caller = user(id=booking.customer_id)

        result = await BookingService.update_status(caller, request(booking, "cancel", reason=" Plans changed "))

        assert result.status == "canceled_customer"
        assert patched.cas.await_args.args[2]["customer_cancel_reason"] == "Plans changed"

    async def test_missing_reason_is_rejected_before_any_write(self, patched):
        booking = booking_doc("pending")
        patched.stored(booking)
        caller = user(id=booking.customer_id)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(caller, request(booking, "cancel", reason="   "))
        assert exc.value.status_code == 400
        patched.cas.assert_not_awaited()

    async def test_illegal_transition(self, patched):
        booking = booking_doc("pending")
        patched.stored(booking)
        caller = user(id=booking.customer_id)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(caller, request(booking, "confirm_completion"))
        assert exc.value.status_code == 400
        assert "Invalid booking status transition" in exc.value.detail

    async def test_stranger_gets_not_found(self, patched):
        booking = booking_doc("pending")
        patched.stored(booking, None)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(user(), request(booking, "cancel", reason="x"))
        assert exc.value.status_code == 404

    async def test_lost_race_is_a_conflict(self, patched):
        booking = booking_doc("completed_by_provider")
        patched.stored(booking)
        patched.cas.return_value = False
        caller = user(id=booking.customer_id)

        with pytest.raises(HTTPException) as exc:
            await BookingService.update_status(caller, request(booking, "confirm_completion"))
        assert exc.value.status_code == 409
        assert exc.value.detail == STATUS_CHANGED_MESSAGE
        assert booking.status == "completed_by_provider"
        patched.notify.assert_not_awaited()

    async def test_confirm_completion_releases_earnings(self, patched):
        booking = booking_doc("completed_by_provider")
        patched.stored(booking)
        caller = user(id=booking.customer_id)

        await BookingService.update_status(caller, request(booking, "confirm_completion"))

        patched.set_earning.assert_awaited_once_with(booking.id, EarningStatus.AWAITING_PAYOUT)


async def test_compare_and_set_filters_on_expected_status(monkeypatch):
    update = AsyncMock(return_value=SimpleNamespace(modified_count=0))
    find_one = MagicMock(return_value=SimpleNamespace(update=update))
    monkeypatch.setattr(Booking, "find_one", find_one)
    booking_id = ObjectId()

    assert await BookingService.compare_and_set(booking_id, "pending", {"status": "accepted"}) is False

    find_one.assert_called_once_with({"_id": booking_id, "status": "pending"})
    update.assert_awaited_once_with({"$set": {"status": "accepted"}})


def test_earning_amounts_use_quote():
    booking = booking_doc("paid", provider_quoted_price=11500)
    assert compute_earning_amounts(booking, charges_gst=True) == {
        "gross_amount": 11500,
        "platform_fee_amount": 1150,
        "gst_amount": 1500,
        "net_amount": 10350,
    }
