from datetime import datetime
from typing import Any, Dict, Optional

import stripe
from beanie import PydanticObjectId
from bson import ObjectId
from fastapi import HTTPException, status

from src.commonUtils.bookingStateUtil import (
    PAID_STATUSES,
    assert_transition,
    normalize_status,
    resolve_amount,
    try_normalize_status,
)
from src.commonUtils.enumUtils import Actor, BookingStatus, EarningStatus, PricingType
from src.commonUtils.errorUtils import MarketplaceError
from src.commonUtils.feeUtil import booking_payment_breakdown
from src.config.settings import settings
from src.crud.bookingService import BookingService
from src.crud.earningService import EarningService
from src.models.bookingModel import Booking
from src.models.providerModel import Provider
from src.models.serviceModel import Service
from src.models.userModel import User

import logging

logger = logging.getLogger(__name__)

stripe.api_key = settings.stripe_keys["secret_key"]


def stripe_field(obj: Any, key: str, default=None):
    """Item access that works for Stripe objects and plain dicts alike"""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _object_id(value: Optional[str]) -> Optional[PydanticObjectId]:
    if value and ObjectId.is_valid(str(value)):
        return PydanticObjectId(str(value))
    return None


def _payment_intent_id(value) -> Optional[str]:
    """checkout.session.payment_intent may be an id or an expanded object"""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return stripe_field(value, "id")


class PaymentService:
    """Stripe Checkout destination charges for bookings and their reconciliation"""

    # ------------------------------------------------------------------------------------------------------#
    #                                       Checkout                                                        #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    def build_checkout_params(booking, provider, service_title: str, customer_email: Optional[str]) -> Dict[str, Any]:
        """Checkout Session parameters for a destination charge to the provider's connected account"""
        amount = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
        breakdown = booking_payment_breakdown(amount, settings.CURRENCY)
        booking_id = str(booking.id)

        # Platform keeps its fee plus the customer service fee; the rest transfers to the provider
        application_fee = breakdown["platform_fee_cents"] + breakdown["service_fee_cents"]
        metadata = {
            "bookingId": booking_id,
            "providerId": str(provider.id),
            "userId": str(booking.customer_id),
            "servicePriceCents": str(breakdown["service_price_cents"]),
            "serviceFeeCents": str(breakdown["service_fee_cents"]),
            "platformFeeCents": str(breakdown["platform_fee_cents"]),
            "providerPayoutCents": str(breakdown["service_price_cents"] - breakdown["platform_fee_cents"]),
            "totalCents": str(breakdown["total_cents"]),
            "destinationAccountId": provider.stripe_connect_id,
        }

        line_items = [{
            "quantity": 1,
            "price_data": {
                "currency": settings.CURRENCY,
                "unit_amount": breakdown["service_price_cents"],
                "product_data": {"name": "Service", "description": service_title},
            },
        }]
        if breakdown["service_fee_cents"] > 0:
            fee_label = "Small order fee" if breakdown["service_price_cents"] < 2000 else "Service fee"
            line_items.append({
                "quantity": 1,
                "price_data": {
                    "currency": settings.CURRENCY,
                    "unit_amount": breakdown["service_fee_cents"],
                    "product_data": {"name": fee_label},
                },
            })

        site = settings.FRONTEND_URL.rstrip("/")
        params = {
            "mode": "payment",
            "line_items": line_items,
            "success_url": f"{site}/dashboard/bookings?success=1&bookingId={booking_id}"
                           f"&session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{site}/dashboard/bookings/{booking_id}",
            "payment_intent_data": {
                "application_fee_amount": application_fee,
                "transfer_data": {"destination": provider.stripe_connect_id},
                "transfer_group": booking_id,
                "metadata": metadata,
            },
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
        return params

    @staticmethod
    async def create_checkout(booking_id: PydanticObjectId, user: User) -> Dict[str, Any]:
        booking = await Booking.get(booking_id)
        if not booking or booking.customer_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found or access denied")

        current = try_normalize_status(booking.status)
        if current != BookingStatus.ACCEPTED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Cannot pay for booking with status: {booking.status}")

        service = await Service.get(booking.service_id)
        if service and service.pricing_type == PricingType.QUOTE.value and not booking.provider_quoted_price:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Waiting for provider quote")

        amount = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
        if amount <= 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid booking amount")

        provider = await Provider.get(booking.provider_id)
        if not provider:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
        if not provider.stripe_connect_id or not provider.stripe_connect_id.startswith("acct_"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Provider is not connected to Stripe yet")

        params = PaymentService.build_checkout_params(
            booking, provider, service.title if service else booking.service_title, user.email
        )

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.error.StripeError as e:
            logger.error(f"[BOOKING_PAY] Failed to create Checkout Session for {booking.id}: {e}")
            message = str(e).lower()
            if "destination" in message or "transfer_data" in message or "application_fee" in message:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Provider Stripe account does not support destination charges"
                )
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Failed to create Stripe Checkout Session")

        url = stripe_field(session, "url")
        if not url:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Stripe session missing URL")

        session_id = stripe_field(session, "id")
        booking.checkout_session_id = session_id
        booking.updated_at = datetime.utcnow()
        await booking.save()

        breakdown = booking_payment_breakdown(amount, settings.CURRENCY)
        logger.info(f"[BOOKING_PAY] Checkout session {session_id} created for booking {booking.id}")
        return {
            "url": url,
            "session_id": session_id,
            "amount": breakdown["service_price_cents"],
            "service_fee": breakdown["service_fee_cents"],
            "total": breakdown["total_cents"],
        }

    # ------------------------------------------------------------------------------------------------------#
    #                                       Reconciliation                                                  #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    def resolve_payment_intent_id(booking, session_id: Optional[str] = None) -> Optional[str]:
        """Stored id first, then the checkout session, then a metadata search. Lookup errors are non-fatal."""
        if booking.payment_intent_id:
            return booking.payment_intent_id

        for candidate in (session_id, booking.checkout_session_id):
            if not candidate:
                continue
            try:
                session = stripe.checkout.Session.retrieve(candidate)
                pi_id = _payment_intent_id(stripe_field(session, "payment_intent"))
                if pi_id:
                    return pi_id
            except stripe.error.StripeError as e:
                logger.warning(f"[SYNC_PAYMENT] Session lookup failed for {candidate}: {e}")

        try:
            booking_id = str(booking.id).replace("'", "\\'")
            results = stripe.PaymentIntent.search(
                query=f"metadata['bookingId']:'{booking_id}' AND status:'succeeded'",
                limit=1,
            )
            data = stripe_field(results, "data", [])
            if data:
                return stripe_field(data[0], "id")
        except stripe.error.StripeError as e:
            logger.warning(f"[SYNC_PAYMENT] PaymentIntent search failed for booking {booking.id}: {e}")

        return None

    @staticmethod
    async def charges_gst(booking) -> bool:
        service = await Service.get(booking.service_id)
        if service is not None and service.charges_gst:
            return True
        provider = await Provider.get(booking.provider_id)
        return bool(provider and provider.charges_gst)

    @staticmethod
    async def mark_paid(booking, payment_intent_id: Optional[str], source: str) -> bool:
        """
        accepted -> paid as the payment actor. Already-paid bookings are acknowledged
        (payment intent linked, ledger ensured) without a status change.
        Returns True only when this call moved the status.
        """
        current = try_normalize_status(booking.status)

        if current in PAID_STATUSES:
            if payment_intent_id and booking.payment_intent_id != payment_intent_id:
                booking.payment_intent_id = payment_intent_id
                booking.updated_at = datetime.utcnow()
                await booking.save()
            await EarningService.upsert_for_paid_booking(
                booking, payment_intent_id, await PaymentService.charges_gst(booking)
            )
            logger.info(f"[{source}] Booking {booking.id} already {booking.status}; acknowledged")
            return False

        if current != BookingStatus.ACCEPTED:
            logger.warning(f"[{source}] Booking {booking.id} is {booking.status}; not marking paid")
            return False

        assert_transition(current, BookingStatus.PAID, Actor.PAYMENT)
        now = datetime.utcnow()
        updates = {
            "status": BookingStatus.PAID.value,
            "payment_intent_id": payment_intent_id,
            "paid_at": now,
            "updated_at": now,
        }
        updated = await BookingService.compare_and_set(booking.id, booking.status, updates)
        if not updated:
            logger.info(f"[{source}] Booking {booking.id} changed concurrently; skipping")
            return False

        for key, value in updates.items():
            setattr(booking, key, value)
        logger.info(f"[{source}] Booking {booking.id} marked paid (pi={payment_intent_id})")

        await EarningService.upsert_for_paid_booking(
            booking, payment_intent_id, await PaymentService.charges_gst(booking)
        )
        return True

    @staticmethod
    async def sync_booking(booking, session_id: Optional[str] = None) -> Dict[str, Any]:
        pi_id = PaymentService.resolve_payment_intent_id(booking, session_id)
        if not pi_id:
            return {"ok": True, "updated": False, "status": booking.status,
                    "message": "missing_payment_intent"}

        try:
            pi = stripe.PaymentIntent.retrieve(pi_id)
        except stripe.error.StripeError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Stripe error: {str(e)}")

        pi_status = stripe_field(pi, "status")
        logger.info(f"[SYNC_PAYMENT] Booking {booking.id} ({booking.status}) pi={pi_id} status={pi_status}")

        if pi_status != "succeeded":
            return {"ok": True, "updated": False, "status": booking.status,
                    "payment_intent_id": pi_id, "message": f"payment_intent_{pi_status}"}

        updated = await PaymentService.mark_paid(booking, pi_id, "SYNC_PAYMENT")
        return {"ok": True, "updated": updated, "status": booking.status, "payment_intent_id": pi_id,
                "message": None if updated else f"already_{booking.status}"}

    @staticmethod
    async def sync_payment(booking_id: PydanticObjectId, user: User, session_id: Optional[str]) -> Dict[str, Any]:
        booking = await Booking.get(booking_id)
        if not booking or booking.customer_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
        return await PaymentService.sync_booking(booking, session_id)

    # ------------------------------------------------------------------------------------------------------#
    #                                       Webhook events                                                  #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def find_booking_for_payment(metadata, payment_intent_id: Optional[str] = None,
                                       session_id: Optional[str] = None) -> Optional[Booking]:
        booking_id = _object_id(stripe_field(metadata, "bookingId"))
        if booking_id:
            booking = await Booking.get(booking_id)
            if booking:
                return booking
        if payment_intent_id:
            booking = await Booking.find_one({"payment_intent_id": payment_intent_id})
            if booking:
                return booking
        if session_id:
            return await Booking.find_one({"checkout_session_id": session_id})
        return None

    @staticmethod
    async def handle_checkout_session_paid(session) -> bool:
        if stripe_field(session, "payment_status") not in ("paid", "no_payment_required"):
            logger.info(f"Checkout session {stripe_field(session, 'id')} not paid yet")
            return False
        session_id = stripe_field(session, "id")
        pi_id = _payment_intent_id(stripe_field(session, "payment_intent"))
        booking = await PaymentService.find_booking_for_payment(
            stripe_field(session, "metadata", {}), pi_id, session_id
        )
        if not booking:
            logger.warning(f"No booking found for checkout session {session_id}")
            return False
        return await PaymentService.mark_paid(booking, pi_id, "STRIPE_WEBHOOK")

    @staticmethod
    async def handle_payment_intent_succeeded(payment_intent) -> bool:
        pi_id = stripe_field(payment_intent, "id")
        booking = await PaymentService.find_booking_for_payment(stripe_field(payment_intent, "metadata", {}), pi_id)
        if not booking:
            logger.info(f"payment_intent {pi_id} is not linked to a booking")
            return False
        return await PaymentService.mark_paid(booking, pi_id, "STRIPE_WEBHOOK")

    @staticmethod
    async def apply_payment_state(booking, target: BookingStatus, actor: Actor, extra: Optional[dict] = None) -> bool:
        """paid/completed -> disputed|refunded via compare-and-set"""
        assert_transition(booking.status, target, actor)
        updates = {"status": target.value, "updated_at": datetime.utcnow(), **(extra or {})}
        updated = await BookingService.compare_and_set(booking.id, booking.status, updates)
        if not updated:
            return False
        for key, value in updates.items():
            setattr(booking, key, value)
        return True

    @staticmethod
    async def handle_dispute_created(dispute) -> bool:
        pi_id = _payment_intent_id(stripe_field(dispute, "payment_intent"))
        if not pi_id and stripe_field(dispute, "charge"):
            charge = stripe.Charge.retrieve(stripe_field(dispute, "charge"))
            pi_id = _payment_intent_id(stripe_field(charge, "payment_intent"))

        booking = await PaymentService.find_booking_for_payment({}, pi_id)
        if not booking:
            logger.warning(f"Dispute {stripe_field(dispute, 'id')} has no matching booking")
            return False

        try:
            changed = await PaymentService.apply_payment_state(
                booking, BookingStatus.DISPUTED, Actor.PAYMENT,
                {"dispute_reason": stripe_field(dispute, "reason")}
            )
        except MarketplaceError as e:
            logger.warning(f"Dispute for booking {booking.id} ignored: {e.message}")
            return False
        if changed:
            logger.info(f"Booking {booking.id} disputed; payout frozen")
        return changed

    @staticmethod
    async def handle_charge_refunded(charge) -> bool:
        if not stripe_field(charge, "refunded", False):
            logger.info(f"Charge {stripe_field(charge, 'id')} partially refunded; booking unchanged")
            return False

        pi_id = _payment_intent_id(stripe_field(charge, "payment_intent"))
        booking = await PaymentService.find_booking_for_payment(stripe_field(charge, "metadata", {}), pi_id)
        if not booking:
            logger.warning(f"Refunded charge {stripe_field(charge, 'id')} has no matching booking")
            return False

        if try_normalize_status(booking.status) == BookingStatus.REFUNDED:
            return False
        try:
            changed = await PaymentService.apply_payment_state(booking, BookingStatus.REFUNDED, Actor.PAYMENT)
        except MarketplaceError as e:
            logger.warning(f"Refund for booking {booking.id} ignored: {e.message}")
            return False
        if changed:
            await EarningService.set_status(booking.id, EarningStatus.REFUNDED)
            logger.info(f"Booking {booking.id} refunded")
        return changed

    # ------------------------------------------------------------------------------------------------------#
    #                                       Admin actions                                                   #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def refund_booking(booking_id: PydanticObjectId, admin: User, reason: Optional[str]) -> Booking:
        booking = await BookingService.get_or_404(booking_id)

        try:
            assert_transition(booking.status, BookingStatus.REFUNDED, Actor.ADMIN)
        except MarketplaceError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

        if not booking.payment_intent_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Booking has no recorded payment to refund")

        try:
            stripe.Refund.create(
                payment_intent=booking.payment_intent_id,
                reverse_transfer=True,
                refund_application_fee=True,
                metadata={"bookingId": str(booking.id), "adminId": str(admin.id), "reason": reason or ""},
            )
        except stripe.error.StripeError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Stripe error: {str(e)}")

        changed = await PaymentService.apply_payment_state(booking, BookingStatus.REFUNDED, Actor.ADMIN)
        if not changed:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Booking status changed. Please refresh and try again.")

        await EarningService.set_status(booking.id, EarningStatus.REFUNDED)
        logger.info(f"Admin {admin.id} refunded booking {booking.id}")
        return booking

    @staticmethod
    async def dispute_booking(booking_id: PydanticObjectId, admin: User, reason: str) -> Booking:
        booking = await BookingService.get_or_404(booking_id)
        try:
            changed = await PaymentService.apply_payment_state(
                booking, BookingStatus.DISPUTED, Actor.ADMIN, {"dispute_reason": reason}
            )
        except MarketplaceError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
        if not changed:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Booking status changed. Please refresh and try again.")
        logger.info(f"Admin {admin.id} opened a dispute on booking {booking.id}")
        return booking

    @staticmethod
    async def complete_booking(booking_id: PydanticObjectId, admin: User) -> Booking:
        """Admin override: paid -> completed without waiting for the customer"""
        booking = await BookingService.get_or_404(booking_id)
        try:
            changed = await PaymentService.apply_payment_state(booking, BookingStatus.COMPLETED, Actor.ADMIN)
        except MarketplaceError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
        if not changed:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Booking status changed. Please refresh and try again.")
        await EarningService.set_status(booking.id, EarningStatus.AWAITING_PAYOUT)
        return booking
