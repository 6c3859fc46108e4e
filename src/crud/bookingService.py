from datetime import datetime
from typing import List, Optional, Tuple

from beanie import PydanticObjectId
from fastapi import HTTPException, status

from src.commonUtils.bookingStateUtil import (
    action_requires_reason,
    assert_transition,
    format_price,
    next_step_hint,
    resolve_amount,
    status_label,
    target_for_action,
)
from src.commonUtils.email_renderer import (
    get_booking_request_provider_email,
    get_booking_status_update_email,
)
from src.commonUtils.emailUtil import send_email_best_effort
from src.commonUtils.enumUtils import (
    Actor,
    BookingAction,
    BookingStatus,
    EarningStatus,
    PricingType,
)
from src.commonUtils.errorUtils import (
    MarketplaceError,
    ProviderAccessDenied,
    ValidationFailure,
    http_status_for,
)
from src.config.settings import settings
from src.crud.earningService import EarningService
from src.crud.providerService import ProviderService
from src.models.bookingModel import Booking
from src.models.providerModel import Provider
from src.models.serviceModel import Service
from src.models.timeOffModel import TimeOffBlock
from src.models.userModel import User
from src.schemas.bookingSchema import BookingCreate, UpdateStatusRequest

import logging

logger = logging.getLogger(__name__)

MIN_CHARGE_CENTS = 100
STATUS_CHANGED_MESSAGE = "Booking status changed. Please refresh and try again."

# Statuses that hold a provider's time slot
SLOT_HOLDING_STATUSES = [
    BookingStatus.ACCEPTED.value,
    BookingStatus.PAID.value,
    BookingStatus.COMPLETED_BY_PROVIDER.value,
]


def _http_error(error: MarketplaceError) -> HTTPException:
    return HTTPException(status_code=http_status_for(error), detail=error.message)


class BookingService:
    """Booking lifecycle: creation, listing and actor-driven status changes"""

    # ------------------------------------------------------------------------------------------------------#
    #                                       Queries                                                         #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def list_for_customer(user_id: PydanticObjectId, limit: int = 100, skip: int = 0) -> List[Booking]:
        return await Booking.find(
            {"customer_id": user_id}
        ).sort("-created_at").skip(skip).limit(limit).to_list()

    @staticmethod
    async def list_for_provider(provider_id: PydanticObjectId, limit: int = 100, skip: int = 0) -> List[Booking]:
        return await Booking.find(
            {"provider_id": provider_id}
        ).sort("-created_at").skip(skip).limit(limit).to_list()

    @staticmethod
    async def get_or_404(booking_id: PydanticObjectId) -> Booking:
        booking = await Booking.get(booking_id)
        if not booking:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
        return booking

    @staticmethod
    async def resolve_actor(booking, user: User) -> Tuple[Optional[Actor], Optional[Provider]]:
        """Which side of the booking the caller is on; (None, None) for strangers."""
        if booking.customer_id == user.id:
            return Actor.CUSTOMER, None
        if "provider" in user.roles:
            provider = await ProviderService.get_for_user(user.id)
            if provider and provider.id == booking.provider_id:
                return Actor.PROVIDER, provider
        return None, None

    @staticmethod
    async def get_visible(booking_id: PydanticObjectId, user: User) -> Booking:
        booking = await BookingService.get_or_404(booking_id)
        if user.is_superuser or "admin" in user.roles:
            return booking
        actor, _ = await BookingService.resolve_actor(booking, user)
        if actor is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this booking")
        return booking

    # ------------------------------------------------------------------------------------------------------#
    #                                       Create                                                          #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def create(user: User, data: BookingCreate) -> Booking:
        service = await Service.get(PydanticObjectId(data.service_id))
        if not service or not service.is_active:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")

        provider = await Provider.get(service.provider_id)
        if not provider:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
        if provider.user_id == user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot book your own service")

        try:
            ProviderService.ensure_bookable(provider)
        except ProviderAccessDenied as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

        if data.scheduled_date is not None and data.scheduled_date <= datetime.utcnow():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Scheduled date must be in the future")

        booking = Booking(
            status=BookingStatus.PENDING,
            customer_id=user.id,
            provider_id=provider.id,
            service_id=service.id,
            service_title=service.title,
            scheduled_date=data.scheduled_date,
            price_at_booking=service.price_cents,
            customer_notes=data.customer_notes,
        )
        await booking.insert()
        logger.info(f"Booking {booking.id} created by customer {user.id} for provider {provider.id}")

        provider_user = await User.get(provider.user_id)
        if provider_user:
            html = get_booking_request_provider_email(
                provider_name=provider.business_name,
                service_title=service.title,
                price=format_price(service.price_cents),
                scheduled_date=data.scheduled_date.strftime("%d %b %Y %H:%M") if data.scheduled_date else None,
                frontend_url=settings.FRONTEND_URL,
            )
            await send_email_best_effort(provider_user.email, "New booking request", html)

        return booking

    # ------------------------------------------------------------------------------------------------------#
    #                                       Status changes                                                  #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def compare_and_set(booking_id: PydanticObjectId, expected_status: str, updates: dict) -> bool:
        """Apply `updates` only if the stored status is still `expected_status`"""
        result = await Booking.find_one(
            {"_id": booking_id, "status": expected_status}
        ).update({"$set": updates})
        return bool(result and result.modified_count)

    @staticmethod
    async def check_schedule_conflicts(booking, provider_id: PydanticObjectId) -> None:
        """Time-off and double-booking re-check before a provider accepts"""
        if not booking.scheduled_date:
            return

        requested = booking.scheduled_date
        time_off = await TimeOffBlock.find_one({
            "provider_id": provider_id,
            "start_time": {"$lte": requested},
            "end_time": {"$gte": requested},
        })
        if time_off:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Provider is unavailable on this date for: {time_off.reason or 'Time Off'}."
            )

        overlap = await Booking.find_one({
            "provider_id": provider_id,
            "scheduled_date": requested,
            "status": {"$in": SLOT_HOLDING_STATUSES},
            "_id": {"$ne": booking.id},
        })
        if overlap:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="This time slot is no longer available.")

    @staticmethod
    async def prepare_accept(booking, provider, final_price_in_cents: Optional[int]) -> dict:
        """Validate an accept and return the extra fields it writes"""
        try:
            ProviderService.ensure_can_accept(provider)
        except ProviderAccessDenied as e:
            raise _http_error(e)

        service = await Service.get(booking.service_id)
        pricing_type = service.pricing_type if service else PricingType.FIXED.value
        requires_quote = pricing_type in (PricingType.FROM.value, PricingType.QUOTE.value)

        updates = {}
        amount = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
        if requires_quote:
            if final_price_in_cents is None or final_price_in_cents < MIN_CHARGE_CENTS:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Final price (in cents) is required to accept from/quote requests (min $1.00)."
                )
            amount = final_price_in_cents
            updates["provider_quoted_price"] = final_price_in_cents

        if amount < MIN_CHARGE_CENTS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Booking amount is invalid (min $1.00).")

        await BookingService.check_schedule_conflicts(booking, provider.id)
        return updates

    @staticmethod
    async def update_status(user: User, request: UpdateStatusRequest) -> Booking:
        """
        Apply one actor action to a booking.

        Raises:
            HTTPException 400: missing reason, illegal transition, bad quote price
            HTTPException 403: caller is not a party to the booking / provider gated
            HTTPException 409: the booking moved on before this write landed
        """
        booking = await BookingService.get_or_404(PydanticObjectId(request.booking_id))

        actor, provider = await BookingService.resolve_actor(booking, user)
        if actor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail="Booking not found or you do not have permission")

        action = BookingAction(request.action)
        if action_requires_reason(action) and not request.reason:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"A reason is required to {action.value}")

        prior_status = booking.status
        try:
            target = target_for_action(actor, action)
            if action == BookingAction.PAY:
                raise ValidationFailure("Use the pay endpoint to start payment")
            assert_transition(prior_status, target, actor, request.reason)
        except MarketplaceError as e:
            raise _http_error(e)

        now = datetime.utcnow()
        updates = {"status": target.value, "updated_at": now}

        if action == BookingAction.ACCEPT:
            updates.update(await BookingService.prepare_accept(booking, provider, request.final_price_in_cents))
            updates["provider_message"] = request.provider_message
            updates["provider_decline_reason"] = None
            updates["provider_cancel_reason"] = None
        elif action == BookingAction.DECLINE:
            updates["provider_decline_reason"] = request.reason
            updates["provider_message"] = request.provider_message
        elif action == BookingAction.CANCEL and actor == Actor.PROVIDER:
            updates["provider_cancel_reason"] = request.reason
        elif action == BookingAction.CANCEL and actor == Actor.CUSTOMER:
            updates["customer_cancel_reason"] = request.reason

        updated = await BookingService.compare_and_set(booking.id, prior_status, updates)
        if not updated:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=STATUS_CHANGED_MESSAGE)

        for key, value in updates.items():
            setattr(booking, key, value)

        logger.info(f"[BOOKING_UPDATE] {actor.value} {user.id} moved booking {booking.id} "
                    f"{prior_status} -> {target.value}")

        if action == BookingAction.CONFIRM_COMPLETION:
            await EarningService.set_status(booking.id, EarningStatus.AWAITING_PAYOUT)

        await BookingService.notify_status_change(booking, actor, request.reason, request.provider_message)
        return booking

    @staticmethod
    async def notify_status_change(booking, actor: Actor, reason: Optional[str] = None,
                                   provider_message: Optional[str] = None) -> bool:
        """Tell the other party; never fails the status change"""
        try:
            if actor == Actor.PROVIDER:
                recipient = await User.get(booking.customer_id)
                hint_actor = Actor.CUSTOMER
            else:
                provider = await Provider.get(booking.provider_id)
                recipient = await User.get(provider.user_id) if provider else None
                hint_actor = Actor.PROVIDER
            if not recipient:
                return False

            html = get_booking_status_update_email(
                recipient_name=recipient.full_name,
                service_title=booking.service_title,
                status_label=status_label(booking.status),
                next_step=next_step_hint(booking.status, hint_actor),
                price=format_price(resolve_amount(booking.provider_quoted_price, booking.price_at_booking)),
                reason=reason,
                provider_message=provider_message,
                frontend_url=settings.FRONTEND_URL,
            )
            return await send_email_best_effort(
                recipient.email,
                f"Booking update: {booking.service_title} is {status_label(booking.status).lower()}",
                html,
            )
        except Exception as e:
            logger.warning(f"⚠️ Could not notify about booking {booking.id}: {e}", exc_info=True)
            return False
