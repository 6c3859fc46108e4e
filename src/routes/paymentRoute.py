from fastapi import APIRouter, Depends, HTTPException, status
from beanie import PydanticObjectId
from typing import Optional

from src.models.userModel import User
from src.schemas.bookingSchema import PayResponse, SyncPaymentRequest, SyncPaymentResponse
from src.crud.userService import current_active_user
from src.crud.paymentService import PaymentService

import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/bookings/{booking_id}/pay", response_model=PayResponse, tags=["payments"])
async def pay_for_booking(
        booking_id: PydanticObjectId,
        current_user: User = Depends(current_active_user)
):
    """
    Create a Stripe Checkout Session for an accepted booking.
    The client navigates to the returned `url`.
    """
    try:
        return await PaymentService.create_checkout(booking_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[BOOKING_PAY] Unexpected error for booking {booking_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating payment session: {str(e)}"
        )


@router.post("/bookings/{booking_id}/sync-payment", response_model=SyncPaymentResponse, tags=["payments"])
async def sync_booking_payment(
        booking_id: PydanticObjectId,
        request: Optional[SyncPaymentRequest] = None,
        current_user: User = Depends(current_active_user)
):
    """
    Reconcile a booking with Stripe after the customer returns from Checkout.
    Safe to call repeatedly; already-paid bookings are acknowledged without change.
    """
    try:
        session_id = request.session_id if request else None
        return await PaymentService.sync_payment(booking_id, current_user, session_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[SYNC_PAYMENT] Unexpected error for booking {booking_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error syncing payment: {str(e)}"
        )
