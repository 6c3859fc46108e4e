from fastapi import APIRouter, Depends, HTTPException, status
from beanie import PydanticObjectId
from typing import List, Optional
from pydantic import BaseModel, Field

from src.models.userModel import User
from src.models.bookingModel import Booking
from src.commonUtils.bookingStateUtil import normalize_status
from src.commonUtils.errorUtils import InvalidTransition
from src.dependencies.roleDependencies import require_admin
from src.crud.paymentService import PaymentService
from src.schemas.bookingSchema import BookingRead
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RefundRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


@router.get("/", response_model=List[BookingRead])
async def list_bookings(
        status_filter: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
        admin: User = Depends(require_admin)
):
    query = {}
    if status_filter:
        try:
            query["status"] = normalize_status(status_filter).value
        except InvalidTransition as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return await Booking.find(query).sort("-updated_at").skip(skip).limit(limit).to_list()


@router.post("/{booking_id}/dispute", response_model=BookingRead)
async def dispute_booking(
        booking_id: PydanticObjectId,
        request: DisputeRequest,
        admin: User = Depends(require_admin)
):
    """Freeze payout on a paid or completed booking"""
    return await PaymentService.dispute_booking(booking_id, admin, request.reason)


@router.post("/{booking_id}/refund", response_model=BookingRead)
async def refund_booking(
        booking_id: PydanticObjectId,
        request: RefundRequest,
        admin: User = Depends(require_admin)
):
    """Refund the booking's payment intent in Stripe, then mark the booking and its earnings refunded"""
    try:
        return await PaymentService.refund_booking(booking_id, admin, request.reason)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Refund failed for booking {booking_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to refund booking: {str(e)}"
        )


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete_booking(
        booking_id: PydanticObjectId,
        admin: User = Depends(require_admin)
):
    """Mark a paid booking completed on the customer's behalf"""
    return await PaymentService.complete_booking(booking_id, admin)
