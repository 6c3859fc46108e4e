from fastapi import APIRouter, Depends, HTTPException, status
from beanie import PydanticObjectId
from typing import List

from src.models.userModel import User
from src.schemas.bookingSchema import (
    BookingCreate,
    BookingRead,
    UpdateStatusRequest,
    UpdateStatusResponse,
)
from src.crud.userService import current_active_user
from src.crud.bookingService import BookingService
from src.crud.providerService import ProviderService
from src.dependencies.rate_limit_dependencies import rate_limit

router = APIRouter()


@router.get("/bookings", response_model=List[BookingRead], tags=["bookings"])
async def list_my_bookings(
        skip: int = 0,
        limit: int = 100,
        current_user: User = Depends(current_active_user)
):
    """Bookings the caller made as a customer, newest first"""
    try:
        return await BookingService.list_for_customer(current_user.id, limit=limit, skip=skip)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error retrieving bookings: {str(e)}"
        )


@router.get("/provider/bookings", response_model=List[BookingRead], tags=["bookings"])
async def list_provider_bookings(
        skip: int = 0,
        limit: int = 100,
        current_user: User = Depends(current_active_user)
):
    """Bookings received by the caller's provider account"""
    provider = await ProviderService.get_for_user(current_user.id)
    if not provider:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account required")

    try:
        return await BookingService.list_for_provider(provider.id, limit=limit, skip=skip)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error retrieving provider bookings: {str(e)}"
        )


@router.get("/bookings/{booking_id}", response_model=BookingRead, tags=["bookings"])
async def get_booking(
        booking_id: PydanticObjectId,
        current_user: User = Depends(current_active_user)
):
    """Booking detail for its customer, its provider or an admin"""
    return await BookingService.get_visible(booking_id, current_user)


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED, tags=["bookings"],
             dependencies=rate_limit(5, 60))
async def create_booking(
        data: BookingCreate,
        current_user: User = Depends(current_active_user)
):
    """Request a service. The booking starts in `pending` until the provider responds."""
    try:
        return await BookingService.create(current_user, data)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating booking: {str(e)}"
        )


@router.patch("/bookings/update-status", response_model=UpdateStatusResponse, tags=["bookings"],
              dependencies=rate_limit(5, 60))
async def update_booking_status(
        request: UpdateStatusRequest,
        current_user: User = Depends(current_active_user)
):
    """
    Apply a customer or provider action (accept, decline, cancel, mark_completed,
    confirm_completion). The acting side is derived from the caller.
    """
    try:
        booking = await BookingService.update_status(current_user, request)
        return {"ok": True, "booking": booking}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating booking: {str(e)}"
        )
