from fastapi import APIRouter, Depends, HTTPException, status
from beanie import PydanticObjectId
from typing import List

from src.models.userModel import User
from src.schemas.reviewSchema import ReviewCreate, ReviewRead
from src.crud.userService import current_active_user
from src.crud.reviewService import ReviewService

router = APIRouter()


@router.post("/bookings/{booking_id}/review", response_model=ReviewRead, status_code=status.HTTP_201_CREATED,
             tags=["reviews"])
async def create_review(
        booking_id: PydanticObjectId,
        data: ReviewCreate,
        current_user: User = Depends(current_active_user)
):
    """Review a completed booking (customer only, once)"""
    try:
        return await ReviewService.create(booking_id, current_user, data)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating review: {str(e)}"
        )


@router.get("/providers/{provider_id}/reviews", response_model=List[ReviewRead], tags=["reviews"])
async def list_provider_reviews(provider_id: PydanticObjectId, limit: int = 50):
    return await ReviewService.list_for_provider(provider_id, limit=limit)
