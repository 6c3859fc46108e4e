from datetime import datetime

from beanie import PydanticObjectId
from fastapi import HTTPException, status

from src.commonUtils.bookingStateUtil import try_normalize_status
from src.commonUtils.enumUtils import BookingStatus
from src.crud.bookingService import BookingService
from src.models.providerModel import Provider
from src.models.reviewModel import Review
from src.models.userModel import User
from src.schemas.reviewSchema import ReviewCreate

import logging

logger = logging.getLogger(__name__)


class ReviewService:

    @staticmethod
    async def create(booking_id: PydanticObjectId, user: User, data: ReviewCreate) -> Review:
        """One review per completed booking, written by its customer"""
        booking = await BookingService.get_or_404(booking_id)
        if booking.customer_id != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                                detail="Only the customer can review this booking")
        if try_normalize_status(booking.status) != BookingStatus.COMPLETED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Only completed bookings can be reviewed")

        existing = await Review.find_one({"booking_id": booking.id})
        if booking.has_review or existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="This booking has already been reviewed")

        review = Review(
            booking_id=booking.id,
            customer_id=user.id,
            provider_id=booking.provider_id,
            rating=data.rating,
            comment=data.comment,
        )
        await review.insert()

        booking.has_review = True
        booking.updated_at = datetime.utcnow()
        await booking.save()

        await ReviewService.refresh_provider_rating(booking.provider_id)
        logger.info(f"Review {review.id} created for booking {booking.id}")
        return review

    @staticmethod
    async def refresh_provider_rating(provider_id: PydanticObjectId) -> None:
        """Recompute average_rating / total_reviews from the reviews collection"""
        pipeline = [
            {"$match": {"provider_id": provider_id}},
            {"$group": {"_id": None, "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]
        result = await Review.aggregate(pipeline).to_list()

        provider = await Provider.get(provider_id)
        if not provider:
            logger.warning(f"Provider {provider_id} missing while refreshing rating")
            return

        if result:
            provider.average_rating = round(result[0]["avg"], 2)
            provider.total_reviews = result[0]["count"]
        else:
            provider.average_rating = None
            provider.total_reviews = 0
        provider.updated_at = datetime.utcnow()
        await provider.save()

    @staticmethod
    async def list_for_provider(provider_id: PydanticObjectId, limit: int = 50):
        return await Review.find({"provider_id": provider_id}).sort("-created_at").limit(limit).to_list()
