from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict

from src.commonUtils.enumUtils import BookingStatus


class Booking(Document):
    """
    One service request from a customer to a provider.

    Money is integer cents. `provider_quoted_price`, when positive, supersedes
    `price_at_booking` for every amount that is charged or displayed.
    """
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    status: BookingStatus = BookingStatus.PENDING

    customer_id: PydanticObjectId  # User who booked
    provider_id: PydanticObjectId  # Provider document, not the provider's user
    service_id: PydanticObjectId
    service_title: str  # Snapshot at booking time

    scheduled_date: Optional[datetime] = None
    price_at_booking: int = Field(..., ge=0)
    provider_quoted_price: Optional[int] = Field(None, ge=0)

    # Stripe references, written by payment reconciliation only
    checkout_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    customer_notes: Optional[str] = Field(None, max_length=2000)
    provider_message: Optional[str] = Field(None, max_length=2000)
    provider_decline_reason: Optional[str] = None
    provider_cancel_reason: Optional[str] = None
    customer_cancel_reason: Optional[str] = None
    dispute_reason: Optional[str] = None
    has_review: bool = False

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "bookings"
        indexes = [
            [("customer_id", 1), ("created_at", -1)],
            [("provider_id", 1), ("created_at", -1)],
            [("provider_id", 1), ("scheduled_date", 1)],
            [("status", 1), ("updated_at", -1)],
            [("checkout_session_id", 1)],  # Webhook / reconcile lookups
            [("payment_intent_id", 1)],
        ]

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,  # Store enum values as strings
    )
