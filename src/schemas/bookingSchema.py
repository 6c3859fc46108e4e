from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from src.commonUtils.enumUtils import BookingAction
from src.schemas.baseSchema import CamelModel, ObjectIdStr, document_id


class BookingRead(CamelModel):
    """
    Booking as seen by views. `status` stays a plain string so clients keep
    working when the server grows a state they don't know yet.
    """
    id: ObjectIdStr = document_id()
    status: str
    customer_id: ObjectIdStr
    provider_id: ObjectIdStr
    service_id: ObjectIdStr
    service_title: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    price_at_booking: int
    provider_quoted_price: Optional[int] = None
    payment_intent_id: Optional[str] = None
    checkout_session_id: Optional[str] = None
    customer_notes: Optional[str] = None
    provider_message: Optional[str] = None
    provider_decline_reason: Optional[str] = None
    provider_cancel_reason: Optional[str] = None
    customer_cancel_reason: Optional[str] = None
    has_review: bool = False


class BookingCreate(CamelModel):
    service_id: ObjectIdStr
    scheduled_date: Optional[datetime] = None
    customer_notes: Optional[str] = Field(None, max_length=2000)


class UpdateStatusRequest(CamelModel):
    booking_id: ObjectIdStr
    action: BookingAction
    reason: Optional[str] = Field(None, max_length=1000)
    final_price_in_cents: Optional[int] = Field(None, ge=0)
    provider_message: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason", "provider_message")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class UpdateStatusResponse(CamelModel):
    ok: bool = True
    booking: BookingRead


class PayResponse(CamelModel):
    url: str
    session_id: Optional[str] = None
    amount: int
    service_fee: int
    total: int


class SyncPaymentRequest(CamelModel):
    session_id: Optional[str] = None


class SyncPaymentResponse(CamelModel):
    ok: bool = True
    updated: bool = False
    status: str
    payment_intent_id: Optional[str] = None
    message: Optional[str] = None
