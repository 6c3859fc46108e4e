from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict
from pymongo import IndexModel, ASCENDING

from src.commonUtils.enumUtils import EarningStatus


class ProviderEarning(Document):
    """Ledger row per paid booking. Written best-effort when payment is reconciled."""
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    booking_id: PydanticObjectId
    provider_id: PydanticObjectId
    gross_amount: int = Field(..., ge=0)
    platform_fee_amount: int = Field(..., ge=0)
    gst_amount: int = Field(0, ge=0)
    net_amount: int
    currency: str = "nzd"
    status: EarningStatus = EarningStatus.HELD
    stripe_payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "provider_earnings"
        indexes = [
            IndexModel([("booking_id", ASCENDING)], unique=True),
            [("provider_id", 1), ("status", 1)],
        ]

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )
