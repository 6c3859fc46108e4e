from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict
from pymongo import IndexModel, ASCENDING

from src.commonUtils.enumUtils import KycStatus, ProviderModerationStatus, TrustLevel


class Provider(Document):
    """Business account offering services, created when an application is approved."""
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    user_id: PydanticObjectId
    business_name: str = Field(..., min_length=1, max_length=120)
    handle: str = Field(..., min_length=2, max_length=60)
    bio: Optional[str] = None

    status: ProviderModerationStatus = ProviderModerationStatus.PENDING
    kyc_status: KycStatus = KycStatus.NOT_STARTED

    is_suspended: bool = False
    suspension_reason: Optional[str] = None
    suspension_start_date: Optional[datetime] = None
    suspension_end_date: Optional[datetime] = None  # None = indefinite
    total_suspensions: int = 0

    trust_score: int = Field(50, ge=0, le=100)
    trust_level: TrustLevel = TrustLevel.BRONZE

    # Stripe Connect
    stripe_connect_id: Optional[str] = None
    charges_enabled: bool = False
    payouts_enabled: bool = False

    charges_gst: bool = False
    average_rating: Optional[float] = None
    total_reviews: int = 0

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_currently_suspended(self, now: Optional[datetime] = None) -> bool:
        """A suspension applies from its start date until its end date (open-ended when unset)."""
        if not self.is_suspended:
            return False
        now = now or datetime.utcnow()
        if self.suspension_start_date and now < self.suspension_start_date:
            return False
        if self.suspension_end_date and now >= self.suspension_end_date:
            return False
        return True

    class Settings:
        name = "providers"
        indexes = [
            IndexModel([("user_id", ASCENDING)], unique=True),
            IndexModel([("handle", ASCENDING)], unique=True),
            [("stripe_connect_id", 1)],
            [("status", 1), ("kyc_status", 1)],
        ]

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )
