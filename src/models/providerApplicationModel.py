from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict

from src.commonUtils.enumUtils import ApplicationStatus


class ProviderApplication(Document):
    """Onboarding record gating a user's move to the provider role"""
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    user_id: PydanticObjectId
    business_name: str = Field(..., min_length=1, max_length=120)
    handle: str = Field(..., min_length=2, max_length=60)
    bio: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[PydanticObjectId] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "provider_applications"
        indexes = [
            [("user_id", 1)],
            [("status", 1), ("created_at", -1)],
        ]

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )
