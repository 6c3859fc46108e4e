from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict

from src.commonUtils.enumUtils import PricingType


class Service(Document):
    """A bookable offering. Bookings snapshot its title and price."""
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    provider_id: PydanticObjectId
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    pricing_type: PricingType = PricingType.FIXED
    charges_gst: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "services"
        indexes = [
            [("provider_id", 1)],
            [("is_active", 1)],
        ]

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )
