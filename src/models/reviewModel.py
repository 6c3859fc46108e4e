from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict
from pymongo import IndexModel, ASCENDING


class Review(Document):
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    booking_id: PydanticObjectId
    customer_id: PydanticObjectId
    provider_id: PydanticObjectId
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "reviews"
        indexes = [
            IndexModel([("booking_id", ASCENDING)], unique=True),  # At most one review per booking
            [("provider_id", 1), ("created_at", -1)],
        ]

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
