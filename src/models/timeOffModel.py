from datetime import datetime
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import Field, ConfigDict, model_validator


class TimeOffBlock(Document):
    """Provider-declared unavailability. No status machine: created and deleted directly."""
    id: Optional[PydanticObjectId] = Field(None, alias="_id")
    provider_id: PydanticObjectId
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = Field(None, max_length=200)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    class Settings:
        name = "provider_time_offs"
        indexes = [
            [("provider_id", 1), ("start_time", 1), ("end_time", 1)],
        ]

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
