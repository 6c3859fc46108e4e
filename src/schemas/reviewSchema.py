from datetime import datetime
from typing import Optional

from pydantic import Field

from src.schemas.baseSchema import CamelModel, ObjectIdStr, document_id


class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewRead(CamelModel):
    id: ObjectIdStr = document_id()
    booking_id: ObjectIdStr
    customer_id: ObjectIdStr
    provider_id: ObjectIdStr
    rating: int
    comment: Optional[str] = None
    created_at: datetime
