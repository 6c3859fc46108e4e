from datetime import datetime
from typing import Optional, List

from beanie import PydanticObjectId
from fastapi_users import schemas


class UserRead(schemas.BaseUser[PydanticObjectId]):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    roles: List[str] = ["user"]
    is_active: bool
    is_verified: bool
    is_superuser: bool
    created_at: datetime

    class Config:
        from_attributes = True  # Pydantic v2 style for ORMs


class UserCreate(schemas.BaseUserCreate):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
