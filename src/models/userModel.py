from datetime import datetime

from beanie import Document
from typing import List, Optional
from pydantic import Field
from fastapi_users.db import BeanieBaseUser, BeanieUserDatabase


class User(BeanieBaseUser, Document):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    roles: List[str] = Field(default=["user"])  # ["user", "provider", "admin"]

    class Settings:
        indexes = [
            [("roles", 1)]  # Index for role-based queries
        ]
        email_collation = {"locale": "en", "strength": 2}  # Case-insensitive collation for email queries

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane.doe@example.com",
                "hashed_password": "supersecretpassword",
                "full_name": "Jane Doe",
                "phone_number": "+64211234567"
            }
        }

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or "admin" in self.roles

    @property
    def is_provider(self) -> bool:
        return "provider" in self.roles


async def get_user_db():
    yield BeanieUserDatabase(User)
