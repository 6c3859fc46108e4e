"""
Pydantic schemas for provider applications, moderation and KYC
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.commonUtils.enumUtils import KycStatus, PricingType
from src.schemas.baseSchema import CamelModel, ObjectIdStr, document_id


class ProviderApplicationCreate(CamelModel):
    business_name: str = Field(..., min_length=1, max_length=120)
    handle: str = Field(..., min_length=2, max_length=60, pattern=r"^[a-z0-9][a-z0-9-]*$")
    bio: Optional[str] = Field(None, max_length=2000)


class ProviderApplicationRead(CamelModel):
    id: ObjectIdStr = document_id()
    user_id: ObjectIdStr
    business_name: str
    handle: str
    bio: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class ProviderRead(CamelModel):
    id: ObjectIdStr = document_id()
    user_id: ObjectIdStr
    business_name: str
    handle: str
    status: str
    kyc_status: str
    is_suspended: bool
    suspension_reason: Optional[str] = None
    suspension_start_date: Optional[datetime] = None
    suspension_end_date: Optional[datetime] = None
    trust_score: int
    trust_level: str
    stripe_connect_id: Optional[str] = None
    charges_enabled: bool
    payouts_enabled: bool
    average_rating: Optional[float] = None
    total_reviews: int = 0
    created_at: datetime


class ProviderRejectionRequest(BaseModel):
    """Request body for rejecting a provider or an application"""
    rejection_reason: Optional[str] = Field(
        None,
        description="Reason for rejection (shown to provider in email)",
        max_length=500,
        examples=["Incomplete credentials or documentation"]
    )


class ProviderSuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    start_date: Optional[datetime] = None  # Defaults to now
    end_date: Optional[datetime] = None  # None = until lifted


class KycUpdateRequest(BaseModel):
    kyc_status: KycStatus
    note: Optional[str] = Field(None, max_length=500)


class ProviderModerationResponse(BaseModel):
    """Response model for approve / reject / suspend actions"""
    msg: str = Field(..., examples=["Provider acme-plumbing approved"])
    provider_id: str = Field(..., examples=["507f1f77bcf86cd799439011"])
    status: str = Field(..., examples=["approved"])
    rejection_reason: Optional[str] = None
    email_sent: bool = Field(default=True, examples=[True])


class ServiceCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price_cents: int = Field(..., ge=0)
    pricing_type: PricingType = PricingType.FIXED
    charges_gst: bool = False


class ServiceRead(CamelModel):
    id: ObjectIdStr = document_id()
    provider_id: ObjectIdStr
    title: str
    description: Optional[str] = None
    price_cents: int
    pricing_type: str
    charges_gst: bool
    is_active: bool
