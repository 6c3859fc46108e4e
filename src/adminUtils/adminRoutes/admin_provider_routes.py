from fastapi import APIRouter, Depends, HTTPException, Body
from typing import List, Optional
from beanie import PydanticObjectId
from pydantic import BaseModel, Field

from src.models.userModel import User
from src.models.providerModel import Provider
from src.commonUtils.enumUtils import ApplicationStatus, KycStatus, ProviderModerationStatus
from src.dependencies.roleDependencies import require_admin
from src.crud.providerService import ProviderService
from src.schemas.providerSchema import (
    KycUpdateRequest,
    ProviderApplicationRead,
    ProviderModerationResponse,
    ProviderRead,
    ProviderRejectionRequest,
    ProviderSuspendRequest,
)
from src.commonUtils.email_renderer import (
    get_provider_approved_email,
    get_provider_rejected_email,
    get_provider_suspension_email,
)
from src.commonUtils.emailUtil import send_email_best_effort
from src.config.settings import settings
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


class TrustScoreRequest(BaseModel):
    trust_score: int = Field(..., ge=0, le=100)


async def notify_provider(provider: Provider, subject: str, html_content: str) -> bool:
    """Email the provider's user account. Failures are logged and reported as False."""
    user = await User.get(provider.user_id)
    if not user:
        logger.warning(f"⚠️ No user account behind provider {provider.id}; email skipped")
        return False
    return await send_email_best_effort(user.email, subject, html_content)


def moderation_response(provider: Provider, msg: str, email_sent: bool,
                        rejection_reason: Optional[str] = None) -> ProviderModerationResponse:
    return ProviderModerationResponse(
        msg=msg,
        provider_id=str(provider.id),
        status=provider.status,
        rejection_reason=rejection_reason,
        email_sent=email_sent
    )


# ============= APPLICATIONS =============
@router.get("/applications", response_model=List[ProviderApplicationRead])
async def list_applications(
        status: Optional[ApplicationStatus] = ApplicationStatus.PENDING,
        admin: User = Depends(require_admin)
):
    return await ProviderService.list_applications(status)


@router.patch("/applications/{application_id}/approve", response_model=ProviderModerationResponse)
async def approve_application(
        application_id: PydanticObjectId,
        admin: User = Depends(require_admin)
):
    """
    Approve a provider application

    Creates the Provider record (or re-approves an existing one) and grants the
    `provider` role. The approval email is best-effort.
    """
    provider = await ProviderService.approve_application(application_id, admin)

    email_sent = await notify_provider(
        provider,
        f"🎉 Your {settings.PLATFORM_NAME} Provider Application is Approved!",
        get_provider_approved_email(provider.business_name, settings.FRONTEND_URL)
    )
    return moderation_response(provider, f"Provider {provider.handle} approved", email_sent)


@router.patch("/applications/{application_id}/reject", response_model=ProviderModerationResponse)
async def reject_application(
        application_id: PydanticObjectId,
        rejection_data: ProviderRejectionRequest = Body(...),
        admin: User = Depends(require_admin)
):
    """
    Reject a provider application with optional reason

    Example request body:
    ```json
    {
        "rejection_reason": "Incomplete documentation or credentials"
    }
    ```
    """
    application = await ProviderService.reject_application(application_id, admin, rejection_data.rejection_reason)

    email_sent = False
    user = await User.get(application.user_id)
    if user:
        email_sent = await send_email_best_effort(
            user.email,
            f"Update on Your {settings.PLATFORM_NAME} Provider Application",
            get_provider_rejected_email(application.business_name, rejection_data.rejection_reason,
                                        settings.FRONTEND_URL)
        )

    return ProviderModerationResponse(
        msg=f"Application {application.handle} rejected",
        provider_id=str(application.id),
        status=application.status,
        rejection_reason=rejection_data.rejection_reason,
        email_sent=email_sent
    )


# ============= PROVIDERS =============
@router.get("/", response_model=List[ProviderRead])
async def list_providers(
        status: Optional[ProviderModerationStatus] = None,
        kyc_status: Optional[KycStatus] = None,
        admin: User = Depends(require_admin)
):
    query = {}
    if status:
        query["status"] = status.value
    if kyc_status:
        query["kyc_status"] = kyc_status.value
    return await Provider.find(query).sort("-created_at").to_list()


@router.get("/{provider_id}", response_model=ProviderRead)
async def get_provider(provider_id: PydanticObjectId, admin: User = Depends(require_admin)):
    return await ProviderService.get_or_404(provider_id)


@router.patch("/{provider_id}/approve", response_model=ProviderModerationResponse)
async def approve_provider(
        provider_id: PydanticObjectId,
        admin: User = Depends(require_admin)
):
    provider = await ProviderService.get_or_404(provider_id)
    provider.status = ProviderModerationStatus.APPROVED.value
    await provider.save()
    logger.info(f"✅ Provider {provider.id} approved by {admin.id}")

    email_sent = await notify_provider(
        provider,
        f"🎉 Your {settings.PLATFORM_NAME} Provider Application is Approved!",
        get_provider_approved_email(provider.business_name, settings.FRONTEND_URL)
    )
    return moderation_response(provider, f"Provider {provider.handle} approved", email_sent)


@router.patch("/{provider_id}/reject", response_model=ProviderModerationResponse)
async def reject_provider(
        provider_id: PydanticObjectId,
        rejection_data: ProviderRejectionRequest = Body(...),
        admin: User = Depends(require_admin)
):
    provider = await ProviderService.get_or_404(provider_id)
    provider.status = ProviderModerationStatus.REJECTED.value
    await provider.save()
    logger.info(f"Provider {provider.id} rejected by {admin.id}")

    email_sent = await notify_provider(
        provider,
        f"Update on Your {settings.PLATFORM_NAME} Provider Application",
        get_provider_rejected_email(provider.business_name, rejection_data.rejection_reason, settings.FRONTEND_URL)
    )
    return moderation_response(provider, f"Provider {provider.handle} rejected", email_sent,
                               rejection_data.rejection_reason)


@router.patch("/{provider_id}/suspend", response_model=ProviderModerationResponse)
async def suspend_provider(
        provider_id: PydanticObjectId,
        request: ProviderSuspendRequest,
        admin: User = Depends(require_admin)
):
    """Suspend from `start_date` (default now) until `end_date` (open-ended when omitted)"""
    provider = await ProviderService.get_or_404(provider_id)
    ProviderService.apply_suspension(provider, request.reason, request.start_date, request.end_date)
    await provider.save()
    logger.info(f"⛔ Provider {provider.id} suspended by {admin.id}: {request.reason}")

    end_date = provider.suspension_end_date.strftime("%d %b %Y") if provider.suspension_end_date else None
    email_sent = await notify_provider(
        provider,
        f"Your {settings.PLATFORM_NAME} provider account has been suspended",
        get_provider_suspension_email(provider.business_name, True, request.reason, end_date, settings.FRONTEND_URL)
    )
    return moderation_response(provider, f"Provider {provider.handle} suspended", email_sent)


@router.patch("/{provider_id}/unsuspend", response_model=ProviderModerationResponse)
async def unsuspend_provider(
        provider_id: PydanticObjectId,
        admin: User = Depends(require_admin)
):
    provider = await ProviderService.get_or_404(provider_id)
    if not provider.is_suspended:
        raise HTTPException(status_code=400, detail="Provider is not suspended")

    ProviderService.lift_suspension(provider)
    await provider.save()
    logger.info(f"✅ Provider {provider.id} unsuspended by {admin.id}")

    email_sent = await notify_provider(
        provider,
        f"Your {settings.PLATFORM_NAME} provider account has been reinstated",
        get_provider_suspension_email(provider.business_name, False, frontend_url=settings.FRONTEND_URL)
    )
    return moderation_response(provider, f"Provider {provider.handle} unsuspended", email_sent)


@router.patch("/{provider_id}/kyc", response_model=ProviderRead)
async def update_kyc_status(
        provider_id: PydanticObjectId,
        request: KycUpdateRequest,
        admin: User = Depends(require_admin)
):
    """Record the outcome of identity verification. Only `verified` providers may accept bookings."""
    provider = await ProviderService.get_or_404(provider_id)
    old_status = provider.kyc_status
    provider.kyc_status = request.kyc_status.value
    await provider.save()
    logger.info(f"Provider {provider.id} KYC {old_status} → {provider.kyc_status} by {admin.id} ({request.note or '-'})")
    return provider


@router.patch("/{provider_id}/trust-score", response_model=ProviderRead)
async def update_trust_score(
        provider_id: PydanticObjectId,
        request: TrustScoreRequest,
        admin: User = Depends(require_admin)
):
    provider = await ProviderService.get_or_404(provider_id)
    ProviderService.apply_trust_score(provider, request.trust_score)
    await provider.save()
    return provider
