from datetime import datetime
from typing import List, Optional

from beanie import PydanticObjectId
from fastapi import HTTPException, status

from src.commonUtils.enumUtils import (
    ApplicationStatus,
    KycStatus,
    ProviderModerationStatus,
    TrustLevel,
)
from src.commonUtils.errorUtils import ProviderAccessDenied
from src.models.providerApplicationModel import ProviderApplication
from src.models.providerModel import Provider
from src.models.userModel import User

import logging

logger = logging.getLogger(__name__)


def trust_level_for(score: int) -> TrustLevel:
    if score >= 90:
        return TrustLevel.PLATINUM
    if score >= 75:
        return TrustLevel.GOLD
    if score >= 50:
        return TrustLevel.SILVER
    return TrustLevel.BRONZE


class ProviderService:
    """Provider applications, moderation and the gates applied before a provider may take work"""

    # ------------------------------------------------------------------------------------------------------#
    #                                       Gating                                                          #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    def ensure_can_accept(provider, now: Optional[datetime] = None) -> None:
        """
        Raises ProviderAccessDenied unless the provider may accept a booking:
        approved, not inside a suspension window, KYC verified and connected for payouts.
        """
        if provider.status != ProviderModerationStatus.APPROVED.value:
            raise ProviderAccessDenied("Your provider account is not approved yet.")
        if provider.is_currently_suspended(now):
            until = provider.suspension_end_date.strftime("%Y-%m-%d") if provider.suspension_end_date else None
            message = "Your provider account is suspended"
            message += f" until {until}." if until else "."
            raise ProviderAccessDenied(message)
        if provider.kyc_status != KycStatus.VERIFIED.value:
            raise ProviderAccessDenied("Identity verification must be completed before accepting bookings.")
        if not provider.stripe_connect_id:
            raise ProviderAccessDenied("Provider payments are not set up.")

    @staticmethod
    def ensure_bookable(provider, now: Optional[datetime] = None) -> None:
        """Customers may only request approved, unsuspended providers"""
        if provider.status != ProviderModerationStatus.APPROVED.value or provider.is_currently_suspended(now):
            raise ProviderAccessDenied("This provider is not accepting bookings right now.")

    @staticmethod
    async def get_for_user(user_id: PydanticObjectId) -> Optional[Provider]:
        return await Provider.find_one({"user_id": user_id})

    # ------------------------------------------------------------------------------------------------------#
    #                                       Applications                                                    #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def submit_application(user: User, business_name: str, handle: str, bio: Optional[str]) -> ProviderApplication:
        if "provider" in user.roles:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are already a provider")

        existing = await ProviderApplication.find_one(
            {"user_id": user.id, "status": ApplicationStatus.PENDING.value}
        )
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An application is already pending")

        handle_taken = await Provider.find_one({"handle": handle})
        if handle_taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="That handle is already taken")

        application = ProviderApplication(
            user_id=user.id,
            business_name=business_name,
            handle=handle,
            bio=bio,
            status=ApplicationStatus.PENDING,
        )
        await application.insert()
        logger.info(f"Provider application {application.id} submitted by user {user.id}")
        return application

    @staticmethod
    async def latest_application(user_id: PydanticObjectId) -> Optional[ProviderApplication]:
        return await ProviderApplication.find({"user_id": user_id}).sort("-created_at").first_or_none()

    @staticmethod
    async def approve_application(application_id: PydanticObjectId, admin: User) -> Provider:
        application = await ProviderApplication.get(application_id)
        if not application:
            raise HTTPException(status_code=404, detail="Application not found")
        if application.status != ApplicationStatus.PENDING.value:
            raise HTTPException(status_code=400, detail=f"Application is already {application.status}")

        user = await User.get(application.user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        provider = await Provider.find_one({"user_id": user.id})
        if provider is None:
            provider = Provider(
                user_id=user.id,
                business_name=application.business_name,
                handle=application.handle,
                bio=application.bio,
                status=ProviderModerationStatus.APPROVED,
            )
            await provider.insert()
        else:
            provider.status = ProviderModerationStatus.APPROVED.value
            provider.updated_at = datetime.utcnow()
            await provider.save()

        if "provider" not in user.roles:
            user.roles.append("provider")
            await user.save()

        application.status = ApplicationStatus.APPROVED.value
        application.reviewed_by = admin.id
        application.reviewed_at = datetime.utcnow()
        application.updated_at = datetime.utcnow()
        await application.save()

        logger.info(f"Application {application.id} approved by {admin.id}; provider {provider.id}")
        return provider

    @staticmethod
    async def reject_application(application_id: PydanticObjectId, admin: User,
                                 reason: Optional[str]) -> ProviderApplication:
        application = await ProviderApplication.get(application_id)
        if not application:
            raise HTTPException(status_code=404, detail="Application not found")
        if application.status != ApplicationStatus.PENDING.value:
            raise HTTPException(status_code=400, detail=f"Application is already {application.status}")

        application.status = ApplicationStatus.REJECTED.value
        application.rejection_reason = reason
        application.reviewed_by = admin.id
        application.reviewed_at = datetime.utcnow()
        application.updated_at = datetime.utcnow()
        await application.save()

        logger.info(f"Application {application.id} rejected by {admin.id}")
        return application

    @staticmethod
    async def list_applications(status_filter: Optional[ApplicationStatus] = None) -> List[ProviderApplication]:
        query = {"status": status_filter.value} if status_filter else {}
        return await ProviderApplication.find(query).sort("-created_at").to_list()

    # ------------------------------------------------------------------------------------------------------#
    #                                       Moderation                                                      #
    # ------------------------------------------------------------------------------------------------------#

    @staticmethod
    async def get_or_404(provider_id: PydanticObjectId) -> Provider:
        provider = await Provider.get(provider_id)
        if not provider:
            raise HTTPException(status_code=404, detail="Provider not found")
        return provider

    @staticmethod
    def apply_suspension(provider: Provider, reason: str, start_date: Optional[datetime],
                         end_date: Optional[datetime], now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        start = start_date or now
        if end_date is not None and end_date <= start:
            raise HTTPException(status_code=400, detail="Suspension end date must be after its start date")

        provider.is_suspended = True
        provider.suspension_reason = reason
        provider.suspension_start_date = start
        provider.suspension_end_date = end_date
        provider.total_suspensions += 1
        provider.updated_at = now

    @staticmethod
    def lift_suspension(provider: Provider, now: Optional[datetime] = None) -> None:
        provider.is_suspended = False
        provider.suspension_reason = None
        provider.suspension_start_date = None
        provider.suspension_end_date = None
        provider.updated_at = now or datetime.utcnow()

    @staticmethod
    def apply_trust_score(provider: Provider, score: int) -> None:
        provider.trust_score = max(0, min(100, score))
        provider.trust_level = trust_level_for(provider.trust_score).value

    @staticmethod
    async def update_connect_status(connect_id: str, charges_enabled: bool, payouts_enabled: bool) -> bool:
        """Mirror Stripe account capabilities. Returns True when something changed."""
        provider = await Provider.find_one({"stripe_connect_id": connect_id})
        if not provider:
            logger.warning(f"Provider not found for Stripe Connect ID: {connect_id}. Skipping status update.")
            return False

        if provider.charges_enabled == charges_enabled and provider.payouts_enabled == payouts_enabled:
            logger.info(f"ℹ️ Provider {provider.id} already up to date for {connect_id}")
            return False

        provider.charges_enabled = charges_enabled
        provider.payouts_enabled = payouts_enabled
        provider.updated_at = datetime.utcnow()
        await provider.save()
        logger.info(
            f"✅ Provider {provider.id} capabilities updated "
            f"(charges={charges_enabled}, payouts={payouts_enabled})"
        )
        return True
