from typing import Optional
from beanie import PydanticObjectId
from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers, models
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
    JWTStrategy,
)
from fastapi_users.db import BeanieUserDatabase, ObjectIDIDMixin
from src.models.userModel import User, get_user_db
from src.config.settings import settings
from src.commonUtils.emailUtil import send_email

from src.commonUtils.email_renderer import (
    get_verification_email,
    get_password_reset_email,
    get_password_reset_confirmation_email,
    get_welcome_registration_email
)

import logging

logger = logging.getLogger(__name__)

frontend_url = settings.FRONTEND_URL
SECRET = settings.JWT_SECRET_KEY


class UserManager(ObjectIDIDMixin, BaseUserManager[User, PydanticObjectId]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

    async def on_after_register(
            self, user: User, request: Optional[Request] = None
    ):
        logger.info(f"User {user.id} has registered.")

        # Roles are granted by the platform, never by the sign-up payload
        user.roles = ["user"]
        await user.save()

        # Don't fail registration if the welcome email fails
        try:
            html_content = get_welcome_registration_email(
                user_email=user.email,
                user_name=user.full_name,
                frontend_url=settings.FRONTEND_URL
            )

            await send_email(
                email=user.email,
                subject=f"Welcome to {settings.PLATFORM_NAME}! 🎉",
                message=html_content
            )
        except Exception as e:
            logger.error(f"⚠️ Welcome email failed for {user.email}: {str(e)}")

    async def on_after_forgot_password(
            self, user: User, token: str, request: Optional[Request] = None
    ):
        html_content = get_password_reset_email(
            user_email=user.email,
            user_name=user.full_name,
            token=token,
            frontend_url=frontend_url
        )
        await send_email(
            email=user.email,
            subject="Password Reset Request",
            message=html_content
        )
        logger.info(f"📧 Sent password reset email to {user.email}")

    async def on_after_request_verify(
            self, user: User, token: str, request: Optional[Request] = None
    ):
        html_content = get_verification_email(
            user_email=user.email,
            user_name=user.full_name,
            token=token,
            frontend_url=frontend_url
        )

        try:
            await send_email(
                email=user.email,
                subject=f"Verify Your {settings.PLATFORM_NAME} Email",
                message=html_content
            )
            logger.info(f"📧 Sent verification email to {user.email}")
        except Exception as e:
            logger.error(f"Failed to send verification email to {user.email}: {e}")

    async def on_after_reset_password(self, user: User, request: Optional[Request] = None) -> None:
        # A failed confirmation email must not undo the password reset
        try:
            html_message = get_password_reset_confirmation_email(
                user_email=user.email,
                user_name=user.full_name,
                frontend_url=frontend_url
            )

            await send_email(
                email=user.email,
                subject=f"Password Reset Successful - {settings.PLATFORM_NAME}",
                message=html_message
            )
            logger.info(f"Password reset completed successfully for user: {user.email}")
        except Exception as e:
            logger.error(f"Failed to send password reset confirmation email to {user.email}: {str(e)}")


async def get_user_manager(user_db: BeanieUserDatabase = Depends(get_user_db)):
    yield UserManager(user_db)


bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")


def get_jwt_strategy() -> JWTStrategy[models.UP, models.ID]:
    return JWTStrategy(secret=SECRET, lifetime_seconds=3600)


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, PydanticObjectId](get_user_manager, [auth_backend])

current_active_user = fastapi_users.current_user(active=True, verified=True)
super_user = fastapi_users.current_user(active=True, verified=True, superuser=True)
