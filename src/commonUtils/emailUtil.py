from typing import Optional

from fastapi_mail import FastMail, MessageSchema
from src.config.settings import settings
import logging

logger = logging.getLogger(__name__)

conf = settings.mail_config


async def send_email(email: str, subject: str, message: str):
    """
    Core email sending utility - used by all services
    """
    logger.info(f"📧 Sending email to {email} | Subject: {subject}")
    try:
        msg = MessageSchema(
            subject=subject,
            recipients=[email],
            body=message,
            subtype="html",
        )
        fm = FastMail(conf)
        await fm.send_message(msg)
        logger.info(f"Email sent successfully to {email}")
    except Exception as e:
        logger.error(f"Failed to send email to {email}: {str(e)}")
        raise


async def send_email_best_effort(email: Optional[str], subject: str, message: str) -> bool:
    """Notification that must never fail the calling request. Returns whether it was sent."""
    if not email:
        return False
    try:
        await send_email(email, subject, message)
        return True
    except Exception as e:
        logger.warning(f"⚠️ Notification email to {email} failed: {e}", exc_info=True)
        return False
