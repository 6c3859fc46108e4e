from typing import List

from pydantic import EmailStr
from pydantic_settings import BaseSettings
from fastapi_mail import ConnectionConfig
import os


class Settings(BaseSettings):
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DATABASE: str = os.getenv("MONGO_DATABASE", "marketplace")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    PLATFORM_NAME: str = os.getenv("PLATFORM_NAME", "Marketplace")

    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me")
    CLIENT_ORIGIN: str = os.getenv("CLIENT_ORIGIN", "http://localhost:3000")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    RATE_LIMITING_ENABLED: str = os.getenv("RATE_LIMITING_ENABLED", "true")

    # For ALLOWED_IPS, we need special handling
    @property
    def allowed_ips(self) -> List[str]:
        ips = os.getenv("ALLOWED_IPS", "")
        return [ip.strip() for ip in ips.split(",") if ip.strip()]

    @property
    def rate_limiting_enabled(self) -> bool:
        return self.RATE_LIMITING_ENABLED.strip().lower() in ("1", "true", "yes", "on")

    MAIL_SERVER: str = "localhost"
    MAIL_PORT: int = 587
    MAIL_USERNAME: EmailStr = "noreply@example.com"
    MAIL_PASSWORD: str = ""
    MAIL_FROM: EmailStr = "noreply@example.com"
    MAIL_STARTTLS: bool = True
    MAIL_SSL_TLS: bool = False

    @property
    def mail_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            MAIL_USERNAME=self.MAIL_USERNAME,
            MAIL_PASSWORD=self.MAIL_PASSWORD,
            MAIL_FROM=self.MAIL_FROM,
            MAIL_PORT=self.MAIL_PORT,
            MAIL_SERVER=self.MAIL_SERVER,
            MAIL_STARTTLS=self.MAIL_STARTTLS,
            MAIL_SSL_TLS=self.MAIL_SSL_TLS,
            USE_CREDENTIALS=bool(self.MAIL_PASSWORD)
        )

    stripe_keys: dict = {
        "secret_key": os.getenv("STRIPE_SECRET_KEY", ""),
        "publishable_key": os.getenv("STRIPE_PUBLISHABLE_KEY", ""),
        # Connect account events (account.updated)
        "webhook_secret": os.getenv("STRIPE_WEBHOOK_SIGNING_SECRET", ""),
        # Platform booking payment events (checkout / payment_intent / disputes)
        "bookings_webhook_secret": os.getenv("STRIPE_BOOKINGS_WEBHOOK_SECRET", ""),
    }

    # Fees, all in basis points or cents
    CURRENCY: str = "nzd"
    PLATFORM_FEE_BPS: int = 1000
    CUSTOMER_SERVICE_FEE_BPS: int = 500
    CUSTOMER_SERVICE_FEE_FLAT_CENTS: int = 0
    CUSTOMER_SERVICE_FEE_MIN_CENTS: int = 100
    CUSTOMER_SERVICE_FEE_MAX_CENTS: int = 1500
    GST_RATE_BPS: int = 1500

    # Payment return reconciliation
    PAYMENT_POLL_INTERVAL_SECONDS: float = 1.2
    PAYMENT_POLL_CEILING_SECONDS: float = 8.0
    PAYMENT_RECONCILE_CRON_MINUTES: int = 15

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# create a singleton instance
settings = Settings()
