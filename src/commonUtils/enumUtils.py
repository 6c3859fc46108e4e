from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"  # Waiting for provider response (initial state)
    ACCEPTED = "accepted"  # Provider accepted, awaiting customer payment
    DECLINED = "declined"  # Provider explicitly declined
    PAID = "paid"  # Payment confirmed by Stripe (webhook or sync)
    COMPLETED_BY_PROVIDER = "completed_by_provider"  # Provider marks job as done
    COMPLETED = "completed"  # Customer confirmed completion, payout released
    CANCELED_CUSTOMER = "canceled_customer"
    CANCELED_PROVIDER = "canceled_provider"
    DISPUTED = "disputed"  # Payout frozen
    REFUNDED = "refunded"  # Payout reversed


class Actor(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    PAYMENT = "payment"  # Stripe webhook or the sync-payment endpoint
    ADMIN = "admin"


class BookingAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"
    MARK_COMPLETED = "mark_completed"
    CONFIRM_COMPLETION = "confirm_completion"
    PAY = "pay"
    REVIEW = "review"


class KycStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ProviderModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApplicationStatus(str, Enum):
    """Onboarding record gating a user's move to the provider role."""
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TrustLevel(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class PricingType(str, Enum):
    FIXED = "fixed"
    FROM = "from"  # "From $X", provider sets final price on accept
    QUOTE = "quote"  # Provider must quote before the customer can pay


class EarningStatus(str, Enum):
    HELD = "held"  # Funds captured, held until customer confirms completion
    AWAITING_PAYOUT = "awaiting_payout"
    PAID_OUT = "paid_out"
    REFUNDED = "refunded"


class CalendarEventType(str, Enum):
    BOOKING = "booking"
    TIME_OFF = "time_off"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
