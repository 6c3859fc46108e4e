"""
Domain errors shared by the API layer and the client projections.

Routes translate these into HTTPException; client views store the message
as their visible error string.
"""
from typing import Optional


class MarketplaceError(Exception):
    """Base class for all domain errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransition(MarketplaceError):
    """A status change that the booking lifecycle does not permit"""

    def __init__(self, current: str, target: str, allowed: Optional[list] = None, message: Optional[str] = None):
        self.current = current
        self.target = target
        self.allowed = list(allowed or [])
        if message is None:
            allowed_text = ", ".join(self.allowed) or "(none)"
            message = (
                f"Invalid booking status transition from '{current}' to '{target}'. "
                f"Allowed: {allowed_text}"
            )
        super().__init__(message)


class ValidationFailure(MarketplaceError):
    """Precondition not met; no request is made / no write happens"""


class FetchFailure(MarketplaceError):
    """Network-level failure or a non-2xx response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TimeoutGiveUp(MarketplaceError):
    """Polling reached its ceiling without observing the target state"""


class ProviderAccessDenied(MarketplaceError):
    """Provider is suspended, unverified or not connected for payouts"""


class StatusConflict(MarketplaceError):
    """The booking changed underneath a compare-and-set write"""


HTTP_STATUS_BY_ERROR = {
    InvalidTransition: 400,
    ValidationFailure: 400,
    ProviderAccessDenied: 403,
    StatusConflict: 409,
    FetchFailure: 502,
}


def http_status_for(error: MarketplaceError) -> int:
    for error_type, status_code in HTTP_STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status_code
    return 500
