import math
from typing import Dict, Optional

from src.config.settings import settings


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return min(maximum, max(minimum, int(value)))


def calculate_customer_service_fee(price_cents: int, currency: str = "nzd") -> int:
    """
    Customer-facing service fee in cents, added on top of the service price.

    Tiers (NZD):
        P < $10  -> $3
        P < $20  -> $5
        P >= $20 -> clamp(round(P * bps) + flat, min, max)
    """
    price = max(0, int(price_cents))

    if currency.lower() != settings.CURRENCY:
        # Non-NZD: plain percentage plus flat, no tiers
        pct = math.ceil(price * settings.CUSTOMER_SERVICE_FEE_BPS / 10000)
        return max(0, pct + settings.CUSTOMER_SERVICE_FEE_FLAT_CENTS)

    if 0 < price < 1000:
        return 300
    if 0 < price < 2000:
        return 500

    # Half-up rounding, matching the checkout amounts shown to customers
    pct = int(math.floor(price * settings.CUSTOMER_SERVICE_FEE_BPS / 10000 + 0.5))
    return _clamp(
        pct + settings.CUSTOMER_SERVICE_FEE_FLAT_CENTS,
        settings.CUSTOMER_SERVICE_FEE_MIN_CENTS,
        settings.CUSTOMER_SERVICE_FEE_MAX_CENTS,
    )


def calculate_platform_fee(amount_cents: int, fee_bps: Optional[int] = None) -> int:
    """Platform application fee, always rounded up to the next cent."""
    bps = settings.PLATFORM_FEE_BPS if fee_bps is None else fee_bps
    return math.ceil(max(0, int(amount_cents)) * bps / 10000)


def calculate_gst_component(gross_cents: int, charges_gst: bool) -> int:
    """GST contained in a GST-inclusive amount (15% -> 3/23 of gross)."""
    if not charges_gst:
        return 0
    rate = settings.GST_RATE_BPS
    return int(round(gross_cents * rate / (10000 + rate)))


def booking_payment_breakdown(price_cents: int, currency: str = "nzd") -> Dict[str, int]:
    price = max(0, int(price_cents))
    service_fee = calculate_customer_service_fee(price, currency)
    return {
        "service_price_cents": price,
        "service_fee_cents": service_fee,
        "total_cents": price + service_fee,
        "platform_fee_cents": calculate_platform_fee(price),
    }


def parse_metadata_int(metadata, key: str) -> Optional[int]:
    """Stripe metadata values come back as strings."""
    if not metadata:
        return None
    value = metadata.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
