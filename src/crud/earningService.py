from datetime import datetime
from typing import Optional

from src.commonUtils.bookingStateUtil import resolve_amount
from src.commonUtils.enumUtils import EarningStatus
from src.commonUtils.feeUtil import calculate_platform_fee, calculate_gst_component
from src.models.earningModel import ProviderEarning

import logging

logger = logging.getLogger(__name__)


def compute_earning_amounts(booking, charges_gst: bool = False) -> dict:
    """Gross, platform fee, GST component and net for a booking; all in cents."""
    gross = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
    platform_fee = calculate_platform_fee(gross)
    return {
        "gross_amount": gross,
        "platform_fee_amount": platform_fee,
        "gst_amount": calculate_gst_component(gross, charges_gst),
        "net_amount": gross - platform_fee,
    }


class EarningService:
    """
    Provider earnings ledger. Every write here is best-effort: a ledger failure
    is logged and never fails the payment or status change that triggered it.
    """

    @staticmethod
    async def upsert_for_paid_booking(booking, payment_intent_id: Optional[str],
                                      charges_gst: bool = False) -> Optional[ProviderEarning]:
        try:
            amounts = compute_earning_amounts(booking, charges_gst)
            now = datetime.utcnow()
            earning = await ProviderEarning.find_one({"booking_id": booking.id})
            if earning is None:
                earning = ProviderEarning(
                    booking_id=booking.id,
                    provider_id=booking.provider_id,
                    stripe_payment_intent_id=payment_intent_id,
                    status=EarningStatus.HELD,
                    paid_at=now,
                    **amounts,
                )
                await earning.insert()
            else:
                for key, value in amounts.items():
                    setattr(earning, key, value)
                earning.stripe_payment_intent_id = payment_intent_id or earning.stripe_payment_intent_id
                earning.updated_at = now
                await earning.save()
            logger.info(f"Earnings ledger updated for booking {booking.id}")
            return earning
        except Exception as e:
            logger.error(f"⚠️ Failed to upsert earnings for booking {booking.id}: {e}", exc_info=True)
            return None

    @staticmethod
    async def set_status(booking_id, new_status: EarningStatus) -> bool:
        try:
            earning = await ProviderEarning.find_one({"booking_id": booking_id})
            if earning is None:
                logger.warning(f"No earnings row for booking {booking_id}; cannot mark {new_status.value}")
                return False
            earning.status = new_status.value
            earning.updated_at = datetime.utcnow()
            await earning.save()
            return True
        except Exception as e:
            logger.error(f"⚠️ Failed to mark earnings {new_status.value} for booking {booking_id}: {e}",
                         exc_info=True)
            return False
