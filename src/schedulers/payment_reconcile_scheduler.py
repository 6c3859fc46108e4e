# src/schedulers/payment_reconcile_scheduler.py
from datetime import datetime, timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import HTTPException
import logging

from src.commonUtils.enumUtils import BookingStatus
from src.config.settings import settings
from src.crud.paymentService import PaymentService
from src.models.bookingModel import Booking

logger = logging.getLogger(__name__)

# Sessions older than this have expired in Stripe and cannot complete any more
CHECKOUT_SESSION_MAX_AGE = timedelta(days=2)


class PaymentReconcileScheduler:
    """Re-runs payment sync for accepted bookings with an open checkout session, in case a webhook was lost."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()

    async def reconcile_task(self) -> dict:
        """Task to run the reconciliation"""
        cutoff = datetime.utcnow() - CHECKOUT_SESSION_MAX_AGE
        bookings = await Booking.find({
            "status": BookingStatus.ACCEPTED.value,
            "checkout_session_id": {"$ne": None},
            "updated_at": {"$gte": cutoff},
        }).to_list()

        summary = {"checked": len(bookings), "updated": 0, "failed": 0}
        for booking in bookings:
            try:
                result = await PaymentService.sync_booking(booking, booking.checkout_session_id)
                if result.get("updated"):
                    summary["updated"] += 1
            except HTTPException as e:
                summary["failed"] += 1
                logger.warning(f"Reconcile failed for booking {booking.id}: {e.detail}")
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"Reconcile failed for booking {booking.id}: {e}", exc_info=True)

        logger.info(f"Scheduled payment reconcile completed: {summary}")
        return summary

    def start(self, minutes: int = None):
        """
        Start the periodic reconcile job.
        Note: Environment check is handled in the lifespan function.
        """
        minutes = minutes or settings.PAYMENT_RECONCILE_CRON_MINUTES
        try:
            self.scheduler.add_job(
                func=self.reconcile_task,
                trigger=IntervalTrigger(minutes=minutes),
                id="payment_reconcile",
                name="Booking Payment Reconcile",
                replace_existing=True
            )
            self.scheduler.start()
            logger.info(f"Payment reconcile scheduled every {minutes} minutes")
        except Exception as e:
            logger.error(f"Failed to start payment reconcile scheduler: {e}")

    def stop(self):
        """Stop the periodic reconcile scheduler."""
        try:
            if self.scheduler.running:
                self.scheduler.shutdown()
                logger.info("Payment reconcile scheduler stopped")
        except Exception as e:
            logger.error(f"Error stopping payment reconcile scheduler: {e}")

    def is_running(self) -> bool:
        return self.scheduler.running


# Global instance
payment_reconcile_scheduler = PaymentReconcileScheduler()
