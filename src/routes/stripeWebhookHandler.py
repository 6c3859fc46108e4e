from fastapi import APIRouter, Request, HTTPException, BackgroundTasks
import stripe
import logging

from src.config.redis_client import claim_event
from src.config.settings import settings
from src.crud.paymentService import PaymentService, stripe_field
from src.crud.providerService import ProviderService

logger = logging.getLogger(__name__)
router = APIRouter()

stripe.api_key = settings.stripe_keys["secret_key"]

CHECKOUT_PAID_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


# ==========================================================
# 1. BACKGROUND TASK HANDLERS
# ==========================================================

async def handle_connect_account_update(connect_id: str, charges_enabled: bool, payouts_enabled: bool):
    """Mirror the connected account's capabilities onto the provider. No write when unchanged."""
    logger.info(f"Background Task: Starting handle_connect_account_update for Connect ID: {connect_id}")
    try:
        await ProviderService.update_connect_status(connect_id, charges_enabled, payouts_enabled)
    except Exception as e:
        logger.error(f"❌ Error in handle_connect_account_update for Connect ID {connect_id}: {e}", exc_info=True)


async def handle_checkout_paid(session):
    session_id = stripe_field(session, "id")
    logger.info(f"Background Task: Starting handle_checkout_paid for Session ID: {session_id}")
    try:
        updated = await PaymentService.handle_checkout_session_paid(session)
        logger.info(f"✅ Checkout session {session_id} processed (booking updated={updated})")
    except Exception as e:
        logger.error(f"❌ Error in handle_checkout_paid for Session ID {session_id}: {e}", exc_info=True)


async def handle_payment_intent_succeeded(payment_intent):
    pi_id = stripe_field(payment_intent, "id")
    try:
        updated = await PaymentService.handle_payment_intent_succeeded(payment_intent)
        logger.info(f"✅ PaymentIntent {pi_id} processed (booking updated={updated})")
    except Exception as e:
        logger.error(f"❌ Error in handle_payment_intent_succeeded for {pi_id}: {e}", exc_info=True)


async def handle_dispute_created(dispute):
    try:
        await PaymentService.handle_dispute_created(dispute)
    except Exception as e:
        logger.error(f"❌ Error handling dispute {stripe_field(dispute, 'id')}: {e}", exc_info=True)


async def handle_charge_refunded(charge):
    try:
        await PaymentService.handle_charge_refunded(charge)
    except Exception as e:
        logger.error(f"❌ Error handling refunded charge {stripe_field(charge, 'id')}: {e}", exc_info=True)


# ==========================================================
# 2. MAIN WEBHOOK LISTENER
# ==========================================================

@router.post("/stripe-webhook", summary="Stripe Webhook Listener")
async def stripe_webhook_listener(request: Request, background_tasks: BackgroundTasks):
    """
    Booking payments, disputes, refunds and Connect account updates.
    Once the signature checks out the event is always acknowledged; handler
    failures are logged and recovered by sync-payment or the reconcile job.
    """
    payload = await request.body()
    sig_header = request.headers.get('stripe-signature')

    if not sig_header:
        raise HTTPException(status_code=400, detail="Stripe-Signature header missing")

    try:
        event = stripe.Webhook.construct_event(
            payload, sig_header, settings.stripe_keys["bookings_webhook_secret"] or settings.stripe_keys["webhook_secret"]
        )
    except Exception as e:
        logger.error(f"Webhook Error: Verification failed: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail="Invalid webhook signature or payload")

    event_id = event['id']
    event_type = event['type']
    data_object = event['data']['object']
    logger.info(f"Received Stripe event: {event_type} ({event_id}) for object ID: {stripe_field(data_object, 'id')}")

    if not await claim_event(event_id):
        logger.info(f"ℹ️ Stripe event {event_id} already processed; skipping")
        return {"received": True, "duplicate": True}

    # ==========================================================
    # EVENT ROUTING
    # ==========================================================

    if event_type == 'account.updated':
        background_tasks.add_task(
            handle_connect_account_update,
            stripe_field(data_object, 'id'),
            bool(stripe_field(data_object, 'charges_enabled', False)),
            bool(stripe_field(data_object, 'payouts_enabled', False))
        )

    elif event_type in CHECKOUT_PAID_EVENTS:
        background_tasks.add_task(handle_checkout_paid, data_object)

    elif event_type == 'payment_intent.succeeded':
        background_tasks.add_task(handle_payment_intent_succeeded, data_object)

    elif event_type == 'charge.dispute.created':
        background_tasks.add_task(handle_dispute_created, data_object)

    elif event_type == 'charge.refunded':
        background_tasks.add_task(handle_charge_refunded, data_object)

    else:
        logger.info(f"Unhandled event type {event_type}")

    return {"received": True}
