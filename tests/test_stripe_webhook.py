from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
import stripe
from fastapi import FastAPI

from src.config.redis_client import claim_event
from src.crud.paymentService import PaymentService
from src.crud.providerService import ProviderService
from src.routes import stripeWebhookHandler


def stripe_event(event_type, obj, event_id="evt_1"):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


@pytest.fixture
def app():
    app = FastAPI()
    app.include_router(stripeWebhookHandler.router, prefix="/api/v1")
    return app


@pytest.fixture
def claim(monkeypatch):
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(stripeWebhookHandler, "claim_event", mock)
    return mock


async def post_event(app, headers=None):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(
            "/api/v1/stripe-webhook",
            content=b"{}",
            headers={"stripe-signature": "t=1,v1=abc"} if headers is None else headers,
        )


class TestWebhookListener:

    async def test_missing_signature(self, app, claim):
        response = await post_event(app, headers={})
        assert response.status_code == 400
        claim.assert_not_awaited()

    async def test_bad_signature(self, app, claim, monkeypatch):
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(side_effect=ValueError("No signatures found")))

        response = await post_event(app)

        assert response.status_code == 400
        claim.assert_not_awaited()

    async def test_checkout_completed_is_routed(self, app, claim, monkeypatch):
        session = {"id": "cs_1", "payment_status": "paid", "metadata": {"bookingId": "b1"}}
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(return_value=stripe_event("checkout.session.completed", session)))
        handler = AsyncMock(return_value=True)
        monkeypatch.setattr(PaymentService, "handle_checkout_session_paid", handler)

        response = await post_event(app)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        claim.assert_awaited_once_with("evt_1")
        handler.assert_awaited_once_with(session)

    async def test_duplicate_event_is_acknowledged_once(self, app, claim, monkeypatch):
        claim.return_value = False
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(return_value=stripe_event("payment_intent.succeeded", {"id": "pi_1"})))
        handler = AsyncMock(return_value=True)
        monkeypatch.setattr(PaymentService, "handle_payment_intent_succeeded", handler)

        response = await post_event(app)

        assert response.status_code == 200
        assert response.json() == {"received": True, "duplicate": True}
        handler.assert_not_awaited()

    async def test_handler_failure_still_acknowledged(self, app, claim, monkeypatch):
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(return_value=stripe_event("charge.refunded", {"id": "ch_1", "refunded": True})))
        monkeypatch.setattr(PaymentService, "handle_charge_refunded", AsyncMock(side_effect=RuntimeError("db down")))

        response = await post_event(app)

        assert response.status_code == 200

    async def test_account_updated(self, app, claim, monkeypatch):
        account = {"id": "acct_123", "charges_enabled": True, "payouts_enabled": False}
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(return_value=stripe_event("account.updated", account)))
        update = AsyncMock(return_value=True)
        monkeypatch.setattr(ProviderService, "update_connect_status", update)

        response = await post_event(app)

        assert response.status_code == 200
        update.assert_awaited_once_with("acct_123", True, False)

    async def test_unknown_event_type(self, app, claim, monkeypatch):
        monkeypatch.setattr(stripe.Webhook, "construct_event",
                            MagicMock(return_value=stripe_event("invoice.created", {"id": "in_1"})))

        response = await post_event(app)

        assert response.status_code == 200
        assert response.json() == {"received": True}


# ==========================================================
# EVENT DE-DUPLICATION
# ==========================================================

class FakeRedis:
    def __init__(self, fail=False):
        self.keys = {}
        self.fail = fail

    async def set(self, key, value, nx=False, ex=None):
        if self.fail:
            raise RedisConnectionError("redis unavailable")
        if nx and key in self.keys:
            return None
        self.keys[key] = (value, ex)
        return True


async def test_claim_event_once():
    connection = FakeRedis()

    assert await claim_event("evt_1", connection) is True
    assert await claim_event("evt_1", connection) is False
    assert connection.keys["event:evt_1"] == ("1", 86400)


async def test_claim_event_when_redis_is_down():
    assert await claim_event("evt_1", FakeRedis(fail=True)) is True
