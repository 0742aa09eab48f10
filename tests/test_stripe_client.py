"""Tests for the Stripe-backed billing client."""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from conduit.billing.stripe_client import StripeBillingClient
from conduit.errors.exceptions import BillingError, ConfigurationError, InvalidSignature

WEBHOOK_SECRET = "whsec_unit"


def _stripe_header(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def client():
    return StripeBillingClient("sk_test_unit", WEBHOOK_SECRET)


def test_requires_api_key():
    with pytest.raises(ConfigurationError):
        StripeBillingClient("", WEBHOOK_SECRET)


def test_construct_event_verifies_signature(client):
    payload = json.dumps(
        {"id": "evt_1", "object": "event", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}
    ).encode()
    event = client.construct_event(payload, _stripe_header(payload))
    assert event["type"] == "payment_intent.succeeded"
    assert event["data"]["object"]["id"] == "pi_1"


def test_construct_event_rejects_bad_signature(client):
    payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}'
    with pytest.raises(InvalidSignature):
        client.construct_event(payload, _stripe_header(payload, secret="whsec_other"))


def test_construct_event_rejects_stale_delivery(client):
    payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}'
    with pytest.raises(InvalidSignature):
        client.construct_event(payload, _stripe_header(payload, timestamp=int(time.time()) - 3600))


def test_construct_event_without_secret_fails_closed():
    client = StripeBillingClient("sk_test_unit", "")
    with pytest.raises(InvalidSignature):
        client.construct_event(b"{}", "t=1,v1=abc")


@pytest.mark.asyncio
async def test_find_or_create_reuses_existing_customer(client, monkeypatch):
    calls = []

    def fake_list(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(id="cus_existing")])

    def fake_create(**kwargs):
        raise AssertionError("must not create when a customer exists")

    monkeypatch.setattr(stripe.Customer, "list", fake_list)
    monkeypatch.setattr(stripe.Customer, "create", fake_create)

    customer = await client.find_or_create_customer("user_abc", "ada@example.com")

    assert customer.id == "cus_existing"
    assert customer.created is False
    assert calls == [{"email": "ada@example.com", "limit": 1, "api_key": "sk_test_unit"}]


@pytest.mark.asyncio
async def test_find_or_create_creates_with_user_metadata(client, monkeypatch):
    created = []

    def fake_create(**kwargs):
        created.append(kwargs)
        return SimpleNamespace(id="cus_new")

    monkeypatch.setattr(stripe.Customer, "list", lambda **kwargs: SimpleNamespace(data=[]))
    monkeypatch.setattr(stripe.Customer, "create", fake_create)

    customer = await client.find_or_create_customer("user_abc", "ada@example.com")

    assert customer.id == "cus_new"
    assert customer.created is True
    assert created[0]["metadata"] == {"userId": "user_abc"}


@pytest.mark.asyncio
async def test_sdk_errors_become_billing_errors(client, monkeypatch):
    def broken(*args, **kwargs):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.Customer, "delete", broken)
    with pytest.raises(BillingError) as exc_info:
        await client.delete_customer("cus_1")
    assert exc_info.value.details == {"operation": "customer.delete"}
    assert exc_info.value.status_code == 502
