"""End-to-end tests for the payment-processor webhook endpoint."""

import json

import pytest

from conftest import NOW, PAYMENT_SIGNATURE
from conduit.models.enums import QueueName


def _event(event_type: str, obj: dict, event_id: str = "evt_pay_1") -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "created": NOW, "data": {"object": obj}}).encode()


def _headers(signature: str = PAYMENT_SIGNATURE) -> dict:
    return {"content-type": "application/json", "stripe-signature": signature}


@pytest.mark.asyncio
async def test_subscription_lifecycle(client, container):
    await container.users.upsert("user_abc", "ada@example.com", billing_customer_id="cus_1")
    subscription = {"id": "sub_b1", "customer": "cus_1", "status": "trialing", "items": {"data": []}}

    response = await client.post(
        "/webhooks/payments", content=_event("customer.subscription.created", subscription), headers=_headers()
    )
    assert response.status_code == 200
    assert response.json()["result"]["matched"] == 1

    await client.post(
        "/webhooks/payments",
        content=_event("customer.subscription.updated", {**subscription, "status": "active"}, "evt_pay_2"),
        headers=_headers(),
    )
    sub = await container.subscriptions.get_by_billing_id("sub_b1")
    assert sub.user_id == "user_abc"
    assert sub.status == "active"

    await client.post(
        "/webhooks/payments",
        content=_event("customer.subscription.deleted", subscription, "evt_pay_3"),
        headers=_headers(),
    )
    assert (await container.subscriptions.get_by_billing_id("sub_b1")).status == "canceled"


@pytest.mark.asyncio
async def test_payment_failed_schedules_retry(client, container):
    await container.users.upsert("user_abc", "ada@example.com", billing_customer_id="cus_1")
    await container.payments.create(
        user_id="user_abc", payment_intent_id="pi_1", amount=2500, currency="usd", status="processing"
    )
    response = await client.post(
        "/webhooks/payments",
        content=_event("payment_intent.payment_failed", {"id": "pi_1", "customer": "cus_1"}),
        headers=_headers(),
    )
    assert response.status_code == 200
    assert response.json()["result"]["retry_job_id"] == "retry-payment:pi_1"
    assert container.queues.queue(QueueName.BILLING).get_job("retry-payment:pi_1") is not None


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected(client):
    response = await client.post(
        "/webhooks/payments", content=_event("payment_intent.succeeded", {"id": "pi_1"}), headers=_headers("bad")
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_missing_signature_header(client):
    response = await client.post(
        "/webhooks/payments",
        content=_event("payment_intent.succeeded", {"id": "pi_1"}),
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_SIGNATURE_HEADERS"


@pytest.mark.asyncio
async def test_unhandled_event_type_is_ignored(client):
    response = await client.post(
        "/webhooks/payments", content=_event("invoice.created", {"id": "in_1"}), headers=_headers()
    )
    assert response.status_code == 200
    assert response.json()["result"]["status"] == "ignored"
