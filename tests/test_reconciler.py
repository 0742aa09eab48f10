"""Tests for subscription and payment reconciliation."""

import pytest

from conduit.errors.exceptions import MalformedPayload
from conduit.services.reconciler import SubscriptionReconciler
from conduit.workers.manager import QueueManager


@pytest.fixture
def queues():
    return QueueManager()


@pytest.fixture
def reconciler(subscriptions, payments, users, queues):
    return SubscriptionReconciler(subscriptions, payments, users, queues)


def _subscription(status="active", **extra):
    data = {
        "id": "sub_billing_1",
        "customer": "cus_1",
        "status": status,
        "current_period_end": 1_700_086_400,
        "items": {"data": [{"price": {"id": "price_pro"}}]},
        "metadata": {"userId": "user_abc"},
    }
    data.update(extra)
    return data


@pytest.mark.asyncio
async def test_created_links_user_from_metadata(reconciler, subscriptions, users):
    await users.upsert("user_abc", "ada@example.com")
    result = await reconciler.apply_subscription_created(_subscription())

    assert result.model_dump()["matched"] == 1
    sub = await subscriptions.get_by_billing_id("sub_billing_1")
    assert sub.user_id == "user_abc"
    assert sub.price_id == "price_pro"
    assert sub.status == "active"
    assert sub.current_period_end is not None


@pytest.mark.asyncio
async def test_created_links_user_through_customer(reconciler, subscriptions, users):
    await users.upsert("user_abc", "ada@example.com", billing_customer_id="cus_1")
    await reconciler.apply_subscription_created(_subscription(metadata={}))
    sub = await subscriptions.get_by_billing_id("sub_billing_1")
    assert sub.user_id == "user_abc"


@pytest.mark.asyncio
async def test_created_without_known_user_is_recorded_unlinked(reconciler, subscriptions):
    await reconciler.apply_subscription_created(_subscription(metadata={}, customer="cus_unknown"))
    sub = await subscriptions.get_by_billing_id("sub_billing_1")
    assert sub.user_id is None


@pytest.mark.asyncio
async def test_replayed_created_event_keeps_one_row(reconciler, subscriptions, users):
    await users.upsert("user_abc", "ada@example.com")
    await reconciler.apply_subscription_created(_subscription())
    await reconciler.apply_subscription_created(_subscription())
    assert len(await subscriptions.list_for_user("user_abc")) == 1


@pytest.mark.asyncio
async def test_updated_overwrites_status(reconciler, subscriptions, users):
    await users.upsert("user_abc", "ada@example.com")
    await reconciler.apply_subscription_created(_subscription())
    result = await reconciler.apply_subscription_updated({"id": "sub_billing_1", "status": "past_due"})

    assert result.model_dump()["matched"] == 1
    assert (await subscriptions.get_by_billing_id("sub_billing_1")).status == "past_due"


@pytest.mark.asyncio
async def test_update_for_unknown_subscription_matches_nothing(reconciler):
    result = await reconciler.apply_subscription_updated({"id": "sub_missing", "status": "active"})
    assert result.model_dump()["matched"] == 0


@pytest.mark.asyncio
async def test_deleted_marks_canceled(reconciler, subscriptions, users):
    await users.upsert("user_abc", "ada@example.com")
    await reconciler.apply_subscription_created(_subscription())
    await reconciler.apply_subscription_deleted({"id": "sub_billing_1"})
    assert (await subscriptions.get_by_billing_id("sub_billing_1")).status == "canceled"


@pytest.mark.asyncio
async def test_missing_id_is_malformed(reconciler):
    with pytest.raises(MalformedPayload):
        await reconciler.apply_subscription_deleted({})


@pytest.mark.asyncio
async def test_payment_succeeded_updates_status(reconciler, payments, users):
    await users.upsert("user_abc", "ada@example.com")
    await payments.create(
        user_id="user_abc", payment_intent_id="pi_1", amount=1000, currency="usd", status="processing"
    )
    result = await reconciler.apply_payment_succeeded({"id": "pi_1"})

    assert result.model_dump()["matched"] == 1
    assert (await payments.list_for_user("user_abc"))[0].status == "succeeded"


@pytest.mark.asyncio
async def test_payment_failed_schedules_single_retry(reconciler, payments, users, queues):
    await users.upsert("user_abc", "ada@example.com")
    await payments.create(
        user_id="user_abc", payment_intent_id="pi_1", amount=1000, currency="usd", status="processing"
    )
    first = await reconciler.apply_payment_failed({"id": "pi_1", "customer": "cus_1"})
    second = await reconciler.apply_payment_failed({"id": "pi_1", "customer": "cus_1"})

    assert (await payments.list_for_user("user_abc"))[0].status == "failed"
    assert first.model_dump()["retry_job_id"] == "retry-payment:pi_1"
    assert second.model_dump()["retry_job_id"] == "retry-payment:pi_1"
    assert queues.queue("billing").counts().waiting == 1


@pytest.mark.asyncio
async def test_payment_failed_without_customer_skips_retry(reconciler, queues):
    result = await reconciler.apply_payment_failed({"id": "pi_unknown"})
    assert result.model_dump()["retry_job_id"] is None
    assert result.model_dump()["matched"] == 0
    assert queues.queue("billing").counts().waiting == 0
