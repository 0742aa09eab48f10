"""Applies payment-processor events to the stored subscription and payment rows.

Every operation is an overwrite keyed on the processor's own id, so replaying
an event leaves the same state behind. Updates that match nothing are logged
and reported with ``matched=0`` rather than raised.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from conduit.errors.exceptions import MalformedPayload
from conduit.models.enums import PaymentStatus, SubscriptionStatus
from conduit.models.webhook import HandlerResult
from conduit.repositories.base import PaymentRepository, SubscriptionRepository, UserRepository

if TYPE_CHECKING:
    from conduit.workers.manager import QueueManager

logger = logging.getLogger(__name__)


def _timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _require_id(data: dict[str, Any], kind: str) -> str:
    object_id = data.get("id")
    if not object_id:
        raise MalformedPayload(f"{kind} event has no id")
    return object_id


def _first_price_id(data: dict[str, Any]) -> str | None:
    items = (data.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


class SubscriptionReconciler:
    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        payments: PaymentRepository,
        users: UserRepository,
        queues: "QueueManager | None" = None,
    ):
        self._subscriptions = subscriptions
        self._payments = payments
        self._users = users
        self._queues = queues

    async def _resolve_user_id(self, data: dict[str, Any]) -> str | None:
        user_id = (data.get("metadata") or {}).get("userId")
        if user_id:
            return user_id
        customer_id = data.get("customer")
        if customer_id:
            user = await self._users.get_by_billing_customer_id(customer_id)
            if user:
                return user.id
        return None

    async def apply_subscription_created(self, data: dict[str, Any]) -> HandlerResult:
        billing_id = _require_id(data, "Subscription")
        user_id = await self._resolve_user_id(data)
        if user_id is None:
            logger.warning("Subscription %s has no linked user yet", billing_id)

        await self._subscriptions.upsert(
            billing_id,
            status=data.get("status") or SubscriptionStatus.INCOMPLETE,
            user_id=user_id,
            billing_customer_id=data.get("customer"),
            price_id=_first_price_id(data),
            current_period_end=_timestamp(data.get("current_period_end")),
            cancel_at=_timestamp(data.get("cancel_at")),
        )
        logger.info("Subscription %s recorded (status=%s)", billing_id, data.get("status"))
        return HandlerResult.success("customer.subscription.created", matched=1)

    async def apply_subscription_updated(self, data: dict[str, Any]) -> HandlerResult:
        billing_id = _require_id(data, "Subscription")
        status = data.get("status")
        if not status:
            raise MalformedPayload("Subscription update has no status")
        matched = await self._subscriptions.update_status(billing_id, status)
        if not matched:
            logger.info("Subscription %s not found; update ignored", billing_id)
        return HandlerResult.success("customer.subscription.updated", matched=matched)

    async def apply_subscription_deleted(self, data: dict[str, Any]) -> HandlerResult:
        billing_id = _require_id(data, "Subscription")
        matched = await self._subscriptions.update_status(billing_id, SubscriptionStatus.CANCELED)
        if not matched:
            logger.info("Subscription %s not found; cancellation ignored", billing_id)
        return HandlerResult.success("customer.subscription.deleted", matched=matched)

    async def apply_payment_succeeded(self, data: dict[str, Any]) -> HandlerResult:
        intent_id = _require_id(data, "PaymentIntent")
        matched = await self._payments.update_status(intent_id, PaymentStatus.SUCCEEDED)
        if not matched:
            logger.info("Payment %s not found; success ignored", intent_id)
        return HandlerResult.success("payment_intent.succeeded", matched=matched)

    async def apply_payment_failed(self, data: dict[str, Any]) -> HandlerResult:
        intent_id = _require_id(data, "PaymentIntent")
        matched = await self._payments.update_status(intent_id, PaymentStatus.FAILED)
        if not matched:
            logger.info("Payment %s not found; failure ignored", intent_id)

        retry_job_id = None
        customer_id = data.get("customer")
        if customer_id and self._queues is not None:
            retry_job_id = await self._queues.add_payment_retry(intent_id, customer_id)
        return HandlerResult.success("payment_intent.payment_failed", matched=matched, retry_job_id=retry_job_id)
