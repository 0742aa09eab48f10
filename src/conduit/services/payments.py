"""User-facing payment and subscription operations."""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from conduit.billing.base import BillingClient
from conduit.errors.exceptions import NotFoundError, ValidationError
from conduit.models.billing import (
    CreateCheckoutSessionRequest,
    CreatePaymentIntentRequest,
    Payment,
    RefundPaymentRequest,
    Subscription,
    UpdateSubscriptionRequest,
)
from conduit.models.user import User
from conduit.repositories.base import PaymentRepository, SubscriptionRepository, UserRepository

if TYPE_CHECKING:
    from conduit.workers.manager import QueueManager

logger = logging.getLogger(__name__)


async def _require_user(users: UserRepository, user_id: str) -> User:
    user = await users.get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _billing_customer(user: User) -> str:
    if not user.billing_customer_id:
        raise ValidationError(
            "User has no billing customer", details={"user_id": user.id}, code="NO_BILLING_CUSTOMER"
        )
    return user.billing_customer_id


def _epoch(value: Any) -> datetime | None:
    return datetime.fromtimestamp(int(value), tz=timezone.utc) if value else None


class PaymentsService:
    def __init__(self, payments: PaymentRepository, users: UserRepository, billing: BillingClient):
        self._payments = payments
        self._users = users
        self._billing = billing

    async def create_payment(self, user_id: str, amount: int, currency: str) -> Payment:
        """Create a payment intent for the user's customer and record it."""
        user = await _require_user(self._users, user_id)
        intent = await self._billing.create_payment_intent(
            amount, currency, customer_id=_billing_customer(user), metadata={"userId": user_id}
        )
        payment = await self._payments.create(
            user_id=user_id,
            payment_intent_id=intent["id"],
            amount=amount,
            currency=currency,
            status=intent.get("status", "requires_payment_method"),
        )
        logger.info("Payment %s created for user %s", payment.payment_intent_id, user_id)
        return payment

    async def list_user_payments(self, user_id: str) -> list[Payment]:
        return await self._payments.list_for_user(user_id)

    async def create_checkout_session(self, user_id: str, request: CreateCheckoutSessionRequest) -> dict[str, Any]:
        user = await _require_user(self._users, user_id)
        return await self._billing.create_checkout_session(
            user_id=user_id,
            amount=request.amount,
            currency=request.currency,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            customer_id=request.customer_id or user.billing_customer_id,
        )

    async def create_payment_intent(self, user_id: str, request: CreatePaymentIntentRequest) -> dict[str, Any]:
        user = await _require_user(self._users, user_id)
        customer_id = request.customer_id or _billing_customer(user)
        intent = await self._billing.create_payment_intent(
            request.amount, request.currency, customer_id=customer_id, metadata={"userId": user_id}
        )
        await self._payments.create(
            user_id=user_id,
            payment_intent_id=intent["id"],
            amount=request.amount,
            currency=request.currency,
            status=intent.get("status", "requires_payment_method"),
        )
        return intent

    async def refund(self, request: RefundPaymentRequest) -> dict[str, Any]:
        return await self._billing.refund(request.payment_intent_id, request.amount, request.reason)


class SubscriptionsService:
    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        users: UserRepository,
        billing: BillingClient,
        queues: "QueueManager | None" = None,
    ):
        self._subscriptions = subscriptions
        self._users = users
        self._billing = billing
        self._queues = queues

    async def _owned(self, user_id: str, billing_subscription_id: str) -> Subscription:
        sub = await self._subscriptions.get_by_billing_id(billing_subscription_id)
        if sub is None or sub.user_id != user_id:
            raise NotFoundError("Subscription", billing_subscription_id)
        return sub

    async def create_subscription(self, user_id: str, price_id: str) -> Subscription:
        user = await _require_user(self._users, user_id)
        created = await self._billing.create_subscription(_billing_customer(user), price_id)
        sub = await self._subscriptions.upsert(
            created["id"],
            status=created.get("status", "incomplete"),
            user_id=user_id,
            billing_customer_id=user.billing_customer_id,
            price_id=price_id,
            current_period_end=_epoch(created.get("current_period_end")),
        )
        logger.info("Subscription %s created for user %s", sub.billing_subscription_id, user_id)
        return sub

    async def list_user_subscriptions(self, user_id: str) -> list[Subscription]:
        return await self._subscriptions.list_for_user(user_id)

    async def update_subscription(
        self, user_id: str, billing_subscription_id: str, request: UpdateSubscriptionRequest
    ) -> dict[str, Any]:
        await self._owned(user_id, billing_subscription_id)
        updated = await self._billing.update_subscription(
            billing_subscription_id,
            price_id=request.price_id,
            cancel_at_period_end=request.cancel_at_period_end,
        )
        if request.cancel_at_period_end and self._queues is not None:
            user = await _require_user(self._users, user_id)
            await self._queues.add_subscription_expiry_notification(
                user.email,
                user.email.split("@", 1)[0],
                _epoch(updated.get("current_period_end")),
            )
        return updated

    async def pause_subscription(
        self, user_id: str, billing_subscription_id: str, resume_at: datetime | None = None
    ) -> dict[str, Any]:
        await self._owned(user_id, billing_subscription_id)
        return await self._billing.pause_subscription(billing_subscription_id, resume_at)

    async def resume_subscription(self, user_id: str, billing_subscription_id: str) -> dict[str, Any]:
        await self._owned(user_id, billing_subscription_id)
        return await self._billing.resume_subscription(billing_subscription_id)

    async def cancel_subscription(self, user_id: str, billing_subscription_id: str) -> dict[str, Any]:
        await self._owned(user_id, billing_subscription_id)
        return await self._billing.cancel_subscription(billing_subscription_id)
