"""Stripe-backed billing client.

The Stripe SDK is synchronous, so every call runs in a worker thread via
``asyncio.to_thread``. SDK failures surface as ``BillingError``; webhook
verification failures surface as ``InvalidSignature``.
"""

import asyncio
import logging
from datetime import datetime
from functools import partial
from typing import Any

import stripe

from conduit.errors.exceptions import BillingError, ConfigurationError, InvalidSignature, MalformedPayload
from conduit.models.billing import BillingCustomer

logger = logging.getLogger(__name__)


def _plain(obj: Any) -> dict[str, Any]:
    return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)


class StripeBillingClient:
    def __init__(self, api_key: str, webhook_secret: str, tolerance_seconds: int = 300):
        if not api_key:
            raise ConfigurationError(["payment_secret_key"])
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._tolerance = tolerance_seconds

    async def _call(self, operation: str, fn, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(partial(fn, *args, api_key=self._api_key, **kwargs))
        except stripe.StripeError as exc:
            logger.error("Stripe %s failed: %s", operation, exc.user_message or exc)
            raise BillingError(str(exc.user_message or exc), details={"operation": operation}) from exc

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def find_or_create_customer(self, user_id: str, email: str) -> BillingCustomer:
        """Return the customer already holding ``email``, creating one only when none exists."""
        existing = await self._call("customer.list", stripe.Customer.list, email=email, limit=1)
        if existing.data:
            customer_id = existing.data[0].id
            logger.info("Reusing Stripe customer %s for user %s", customer_id, user_id)
            return BillingCustomer(id=customer_id, created=False)

        customer = await self._call(
            "customer.create",
            stripe.Customer.create,
            email=email,
            metadata={"userId": user_id},
        )
        logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
        return BillingCustomer(id=customer.id, created=True)

    async def delete_customer(self, customer_id: str) -> None:
        await self._call("customer.delete", stripe.Customer.delete, customer_id)

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        return _plain(await self._call("customer.retrieve", stripe.Customer.retrieve, customer_id))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def create_subscription(self, customer_id: str, price_id: str) -> dict[str, Any]:
        sub = await self._call(
            "subscription.create",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
        )
        return _plain(sub)

    async def update_subscription(
        self, subscription_id: str, *, price_id: str | None = None, cancel_at_period_end: bool | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if price_id:
            current = await self._call("subscription.retrieve", stripe.Subscription.retrieve, subscription_id)
            params["items"] = [{"id": current["items"]["data"][0]["id"], "price": price_id}]
        if cancel_at_period_end is not None:
            params["cancel_at_period_end"] = cancel_at_period_end
        return _plain(await self._call("subscription.modify", stripe.Subscription.modify, subscription_id, **params))

    async def pause_subscription(self, subscription_id: str, resume_at: datetime | None = None) -> dict[str, Any]:
        pause: dict[str, Any] = {"behavior": "mark_uncollectible"}
        if resume_at:
            pause["resumes_at"] = int(resume_at.timestamp())
        return _plain(
            await self._call("subscription.pause", stripe.Subscription.modify, subscription_id, pause_collection=pause)
        )

    async def resume_subscription(self, subscription_id: str) -> dict[str, Any]:
        # An empty string unsets pause_collection
        return _plain(
            await self._call("subscription.resume", stripe.Subscription.modify, subscription_id, pause_collection="")
        )

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        return _plain(await self._call("subscription.cancel", stripe.Subscription.cancel, subscription_id))

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self, amount: int, currency: str, customer_id: str | None = None, metadata: dict[str, str] | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if metadata:
            params["metadata"] = metadata
        return _plain(await self._call("payment_intent.create", stripe.PaymentIntent.create, **params))

    async def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        return _plain(
            await self._call("payment_intent.retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)
        )

    async def confirm_payment_intent(self, payment_intent_id: str, **options: Any) -> dict[str, Any]:
        return _plain(
            await self._call("payment_intent.confirm", stripe.PaymentIntent.confirm, payment_intent_id, **options)
        )

    async def create_checkout_session(
        self,
        *,
        user_id: str,
        amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": "Payment"},
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"userId": user_id},
        }
        if customer_id:
            params["customer"] = customer_id
        return _plain(await self._call("checkout.create", stripe.checkout.Session.create, **params))

    async def refund(self, payment_intent_id: str, amount: int | None = None, reason: str | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = amount
        if reason:
            params["reason"] = reason
        return _plain(await self._call("refund.create", stripe.Refund.create, **params))

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def construct_event(self, payload: bytes, signature_header: str) -> dict[str, Any]:
        if not self._webhook_secret:
            raise InvalidSignature("Payment webhook secret is not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature_header, self._webhook_secret, tolerance=self._tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(str(exc)) from exc
        except ValueError as exc:
            raise MalformedPayload(f"Payment webhook body is not valid JSON: {exc}") from exc
        return _plain(event)
