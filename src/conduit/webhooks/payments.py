"""Handlers for payment-processor webhook events."""

from conduit.services.reconciler import SubscriptionReconciler
from conduit.webhooks.router import EventRouter


def build_payment_router(reconciler: SubscriptionReconciler) -> EventRouter:
    return EventRouter(
        {
            "customer.subscription.created": reconciler.apply_subscription_created,
            "customer.subscription.updated": reconciler.apply_subscription_updated,
            "customer.subscription.deleted": reconciler.apply_subscription_deleted,
            "payment_intent.succeeded": reconciler.apply_payment_succeeded,
            "payment_intent.payment_failed": reconciler.apply_payment_failed,
        }
    )
