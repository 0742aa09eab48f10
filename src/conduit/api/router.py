"""Master route table."""

from fastapi import APIRouter

from conduit.api.routes import (
    actions,
    datalayer_webhooks,
    health,
    identity_webhooks,
    payment_webhooks,
    payments,
    queue_dashboard,
    subscriptions,
)

api_router = APIRouter()
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(identity_webhooks.router)
api_router.include_router(payment_webhooks.router)
api_router.include_router(datalayer_webhooks.router)
api_router.include_router(actions.router)
api_router.include_router(payments.router)
api_router.include_router(subscriptions.router)
api_router.include_router(queue_dashboard.router)
