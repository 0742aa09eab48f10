"""Payment endpoints for the signed-in user."""

from fastapi import APIRouter

from conduit.dependencies import AppContainer, CurrentUserId
from conduit.models.billing import (
    CreateCheckoutSessionRequest,
    CreatePaymentIntentRequest,
    Payment,
    RefundPaymentRequest,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/checkout")
async def create_checkout_session(
    body: CreateCheckoutSessionRequest, user_id: CurrentUserId, container: AppContainer
):
    session = await container.payments_service.create_checkout_session(user_id, body)
    return {"sessionId": session["id"], "url": session.get("url")}


@router.post("/payment-intent")
async def create_payment_intent(body: CreatePaymentIntentRequest, user_id: CurrentUserId, container: AppContainer):
    intent = await container.payments_service.create_payment_intent(user_id, body)
    return {"paymentIntentId": intent["id"], "clientSecret": intent.get("client_secret")}


@router.post("/refund")
async def refund_payment(body: RefundPaymentRequest, user_id: CurrentUserId, container: AppContainer):
    refund = await container.payments_service.refund(body)
    return {"refundId": refund["id"], "status": refund.get("status")}


@router.get("", response_model=list[Payment])
async def list_payments(user_id: CurrentUserId, container: AppContainer):
    return await container.payments_service.list_user_payments(user_id)
