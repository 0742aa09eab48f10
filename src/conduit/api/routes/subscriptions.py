"""Subscription lifecycle endpoints for the signed-in user."""

from fastapi import APIRouter, status

from conduit.dependencies import AppContainer, CurrentUserId
from conduit.models.billing import (
    CreateSubscriptionRequest,
    PauseSubscriptionRequest,
    Subscription,
    UpdateSubscriptionRequest,
)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("", response_model=Subscription, status_code=status.HTTP_201_CREATED)
async def create_subscription(body: CreateSubscriptionRequest, user_id: CurrentUserId, container: AppContainer):
    return await container.subscriptions_service.create_subscription(user_id, body.price_id)


@router.get("", response_model=list[Subscription])
async def list_subscriptions(user_id: CurrentUserId, container: AppContainer):
    return await container.subscriptions_service.list_user_subscriptions(user_id)


@router.patch("/{subscription_id}")
async def update_subscription(
    subscription_id: str, body: UpdateSubscriptionRequest, user_id: CurrentUserId, container: AppContainer
):
    return await container.subscriptions_service.update_subscription(user_id, subscription_id, body)


@router.post("/{subscription_id}/pause")
async def pause_subscription(
    subscription_id: str, body: PauseSubscriptionRequest, user_id: CurrentUserId, container: AppContainer
):
    return await container.subscriptions_service.pause_subscription(user_id, subscription_id, body.resume_at)


@router.post("/{subscription_id}/resume")
async def resume_subscription(subscription_id: str, user_id: CurrentUserId, container: AppContainer):
    return await container.subscriptions_service.resume_subscription(user_id, subscription_id)


@router.delete("/{subscription_id}")
async def cancel_subscription(subscription_id: str, user_id: CurrentUserId, container: AppContainer):
    return await container.subscriptions_service.cancel_subscription(user_id, subscription_id)
