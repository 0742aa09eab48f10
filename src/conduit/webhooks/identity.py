"""Handlers for identity-provider webhook events."""

import logging
from typing import TYPE_CHECKING, Any

from conduit.errors.exceptions import ValidationError
from conduit.models.webhook import HandlerResult
from conduit.services.otp import OtpService
from conduit.services.provisioning import UserProvisioningSaga, display_name, user_from_identity_payload
from conduit.webhooks.router import EventRouter

if TYPE_CHECKING:
    from conduit.workers.manager import QueueManager

logger = logging.getLogger(__name__)


class IdentityEventHandlers:
    def __init__(self, saga: UserProvisioningSaga, otp: OtpService, queues: "QueueManager | None" = None):
        self._saga = saga
        self._otp = otp
        self._queues = queues

    async def user_created(self, data: dict[str, Any]) -> HandlerResult:
        external_id, email, options = user_from_identity_payload(data)
        user = await self._saga.provision_user(external_id, email, options)

        jobs: dict[str, str] = {}
        if self._queues is not None:
            jobs["welcome_email"] = await self._queues.add_welcome_email(
                user.id, user.email, display_name(data, user.email)
            )
            jobs["track_event"] = await self._queues.track_analytics_event(
                "user.created", user_id=user.id, metadata={"source": "identity-webhook"}
            )
        return HandlerResult.success(
            "user.created", user_id=user.id, billing_customer_id=user.billing_customer_id, jobs=jobs
        )

    async def user_updated(self, data: dict[str, Any]) -> HandlerResult:
        external_id, email, options = user_from_identity_payload(data)
        user = await self._saga.sync_user(external_id, email, options.metadata)
        return HandlerResult.success("user.updated", user_id=user.id)

    async def user_deleted(self, data: dict[str, Any]) -> HandlerResult:
        external_id = data.get("id")
        if not external_id:
            raise ValidationError("user.deleted event has no user id", code="MISSING_USER_ID")
        matched = await self._saga.delete_user(external_id)
        return HandlerResult.success("user.deleted", user_id=external_id, matched=matched)

    async def email_created(self, data: dict[str, Any]) -> HandlerResult:
        email_id = data.get("email_address_id")
        code = OtpService.extract_code(data)
        if not email_id or not code:
            logger.info("email.created carried no one-time code; nothing stored")
            return HandlerResult.success("email.created", stored=False)
        await self._otp.store_otp(email_id, code)
        return HandlerResult.success("email.created", stored=True)


def build_identity_router(handlers: IdentityEventHandlers) -> EventRouter:
    return EventRouter(
        {
            "user.created": handlers.user_created,
            "user.updated": handlers.user_updated,
            "user.deleted": handlers.user_deleted,
            "email.created": handlers.email_created,
        }
    )
